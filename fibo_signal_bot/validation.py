from __future__ import annotations

import math
from typing import List, Optional, Sequence

from .models import Candle, IndicatorParams, TargetParams


class InputError(ValueError):
    """Malformed candles or an invalid parameter combination. Nothing is computed."""


def _is_int(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _is_finite(v: object) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


def param_errors(params: IndicatorParams) -> List[str]:
    errs: List[str] = []
    for name, minimum in (
        ("adx_period", 1),
        ("slope_window", 2),
        ("slope_smooth", 1),
        ("gog_span", 1),
        ("swing_left", 1),
        ("swing_right", 1),
    ):
        v = getattr(params, name)
        if not _is_int(v) or v < minimum:
            errs.append(f"{name} must be an integer >= {minimum} (got {v!r})")

    if not _is_finite(params.adx_threshold) or params.adx_threshold <= 0:
        errs.append(f"adx_threshold must be > 0 (got {params.adx_threshold!r})")

    lo, hi = params.fibo_retr_low, params.fibo_retr_high
    if not _is_finite(lo) or not _is_finite(hi):
        errs.append(f"fibo_retr_low/fibo_retr_high must be finite (got {lo!r}, {hi!r})")
    elif not (0.0 <= lo < hi <= 1.0):
        errs.append(f"fibo_retr_low < fibo_retr_high required within [0, 1] (got fibo_retr_low={lo}, fibo_retr_high={hi})")
    return errs


def target_errors(targets: TargetParams) -> List[str]:
    errs: List[str] = []
    if not _is_finite(targets.sl_buffer_ratio) or targets.sl_buffer_ratio <= 0:
        errs.append(f"sl_buffer_ratio must be > 0 (got {targets.sl_buffer_ratio!r})")

    mults = tuple(targets.tp_multipliers or ())
    if len(mults) != 3 or not all(_is_finite(m) for m in mults):
        errs.append(f"tp_multipliers must be three finite numbers (got {mults!r})")
    elif not (0 < mults[0] < mults[1] < mults[2]):
        errs.append(f"tp_multipliers must be positive and strictly increasing (got {mults!r})")
    return errs


def validate_params(params: IndicatorParams, targets: Optional[TargetParams] = None) -> None:
    errs = param_errors(params)
    if targets is not None:
        errs.extend(target_errors(targets))
    if errs:
        raise InputError("Invalid parameters: " + "; ".join(errs))


def validate_candles(candles: Sequence[Candle]) -> None:
    """Reject the whole series on the first malformed candle.

    Skipping a bad candle would shift every index the swing and Fibonacci stages rely on.
    """
    prev_ts: Optional[int] = None
    for i, c in enumerate(candles):
        for field in ("open", "high", "low", "close", "volume"):
            v = getattr(c, field)
            if not _is_finite(v):
                raise InputError(f"Malformed candle idx={i} ts={c.timestamp_ms}: {field} is not finite ({v!r})")
        if c.volume < 0:
            raise InputError(f"Malformed candle idx={i} ts={c.timestamp_ms}: volume must be >= 0 ({c.volume})")
        if prev_ts is not None and c.timestamp_ms <= prev_ts:
            raise InputError(
                f"Malformed candle idx={i}: timestamp {c.timestamp_ms} not strictly after previous {prev_ts}"
            )
        prev_ts = c.timestamp_ms
