from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .fibo import leg_series
from .indicators import adx_series, gog_series, linreg_slope_series, sma_series
from .models import (
    BUY,
    DOWN,
    SELL,
    UP,
    AnnotatedCandle,
    Candle,
    EngineResult,
    FiboLeg,
    IndicatorParams,
    Signal,
    TargetParams,
)
from .swings import detect_swings
from .validation import validate_candles, validate_params

log = logging.getLogger("engine")


def annotate(candles: Sequence[Candle], params: IndicatorParams) -> List[AnnotatedCandle]:
    """Stages 1-3: ADX, slope/GOG and swing flags, index-aligned with `candles`."""
    highs = [c.high for c in candles]
    lows = [c.low for c in candles]
    closes = [c.close for c in candles]

    adx = adx_series(highs, lows, closes, params.adx_period)
    raw_slope = linreg_slope_series(closes, params.slope_window)
    slope = sma_series(raw_slope, params.slope_smooth)
    gog = gog_series(slope, params.gog_span)
    swing_high, swing_low = detect_swings(highs, lows, params.swing_left, params.swing_right)

    return [
        AnnotatedCandle(
            timestamp_ms=c.timestamp_ms,
            open=c.open,
            high=c.high,
            low=c.low,
            close=c.close,
            volume=c.volume,
            adx=adx[i],
            slope=slope[i],
            gog=gog[i],
            is_swing_high=swing_high[i],
            is_swing_low=swing_low[i],
        )
        for i, c in enumerate(candles)
    ]


def _buy_fires(c: AnnotatedCandle, leg: Optional[FiboLeg], params: IndicatorParams) -> bool:
    return (
        leg is not None
        and leg.direction == UP
        and c.adx is not None and c.adx >= params.adx_threshold
        and c.slope is not None and c.slope > 0
        and c.gog is not None and c.gog > 0
        and leg.contains(c.close)
    )


def _sell_fires(c: AnnotatedCandle, leg: Optional[FiboLeg], params: IndicatorParams) -> bool:
    return (
        leg is not None
        and leg.direction == DOWN
        and c.adx is not None and c.adx >= params.adx_threshold
        and c.slope is not None and c.slope < 0
        and c.gog is not None and c.gog < 0
        and leg.contains(c.close)
    )


def _make_signal(side: str, c: AnnotatedCandle, leg: FiboLeg, targets: TargetParams) -> Signal:
    rng = leg.range
    buffer = rng * float(targets.sl_buffer_ratio)
    m1, m2, m3 = targets.tp_multipliers
    price = c.close

    if side == BUY:
        sl = leg.swing_low_price - buffer
        tps = (price + rng * m1, price + rng * m2, price + rng * m3)
        reason = f"ADX forte ({c.adx:.1f}) + slope/GOG positivos + retração Fibonacci em tendência de alta"
    else:
        sl = leg.swing_high_price + buffer
        tps = (price - rng * m1, price - rng * m2, price - rng * m3)
        reason = f"ADX forte ({c.adx:.1f}) + slope/GOG negativos + retração Fibonacci em tendência de baixa"

    return Signal(
        timestamp_ms=c.timestamp_ms,
        type=side,
        price=price,
        reason=reason,
        sl=sl,
        tp1=tps[0],
        tp2=tps[1],
        tp3=tps[2],
    )


def synthesize_signals(
    candles: Sequence[AnnotatedCandle],
    legs: Sequence[Optional[FiboLeg]],
    params: IndicatorParams,
    targets: TargetParams,
) -> List[Signal]:
    """Stage 5: at most one signal per bar, evaluated independently. BUY wins ties."""
    signals: List[Signal] = []
    for c, leg in zip(candles, legs):
        if _buy_fires(c, leg, params):
            signals.append(_make_signal(BUY, c, leg, targets))
        elif _sell_fires(c, leg, params):
            signals.append(_make_signal(SELL, c, leg, targets))
    return signals


def generate_signals_and_indicators(
    candles: Sequence[Candle],
    params: IndicatorParams,
    targets: Optional[TargetParams] = None,
) -> EngineResult:
    """Recompute every indicator and signal for the full series.

    Raises InputError before any computation when params or candles are malformed.
    Short series are not an error: warm-up values are None and no signals fire.
    """
    targets = targets if targets is not None else TargetParams()
    validate_params(params, targets)
    validate_candles(candles)

    if not candles:
        return EngineResult(candles=[], signals=[])

    annotated = annotate(candles, params)
    legs = leg_series(annotated, params)
    signals = synthesize_signals(annotated, legs, params, targets)

    log.debug(
        "engine_done bars=%d swing_highs=%d swing_lows=%d signals=%d",
        len(annotated),
        sum(1 for c in annotated if c.is_swing_high),
        sum(1 for c in annotated if c.is_swing_low),
        len(signals),
    )
    return EngineResult(candles=annotated, signals=signals)
