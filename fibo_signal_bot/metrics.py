from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence, Tuple

from .models import EngineResult, IndicatorRecord, Signal

UNDEFINED_LABEL = "Indefinido"


def latest_indicators(result: EngineResult) -> IndicatorRecord:
    if not result.candles:
        return IndicatorRecord(adx=None, slope=None, gog=None)
    return result.candles[-1].indicators


STRONG_ADX = 25.0


def trend_labels(record: IndicatorRecord, adx_threshold: float, strong_adx: float = STRONG_ADX) -> Dict[str, str]:
    adx = record.adx
    if adx is None:
        strength = UNDEFINED_LABEL
    elif adx > max(strong_adx, adx_threshold):
        strength = "Tendência Forte"
    elif adx >= adx_threshold:
        strength = "Tendência Moderada"
    else:
        strength = "Tendência Fraca"

    if record.slope is None:
        direction = UNDEFINED_LABEL
    else:
        direction = "Tendência de Alta" if record.slope > 0 else "Tendência de Baixa"

    if record.gog is None:
        momentum = UNDEFINED_LABEL
    else:
        momentum = "Acelerando" if record.gog > 0 else "Desacelerando"

    return {"strength": strength, "direction": direction, "momentum": momentum}


def normalize_series(values: Sequence[Optional[float]]) -> List[Optional[float]]:
    """Min-max scale into [0, 1] so ADX, slope and GOG can share one axis."""
    valid = [v for v in values if v is not None and math.isfinite(v)]
    if len(valid) < 2:
        return [0.5] * len(values)
    lo = min(valid)
    hi = max(valid)
    out: List[Optional[float]] = []
    for v in values:
        if v is None or not math.isfinite(v):
            out.append(None)
        elif hi == lo:
            out.append(0.5)
        else:
            out.append((v - lo) / (hi - lo))
    return out


def visible_window(length: int, start_pct: float = 50.0, end_pct: float = 100.0) -> Tuple[int, int]:
    """[start, end) index range for a zoom window given in percent of the series."""
    if length <= 0:
        return 0, 0
    start_pct = min(max(float(start_pct), 0.0), 100.0)
    end_pct = min(max(float(end_pct), start_pct), 100.0)
    start = int(math.floor(length * start_pct / 100.0))
    end = int(math.ceil(length * end_pct / 100.0))
    return start, min(end, length)


def indicator_history(result: EngineResult, field: str, start: int = 0, end: Optional[int] = None) -> List[Optional[float]]:
    if field not in ("adx", "slope", "gog"):
        raise ValueError(f"Unknown indicator field: {field}")
    return [getattr(c, field) for c in result.candles[start:end]]


SPARK_CHARS = "▁▂▃▄▅▆▇█"


def sparkline(values: Sequence[Optional[float]]) -> str:
    """One block character per value after min-max scaling. Undefined values show as a dot."""
    out = []
    for v in normalize_series(values):
        if v is None:
            out.append("·")
        else:
            out.append(SPARK_CHARS[min(len(SPARK_CHARS) - 1, int(v * len(SPARK_CHARS)))])
    return "".join(out)


def signals_newest_first(signals: Sequence[Signal]) -> List[Signal]:
    return sorted(signals, key=lambda s: s.timestamp_ms, reverse=True)
