from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .models import DOWN, UP, AnnotatedCandle, FiboLeg, IndicatorParams


def retracement_levels(
    high_price: float,
    low_price: float,
    direction: str,
    retr_low: float,
    retr_high: float,
) -> Tuple[float, float]:
    """(level at retr_low, level at retr_high), measured back from the leg's end."""
    rng = abs(high_price - low_price)
    if direction == UP:
        return high_price - rng * retr_low, high_price - rng * retr_high
    return low_price + rng * retr_low, low_price + rng * retr_high


def active_leg(candles: Sequence[AnnotatedCandle], idx: int, params: IndicatorParams) -> Optional[FiboLeg]:
    """Leg between the latest swing high and swing low confirmed as of bar `idx`.

    A swing at j is only known once `swing_right` later bars exist, so both
    backward scans start at idx - swing_right. Returns None when either swing is
    missing or the swing high does not sit above the swing low.
    """
    start = idx - params.swing_right
    hi_idx: Optional[int] = None
    lo_idx: Optional[int] = None
    for j in range(start, -1, -1):
        if hi_idx is None and candles[j].is_swing_high:
            hi_idx = j
        if lo_idx is None and candles[j].is_swing_low:
            lo_idx = j
        if hi_idx is not None and lo_idx is not None:
            break
    if hi_idx is None or lo_idx is None:
        return None

    hi_price = candles[hi_idx].high
    lo_price = candles[lo_idx].low
    if hi_price <= lo_price:
        return None

    direction = UP if hi_idx > lo_idx else DOWN
    lvl_low, lvl_high = retracement_levels(hi_price, lo_price, direction, params.fibo_retr_low, params.fibo_retr_high)
    return FiboLeg(
        direction=direction,
        swing_high_idx=hi_idx,
        swing_high_price=hi_price,
        swing_low_idx=lo_idx,
        swing_low_price=lo_price,
        level_low_ratio=lvl_low,
        level_high_ratio=lvl_high,
    )


def leg_series(candles: Sequence[AnnotatedCandle], params: IndicatorParams) -> List[Optional[FiboLeg]]:
    return [active_leg(candles, i, params) for i in range(len(candles))]
