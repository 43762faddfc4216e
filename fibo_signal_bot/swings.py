from __future__ import annotations

from typing import List, Sequence, Tuple


def is_strict_swing_high(highs: Sequence[float], idx: int, left: int, right: int) -> bool:
    if idx - left < 0 or idx + right >= len(highs):
        return False
    pivot_high = highs[idx]
    for i in range(idx - left, idx + right + 1):
        if i == idx:
            continue
        if pivot_high <= highs[i]:
            return False
    return True


def is_strict_swing_low(lows: Sequence[float], idx: int, left: int, right: int) -> bool:
    if idx - left < 0 or idx + right >= len(lows):
        return False
    pivot_low = lows[idx]
    for i in range(idx - left, idx + right + 1):
        if i == idx:
            continue
        if pivot_low >= lows[i]:
            return False
    return True


def detect_swings(highs: Sequence[float], lows: Sequence[float], left: int, right: int) -> Tuple[List[bool], List[bool]]:
    """Swing high/low flags for the whole series, confirmed as of its last bar.

    Ties never qualify. An outside bar that dominates both ways is flagged as neither.
    """
    n = len(highs)
    swing_high = [False] * n
    swing_low = [False] * n
    for i in range(left, n - right):
        hi = is_strict_swing_high(highs, i, left, right)
        lo = is_strict_swing_low(lows, i, left, right)
        if hi and lo:
            continue
        swing_high[i] = hi
        swing_low[i] = lo
    return swing_high, swing_low
