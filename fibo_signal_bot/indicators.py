from __future__ import annotations
from typing import List, Optional, Sequence, Tuple


def rma_next(prev: Optional[float], x: float, length: int) -> float:
    """Wilder's RMA step (the smoothing behind ATR/ADX)."""
    if length <= 1:
        return x
    if prev is None:
        return x
    alpha = 1.0 / float(length)
    return prev + alpha * (x - prev)


def sma(values: Sequence[float], length: int) -> Optional[float]:
    if length <= 0 or len(values) < length:
        return None
    return sum(values[-length:]) / float(length)


def true_range(high: float, low: float, prev_close: float) -> float:
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


def directional_movement(high: float, low: float, prev_high: float, prev_low: float) -> Tuple[float, float]:
    """(+DM, -DM) for one bar. Only the dominant, positive move counts."""
    up = high - prev_high
    down = prev_low - low
    plus_dm = up if (up > down and up > 0) else 0.0
    minus_dm = down if (down > up and down > 0) else 0.0
    return plus_dm, minus_dm


def pct_change(new: float, old: float) -> Optional[float]:
    if old == 0:
        return None
    return (new - old) / old * 100.0


def adx_series(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float], period: int) -> List[Optional[float]]:
    """Wilder ADX per bar.

    TR/+DM/-DM are seeded with the mean of their first `period` values (bars 1..period)
    and RMA-smoothed afterwards; ADX is seeded with the first DX. Bars 0..period-1 stay None.
    """
    n = len(closes)
    out: List[Optional[float]] = [None] * n
    if period <= 0 or n <= period:
        return out

    trs: List[float] = []
    pdms: List[float] = []
    mdms: List[float] = []
    s_tr: Optional[float] = None
    s_pdm: Optional[float] = None
    s_mdm: Optional[float] = None
    adx: Optional[float] = None

    for i in range(1, n):
        tr = true_range(highs[i], lows[i], closes[i - 1])
        pdm, mdm = directional_movement(highs[i], lows[i], highs[i - 1], lows[i - 1])

        if i < period:
            trs.append(tr)
            pdms.append(pdm)
            mdms.append(mdm)
            continue
        if i == period:
            trs.append(tr)
            pdms.append(pdm)
            mdms.append(mdm)
            s_tr = sum(trs) / float(period)
            s_pdm = sum(pdms) / float(period)
            s_mdm = sum(mdms) / float(period)
        else:
            s_tr = rma_next(s_tr, tr, period)
            s_pdm = rma_next(s_pdm, pdm, period)
            s_mdm = rma_next(s_mdm, mdm, period)

        if s_tr > 0:
            di_plus = 100.0 * s_pdm / s_tr
            di_minus = 100.0 * s_mdm / s_tr
        else:
            di_plus, di_minus = 0.0, 0.0
        di_sum = di_plus + di_minus
        dx = 100.0 * abs(di_plus - di_minus) / di_sum if di_sum > 0 else 0.0

        adx = rma_next(adx, dx, period)
        out[i] = min(100.0, max(0.0, adx))

    return out


def linreg_slope(values: Sequence[float]) -> Optional[float]:
    """Least-squares slope of values against their position 0..n-1."""
    n = len(values)
    if n < 2:
        return None
    x_mean = (n - 1) / 2.0
    y_mean = sum(values) / float(n)
    sxx = 0.0
    sxy = 0.0
    for x, y in enumerate(values):
        dx = x - x_mean
        sxx += dx * dx
        sxy += dx * (y - y_mean)
    return sxy / sxx


def linreg_slope_series(closes: Sequence[float], window: int) -> List[Optional[float]]:
    n = len(closes)
    out: List[Optional[float]] = [None] * n
    if window < 2:
        return out
    for i in range(window - 1, n):
        out[i] = linreg_slope(closes[i - window + 1: i + 1])
    return out


def sma_series(values: Sequence[Optional[float]], length: int) -> List[Optional[float]]:
    """Trailing SMA; None wherever the window is short or holds an undefined value."""
    n = len(values)
    out: List[Optional[float]] = [None] * n
    if length <= 0:
        return out
    for i in range(length - 1, n):
        window = values[i - length + 1: i + 1]
        if any(v is None for v in window):
            continue
        out[i] = sum(window) / float(length)
    return out


def gog_series(smoothed_slope: Sequence[Optional[float]], span: int) -> List[Optional[float]]:
    """Growth-of-gradient: change of the smoothed slope over `span` bars."""
    n = len(smoothed_slope)
    out: List[Optional[float]] = [None] * n
    if span <= 0:
        return out
    for i in range(span, n):
        cur = smoothed_slope[i]
        lag = smoothed_slope[i - span]
        if cur is None or lag is None:
            continue
        out[i] = cur - lag
    return out
