from __future__ import annotations

from fibo_signal_bot.models import Candle, IndicatorParams
from fibo_signal_bot.strategy import generate_signals_and_indicators
from fibo_signal_bot.validation import InputError


def candles_from_closes(closes, spread: float = 0.5):
    out = []
    prev = closes[0]
    for i, c in enumerate(closes):
        out.append(Candle(timestamp_ms=i * 300_000, open=prev, high=c + spread, low=c - spread, close=c, volume=1.0))
        prev = c
    return out


def pullback_sequence():
    """Steady climb, sharp dip and rebound, then a pullback into the 38-62% zone."""
    return candles_from_closes([100, 102, 104, 106, 108, 110, 100, 110, 105])


def sawtooth(n: int = 50):
    """Four bars up by 2, three down by 1. Fires BUY at each pullback bottom from bar 28."""
    closes = [100.0]
    for k in range(1, n):
        closes.append(closes[-1] + (2.0 if (k - 1) % 7 < 4 else -1.0))
    return candles_from_closes(closes)


def run_case(name: str, candles, params: IndicatorParams) -> None:
    res = generate_signals_and_indicators(candles, params)
    last = res.candles[-1] if res.candles else None
    print(
        f"{name}: bars={len(res.candles)} signals={[(s.type, s.timestamp_ms, round(s.price, 4)) for s in res.signals]}",
        f"last_adx={getattr(last, 'adx', None)} last_slope={getattr(last, 'slope', None)} last_gog={getattr(last, 'gog', None)}",
    )


def main():
    fast = IndicatorParams(adx_period=3, slope_window=3, slope_smooth=1, gog_span=1, swing_left=1, swing_right=1)
    run_case("pullback_buy", pullback_sequence(), fast)
    run_case("sawtooth_default", sawtooth(), IndicatorParams())
    run_case("flat", candles_from_closes([100.0] * 40), IndicatorParams())
    run_case("short", candles_from_closes([100.0 + i for i in range(5)]), IndicatorParams())

    try:
        generate_signals_and_indicators(sawtooth(), IndicatorParams(fibo_retr_low=0.7, fibo_retr_high=0.5))
    except InputError as e:
        print("bad_params:", e)


if __name__ == "__main__":
    main()
