import asyncio
import random
from collections import deque

import pytest

from fibo_signal_bot.config import default_config
from fibo_signal_bot.models import BUY, Asset, Candle, Signal
from fibo_signal_bot.runner import SignalRunner, build_provider
from fibo_signal_bot.providers.yahoo import YahooChartProvider
from fibo_signal_bot.validation import InputError


PULLBACK = [100, 102, 104, 106, 108, 110, 100, 110, 105]


def _candles(closes, spread=0.5):
    out = []
    prev = closes[0]
    for i, c in enumerate(closes):
        out.append(Candle(timestamp_ms=i * 300_000, open=prev, high=c + spread, low=c - spread, close=c, volume=1.0))
        prev = c
    return out


class FakeProvider:
    def __init__(self, script):
        self.script = {sym: list(items) for sym, items in script.items()}

    async def fetch_candles(self, symbol):
        item = self.script[symbol].pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        pass


class FakeTickers:
    def __init__(self, assets):
        self.assets = assets

    async def fetch_tickers(self, symbols):
        return list(self.assets)

    async def close(self):
        pass


class FakeTelegram:
    def __init__(self):
        self.sent = []

    def enabled(self):
        return True

    async def send(self, text, *, chat_ids=None, parse_mode=None):
        self.sent.append((text, parse_mode))


class FakeWebhook:
    enabled = True

    def __init__(self):
        self.sent = []

    async def send_signal(self, symbol, sig):
        self.sent.append((symbol, sig))


def _cfg(symbols=("BTC-USD",), provider_type="yahoo", notify_on_startup=False):
    cfg = default_config()
    cfg.provider.type = provider_type
    cfg.provider.symbols = list(symbols)
    s = cfg.strategy
    s.adx_period = 3
    s.slope_window = 3
    s.slope_smooth = 1
    s.gog_span = 1
    s.swing_left = 1
    s.swing_right = 1
    cfg.alerts.notify_on_startup = notify_on_startup
    return cfg


def _runner(script, **cfg_kwargs):
    tg = FakeTelegram()
    wh = FakeWebhook()
    runner = SignalRunner(
        _cfg(**cfg_kwargs),
        provider=FakeProvider(script),
        tickers=FakeTickers([]),
        tg=tg,
        webhook=wh,
    )
    return runner, tg, wh


def test_first_load_only_seeds_signals():
    full = _candles(PULLBACK)

    async def _run():
        runner, tg, wh = _runner({"BTC-USD": [full, full]})
        snap = await runner.refresh_symbol("BTC-USD")
        assert snap is not None
        assert [s.type for s in snap.result.signals] == [BUY]
        assert runner.snapshots["BTC-USD"] is snap
        assert tg.sent == []
        assert wh.sent == []

        await runner.refresh_symbol("BTC-USD")
        assert tg.sent == []
        assert runner._metrics["signals_sent_total"] == 0

    asyncio.run(_run())


def test_new_signal_is_sent_once():
    full = _candles(PULLBACK)

    async def _run():
        runner, tg, wh = _runner({"BTC-USD": [full[:8], full, full]})
        first = await runner.refresh_symbol("BTC-USD")
        assert first.result.signals == []

        await runner.refresh_symbol("BTC-USD")
        assert len(tg.sent) == 1
        text, parse_mode = tg.sent[0]
        assert "COMPRA" in text
        assert parse_mode == "HTML"
        assert len(wh.sent) == 1
        assert wh.sent[0][0] == "BTC-USD"
        assert wh.sent[0][1].type == BUY

        await runner.refresh_symbol("BTC-USD")
        assert len(tg.sent) == 1
        assert runner._metrics["signals_sent_total"] == 1

    asyncio.run(_run())


def test_notify_on_startup_sends_history():
    async def _run():
        runner, tg, _ = _runner({"BTC-USD": [_candles(PULLBACK)]}, notify_on_startup=True)
        await runner.refresh_symbol("BTC-USD")
        assert len(tg.sent) == 1

    asyncio.run(_run())


def test_bad_candles_keep_previous_snapshot():
    good = _candles(PULLBACK)
    bad = good + [good[-1]]

    async def _run():
        runner, _, _ = _runner({"BTC-USD": [good, bad]})
        snap = await runner.refresh_symbol("BTC-USD")

        assert await runner.refresh_symbol("BTC-USD") is None
        assert runner.snapshots["BTC-USD"] is snap
        assert runner._metrics["input_errors_total"] == 1

    asyncio.run(_run())


def test_fetch_failure_keeps_previous_snapshot():
    good = _candles(PULLBACK)

    async def _run():
        runner, _, _ = _runner({"BTC-USD": [good, RuntimeError("down"), []]})
        snap = await runner.refresh_symbol("BTC-USD")

        assert await runner.refresh_symbol("BTC-USD") is None
        assert await runner.refresh_symbol("BTC-USD") is None
        assert runner.snapshots["BTC-USD"] is snap
        assert runner._metrics["refresh_failed_total"] == 2
        assert runner._metrics["refresh_ok_total"] == 1

    asyncio.run(_run())


def test_refresh_all_and_tickers():
    btc = _candles(PULLBACK)
    eth = _candles([2000.0 + i for i in range(20)])
    assets = [Asset(symbol="BTC-USD", name="Bitcoin", price=50000.0, change=500.0, change_percent=1.0)]

    async def _run():
        runner = SignalRunner(
            _cfg(symbols=["BTC-USD", "ETH-USD"]),
            provider=FakeProvider({"BTC-USD": [btc], "ETH-USD": [eth]}),
            tickers=FakeTickers(assets),
            tg=FakeTelegram(),
            webhook=FakeWebhook(),
        )
        await runner.run_once()

        assert set(runner.snapshots) == {"BTC-USD", "ETH-USD"}
        assert len(runner.snapshots["ETH-USD"].result.candles) == 20
        assert runner.assets == assets
        assert "BTC-USD 50,000.00" in runner.tickers_banner()

        summaries = runner.summaries()
        assert len(summaries) == 2
        assert "BTC-USD - Análise Técnica" in summaries[0]
        assert "ETH-USD - Análise Técnica" in summaries[1]

    asyncio.run(_run())


def test_closed_candles_stream_into_buffer():
    candles = _candles(PULLBACK)

    async def _run():
        runner, tg, _ = _runner({}, symbols=["btcusdt"], provider_type="binance")
        assert runner.symbols == ["BTCUSDT"]
        runner._buffers["BTCUSDT"] = deque(maxlen=300)

        for c in candles[:8]:
            await runner.on_closed_candle("BTCUSDT", c)
        assert tg.sent == []

        snap = await runner.on_closed_candle("BTCUSDT", candles[8])
        assert len(snap.result.candles) == 9
        assert len(tg.sent) == 1

        # duplicate bar is ignored
        assert await runner.on_closed_candle("BTCUSDT", candles[8]) is None
        assert len(tg.sent) == 1

        assert await runner.on_closed_candle("ETHUSDT", candles[0]) is None

    asyncio.run(_run())


def test_signals_older_than_previous_batch_are_not_sent():
    def _sig(bar):
        return Signal(timestamp_ms=bar * 300_000, type=BUY, price=1.0, reason="", sl=0.5, tp1=2.0, tp2=3.0, tp3=4.0)

    async def _run():
        runner, tg, wh = _runner({})
        await runner._dispatch_new_signals("BTC-USD", [_sig(3)], 10 * 300_000)
        assert tg.sent == []

        fresh = await runner._dispatch_new_signals("BTC-USD", [_sig(3), _sig(4), _sig(10), _sig(12)], 12 * 300_000)
        assert [s.timestamp_ms for s in fresh] == [10 * 300_000, 12 * 300_000]
        assert runner._metrics["stale_signals_skipped_total"] == 1
        assert len(tg.sent) == 2
        assert len(wh.sent) == 2

        # watermark moved to bar 12
        fresh = await runner._dispatch_new_signals("BTC-USD", [_sig(11)], 13 * 300_000)
        assert fresh == []

    asyncio.run(_run())


def test_sliding_window_never_alerts_old_bars():
    rnd = random.Random(8)
    closes = [100.0]
    for _ in range(219):
        closes.append(max(1.0, closes[-1] + rnd.uniform(-2.0, 2.0)))
    candles = _candles(closes)
    windows = [candles[start:start + 120] for start in range(0, 101, 20)]

    async def _run():
        runner, _, wh = _runner({"BTC-USD": windows})
        prev_last = None
        for window in windows:
            before = len(wh.sent)
            await runner.refresh_symbol("BTC-USD")
            for _, sig in wh.sent[before:]:
                assert sig.timestamp_ms >= prev_last
            prev_last = window[-1].timestamp_ms

    asyncio.run(_run())


def test_signal_id_depends_on_strategy():
    sig = Signal(timestamp_ms=2_400_000, type=BUY, price=105.0, reason="", sl=98.95, tp1=116.0, tp2=122.798, tp3=133.798)
    runner_a, _, _ = _runner({})
    cfg_b = _cfg()
    cfg_b.strategy.swing_right = 2
    runner_b = SignalRunner(cfg_b, provider=FakeProvider({}), tickers=FakeTickers([]), tg=FakeTelegram(), webhook=FakeWebhook())

    assert runner_a._signal_id("BTC-USD", sig) == runner_a._signal_id("BTC-USD", sig)
    assert runner_a._signal_id("BTC-USD", sig) != runner_b._signal_id("BTC-USD", sig)
    assert runner_a._signal_id("BTC-USD", sig) != runner_a._signal_id("ETH-USD", sig)


def test_invalid_strategy_fails_at_startup():
    cfg = _cfg()
    cfg.strategy.fibo_retr_low = 0.9
    with pytest.raises(InputError):
        SignalRunner(cfg, provider=FakeProvider({}), tickers=FakeTickers([]), tg=FakeTelegram(), webhook=FakeWebhook())


def test_run_forever_requires_symbols():
    runner, _, _ = _runner({}, symbols=[])
    with pytest.raises(ValueError):
        asyncio.run(runner.run_forever())


def test_build_provider():
    cfg = _cfg()
    assert isinstance(build_provider(cfg.provider), YahooChartProvider)
    cfg.provider.type = "kraken"
    with pytest.raises(ValueError):
        build_provider(cfg.provider)
