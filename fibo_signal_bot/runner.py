from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Set

from .config import Config, ProviderConfig
from .formatters import format_signal, format_summary, format_ticker_banner
from .models import Asset, Candle, EngineResult, Signal
from .notifier.telegram import TelegramNotifier
from .notifier.webhook import WebhookNotifier
from .providers.binance import BinanceProvider
from .providers.coingecko import CoinGeckoTickerProvider
from .providers.yahoo import YahooChartProvider
from .strategy import generate_signals_and_indicators
from .validation import InputError, validate_params

log = logging.getLogger("runner")


def _stable_strategy_signature(cfg: Config) -> str:
    sig = cfg.strategy.signature()
    payload = json.dumps(sig, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def build_provider(pcfg: ProviderConfig):
    kind = (pcfg.type or "yahoo").strip().lower()
    if kind == "yahoo":
        return YahooChartProvider(interval=pcfg.interval, range_=pcfg.range, rest_timeout_s=pcfg.rest_timeout_s)
    if kind == "binance":
        return BinanceProvider(
            market=pcfg.market,
            interval=pcfg.interval,
            limit=pcfg.warmup_candles,
            rest_timeout_s=pcfg.rest_timeout_s,
        )
    raise ValueError(f"Unsupported provider type: {pcfg.type}")


@dataclass(frozen=True)
class Snapshot:
    symbol: str
    result: EngineResult
    updated_ms: int


class SignalRunner:
    def __init__(
        self,
        cfg: Config,
        *,
        provider=None,
        tickers: Optional[CoinGeckoTickerProvider] = None,
        tg: Optional[TelegramNotifier] = None,
        webhook: Optional[WebhookNotifier] = None,
    ):
        self.cfg = cfg
        self.params = cfg.strategy.to_params()
        self.targets = cfg.strategy.to_targets()
        # Bad parameters are a startup error, not a per-refresh one.
        validate_params(self.params, self.targets)

        self.provider = provider if provider is not None else build_provider(cfg.provider)
        self.tickers = tickers if tickers is not None else CoinGeckoTickerProvider(rest_timeout_s=cfg.provider.rest_timeout_s)
        self.tg = tg if tg is not None else TelegramNotifier(
            token=cfg.telegram.token if cfg.telegram.enabled else "",
            chat_ids=cfg.telegram.chat_ids,
            disable_web_page_preview=cfg.telegram.disable_web_page_preview,
        )
        self.webhook = webhook if webhook is not None else WebhookNotifier(
            enabled=cfg.webhook.enabled,
            url=cfg.webhook.url,
            secret=cfg.webhook.secret,
            timeout_s=cfg.webhook.timeout_s,
            headers=cfg.webhook.headers or {},
        )

        self.symbols: List[str] = [s.strip() for s in (cfg.provider.symbols or []) if s and s.strip()]
        if (cfg.provider.type or "").strip().lower() == "binance":
            # kline events carry upper-case symbols
            self.symbols = [s.upper() for s in self.symbols]
        self.snapshots: Dict[str, Snapshot] = {}
        self.assets: List[Asset] = []

        self._strategy_sig = _stable_strategy_signature(cfg)
        self._seen: Set[str] = set()
        self._last_bar_ms: Dict[str, int] = {}
        self._buffers: Dict[str, Deque[Candle]] = {}
        self._metrics = {
            "refresh_ok_total": 0,
            "refresh_failed_total": 0,
            "input_errors_total": 0,
            "signals_sent_total": 0,
            "stale_signals_skipped_total": 0,
        }

    async def close(self) -> None:
        await self.provider.close()
        await self.tickers.close()

    # --- engine / publish -------------------------------------------------

    def compute(self, symbol: str, candles: Sequence[Candle]) -> Optional[Snapshot]:
        """Run the engine and publish on success. On InputError the previous snapshot stays."""
        try:
            result = generate_signals_and_indicators(candles, self.params, self.targets)
        except InputError as e:
            self._metrics["input_errors_total"] += 1
            log.warning(
                "engine_input_error symbol=%s bars=%d keeping_previous=%s err=%s",
                symbol,
                len(candles),
                symbol in self.snapshots,
                e,
            )
            return None

        snap = Snapshot(symbol=symbol, result=result, updated_ms=int(time.time() * 1000))
        # Single assignment: readers see either the old or the new result, never a mix.
        self.snapshots[symbol] = snap
        self._metrics["refresh_ok_total"] += 1
        log.debug("published symbol=%s bars=%d signals=%d", symbol, len(result.candles), len(result.signals))
        return snap

    async def refresh_symbol(self, symbol: str) -> Optional[Snapshot]:
        try:
            candles = await self.provider.fetch_candles(symbol)
        except Exception as e:
            self._metrics["refresh_failed_total"] += 1
            log.warning("fetch_failed symbol=%s err=%s", symbol, e)
            return None

        if not candles:
            self._metrics["refresh_failed_total"] += 1
            log.warning("fetch_empty symbol=%s keeping_previous=%s", symbol, symbol in self.snapshots)
            return None

        buf = self._buffers.get(symbol)
        if buf is not None:
            buf.clear()
            buf.extend(candles)

        snap = self.compute(symbol, candles)
        if snap is not None:
            await self._dispatch_new_signals(symbol, snap.result.signals, snap.result.candles[-1].timestamp_ms)
        return snap

    async def refresh_all(self) -> None:
        sem = asyncio.Semaphore(max(1, int(self.cfg.provider.fetch_concurrency)))

        async def _one(sym: str) -> None:
            async with sem:
                await self.refresh_symbol(sym)

        await asyncio.gather(*[_one(sym) for sym in self.symbols])

    async def refresh_tickers(self) -> List[Asset]:
        assets = await self.tickers.fetch_tickers(self.symbols)
        if assets:
            self.assets = assets
            log.debug("tickers %s", format_ticker_banner(assets))
        return self.assets

    def tickers_banner(self) -> str:
        return format_ticker_banner(self.assets)

    async def run_once(self) -> None:
        await asyncio.gather(self.refresh_tickers(), self.refresh_all())

    def summaries(self) -> List[str]:
        out = []
        for sym in self.symbols:
            snap = self.snapshots.get(sym)
            if snap is None:
                continue
            out.append(format_summary(
                sym,
                snap.result,
                self.cfg.alerts,
                adx_threshold=self.params.adx_threshold,
                updated_ms=snap.updated_ms,
            ))
        return out

    # --- signals ----------------------------------------------------------

    def _signal_id(self, symbol: str, sig: Signal) -> str:
        base = f"{symbol}:{sig.type}:{sig.timestamp_ms}:{self._strategy_sig}"
        return hashlib.sha256(base.encode("utf-8")).hexdigest()

    async def _dispatch_new_signals(self, symbol: str, signals: Sequence[Signal], last_bar_ms: int) -> List[Signal]:
        """Deliver signals not seen before whose bar is not older than the previous batch's last bar.

        The first load of a symbol only seeds the seen-set. When the window slides, older bars
        can start firing as the indicator seeds move; those are recorded but never delivered.
        """
        watermark = self._last_bar_ms.get(symbol)
        first_load = watermark is None
        self._last_bar_ms[symbol] = last_bar_ms if first_load else max(watermark, last_bar_ms)

        fresh: List[Signal] = []
        for sig in signals:
            sid = self._signal_id(symbol, sig)
            if sid in self._seen:
                continue
            self._seen.add(sid)
            if first_load:
                if self.cfg.alerts.notify_on_startup:
                    fresh.append(sig)
                continue
            # the previous last bar may still have been forming
            if sig.timestamp_ms < watermark:
                self._metrics["stale_signals_skipped_total"] += 1
                log.info("stale_signal_skipped symbol=%s type=%s ts=%s watermark=%s", symbol, sig.type, sig.timestamp_ms, watermark)
                continue
            fresh.append(sig)

        for sig in fresh:
            await self._handle_signal(symbol, sig)
        return fresh

    async def _handle_signal(self, symbol: str, sig: Signal) -> None:
        self._metrics["signals_sent_total"] += 1
        log.info(
            "signal symbol=%s type=%s ts=%s price=%s sl=%s tp1=%s tp2=%s tp3=%s reason=%s",
            symbol,
            sig.type,
            sig.timestamp_ms,
            sig.price,
            sig.sl,
            sig.tp1,
            sig.tp2,
            sig.tp3,
            sig.reason,
        )

        if self.webhook.enabled:
            await self.webhook.send_signal(symbol, sig)

        if not self.tg.enabled():
            return
        alerts_cfg = self.cfg.alerts
        parse_mode = getattr(alerts_cfg, "parse_mode", "HTML") or "HTML"
        await self.tg.send(format_signal(symbol, sig, alerts_cfg), parse_mode=parse_mode)

    # --- loops ------------------------------------------------------------

    async def run_forever(self) -> None:
        if not self.symbols:
            raise ValueError("No symbols configured.")

        if self.tg.enabled():
            await self.tg.send(f"✅ {self.cfg.app.name}: monitorando {len(self.symbols)} ativos ({self.cfg.provider.interval}).")

        if isinstance(self.provider, BinanceProvider):
            await self._run_stream()
        else:
            await self._run_polling()

    async def _run_polling(self) -> None:
        poll_s = max(1, int(self.cfg.provider.poll_interval_s))
        ticker_s = max(1, int(self.cfg.provider.ticker_poll_interval_s))
        loop = asyncio.get_running_loop()
        next_ticker = 0.0

        log.info("polling_start symbols=%d interval=%s every=%ss", len(self.symbols), self.cfg.provider.interval, poll_s)
        while True:
            jobs = [self.refresh_all()]
            if loop.time() >= next_ticker:
                jobs.append(self.refresh_tickers())
                next_ticker = loop.time() + ticker_s
            await asyncio.gather(*jobs)
            await asyncio.sleep(poll_s)

    async def _run_stream(self) -> None:
        maxlen = max(2, int(self.cfg.provider.warmup_candles))
        for sym in self.symbols:
            self._buffers[sym] = deque(maxlen=maxlen)

        log.info("warmup_start symbols=%d interval=%s candles=%d", len(self.symbols), self.cfg.provider.interval, maxlen)
        await self.run_once()
        log.info("warmup_done published=%d", len(self.snapshots))

        async for evt in self.provider.stream_klines(self.symbols):
            await self.on_closed_candle(evt.symbol, evt.candle)

    async def on_closed_candle(self, symbol: str, candle: Candle) -> Optional[Snapshot]:
        buf = self._buffers.get(symbol)
        if buf is None:
            return None
        if buf and candle.timestamp_ms <= buf[-1].timestamp_ms:
            return None  # duplicate / out-of-order bar
        buf.append(candle)
        snap = self.compute(symbol, list(buf))
        if snap is not None:
            await self._dispatch_new_signals(symbol, snap.result.signals, snap.result.candles[-1].timestamp_ms)
        return snap
