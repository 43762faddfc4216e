from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import websockets
from websockets.exceptions import WebSocketException

from ..models import Candle
from .rest import RestClient

log = logging.getLogger("binance")


def _rest_base(market: str) -> str:
    return "https://fapi.binance.com" if market == "futures" else "https://api.binance.com"


def _klines_path(market: str) -> str:
    return "/fapi/v1/klines" if market == "futures" else "/api/v3/klines"


def _ws_url(market: str) -> str:
    return "wss://fstream.binance.com/ws" if market == "futures" else "wss://stream.binance.com:9443/ws"


def _stream_name(symbol: str, tf: str) -> str:
    return f"{symbol.lower()}@kline_{tf}"


def parse_kline_row(row: List[Any]) -> Candle:
    # [0]=open time, [1..4]=OHLC, [5]=volume
    return Candle(
        timestamp_ms=int(row[0]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
    )


def parse_kline_event(j: Dict[str, Any]) -> Optional["KlineEvent"]:
    """Closed-kline websocket message -> KlineEvent; None for acks and open bars."""
    data = j.get("data") or j
    if not isinstance(data, dict) or data.get("e") != "kline":
        return None
    k = data.get("k", {})
    if not k.get("x", False):
        return None  # only closed candles
    c = Candle(
        timestamp_ms=int(k.get("t")),
        open=float(k.get("o")),
        high=float(k.get("h")),
        low=float(k.get("l")),
        close=float(k.get("c")),
        volume=float(k.get("v")),
    )
    return KlineEvent(symbol=k.get("s", "").upper(), timeframe=k.get("i", ""), candle=c)


@dataclass(frozen=True)
class KlineEvent:
    symbol: str
    timeframe: str
    candle: Candle


class BinanceProvider:
    def __init__(
        self,
        market: str = "spot",
        *,
        interval: str = "5m",
        limit: int = 300,
        rest_timeout_s: int = 20,
        ws_heartbeat_s: int = 20,
        client: Optional[RestClient] = None,
    ):
        self.market = market
        self.interval = interval
        self.limit = int(limit)
        self.ws_heartbeat_s = ws_heartbeat_s
        self.client = client or RestClient(rest_timeout_s=rest_timeout_s)

    async def close(self) -> None:
        await self.client.close()

    async def fetch_candles(self, symbol: str) -> List[Candle]:
        url = _rest_base(self.market) + _klines_path(self.market)
        params = {"symbol": symbol.upper(), "interval": self.interval, "limit": self.limit}
        data = await self.client.get_json(url, params, label=f"binance_klines:{symbol}")
        return [parse_kline_row(row) for row in data]

    async def stream_klines(self, symbols: List[str]) -> AsyncIterator[KlineEvent]:
        """Yields CLOSED klines for all symbols at the configured interval. Auto-reconnects."""
        streams = [_stream_name(sym, self.interval) for sym in symbols]
        ws_url = _ws_url(self.market)

        sub_msg = {"method": "SUBSCRIBE", "params": streams, "id": 1}

        backoff = 1
        while True:
            try:
                async with websockets.connect(
                    ws_url,
                    ping_interval=self.ws_heartbeat_s,
                    ping_timeout=self.ws_heartbeat_s,
                    close_timeout=5,
                    max_queue=5000,
                ) as ws:
                    backoff = 1
                    await ws.send(json.dumps(sub_msg))
                    log.info("ws_subscribed streams=%d market=%s", len(streams), self.market)

                    async for msg in ws:
                        try:
                            j = json.loads(msg)
                        except ValueError:
                            log.debug("ws_bad_json msg=%s", str(msg)[:200])
                            continue
                        if not isinstance(j, dict):
                            continue
                        if "result" in j and j.get("id") == 1:
                            continue  # subscribe ack
                        evt = parse_kline_event(j)
                        if evt is not None:
                            yield evt

            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                log.warning("ws_error err=%s reconnect_in=%ss", e, backoff)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, 60)
