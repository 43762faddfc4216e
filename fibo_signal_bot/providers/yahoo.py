from __future__ import annotations

import logging
import math
from typing import Any, List, Optional

from ..models import Candle
from .rest import RestClient

log = logging.getLogger("yahoo")

YAHOO_API_BASE_URL = "https://query1.finance.yahoo.com"


def _num(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        x = float(value)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


def parse_chart(data: Any) -> List[Candle]:
    """Yahoo v8 chart payload -> candles. Rows with a missing/non-finite price are dropped."""
    try:
        result = data["chart"]["result"][0]
    except (KeyError, IndexError, TypeError):
        log.error("unexpected_chart_payload payload=%s", str(data)[:200])
        return []

    timestamps = result.get("timestamp") if isinstance(result, dict) else None
    try:
        quote = result["indicators"]["quote"][0]
    except (KeyError, IndexError, TypeError):
        quote = None
    if not timestamps or not quote:
        log.error("incomplete_chart_payload payload=%s", str(data)[:200])
        return []

    opens = quote.get("open") or []
    highs = quote.get("high") or []
    lows = quote.get("low") or []
    closes = quote.get("close") or []
    volumes = quote.get("volume") or []

    def _at(seq: list, i: int) -> Any:
        return seq[i] if i < len(seq) else None

    out: List[Candle] = []
    for i, ts in enumerate(timestamps):
        o = _num(_at(opens, i))
        h = _num(_at(highs, i))
        lo = _num(_at(lows, i))
        c = _num(_at(closes, i))
        if o is None or h is None or lo is None or c is None:
            continue
        ts_ms = int(ts) * 1000
        # Yahoo sometimes repeats the live bar at the tail.
        if out and ts_ms <= out[-1].timestamp_ms:
            continue
        v = _num(_at(volumes, i))
        out.append(Candle(
            timestamp_ms=ts_ms,
            open=o,
            high=h,
            low=lo,
            close=c,
            volume=v if v is not None and v >= 0 else 0.0,
        ))
    return out


class YahooChartProvider:
    def __init__(
        self,
        *,
        interval: str = "5m",
        range_: str = "1d",
        rest_timeout_s: int = 20,
        base_url: str = YAHOO_API_BASE_URL,
        client: Optional[RestClient] = None,
    ):
        self.interval = interval
        self.range = range_
        self.base_url = base_url.rstrip("/")
        # Yahoo rejects requests without a browser-like UA.
        self.client = client or RestClient(
            rest_timeout_s=rest_timeout_s,
            headers={"User-Agent": "Mozilla/5.0"},
        )

    async def close(self) -> None:
        await self.client.close()

    async def fetch_candles(self, symbol: str) -> List[Candle]:
        url = f"{self.base_url}/v8/finance/chart/{symbol}"
        params = {"range": self.range, "interval": self.interval}
        data = await self.client.get_json(url, params, label=f"yahoo_chart:{symbol}")
        candles = parse_chart(data)
        log.debug("chart_fetched symbol=%s bars=%d", symbol, len(candles))
        return candles
