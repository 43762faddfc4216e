from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..models import Asset
from .rest import RestClient

log = logging.getLogger("coingecko")

COINGECKO_API_BASE_URL = "https://api.coingecko.com/api/v3"

# Yahoo-style symbol -> (CoinGecko id, display name)
SYMBOL_MAP: Dict[str, tuple] = {
    "BTC-USD": ("bitcoin", "Bitcoin"),
    "ETH-USD": ("ethereum", "Ethereum"),
    "SOL-USD": ("solana", "Solana"),
    "XRP-USD": ("ripple", "XRP"),
    "BNB-USD": ("binancecoin", "BNB"),
    "DOGE-USD": ("dogecoin", "Dogecoin"),
    "TRX-USD": ("tron", "TRON"),
    "USDC-USD": ("usd-coin", "USD Coin"),
    "USDT-USD": ("tether", "Tether"),
    "TRUMP-USD": ("maga", "MAGA"),
}


def _zero_asset(symbol: str) -> Asset:
    name = SYMBOL_MAP[symbol][1] if symbol in SYMBOL_MAP else symbol
    return Asset(symbol=symbol, name=name, price=0.0, change=0.0, change_percent=0.0)


def parse_prices(data: Any, symbols: Sequence[str]) -> List[Asset]:
    """simple/price payload -> assets, in `symbols` order. Unmapped symbols are skipped."""
    out: List[Asset] = []
    data = data if isinstance(data, dict) else {}
    for symbol in symbols:
        mapping = SYMBOL_MAP.get(symbol)
        if mapping is None:
            continue
        cg_id, name = mapping
        quote = data.get(cg_id)
        if not quote:
            out.append(_zero_asset(symbol))
            continue
        price = float(quote.get("usd") or 0.0)
        change_pct = float(quote.get("usd_24h_change") or 0.0)
        out.append(Asset(
            symbol=symbol,
            name=name,
            price=price,
            change=price * (change_pct / 100.0),
            change_percent=change_pct,
        ))
    return out


class CoinGeckoTickerProvider:
    def __init__(self, *, rest_timeout_s: int = 20, base_url: str = COINGECKO_API_BASE_URL, client: Optional[RestClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or RestClient(rest_timeout_s=rest_timeout_s)

    async def close(self) -> None:
        await self.client.close()

    async def fetch_tickers(self, symbols: Sequence[str]) -> List[Asset]:
        ids = [SYMBOL_MAP[s][0] for s in symbols if s in SYMBOL_MAP]
        if not ids:
            return []
        params = {
            "ids": ",".join(ids),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        try:
            data = await self.client.get_json(f"{self.base_url}/simple/price", params, label="coingecko_price")
        except Exception as e:
            log.warning("ticker_fetch_failed symbols=%d err=%s", len(ids), e)
            return [_zero_asset(s) for s in symbols if s in SYMBOL_MAP]
        return parse_prices(data, symbols)
