from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict

import aiohttp

from ..models import Signal

log = logging.getLogger("webhook")


def signal_payload(symbol: str, sig: Signal, *, secret: str = "") -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "symbol": symbol,
        "timestamp": int(sig.timestamp_ms),
        "type": sig.type,
        "price": sig.price,
        "reason": sig.reason,
        "sl": sig.sl,
        "tp1": sig.tp1,
        "tp2": sig.tp2,
        "tp3": sig.tp3,
    }
    if secret:
        payload["secret"] = secret
    return payload


class WebhookNotifier:
    def __init__(self, *, enabled: bool, url: str, secret: str, timeout_s: int, headers: dict):
        self.enabled = bool(enabled)
        self.url = url or ""
        self.secret = secret or ""
        self.timeout_s = int(timeout_s) if timeout_s is not None else 10
        self.headers = headers or {}

    async def send_signal(self, symbol: str, sig: Signal) -> None:
        if not self.enabled or not self.url:
            return

        body = json.dumps(signal_payload(symbol, sig, secret=self.secret), ensure_ascii=False)
        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout_s)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, data=body.encode("utf-8"), headers={"Content-Type": "application/json", **self.headers}) as resp:
                    if resp.status >= 400:
                        text = await resp.text()
                        log.warning("webhook_bad_status status=%s body=%s", resp.status, text[:200])
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            # Log but do not crash
            log.warning("webhook_post_failed err=%s", e)
