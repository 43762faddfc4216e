from __future__ import annotations

import html
from datetime import datetime, timezone
from typing import Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .indicators import pct_change
from .metrics import indicator_history, latest_indicators, signals_newest_first, sparkline, trend_labels, visible_window
from .models import BUY, Asset, EngineResult, Signal


DEFAULT_TZ = "America/Sao_Paulo"
# recent half of the series, capped
HISTORY_BARS = 24


def _tz(name: Optional[str]):
    try:
        return ZoneInfo(name or DEFAULT_TZ)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def _fmt_ms(ts_ms: int, tz_name: Optional[str] = None) -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc).astimezone(_tz(tz_name))
    return dt.strftime("%d/%m %H:%M")


def _escape_markdown_v2(text: str) -> str:
    specials = r"\_*[]()~`>#+-=|{}.!"
    escaped = []
    for ch in str(text):
        if ch in specials:
            escaped.append("\\" + ch)
        else:
            escaped.append(ch)
    return "".join(escaped)


def _escape_text(text: str, parse_mode: str) -> str:
    if parse_mode == "MARKDOWNV2":
        return _escape_markdown_v2(text)
    return html.escape(str(text), quote=False)


def _bold(text: str, parse_mode: str) -> str:
    escaped = _escape_text(text, parse_mode)
    if parse_mode == "MARKDOWNV2":
        return f"*{escaped}*"
    return f"<b>{escaped}</b>"


def _fmt_price(val: Optional[float]) -> str:
    if val is None:
        return "-"
    if abs(val) >= 1:
        return f"{val:,.2f}"
    return f"{val:.6g}"


def _fmt_value(val: Optional[float], digits: int = 4) -> str:
    return "-" if val is None else f"{val:.{digits}f}"


def _parse_mode(cfg) -> str:
    return (getattr(cfg, "parse_mode", "HTML") or "HTML").upper()


def format_signal(symbol: str, signal: Signal, cfg) -> str:
    """Telegram alert for one signal."""
    parse_mode = _parse_mode(cfg)
    tz_name = getattr(cfg, "timezone", DEFAULT_TZ)
    label = "🟢 COMPRA" if signal.type == BUY else "🔴 VENDA"

    sl_dist = pct_change(signal.sl, signal.price)
    sl_line = f"Stop: {_fmt_price(signal.sl)}"
    if sl_dist is not None:
        sl_line += f" ({sl_dist:+.2f}%)"

    lines = [
        f"{_bold(label, parse_mode)} {_escape_text('|', parse_mode)} {_bold(symbol, parse_mode)}",
        _escape_text(f"Horário: {_fmt_ms(signal.timestamp_ms, tz_name)}", parse_mode),
        _escape_text(f"Preço: {_fmt_price(signal.price)}", parse_mode),
        _escape_text(sl_line, parse_mode),
        _escape_text(f"Alvo 1: {_fmt_price(signal.tp1)}", parse_mode),
        _escape_text(f"Alvo 2: {_fmt_price(signal.tp2)}", parse_mode),
        _escape_text(f"Alvo 3: {_fmt_price(signal.tp3)}", parse_mode),
        _escape_text(f"Motivo: {signal.reason}", parse_mode),
    ]

    footer = (getattr(cfg, "footer", "") or "").strip()
    if footer:
        lines.append("")
        lines.append(_escape_text(footer, parse_mode))
    return "\n".join(lines)


def format_summary(
    symbol: str,
    result: EngineResult,
    cfg,
    *,
    adx_threshold: float,
    updated_ms: Optional[int] = None,
) -> str:
    """Latest ADX/slope/GOG plus the most recent signals, newest first."""
    parse_mode = _parse_mode(cfg)
    tz_name = getattr(cfg, "timezone", DEFAULT_TZ)
    rec = latest_indicators(result)
    labels = trend_labels(rec, adx_threshold)

    lines = [_bold(f"{symbol} - Análise Técnica", parse_mode)]
    if updated_ms is not None:
        lines.append(_escape_text(f"Atualizado: {_fmt_ms(updated_ms, tz_name)}", parse_mode))
    if result.candles:
        lines.append(_escape_text(f"Último preço: {_fmt_price(result.candles[-1].close)}", parse_mode))

    if getattr(cfg, "include_metrics", True):
        lines.append(_escape_text(f"ADX: {_fmt_value(rec.adx, 2)} ({labels['strength']})", parse_mode))
        lines.append(_escape_text(f"Slope: {_fmt_value(rec.slope)} ({labels['direction']})", parse_mode))
        lines.append(_escape_text(f"GOG: {_fmt_value(rec.gog)} ({labels['momentum']})", parse_mode))
        start, end = visible_window(len(result.candles))
        history = indicator_history(result, "adx", start, end)[-HISTORY_BARS:]
        if sum(1 for v in history if v is not None) >= 2:
            lines.append(_escape_text(f"ADX (histórico): {sparkline(history)}", parse_mode))

    limit = int(getattr(cfg, "max_signals_in_summary", 5) or 0)
    recent = signals_newest_first(result.signals)[:limit]
    if not recent:
        lines.append(_escape_text("Nenhum sinal no período.", parse_mode))
    for sig in recent:
        side = "COMPRA" if sig.type == BUY else "VENDA"
        lines.append(_escape_text(
            f"{_fmt_ms(sig.timestamp_ms, tz_name)} {side} @ {_fmt_price(sig.price)} "
            f"SL {_fmt_price(sig.sl)} TP {_fmt_price(sig.tp1)}/{_fmt_price(sig.tp2)}/{_fmt_price(sig.tp3)}",
            parse_mode,
        ))
    return "\n".join(lines)


def format_ticker_banner(assets: Sequence[Asset]) -> str:
    parts = []
    for a in assets:
        arrow = "▲" if a.change_percent >= 0 else "▼"
        parts.append(f"{a.symbol} {_fmt_price(a.price)} {arrow}{a.change_percent:+.2f}%")
    return " | ".join(parts)
