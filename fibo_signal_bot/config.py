from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import os
import yaml

from .models import IndicatorParams, TargetParams


DEFAULT_SYMBOLS = [
    "BTC-USD",
    "ETH-USD",
    "SOL-USD",
    "XRP-USD",
    "BNB-USD",
    "DOGE-USD",
    "TRX-USD",
    "USDC-USD",
    "USDT-USD",
    "TRUMP-USD",
]


def _env_override(value: Any, env_key: str) -> Any:
    env_val = os.getenv(env_key)
    if env_val is None:
        return value
    # basic parsing
    if isinstance(value, bool):
        return env_val.strip().lower() in ("1", "true", "yes", "y", "on")
    if isinstance(value, int):
        try:
            return int(env_val)
        except ValueError:
            return value
    if isinstance(value, float):
        try:
            return float(env_val)
        except ValueError:
            return value
    return env_val


def _split_env_list(env_key: str) -> Optional[List[str]]:
    raw = os.getenv(env_key)
    if not raw:
        return None
    return [x.strip() for x in raw.split(",") if x.strip()]


@dataclass
class StrategyConfig:
    # Indicator inputs
    adx_period: int = 14
    adx_threshold: float = 20.0
    slope_window: int = 14
    slope_smooth: int = 5
    gog_span: int = 5
    swing_left: int = 3
    swing_right: int = 3
    fibo_retr_low: float = 0.382
    fibo_retr_high: float = 0.618

    # Stop / targets
    sl_buffer_ratio: float = 0.05
    tp_multipliers: List[float] = field(default_factory=lambda: [1.0, 1.618, 2.618])

    def to_params(self) -> IndicatorParams:
        return IndicatorParams(
            adx_period=self.adx_period,
            adx_threshold=self.adx_threshold,
            slope_window=self.slope_window,
            slope_smooth=self.slope_smooth,
            gog_span=self.gog_span,
            swing_left=self.swing_left,
            swing_right=self.swing_right,
            fibo_retr_low=self.fibo_retr_low,
            fibo_retr_high=self.fibo_retr_high,
        )

    def to_targets(self) -> TargetParams:
        return TargetParams(
            sl_buffer_ratio=self.sl_buffer_ratio,
            tp_multipliers=tuple(self.tp_multipliers or ()),
        )

    def signature(self) -> Dict[str, object]:
        return {
            "adx_period": self.adx_period,
            "adx_threshold": self.adx_threshold,
            "slope_window": self.slope_window,
            "slope_smooth": self.slope_smooth,
            "gog_span": self.gog_span,
            "swing_left": self.swing_left,
            "swing_right": self.swing_right,
            "fibo_retr_low": self.fibo_retr_low,
            "fibo_retr_high": self.fibo_retr_high,
            "sl_buffer_ratio": self.sl_buffer_ratio,
            "tp_multipliers": list(self.tp_multipliers or []),
        }


@dataclass
class ProviderConfig:
    type: str = "yahoo"  # yahoo | binance
    market: str = "spot"  # binance only: futures|spot
    symbols: List[str] = None
    interval: str = "5m"
    range: str = "1d"  # yahoo chart range
    warmup_candles: int = 300  # binance REST warmup / rolling buffer
    poll_interval_s: int = 60
    ticker_poll_interval_s: int = 60
    rest_timeout_s: int = 20
    fetch_concurrency: int = 5


@dataclass
class TelegramConfig:
    enabled: bool = True
    token: str = ""
    chat_ids: List[str] = None
    disable_web_page_preview: bool = True


@dataclass
class WebhookConfig:
    enabled: bool = False
    url: str = ""
    secret: str = ""
    timeout_s: int = 10
    headers: Dict[str, str] = None


@dataclass
class AlertsConfig:
    parse_mode: str = "HTML"  # HTML | MarkdownV2
    timezone: str = "America/Sao_Paulo"
    notify_on_startup: bool = False
    include_metrics: bool = True
    max_signals_in_summary: int = 5
    footer: str = ""


@dataclass
class AppConfig:
    name: str = "Fibo Signal Bot"
    log_level: str = "INFO"


@dataclass
class Config:
    app: AppConfig
    provider: ProviderConfig
    strategy: StrategyConfig
    telegram: TelegramConfig
    webhook: WebhookConfig
    alerts: AlertsConfig


def default_config() -> Config:
    return _finalize(Config(
        app=AppConfig(),
        provider=ProviderConfig(),
        strategy=StrategyConfig(),
        telegram=TelegramConfig(),
        webhook=WebhookConfig(),
        alerts=AlertsConfig(),
    ))


def _finalize(cfg: Config) -> Config:
    if cfg.provider.symbols is None:
        cfg.provider.symbols = list(DEFAULT_SYMBOLS)

    # env overrides (useful on servers)
    cfg.telegram.token = _env_override(cfg.telegram.token, "TELEGRAM_TOKEN")
    if cfg.telegram.chat_ids is None:
        cfg.telegram.chat_ids = []
    # Allow TELEGRAM_CHAT_IDS="id1,id2"
    chat_env = _split_env_list("TELEGRAM_CHAT_IDS")
    if chat_env:
        cfg.telegram.chat_ids = chat_env

    cfg.webhook.secret = _env_override(cfg.webhook.secret, "WEBHOOK_SECRET")
    cfg.webhook.url = _env_override(cfg.webhook.url, "WEBHOOK_URL")
    if cfg.webhook.headers is None:
        cfg.webhook.headers = {}
    return cfg


def load_config(path: str) -> Config:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    cfg = Config(
        app=AppConfig(**raw.get("app", {})),
        provider=ProviderConfig(**raw.get("provider", {})),
        strategy=StrategyConfig(**raw.get("strategy", {})),
        telegram=TelegramConfig(**raw.get("telegram", {})),
        webhook=WebhookConfig(**raw.get("webhook", {})),
        alerts=AlertsConfig(**raw.get("alerts", {})),
    )
    return _finalize(cfg)
