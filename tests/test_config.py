from fibo_signal_bot.config import DEFAULT_SYMBOLS, default_config, load_config
from fibo_signal_bot.models import IndicatorParams, TargetParams


def test_default_config_matches_engine_defaults(monkeypatch):
    monkeypatch.delenv("TELEGRAM_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_IDS", raising=False)
    cfg = default_config()

    assert cfg.provider.symbols == DEFAULT_SYMBOLS
    assert cfg.provider.type == "yahoo"
    assert cfg.strategy.to_params() == IndicatorParams()
    assert cfg.strategy.to_targets() == TargetParams()
    assert cfg.telegram.chat_ids == []
    assert cfg.webhook.headers == {}


def test_load_config_from_yaml(tmp_path, monkeypatch):
    monkeypatch.delenv("TELEGRAM_TOKEN", raising=False)
    monkeypatch.delenv("TELEGRAM_CHAT_IDS", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        "provider:\n"
        "  type: binance\n"
        "  symbols: [BTCUSDT]\n"
        "  interval: 15m\n"
        "strategy:\n"
        "  adx_period: 10\n"
        "  fibo_retr_low: 0.5\n"
        "  tp_multipliers: [1.0, 2.0, 3.0]\n"
        "alerts:\n"
        "  parse_mode: MarkdownV2\n",
        encoding="utf-8",
    )

    cfg = load_config(str(path))
    assert cfg.provider.type == "binance"
    assert cfg.provider.symbols == ["BTCUSDT"]
    assert cfg.provider.interval == "15m"
    assert cfg.provider.poll_interval_s == 60

    params = cfg.strategy.to_params()
    assert params.adx_period == 10
    assert params.fibo_retr_low == 0.5
    assert params.fibo_retr_high == 0.618
    assert cfg.strategy.to_targets().tp_multipliers == (1.0, 2.0, 3.0)
    assert cfg.alerts.parse_mode == "MarkdownV2"
    assert cfg.app.name == "Fibo Signal Bot"


def test_empty_yaml_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    cfg = load_config(str(path))
    assert cfg.provider.symbols == DEFAULT_SYMBOLS
    assert cfg.strategy.adx_threshold == 20.0


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("TELEGRAM_TOKEN", "abc")
    monkeypatch.setenv("TELEGRAM_CHAT_IDS", " 1, 2 ,,3")
    monkeypatch.setenv("WEBHOOK_URL", "https://example.test/hook")
    path = tmp_path / "config.yaml"
    path.write_text("telegram:\n  chat_ids: ['9']\n", encoding="utf-8")

    cfg = load_config(str(path))
    assert cfg.telegram.token == "abc"
    assert cfg.telegram.chat_ids == ["1", "2", "3"]
    assert cfg.webhook.url == "https://example.test/hook"


def test_signature_changes_with_params():
    a = default_config().strategy
    b = default_config().strategy
    assert a.signature() == b.signature()
    b.swing_right = 4
    assert a.signature() != b.signature()
