from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from solana_launch_bot.config import settings

_ENV_VARS = (
    "RPC__PRIMARY_URL",
    "RPC__WEBSOCKET_URL",
    "SCORING__BUY_THRESHOLD",
    "TELEGRAM__BOT_TOKEN",
    "TELEGRAM__CHAT_ID",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "HELIUS_API_KEY",
    "OPENAI_API_KEY",
    "APP_CONFIG_FILE",
    "BOT_MODE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the picture.
    monkeypatch.chdir(tmp_path)
    settings.get_app_config.cache_clear()
    yield
    settings.get_app_config.cache_clear()


def test_app_config_loads_profiles_and_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = tmp_path / "app.toml"
    config_path.write_text(
        """
[default.mode]
active = "paper"

[default.scoring]
buy_threshold = 70
watch_threshold = 40

[default.trading]
max_open_trades = 5

[development.mode]
active = "development"

[development.trading]
max_open_trades = 2
"""
    )
    monkeypatch.setenv("APP_CONFIG_FILE", str(config_path))
    monkeypatch.setenv("BOT_MODE", "development")
    monkeypatch.setenv("SCORING__BUY_THRESHOLD", "80")

    cfg = settings.get_app_config()

    assert cfg.mode.active == settings.AppMode.DEVELOPMENT
    assert cfg.mode.config_file == config_path
    assert cfg.trading.max_open_trades == 2
    assert cfg.scoring.buy_threshold == 80
    assert cfg.scoring.watch_threshold == 40


def test_defaults_match_documented_constants() -> None:
    cfg = settings.get_app_config()

    assert cfg.scoring.buy_threshold == 68
    assert cfg.scoring.watch_threshold == 45
    assert cfg.scoring.graduation_sol == 42.0
    assert cfg.scoring.whale_strategy == settings.WhaleStrategy.CURVE_RESERVE
    assert cfg.trading.alert_step_pct == 25.0
    assert cfg.trading.max_open_trades == 20
    assert cfg.storage.seen_high_water == 2_000
    assert cfg.storage.seen_low_water == 1_000
    assert cfg.scanner.stale_after_seconds == 90.0
    assert cfg.scanner.drain_interval_seconds == 1.1


def test_telegram_and_helius_aliases(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", " 123:abc ")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "-100")
    monkeypatch.setenv("HELIUS_API_KEY", "key")

    cfg = settings.get_app_config()

    assert cfg.telegram.bot_token == "123:abc"
    assert cfg.telegram.chat_id == "-100"
    assert cfg.telegram.configured
    assert "helius-rpc.com" in str(cfg.rpc.primary_url)
    assert cfg.rpc.websocket_url.startswith("wss://")


def test_watch_threshold_above_buy_is_rejected() -> None:
    with pytest.raises(ValidationError):
        settings.ScoringConfig(buy_threshold=40, watch_threshold=50)


def test_websocket_url_requires_ws_scheme() -> None:
    with pytest.raises(ValidationError):
        settings.RPCConfig(websocket_url="https://example.com")


def test_storage_marks_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        settings.StorageConfig(seen_high_water=10, seen_low_water=20)


def test_public_surface_exports_only_live_settings() -> None:
    exported = set(settings.__all__)
    assert "env_path" not in exported
    assert all(hasattr(settings, name) for name in exported)
    assert set(settings.ModeConfig.model_fields) == {"active", "config_file"}
