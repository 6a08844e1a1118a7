"""Configuration management for the launch scanner."""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, cast

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_FILE = Path("config/app.toml")
CONFIG_FILE_ENV_VAR = "APP_CONFIG_FILE"
MODE_ENV_VAR = "BOT_MODE"


class AppMode(str, Enum):
    """Supported runtime modes."""

    PAPER = "paper"
    DEVELOPMENT = "development"


class WhaleStrategy(str, Enum):
    """How the large-holder signal is derived."""

    CURVE_RESERVE = "curve_reserve"
    LARGEST_TRANSFER = "largest_transfer"


class BackoffKind(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


def _resolve_config_path() -> Path:
    env_value = os.getenv(CONFIG_FILE_ENV_VAR)
    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = Path.cwd() / candidate
        return candidate
    return Path.cwd() / DEFAULT_CONFIG_FILE


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {**base}
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(cast(Dict[str, Any], result[key]), value)
        else:
            result[key] = value
    return result


def _select_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    if not data:
        return {}
    base_section = cast(Dict[str, Any], data.get("default", {}))
    requested_mode = os.getenv(MODE_ENV_VAR)
    if not requested_mode:
        mode_section = base_section.get("mode")
        if isinstance(mode_section, dict):
            requested_mode = cast(str, mode_section.get("active", AppMode.PAPER.value))
        elif isinstance(mode_section, str):
            requested_mode = mode_section
    requested_mode = (requested_mode or AppMode.PAPER.value).lower()

    if requested_mode in data and requested_mode != "default":
        return _deep_merge(base_section, cast(Dict[str, Any], data[requested_mode]))
    if base_section:
        return base_section
    return data


def _load_toml_config() -> Tuple[Dict[str, Any], Optional[Path]]:
    path = _resolve_config_path()
    if not path.exists():
        return {}, None
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        return {}, path
    merged = dict(_select_profile(payload))
    mode_section = merged.get("mode")
    if isinstance(mode_section, dict):
        mode_section = dict(mode_section)
        mode_section.setdefault("config_file", str(path))
        merged["mode"] = mode_section
    else:
        merged["mode"] = {"config_file": str(path)}
    return merged, path


class ModeConfig(BaseModel):
    """Runtime mode and operational toggles."""

    active: AppMode = Field(default=AppMode.PAPER)
    config_file: Optional[Path] = None


class RPCConfig(BaseModel):
    """RPC configuration for Solana endpoints."""

    primary_url: AnyHttpUrl = Field(default="https://api.mainnet-beta.solana.com")
    websocket_url: str = Field(default="wss://api.mainnet-beta.solana.com")
    request_timeout: float = Field(default=12.0, ge=1.0, le=60.0)
    commitment: str = Field(default="confirmed")

    @field_validator("request_timeout", mode="before")
    @classmethod
    def _parse_request_timeout(cls, value) -> float:
        if isinstance(value, str):
            return float(value)
        return value

    @field_validator("websocket_url")
    @classmethod
    def _require_ws_scheme(cls, value: str) -> str:
        if not value.startswith(("ws://", "wss://")):
            raise ValueError("websocket_url must use ws:// or wss://")
        return value


class DataSourceConfig(BaseModel):
    """Token metadata endpoint settings."""

    pumpfun_base_url: AnyHttpUrl = Field(default="https://frontend-api-v3.pump.fun")
    pumpfun_api_key: Optional[str] = None
    http_timeout: float = Field(default=10.0, ge=1.0, le=15.0)
    cache_ttl_seconds: int = Field(default=20, ge=0)


class ScannerConfig(BaseModel):
    """Signature queue and resolver settings."""

    pump_program_id: str = Field(default="6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P")
    create_log_marker: str = Field(default="Instruction: Create")
    stale_after_seconds: float = Field(default=90.0, gt=0.0)
    drain_interval_seconds: float = Field(default=1.1, ge=0.0)
    resolve_max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_kind: BackoffKind = Field(default=BackoffKind.LINEAR)
    backoff_base_seconds: float = Field(default=2.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    backoff_cap_seconds: float = Field(default=10.0, ge=0.0)
    min_identity_length: int = Field(default=32, ge=1)
    reconnect_delay_seconds: float = Field(default=3.0, ge=0.0)
    reconnect_delay_cap_seconds: float = Field(default=60.0, ge=0.0)


class ScoringConfig(BaseModel):
    """Weights and thresholds for the launch score."""

    graduation_sol: float = Field(default=42.0, gt=0.0)
    buy_threshold: int = Field(default=68, ge=0, le=100)
    watch_threshold: int = Field(default=45, ge=0, le=100)
    whale_strategy: WhaleStrategy = Field(default=WhaleStrategy.CURVE_RESERVE)
    whale_sol_threshold: float = Field(default=5.0, ge=0.0)
    whale_lookback_signatures: int = Field(default=10, ge=1, le=100)

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> "ScoringConfig":
        if self.watch_threshold > self.buy_threshold:
            raise ValueError("watch_threshold must not exceed buy_threshold")
        return self


class TradingConfig(BaseModel):
    """Paper portfolio limits and runtime defaults."""

    max_open_trades: int = Field(default=20, ge=1)
    alert_step_pct: float = Field(default=25.0, gt=0.0)
    sol_usd_rate: float = Field(default=150.0, gt=0.0)
    price_refresh_seconds: float = Field(default=30.0, gt=0.0)
    default_min_score: int = Field(default=65, ge=0, le=100)
    default_trade_amount: float = Field(default=0.1, gt=0.0)
    default_paper_trading: bool = True
    default_alert_on_watch: bool = False


class StorageConfig(BaseModel):
    """State persistence configuration."""

    state_path: Path = Field(default=Path("./state.json"))
    seen_high_water: int = Field(default=2_000, ge=1)
    seen_low_water: int = Field(default=1_000, ge=0)
    closed_trades_limit: int = Field(default=500, ge=1)

    @model_validator(mode="after")
    def _ordered_marks(self) -> "StorageConfig":
        if self.seen_low_water > self.seen_high_water:
            raise ValueError("seen_low_water must not exceed seen_high_water")
        return self


class TelegramConfig(BaseModel):
    """Chat notification endpoint."""

    bot_token: Optional[str] = None
    chat_id: Optional[str] = None
    api_base_url: AnyHttpUrl = Field(default="https://api.telegram.org")
    request_timeout: float = Field(default=10.0, ge=1.0, le=15.0)
    required: bool = True

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)


class CommentaryConfig(BaseModel):
    """Language-model commentary attached to alerts."""

    enabled: bool = True
    api_key: Optional[str] = None
    base_url: AnyHttpUrl = Field(default="https://api.openai.com/v1")
    model: str = Field(default="gpt-4o-mini")
    request_timeout: float = Field(default=15.0, ge=1.0, le=30.0)
    max_tokens: int = Field(default=160, ge=16, le=2_048)
    temperature: float = Field(default=0.4, ge=0.0, le=2.0)


class MonitoringConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")


class DashboardConfig(BaseModel):
    """Liveness endpoint settings."""

    enabled: bool = True
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)


class AppConfig(BaseSettings):
    """Aggregated application configuration."""

    mode: ModeConfig = Field(default_factory=ModeConfig)
    rpc: RPCConfig = Field(default_factory=RPCConfig)
    data_sources: DataSourceConfig = Field(default_factory=DataSourceConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    trading: TradingConfig = Field(default_factory=TradingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    commentary: CommentaryConfig = Field(default_factory=CommentaryConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def file_settings(_: Optional[BaseSettings] = None) -> Dict[str, Any]:
            payload, _ = _load_toml_config()
            return payload

        # Runtime environment variables win over the static config file.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _apply_legacy_env(self) -> "AppConfig":
        token = os.getenv("TELEGRAM_BOT_TOKEN")
        chat_id = os.getenv("TELEGRAM_CHAT_ID")
        if token and not self.telegram.bot_token:
            self.telegram.bot_token = token.strip()
        if chat_id and not self.telegram.chat_id:
            self.telegram.chat_id = chat_id.strip()
        openai_key = os.getenv("OPENAI_API_KEY")
        if openai_key and not self.commentary.api_key:
            self.commentary.api_key = openai_key.strip()
        helius_key = os.getenv("HELIUS_API_KEY")
        if helius_key and "helius" not in str(self.rpc.primary_url):
            key = helius_key.strip()
            self.rpc.primary_url = f"https://mainnet.helius-rpc.com/?api-key={key}"
            self.rpc.websocket_url = f"wss://mainnet.helius-rpc.com/?api-key={key}"
        return self


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """Create a cached application configuration object."""

    return AppConfig()


__all__ = [
    "AppConfig",
    "AppMode",
    "BackoffKind",
    "CommentaryConfig",
    "DashboardConfig",
    "DataSourceConfig",
    "ModeConfig",
    "MonitoringConfig",
    "RPCConfig",
    "ScannerConfig",
    "ScoringConfig",
    "StorageConfig",
    "TelegramConfig",
    "TradingConfig",
    "WhaleStrategy",
    "get_app_config",
]
