"""JSON snapshot persistence for the process-wide state."""

from __future__ import annotations

import json
import math
import os
import tempfile
import time
from dataclasses import fields
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from ..config.settings import StorageConfig, TradingConfig, get_app_config
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from .schemas import (
    RUNTIME_ONLY_STATS,
    ClosedTrade,
    RuntimeConfig,
    SystemState,
    Trade,
)


def default_state(trading: Optional[TradingConfig] = None) -> SystemState:
    """Build the compiled-in default state from the trading configuration."""

    cfg = trading or get_app_config().trading
    return SystemState(
        config=RuntimeConfig(
            min_score=cfg.default_min_score,
            trade_amount=cfg.default_trade_amount,
            paused=False,
            paper_trading_enabled=cfg.default_paper_trading,
            alert_on_watch=cfg.default_alert_on_watch,
        )
    )


def _coerce_like(current: Any, value: Any) -> Any:
    """Convert ``value`` to the type of ``current``; raise ``ValueError`` if it does not fit.

    Booleans must be JSON booleans. Numbers may arrive as numeric strings. A
    ``None`` default stands for an optional float.
    """

    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        raise ValueError(f"expected a boolean, got {value!r}")
    if value is None and current is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"expected a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"expected a finite number, got {value!r}")
    if isinstance(current, int):
        if not number.is_integer():
            raise ValueError(f"expected an integer, got {value!r}")
        return int(number)
    return number


def _merge_dataclass(instance: Any, payload: Mapping[str, Any], *, skip: tuple[str, ...] = ()) -> list[str]:
    """Copy known keys onto ``instance``; return the keys whose values did not fit."""

    rejected: list[str] = []
    for field_info in fields(instance):
        key = field_info.name
        if key in skip or key not in payload:
            continue
        try:
            value = _coerce_like(getattr(instance, key), payload[key])
        except ValueError:
            rejected.append(key)
            continue
        setattr(instance, key, value)
    return rejected


class JsonStateStore:
    """Loads and saves :class:`SystemState` as a single JSON document."""

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        config: Optional[StorageConfig] = None,
        defaults: Optional[Callable[[], SystemState]] = None,
    ) -> None:
        self._config = config or get_app_config().storage
        self._path = Path(path or self._config.state_path)
        self._defaults = defaults or default_state
        self._logger = get_logger(__name__)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SystemState:
        """Merge the persisted snapshot over the defaults.

        ``config`` and ``stats`` merge key-by-key so options added after a
        snapshot was written keep their defaults. Runtime-only stats are always
        reset. An unreadable file yields the defaults.
        """

        state = self._defaults()
        if not self._path.exists():
            return state
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            self._logger.error("State load failed for %s: %s", self._path, exc)
            return state
        if not isinstance(payload, dict):
            self._logger.error("State file %s does not hold an object", self._path)
            return state

        config_payload = payload.get("config")
        if isinstance(config_payload, dict):
            self._warn_rejected("config", _merge_dataclass(state.config, config_payload))

        stats_payload = payload.get("stats")
        if isinstance(stats_payload, dict):
            self._warn_rejected("stats", _merge_dataclass(state.stats, stats_payload, skip=RUNTIME_ONLY_STATS))
        state.stats.connected = False
        state.stats.started_at = time.time()

        seen = payload.get("seen_identities")
        if isinstance(seen, list):
            state.seen_identities = [str(item) for item in seen if item]

        open_payload = payload.get("open_trades")
        if isinstance(open_payload, dict):
            for identity, raw in open_payload.items():
                try:
                    trade = Trade.from_dict({"identity": identity, **raw})
                except (KeyError, TypeError, ValueError) as exc:
                    self._logger.warning("Skipping malformed open trade %s: %s", identity, exc)
                    continue
                state.open_trades[trade.identity] = trade

        closed_payload = payload.get("closed_trades")
        if isinstance(closed_payload, list):
            for raw in closed_payload:
                try:
                    state.closed_trades.append(ClosedTrade.from_dict(raw))
                except (KeyError, TypeError, ValueError) as exc:
                    self._logger.warning("Skipping malformed closed trade: %s", exc)

        self._logger.info(
            "State loaded: open=%d closed=%d seen=%d",
            len(state.open_trades),
            len(state.closed_trades),
            len(state.seen_identities),
        )
        return state

    def trim(self, state: SystemState) -> None:
        """Bound the dedup sequence and the closed-trade history in place."""

        if len(state.seen_identities) > self._config.seen_high_water:
            keep = self._config.seen_low_water
            state.seen_identities = state.seen_identities[-keep:] if keep else []
        if len(state.closed_trades) > self._config.closed_trades_limit:
            del state.closed_trades[self._config.closed_trades_limit :]

    def _warn_rejected(self, section: str, keys: list[str]) -> None:
        for key in keys:
            self._logger.warning("Ignoring %s.%s from %s: wrong type", section, key, self._path)

    def save(self, state: SystemState) -> bool:
        """Trim and write ``state``; failures are logged and reported as False."""

        self.trim(state)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            document = json.dumps(state.to_dict(), indent=2)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(document)
                os.replace(tmp_name, self._path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as exc:
            METRICS.increment("state.save_failures")
            self._logger.error("State save failed for %s: %s", self._path, exc)
            return False
        return True


__all__ = ["JsonStateStore", "default_state"]
