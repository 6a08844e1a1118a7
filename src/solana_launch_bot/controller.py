"""Operator-facing operations over the shared bot state.

``BotController`` is the single writer of :class:`SystemState`. Every mutating
operation persists the snapshot before returning; a failed save is logged by the
store and the in-memory state carries on.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional, Protocol

from .config.settings import TradingConfig, get_app_config
from .datalake.schemas import CloseReason, ClosedTrade, PortfolioSummary, SystemState, TokenTelemetry
from .datalake.storage import JsonStateStore
from .monitoring.logger import get_logger
from .monitoring.metrics import METRICS
from .portfolio.ledger import TradeLedger


class CommandValidationError(ValueError):
    """Rejected operator input; the message is a usage hint."""


class TelemetrySource(Protocol):
    async def fetch_telemetry(self, mint: str, *, use_cache: bool = True) -> Optional[TokenTelemetry]:
        ...


MIN_SCORE_USAGE = "Usage: minscore <integer 0-100>"
TRADE_AMOUNT_USAGE = "Usage: amount <SOL amount greater than 0>"
CLOSE_USAGE = "Usage: close <mint address>"


def _parse_min_score(value: Any) -> int:
    if isinstance(value, bool):
        raise CommandValidationError(MIN_SCORE_USAGE)
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise CommandValidationError(MIN_SCORE_USAGE) from None
    if not 0 <= parsed <= 100:
        raise CommandValidationError(MIN_SCORE_USAGE)
    return parsed


def _parse_trade_amount(value: Any) -> float:
    if isinstance(value, bool):
        raise CommandValidationError(TRADE_AMOUNT_USAGE)
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError):
        raise CommandValidationError(TRADE_AMOUNT_USAGE) from None
    if not parsed > 0 or parsed == float("inf"):
        raise CommandValidationError(TRADE_AMOUNT_USAGE)
    return parsed


class BotController:
    def __init__(
        self,
        state: SystemState,
        store: JsonStateStore,
        *,
        ledger: Optional[TradeLedger] = None,
        telemetry: Optional[TelemetrySource] = None,
        trading_config: Optional[TradingConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state = state
        self._store = store
        self._trading = trading_config or get_app_config().trading
        self._ledger = ledger or TradeLedger(state, self._trading, clock=clock)
        self._telemetry = telemetry
        self._clock = clock
        self._logger = get_logger(__name__)

    @property
    def state(self) -> SystemState:
        return self._state

    @property
    def ledger(self) -> TradeLedger:
        return self._ledger

    def persist(self) -> bool:
        return self._store.save(self._state)

    # Settings -----------------------------------------------------------

    @property
    def min_score(self) -> int:
        return self._state.config.min_score

    def set_min_score(self, value: Any) -> int:
        parsed = _parse_min_score(value)
        self._state.config.min_score = parsed
        self.persist()
        self._logger.info("Minimum alert score set to %d", parsed)
        return parsed

    @property
    def trade_amount(self) -> float:
        return self._state.config.trade_amount

    def set_trade_amount(self, value: Any) -> float:
        parsed = _parse_trade_amount(value)
        self._state.config.trade_amount = parsed
        self.persist()
        self._logger.info("Paper trade size set to %g SOL", parsed)
        return parsed

    def toggle_paused(self) -> bool:
        self._state.config.paused = not self._state.config.paused
        self.persist()
        self._logger.info("Scanner %s", "paused" if self._state.config.paused else "resumed")
        return self._state.config.paused

    def toggle_alert_on_watch(self) -> bool:
        self._state.config.alert_on_watch = not self._state.config.alert_on_watch
        self.persist()
        return self._state.config.alert_on_watch

    def toggle_paper_trading(self) -> bool:
        self._state.config.paper_trading_enabled = not self._state.config.paper_trading_enabled
        self.persist()
        return self._state.config.paper_trading_enabled

    # Portfolio ----------------------------------------------------------

    async def close_trade(self, identity: Any) -> Optional[ClosedTrade]:
        """Close ``identity`` at a fresh mark, or at the last known one.

        Returns None when no trade is open for the identity.
        """

        mint = str(identity or "").strip()
        if not mint:
            raise CommandValidationError(CLOSE_USAGE)
        trade = self._ledger.get(mint)
        if trade is None:
            return None

        exit_mcap = trade.current_mcap
        if self._telemetry is not None:
            telemetry = await self._telemetry.fetch_telemetry(mint, use_cache=False)
            if telemetry is not None and telemetry.usd_market_cap > 0:
                exit_mcap = telemetry.usd_market_cap
        # Re-read: the price monitor may have closed it while we awaited.
        if self._ledger.get(mint) is None:
            return None
        closed = self._ledger.close(mint, exit_mcap, CloseReason.MANUAL)
        self.persist()
        return closed

    def summary(self) -> PortfolioSummary:
        return self._ledger.summary()

    def reset(self) -> None:
        """Clear trades and counters; runtime config is left alone."""

        self._ledger.reset()
        stats = self._state.stats
        stats.tokens_received = 0
        stats.alerts_sent = 0
        stats.total_trades = 0
        stats.last_event_at = None
        METRICS.increment("controller.resets")
        self.persist()
        self._logger.info("Portfolio and counters reset")

    # Runtime signals ----------------------------------------------------

    def set_connected(self, connected: bool) -> None:
        self._state.stats.connected = connected

    def record_event(self) -> None:
        self._state.stats.last_event_at = self._clock()

    def health(self) -> Dict[str, Any]:
        stats = self._state.stats
        return {
            "connected": stats.connected,
            "received": stats.tokens_received,
            "alerts": stats.alerts_sent,
            "openCount": len(self._state.open_trades),
            "totalPnl": round(self.summary().total_sol, 6),
            "uptime": max(0, int(self._clock() - stats.started_at)),
        }


__all__ = ["BotController", "CommandValidationError"]
