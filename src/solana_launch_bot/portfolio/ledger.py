"""Paper-trade lifecycle: open, mark-to-market, band alerts and close."""

from __future__ import annotations

import math
import time
from typing import Callable, List, Optional

from ..config.settings import TradingConfig, get_app_config
from ..datalake.schemas import (
    AlertKind,
    CloseReason,
    ClosedTrade,
    PortfolioSummary,
    ScoreResult,
    SystemState,
    Trade,
    TradeAlert,
)
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS


def alert_step(pnl_pct: float, step_pct: float) -> int:
    """Signed index of the ``step_pct`` band that ``pnl_pct`` falls in."""

    if pnl_pct == 0 or step_pct <= 0:
        return 0
    band = int(math.floor(abs(pnl_pct) / step_pct))
    return band if pnl_pct > 0 else -band


class TradeLedger:
    """Owns the open/closed trade collections inside :class:`SystemState`.

    None of the methods await, so a guard check and the mutation it protects
    always run without interleaving.
    """

    def __init__(
        self,
        state: SystemState,
        config: Optional[TradingConfig] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state = state
        self._config = config or get_app_config().trading
        self._clock = clock
        self._logger = get_logger(__name__)

    @property
    def state(self) -> SystemState:
        return self._state

    def get(self, identity: str) -> Optional[Trade]:
        return self._state.open_trades.get(identity)

    def was_closed(self, identity: str) -> bool:
        return any(trade.identity == identity for trade in self._state.closed_trades)

    def open(self, result: ScoreResult) -> Optional[Trade]:
        """Open a position for ``result``.

        Returns the existing trade unchanged when one is already open, and
        None when the portfolio is full or the identity was already closed.
        """

        existing = self._state.open_trades.get(result.identity)
        if existing is not None:
            return existing
        if len(self._state.open_trades) >= self._config.max_open_trades:
            METRICS.increment("trades.rejected_full")
            self._logger.info(
                "Not opening %s: %d trades already open", result.symbol, len(self._state.open_trades)
            )
            return None
        if self.was_closed(result.identity):
            METRICS.increment("trades.rejected_closed")
            return None

        mcap = result.usd_market_cap
        trade = Trade(
            identity=result.identity,
            symbol=result.symbol,
            name=result.name,
            entry_mcap=mcap,
            current_mcap=mcap,
            peak_mcap=mcap,
            sol_amount=self._state.config.trade_amount,
            entry_time=self._clock(),
            score=result.score,
        )
        self._state.open_trades[trade.identity] = trade
        self._state.stats.total_trades += 1
        METRICS.increment("trades.opened")
        METRICS.gauge("trades.open", len(self._state.open_trades))
        self._logger.info(
            "Opened paper trade %s at $%.0f mcap for %.3f SOL",
            trade.symbol,
            trade.entry_mcap,
            trade.sol_amount,
        )
        return trade

    def refresh(self, identity: str, new_mcap: float, is_complete: bool = False) -> List[TradeAlert]:
        """Mark ``identity`` to ``new_mcap`` and return the alerts it triggers."""

        trade = self._state.open_trades.get(identity)
        if trade is None:
            return []

        alerts: List[TradeAlert] = []
        trade.current_mcap = new_mcap
        if new_mcap > trade.peak_mcap:
            trade.peak_mcap = new_mcap

        pnl_pct = trade.pnl_pct
        step = alert_step(pnl_pct, self._config.alert_step_pct)
        if step != 0 and step != trade.last_alert_step:
            trade.last_alert_step = step
            METRICS.increment("alerts.pnl_step")
            alerts.append(TradeAlert(kind=AlertKind.PNL_STEP, trade=trade, pnl_pct=pnl_pct, step=step))

        if is_complete and not trade.migrated:
            trade.migrated = True
            closed = self.close(identity, new_mcap, CloseReason.GRADUATED)
            METRICS.increment("alerts.graduated")
            alerts.append(
                TradeAlert(
                    kind=AlertKind.GRADUATED,
                    trade=trade,
                    pnl_pct=pnl_pct,
                    step=trade.last_alert_step,
                    closed=closed,
                )
            )
        return alerts

    def close(
        self,
        identity: str,
        exit_mcap: float,
        reason: CloseReason = CloseReason.MANUAL,
    ) -> Optional[ClosedTrade]:
        trade = self._state.open_trades.pop(identity, None)
        if trade is None:
            return None

        now = self._clock()
        mult = exit_mcap / trade.entry_mcap if trade.entry_mcap > 0 else 1.0
        pnl_sol = (mult - 1) * trade.sol_amount
        closed = ClosedTrade(
            identity=trade.identity,
            symbol=trade.symbol,
            name=trade.name,
            entry_mcap=trade.entry_mcap,
            peak_mcap=max(trade.peak_mcap, exit_mcap),
            sol_amount=trade.sol_amount,
            entry_time=trade.entry_time,
            score=trade.score,
            migrated=trade.migrated,
            exit_mcap=exit_mcap,
            exit_time=now,
            duration_ms=max(0, int(round((now - trade.entry_time) * 1000))),
            pnl_sol=pnl_sol,
            pnl_usd=pnl_sol * self._config.sol_usd_rate,
            pnl_pct=(mult - 1) * 100,
            reason=reason,
        )
        self._state.closed_trades.insert(0, closed)
        METRICS.increment(f"trades.closed.{reason.value}")
        METRICS.gauge("trades.open", len(self._state.open_trades))
        self._logger.info(
            "Closed %s (%s): %+.1f%% / %+.4f SOL",
            closed.symbol,
            reason.value,
            closed.pnl_pct,
            closed.pnl_sol,
        )
        return closed

    def summary(self) -> PortfolioSummary:
        closed = self._state.closed_trades
        wins = sum(1 for trade in closed if trade.is_win)
        realized_sol = sum(trade.pnl_sol for trade in closed)
        unrealized_sol = sum(trade.pnl_sol for trade in self._state.open_trades.values())
        rate = self._config.sol_usd_rate
        return PortfolioSummary(
            open_count=len(self._state.open_trades),
            closed_count=len(closed),
            wins=wins,
            losses=len(closed) - wins,
            win_rate=(wins / len(closed)) if closed else 0.0,
            realized_sol=realized_sol,
            realized_usd=sum(trade.pnl_usd for trade in closed),
            unrealized_sol=unrealized_sol,
            unrealized_usd=unrealized_sol * rate,
            best=max(closed, key=lambda trade: trade.pnl_pct) if closed else None,
            worst=min(closed, key=lambda trade: trade.pnl_pct) if closed else None,
        )

    def reset(self) -> None:
        self._state.open_trades.clear()
        self._state.closed_trades.clear()
        METRICS.gauge("trades.open", 0)


__all__ = ["TradeLedger", "alert_step"]
