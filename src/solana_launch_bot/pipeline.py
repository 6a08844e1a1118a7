"""Per-identity launch handling: dedup, telemetry, scoring, alerts and trades."""

from __future__ import annotations

import dataclasses
from typing import Optional, Protocol

from .analysis.commentary import CommentaryClient
from .analysis.scoring import ScoreEngine
from .config.settings import ScoringConfig, WhaleStrategy, get_app_config
from .controller import BotController, TelemetrySource
from .datalake.schemas import Commentary, ScoreResult, Verdict
from .monitoring.formatting import format_score_alert, format_trade_opened
from .monitoring.logger import get_logger
from .monitoring.metrics import METRICS
from .utils.tasks import TaskSupervisor


class Notifier(Protocol):
    async def notify(self, message: str) -> bool:
        ...


class TransferSource(Protocol):
    async def largest_sol_transfer(self, mint: str, limit: int = 10) -> Optional[float]:
        ...


class LaunchPipeline:
    """Turns a resolved mint address into alerts and paper trades."""

    def __init__(
        self,
        controller: BotController,
        telemetry: TelemetrySource,
        notifier: Notifier,
        *,
        engine: Optional[ScoreEngine] = None,
        commentary: Optional[CommentaryClient] = None,
        transfers: Optional[TransferSource] = None,
        supervisor: Optional[TaskSupervisor] = None,
        scoring_config: Optional[ScoringConfig] = None,
    ) -> None:
        self._controller = controller
        self._telemetry = telemetry
        self._notifier = notifier
        self._scoring = scoring_config or get_app_config().scoring
        self._engine = engine or ScoreEngine(self._scoring)
        self._commentary = commentary
        self._transfers = transfers
        self._supervisor = supervisor or TaskSupervisor("notifications")
        self._logger = get_logger(__name__)

    @property
    def supervisor(self) -> TaskSupervisor:
        return self._supervisor

    def should_alert(self, result: ScoreResult) -> bool:
        config = self._controller.state.config
        if result.score >= config.min_score or result.whale_flag:
            return True
        return config.alert_on_watch and result.verdict == Verdict.WATCH

    async def handle_identity(self, mint: str) -> Optional[ScoreResult]:
        state = self._controller.state
        if not state.mark_seen(mint):
            METRICS.increment("pipeline.duplicates")
            return None
        state.stats.tokens_received += 1
        self._controller.record_event()
        self._controller.persist()

        telemetry = await self._telemetry.fetch_telemetry(mint)
        if telemetry is None:
            METRICS.increment("pipeline.no_telemetry")
            self._logger.info("No telemetry for %s; skipping", mint)
            return None

        if self._scoring.whale_strategy == WhaleStrategy.LARGEST_TRANSFER and self._transfers is not None:
            largest = await self._transfers.largest_sol_transfer(
                mint, self._scoring.whale_lookback_signatures
            )
            if largest is not None:
                telemetry = dataclasses.replace(telemetry, largest_transfer_sol=largest)

        result = self._engine.score(telemetry)
        METRICS.increment(f"pipeline.verdict.{result.verdict.value.lower()}")
        self._logger.info(
            "Scored %s: %d (%s)%s",
            result.symbol,
            result.score,
            result.verdict.value,
            " whale" if result.whale_flag else "",
        )

        if state.config.paused:
            return result

        if self.should_alert(result):
            state.stats.alerts_sent += 1
            self._supervisor.spawn(self._send_score_alert(result), name=f"alert-{result.symbol}")

        ledger = self._controller.ledger
        if result.verdict == Verdict.BUY and state.config.paper_trading_enabled and ledger.get(mint) is None:
            trade = ledger.open(result)
            if trade is not None:
                self._supervisor.spawn(
                    self._notifier.notify(format_trade_opened(trade)), name=f"trade-{trade.symbol}"
                )

        self._controller.persist()
        return result

    async def _send_score_alert(self, result: ScoreResult) -> None:
        commentary: Optional[Commentary] = None
        if self._commentary is not None and self._commentary.enabled:
            commentary = await self._commentary.analyze(result)
        await self._notifier.notify(format_score_alert(result, commentary))


__all__ = ["LaunchPipeline"]
