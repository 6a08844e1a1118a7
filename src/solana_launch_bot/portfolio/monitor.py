"""Periodic mark-to-market of open paper trades."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional

from ..config.settings import TradingConfig, get_app_config
from ..controller import BotController, TelemetrySource
from ..datalake.schemas import TradeAlert
from ..monitoring.formatting import format_trade_alert
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..pipeline import Notifier
from ..utils.tasks import TaskSupervisor


class PriceMonitor:
    def __init__(
        self,
        controller: BotController,
        telemetry: TelemetrySource,
        notifier: Notifier,
        *,
        config: Optional[TradingConfig] = None,
        supervisor: Optional[TaskSupervisor] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._controller = controller
        self._telemetry = telemetry
        self._notifier = notifier
        self._config = config or get_app_config().trading
        self._supervisor = supervisor or TaskSupervisor("price-alerts")
        self._sleep = sleep
        self._logger = get_logger(__name__)

    async def refresh_once(self) -> List[TradeAlert]:
        """Refresh every open trade once; a failed lookup skips that trade this cycle."""

        ledger = self._controller.ledger
        alerts: List[TradeAlert] = []
        # Snapshot: graduation closes mutate the open map.
        for identity in list(self._controller.state.open_trades):
            telemetry = await self._telemetry.fetch_telemetry(identity, use_cache=False)
            if telemetry is None or telemetry.usd_market_cap <= 0:
                METRICS.increment("monitor.refresh_skipped")
                continue
            alerts.extend(ledger.refresh(identity, telemetry.usd_market_cap, telemetry.is_complete))

        for alert in alerts:
            self._supervisor.spawn(
                self._notifier.notify(format_trade_alert(alert)),
                name=f"{alert.kind.value}-{alert.trade.symbol}",
            )
        self._controller.persist()
        return alerts

    async def run(self, interval: Optional[float] = None) -> None:
        period = interval if interval is not None else self._config.price_refresh_seconds
        while True:
            await self._sleep(period)
            if not self._controller.state.open_trades:
                continue
            started = asyncio.get_running_loop().time()
            await self.refresh_once()
            METRICS.observe("monitor.refresh_seconds", asyncio.get_running_loop().time() - started)


__all__ = ["PriceMonitor"]
