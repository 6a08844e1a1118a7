"""Entrypoint for the Solana launch scanner."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn

from .analysis.commentary import CommentaryClient
from .analysis.scoring import ScoreEngine
from .config.settings import AppConfig, get_app_config
from .controller import BotController
from .dashboard import create_health_app
from .datalake.storage import JsonStateStore
from .ingestion.log_stream import LogStream
from .ingestion.pumpfun_api import PumpFunClient
from .ingestion.queue import IngestionQueue
from .ingestion.resolver import SignatureResolver
from .ingestion.rpc import SolanaRpcClient
from .monitoring.alerts import TelegramNotifier
from .monitoring.logger import configure_logging, get_logger
from .monitoring.metrics import METRICS
from .pipeline import LaunchPipeline
from .portfolio.monitor import PriceMonitor
from .utils.tasks import TaskSupervisor

logger = get_logger(__name__)

SHUTDOWN_GRACE_SECONDS = 5.0


class MissingCredentialsError(RuntimeError):
    """Notifications are required but the Telegram credentials are absent."""


def check_credentials(config: AppConfig) -> None:
    if config.telegram.required and not config.telegram.configured:
        raise MissingCredentialsError(
            "TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID must be set "
            "(or telegram.required disabled in the config file)"
        )


async def run_async(config: AppConfig, *, state_path: Optional[Path] = None, dashboard: bool = True) -> None:
    store = JsonStateStore(state_path, config=config.storage)
    state = store.load()
    pumpfun = PumpFunClient(config.data_sources)
    rpc = SolanaRpcClient(config.rpc)
    notifier = TelegramNotifier(config.telegram)
    controller = BotController(state, store, telemetry=pumpfun, trading_config=config.trading)
    supervisor = TaskSupervisor("notifications")

    pipeline = LaunchPipeline(
        controller,
        pumpfun,
        notifier,
        engine=ScoreEngine(config.scoring),
        commentary=CommentaryClient(config.commentary),
        transfers=rpc,
        supervisor=supervisor,
        scoring_config=config.scoring,
    )
    queue = IngestionQueue(SignatureResolver(rpc, config.scanner), pipeline.handle_identity, config.scanner)

    def on_signature(signature: str) -> None:
        controller.record_event()
        queue.enqueue(signature)

    stream = LogStream(
        on_signature,
        rpc_config=config.rpc,
        scanner_config=config.scanner,
        on_connection_change=controller.set_connected,
    )
    monitor = PriceMonitor(controller, pumpfun, notifier, config=config.trading, supervisor=supervisor)

    tasks: List[asyncio.Task[None]] = [
        asyncio.create_task(stream.run(), name="log-stream"),
        asyncio.create_task(monitor.run(), name="price-monitor"),
    ]
    if dashboard and config.dashboard.enabled:
        server = uvicorn.Server(
            uvicorn.Config(
                create_health_app(controller),
                host=config.dashboard.host,
                port=config.dashboard.port,
                log_level=config.monitoring.log_level.lower(),
            )
        )
        tasks.append(asyncio.create_task(server.serve(), name="health-server"))

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    logger.info(
        "Scanner started: min_score=%d paper_trading=%s open_trades=%d",
        state.config.min_score,
        state.config.paper_trading_enabled,
        len(state.open_trades),
    )
    stopper = asyncio.create_task(stop_event.wait(), name="shutdown-signal")
    done, _ = await asyncio.wait([stopper, *tasks], return_when=asyncio.FIRST_COMPLETED)
    for task in done:
        if task is not stopper and not task.cancelled() and task.exception() is not None:
            logger.error("Task %s exited: %s", task.get_name(), task.exception())

    logger.info("Shutting down")
    stream.stop()
    for task in [stopper, *tasks]:
        task.cancel()
    await asyncio.gather(stopper, *tasks, return_exceptions=True)
    await queue.close()
    await supervisor.drain(timeout=SHUTDOWN_GRACE_SECONDS)
    controller.set_connected(False)
    if controller.persist():
        logger.info("State flushed to %s", store.path)
    METRICS.increment("bot.shutdowns")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Scan pump.fun launches and paper-trade the best ones")
    parser.add_argument("--state-path", type=Path, default=None, help="Override storage.state_path")
    parser.add_argument(
        "--no-dashboard",
        action="store_true",
        default=False,
        help="Do not serve the /health and /metrics endpoints.",
    )
    args = parser.parse_args(argv)

    config = get_app_config()
    configure_logging(config.monitoring)
    try:
        check_credentials(config)
    except MissingCredentialsError as exc:
        logger.error("Startup aborted: %s", exc)
        return 2
    asyncio.run(run_async(config, state_path=args.state_path, dashboard=not args.no_dashboard))
    return 0


if __name__ == "__main__":
    sys.exit(main())
