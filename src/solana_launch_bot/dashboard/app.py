"""FastAPI application exposing liveness and Prometheus metrics."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from .. import __version__
from ..controller import BotController
from ..monitoring.metrics import METRICS


def create_health_app(controller: BotController) -> FastAPI:
    app = FastAPI(title="Solana Launch Bot", version=__version__)

    @app.get("/health")
    async def healthcheck() -> Dict[str, Any]:
        return controller.health()

    @app.get("/metrics", response_class=PlainTextResponse)
    async def prometheus_metrics() -> str:
        health = controller.health()
        METRICS.gauge("bot.open_trades", health["openCount"])
        METRICS.gauge("bot.connected", 1.0 if health["connected"] else 0.0)
        METRICS.gauge("bot.uptime_seconds", health["uptime"])
        return METRICS.export_prometheus()

    return app


__all__ = ["create_health_app"]
