from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from httpx import ASGITransport, AsyncClient

from solana_launch_bot.config.settings import StorageConfig, TradingConfig
from solana_launch_bot.controller import BotController
from solana_launch_bot.dashboard import create_health_app
from solana_launch_bot.datalake.schemas import SystemState
from solana_launch_bot.datalake.storage import JsonStateStore
from solana_launch_bot.monitoring.logger import StructuredFormatter, TextFormatter, current_signature, signature_scope
from solana_launch_bot.monitoring.metrics import METRICS


def test_prometheus_export_sanitizes_metric_names() -> None:
    METRICS.reset()
    METRICS.increment("queue.enqueued")
    METRICS.increment("pipeline.verdict.buy", 2)
    METRICS.gauge("queue.depth", 3)
    METRICS.observe("resolver.latency_seconds", 0.5)
    output = METRICS.export_prometheus()
    lines = [line for line in output.splitlines() if line]
    assert any(line.startswith("# TYPE queue_enqueued counter") for line in lines)
    assert "queue.enqueued" not in output
    assert any("pipeline_verdict_buy" in line for line in lines)
    assert any("queue_depth" in line for line in lines)
    assert any("resolver_latency_seconds" in line for line in lines)
    METRICS.reset()


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("solana_launch_bot.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.__dict__.update(extra)
    return record


def test_structured_formatter_tags_active_signature() -> None:
    formatter = StructuredFormatter()
    with signature_scope("5xSig"):
        inside = json.loads(formatter.format(_record(mint="abc")))
    outside = json.loads(formatter.format(_record()))

    assert inside["message"] == "hello world"
    assert inside["sig"] == "5xSig"
    assert inside["extra"] == {"mint": "abc"}
    assert "sig" not in outside and "extra" not in outside
    assert current_signature() is None


def test_explicit_signature_extra_wins_over_scope() -> None:
    with signature_scope("outer"):
        payload = json.loads(StructuredFormatter().format(_record(sig="inner")))
        line = TextFormatter().format(_record())

    assert payload["sig"] == "inner"
    assert "extra" not in payload
    assert line.endswith("solana_launch_bot.test: hello world [outer]")


def test_health_app_endpoints(tmp_path: Path) -> None:
    METRICS.reset()
    store = JsonStateStore(tmp_path / "state.json", config=StorageConfig())
    controller = BotController(SystemState(), store, trading_config=TradingConfig())
    controller.set_connected(True)
    controller.state.stats.tokens_received = 7
    app = create_health_app(controller)

    async def _exercise() -> None:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            resp = await client.get("/health")
            assert resp.status_code == 200
            payload = resp.json()
            assert payload["connected"] is True
            assert payload["received"] == 7
            assert payload["openCount"] == 0
            assert set(payload) == {"connected", "received", "alerts", "openCount", "totalPnl", "uptime"}
            metrics_resp = await client.get("/metrics")
            assert metrics_resp.status_code == 200
            assert "bot_connected 1.0" in metrics_resp.text

    asyncio.run(_exercise())
    METRICS.reset()
