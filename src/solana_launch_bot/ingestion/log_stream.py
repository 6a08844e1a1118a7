"""WebSocket log subscription that surfaces pump.fun create signatures."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Mapping, Optional

import websockets

from ..config.settings import RPCConfig, ScannerConfig, get_app_config
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..utils.backoff import BackoffPolicy

SignatureSink = Callable[[str], Any]
ConnectionSink = Callable[[bool], None]


def build_subscription(program_id: str, commitment: str, request_id: int = 1) -> str:
    return json.dumps(
        {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "logsSubscribe",
            "params": [{"mentions": [program_id]}, {"commitment": commitment}],
        }
    )


def parse_notification(message: Mapping[str, Any], marker: str) -> Optional[str]:
    """Return the signature of a successful create notification, else None."""

    if message.get("method") != "logsNotification":
        return None
    value = ((message.get("params") or {}).get("result") or {}).get("value") or {}
    if value.get("err") is not None:
        return None
    logs = value.get("logs") or []
    if not any(marker in str(line) for line in logs):
        return None
    signature = value.get("signature")
    return str(signature) if signature else None


class LogStream:
    """Keeps a ``logsSubscribe`` stream open and reconnects with backoff."""

    def __init__(
        self,
        on_signature: SignatureSink,
        *,
        rpc_config: Optional[RPCConfig] = None,
        scanner_config: Optional[ScannerConfig] = None,
        on_connection_change: Optional[ConnectionSink] = None,
        connect: Callable[..., Any] = websockets.connect,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        app_config = None if rpc_config and scanner_config else get_app_config()
        self._rpc = rpc_config or app_config.rpc
        self._scanner = scanner_config or app_config.scanner
        self._on_signature = on_signature
        self._on_connection_change = on_connection_change
        self._connect = connect
        self._sleep = sleep
        self._policy = BackoffPolicy.for_reconnect(self._scanner)
        self._logger = get_logger(__name__)
        self._stopped = asyncio.Event()

    def stop(self) -> None:
        self._stopped.set()

    def _set_connected(self, connected: bool) -> None:
        METRICS.gauge("stream.connected", 1.0 if connected else 0.0)
        if self._on_connection_change is not None:
            self._on_connection_change(connected)

    async def run(self) -> None:
        failures = 0
        while not self._stopped.is_set():
            try:
                await self._session()
                failures = 0
            except asyncio.CancelledError:
                self._set_connected(False)
                raise
            except (OSError, websockets.WebSocketException, asyncio.TimeoutError, ValueError) as exc:
                failures += 1
                METRICS.increment("stream.disconnects")
                self._logger.warning("Log stream dropped: %s", exc)
            self._set_connected(False)
            if self._stopped.is_set():
                break
            delay = self._policy.delay(max(failures, 1))
            self._logger.info("Reconnecting log stream in %.1fs", delay)
            await self._sleep(delay)

    async def _session(self) -> None:
        url = self._rpc.websocket_url
        async with self._connect(url, ping_interval=20, open_timeout=15) as socket:
            await socket.send(
                build_subscription(self._scanner.pump_program_id, self._rpc.commitment)
            )
            self._set_connected(True)
            self._logger.info("Subscribed to pump.fun logs via %s", url.split("?")[0])
            async for raw in socket:
                if self._stopped.is_set():
                    return
                self._handle(raw)

    def _handle(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            METRICS.increment("stream.malformed")
            return
        if not isinstance(message, dict):
            return
        signature = parse_notification(message, self._scanner.create_log_marker)
        if signature is None:
            return
        METRICS.increment("stream.create_events")
        self._on_signature(signature)


__all__ = ["LogStream", "build_subscription", "parse_notification"]
