"""Deduplicating, time-bounded signature queue with a single-flight drain."""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import Awaitable, Callable, Deque, Optional, Protocol

from ..config.settings import ScannerConfig, get_app_config
from ..datalake.schemas import RawEvent
from ..monitoring.logger import get_logger, signature_scope
from ..monitoring.metrics import METRICS

IdentityHandler = Callable[[str], Awaitable[None]]


class Resolver(Protocol):
    async def resolve(self, signature: str, max_attempts: Optional[int] = None) -> Optional[str]:
        ...


class IngestionQueue:
    """Serialises resolution calls so the rate-limited RPC sees one at a time.

    ``enqueue`` ignores signatures that are already waiting. The drain runs
    FIFO, drops entries older than ``stale_after_seconds`` unresolved, and
    pauses ``drain_interval_seconds`` between resolutions while work remains.
    """

    def __init__(
        self,
        resolver: Resolver,
        handler: IdentityHandler,
        config: Optional[ScannerConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._resolver = resolver
        self._handler = handler
        self._config = config or get_app_config().scanner
        self._clock = clock
        self._sleep = sleep
        self._entries: Deque[RawEvent] = deque()
        self._draining = False
        self._drain_task: Optional[asyncio.Task[None]] = None
        self._logger = get_logger(__name__)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def draining(self) -> bool:
        return self._draining

    def __contains__(self, signature: object) -> bool:
        return any(entry.signature == signature for entry in self._entries)

    def enqueue(self, signature: str) -> bool:
        """Queue ``signature``; returns False when it was already waiting."""

        if not signature or signature in self:
            METRICS.increment("queue.duplicates")
            return False
        self._entries.append(RawEvent(signature=signature, enqueued_at=self._clock()))
        METRICS.increment("queue.enqueued")
        METRICS.gauge("queue.depth", len(self._entries))
        if not self._draining:
            # Set before scheduling: at most one drain task exists.
            self._draining = True
            self._drain_task = asyncio.get_running_loop().create_task(
                self._drain(), name="ingestion-drain"
            )
        return True

    async def join(self) -> None:
        """Wait until the current drain (if any) has emptied the queue."""

        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    async def close(self) -> None:
        task = self._drain_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._entries.clear()
        self._draining = False

    async def _drain(self) -> None:
        try:
            while self._entries:
                item = self._entries.popleft()
                METRICS.gauge("queue.depth", len(self._entries))
                age = self._clock() - item.enqueued_at
                if age > self._config.stale_after_seconds:
                    METRICS.increment("queue.stale_dropped")
                    self._logger.debug("Dropping stale signature %s (%.0fs old)", item.signature, age)
                    continue
                await self._process(item)
                if self._entries:
                    await self._sleep(self._config.drain_interval_seconds)
        finally:
            self._draining = False

    async def _process(self, item: RawEvent) -> None:
        with signature_scope(item.signature[:16]):
            started = time.perf_counter()
            try:
                identity = await self._resolver.resolve(item.signature, self._config.resolve_max_attempts)
            except Exception:  # noqa: BLE001 - an unresolvable signature is skipped
                METRICS.increment("queue.resolve_failures")
                self._logger.exception("Resolver failed for %s", item.signature)
                return
            finally:
                METRICS.observe("resolver.latency_seconds", time.perf_counter() - started)
            if identity is None:
                return
            try:
                await self._handler(identity)
            except Exception:  # noqa: BLE001 - one bad identity must not stop the drain
                METRICS.increment("queue.handler_failures")
                self._logger.exception("Handler failed for %s", identity)


__all__ = ["IngestionQueue", "IdentityHandler"]
