"""Retry/backoff policy shared by every call site that retries."""

from __future__ import annotations

from dataclasses import dataclass

from tenacity import stop_after_attempt, wait_exponential, wait_incrementing
from tenacity.stop import stop_base
from tenacity.wait import wait_base

from ..config.settings import BackoffKind, ScannerConfig


@dataclass(slots=True, frozen=True)
class BackoffPolicy:
    """Delay schedule between attempts.

    ``linear`` waits ``base_delay * attempt``; ``exponential`` waits
    ``base_delay * multiplier ** (attempt - 1)``. Both are capped at ``cap``.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    cap: float = 10.0
    kind: BackoffKind = BackoffKind.LINEAR

    def delay(self, attempt: int) -> float:
        attempt = max(1, attempt)
        if self.kind == BackoffKind.LINEAR:
            value = self.base_delay * attempt
        else:
            value = self.base_delay * self.multiplier ** (attempt - 1)
        return min(value, self.cap)

    def wait(self) -> wait_base:
        if self.kind == BackoffKind.LINEAR:
            return wait_incrementing(start=self.base_delay, increment=self.base_delay, max=self.cap)
        return wait_exponential(multiplier=self.base_delay, exp_base=self.multiplier, max=self.cap)

    def stop(self) -> stop_base:
        return stop_after_attempt(self.max_attempts)

    @classmethod
    def for_resolver(cls, config: ScannerConfig) -> "BackoffPolicy":
        return cls(
            max_attempts=config.resolve_max_attempts,
            base_delay=config.backoff_base_seconds,
            multiplier=config.backoff_multiplier,
            cap=config.backoff_cap_seconds,
            kind=config.backoff_kind,
        )

    @classmethod
    def for_reconnect(cls, config: ScannerConfig) -> "BackoffPolicy":
        return cls(
            max_attempts=1,
            base_delay=config.reconnect_delay_seconds,
            multiplier=2.0,
            cap=config.reconnect_delay_cap_seconds,
            kind=BackoffKind.EXPONENTIAL,
        )


__all__ = ["BackoffPolicy"]
