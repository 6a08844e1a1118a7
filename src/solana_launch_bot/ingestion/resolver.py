"""Resolve creation-transaction signatures to the mint they created."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Protocol

from solders.pubkey import Pubkey
from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception_type

from ..config.settings import ScannerConfig, get_app_config
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..utils.backoff import BackoffPolicy
from ..utils.constants import SYSTEM_ACCOUNTS
from .rpc import RateLimitError


class TransactionSource(Protocol):
    async def get_transaction(self, signature: str) -> Optional[Mapping[str, Any]]:
        ...


def _account_keys(record: Mapping[str, Any]) -> list[Any]:
    transaction = record.get("transaction")
    message = transaction.get("message") if isinstance(transaction, Mapping) else None
    if not isinstance(message, Mapping):
        return []
    keys = message.get("accountKeys") or message.get("staticAccountKeys")
    return list(keys) if isinstance(keys, list) else []


def _key_to_str(key: Any) -> str:
    if isinstance(key, str):
        return key
    if isinstance(key, Mapping):
        return str(key.get("pubkey") or "")
    return str(key)


def _is_pubkey(value: str) -> bool:
    try:
        Pubkey.from_string(value)
    except ValueError:
        return False
    return True


def extract_identity(
    record: Optional[Mapping[str, Any]],
    *,
    excluded: Iterable[str] = SYSTEM_ACCOUNTS,
    min_length: int = 32,
) -> Optional[str]:
    """Return the first account key that can name the newly created mint."""

    if not isinstance(record, Mapping):
        return None
    excluded_set = set(excluded)
    for raw in _account_keys(record):
        key = _key_to_str(raw)
        if key in excluded_set or len(key) < min_length:
            continue
        if _is_pubkey(key):
            return key
    return None


class SignatureResolver:
    """Looks up a signature with bounded retries on rate limiting.

    Every failure collapses into ``None`` so one bad event never halts the
    ingestion queue.
    """

    def __init__(
        self,
        source: TransactionSource,
        config: Optional[ScannerConfig] = None,
        *,
        policy: Optional[BackoffPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._source = source
        self._config = config or get_app_config().scanner
        self._policy = policy or BackoffPolicy.for_resolver(self._config)
        self._excluded = frozenset({*SYSTEM_ACCOUNTS, self._config.pump_program_id})
        self._sleep = sleep
        self._logger = get_logger(__name__)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        METRICS.increment("resolver.retries")
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        self._logger.debug(
            "Rate limited resolving signature, retrying in %.1fs (attempt %d)",
            delay,
            retry_state.attempt_number,
        )

    async def resolve(self, signature: str, max_attempts: Optional[int] = None) -> Optional[str]:
        policy = self._policy
        if max_attempts is not None:
            policy = replace(policy, max_attempts=max(1, max_attempts))
        retrying = AsyncRetrying(
            stop=policy.stop(),
            wait=policy.wait(),
            retry=retry_if_exception_type(RateLimitError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        record: Optional[Mapping[str, Any]] = None
        try:
            async for attempt in retrying:
                with attempt:
                    record = await self._source.get_transaction(signature)
        except (RateLimitError, RetryError):
            METRICS.increment("resolver.exhausted")
            self._logger.info("Giving up on %s after %d rate-limited attempts", signature, policy.max_attempts)
            return None
        except Exception as exc:  # noqa: BLE001 - unresolved events are a normal negative result
            METRICS.increment("resolver.failures")
            self._logger.debug("Could not resolve %s: %s", signature, exc)
            return None

        identity = extract_identity(
            record,
            excluded=self._excluded,
            min_length=self._config.min_identity_length,
        )
        METRICS.increment("resolver.resolved" if identity else "resolver.empty")
        return identity


__all__ = ["SignatureResolver", "TransactionSource", "extract_identity"]
