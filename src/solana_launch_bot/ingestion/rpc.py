"""Minimal JSON-RPC client for the Solana calls the scanner needs."""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Dict, List, Optional

import requests

from ..config.settings import RPCConfig, get_app_config
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..utils.constants import LAMPORTS_PER_SOL

DEFAULT_HEADERS = {"Content-Type": "application/json", "User-Agent": "solana-launch-bot/0.3"}

_RATE_LIMIT_MARKERS = ("too many requests", "429", "rate limit")


class RpcError(RuntimeError):
    """The RPC endpoint answered with an error or could not be reached."""


class RateLimitError(RpcError):
    """The RPC endpoint rejected the call because of rate limiting."""


def _looks_rate_limited(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


class SolanaRpcClient:
    """Blocking JSON-RPC transport with async wrappers for the event loop."""

    def __init__(
        self,
        config: Optional[RPCConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config or get_app_config().rpc
        self._session = session or requests.Session()
        self._ids = itertools.count(1)
        self._logger = get_logger(__name__)

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        try:
            response = self._session.post(
                str(self._config.primary_url),
                json=payload,
                headers=DEFAULT_HEADERS,
                timeout=self._config.request_timeout,
            )
        except requests.RequestException as exc:
            METRICS.increment(f"rpc.{method}.errors")
            raise RpcError(f"{method} transport failure: {exc}") from exc

        if response.status_code == 429:
            METRICS.increment("rpc.rate_limited")
            raise RateLimitError(f"{method}: 429 Too Many Requests")
        try:
            response.raise_for_status()
            data = response.json()
        except (requests.HTTPError, ValueError) as exc:
            METRICS.increment(f"rpc.{method}.errors")
            raise RpcError(f"{method} failed: {exc}") from exc

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            message = str(error.get("message", error)) if isinstance(error, dict) else str(error)
            if _looks_rate_limited(message):
                METRICS.increment("rpc.rate_limited")
                raise RateLimitError(f"{method}: {message}")
            raise RpcError(f"RPC error: {message}")
        return data.get("result") if isinstance(data, dict) else None

    def get_transaction_sync(self, signature: str) -> Optional[Dict[str, Any]]:
        return self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self._config.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self.get_transaction_sync, signature)

    def largest_sol_transfer_sync(self, mint: str, limit: int = 10) -> Optional[float]:
        """Largest single SOL outflow among the mint's most recent transactions."""

        try:
            signatures = self.call(
                "getSignaturesForAddress",
                [mint, {"limit": limit, "commitment": self._config.commitment}],
            ) or []
        except RpcError as exc:
            self._logger.debug("Signature lookup failed for %s: %s", mint, exc)
            return None

        largest = 0
        for entry in signatures:
            signature = entry.get("signature") if isinstance(entry, dict) else None
            if not signature or entry.get("err"):
                continue
            try:
                tx = self.get_transaction_sync(signature)
            except RpcError as exc:
                self._logger.debug("Transaction lookup failed for %s: %s", signature, exc)
                continue
            meta = (tx or {}).get("meta") or {}
            pre = meta.get("preBalances") or []
            post = meta.get("postBalances") or []
            for before, after in zip(pre, post):
                largest = max(largest, int(before) - int(after))
        return largest / LAMPORTS_PER_SOL

    async def largest_sol_transfer(self, mint: str, limit: int = 10) -> Optional[float]:
        return await asyncio.to_thread(self.largest_sol_transfer_sync, mint, limit)


__all__ = ["RateLimitError", "RpcError", "SolanaRpcClient"]
