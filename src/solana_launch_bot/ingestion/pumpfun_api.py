"""PumpFun API client for token metadata and bonding-curve telemetry."""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, Optional

import requests
from cachetools import TTLCache
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config.settings import DataSourceConfig, get_app_config
from ..datalake.schemas import TokenTelemetry
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS

DEFAULT_HEADERS = {"User-Agent": "solana-launch-bot/0.3", "Accept": "application/json"}


class TransientHTTPError(requests.HTTPError):
    """5xx or 429 answer worth retrying."""


_TRANSIENT = (requests.ConnectionError, requests.Timeout, TransientHTTPError)


class PumpFunClient:
    """Fetches coin records from the PumpFun frontend API."""

    def __init__(
        self,
        config: Optional[DataSourceConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config or get_app_config().data_sources
        self._cache: TTLCache[str, Dict[str, Any]] = TTLCache(
            maxsize=512, ttl=max(self._config.cache_ttl_seconds, 1)
        )
        self._session = session or requests.Session()
        # Shared by every worker thread that asyncio.to_thread uses.
        self._cache_lock = threading.Lock()
        self._logger = get_logger(__name__)

    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(_TRANSIENT),
    )
    def _get(self, path: str, params: Optional[dict] = None) -> Optional[Dict[str, Any]]:
        url = f"{str(self._config.pumpfun_base_url).rstrip('/')}{path}"
        headers = dict(DEFAULT_HEADERS)
        if self._config.pumpfun_api_key:
            headers["Authorization"] = f"Bearer {self._config.pumpfun_api_key}"
        response = self._session.get(
            url,
            params=params,
            headers=headers,
            timeout=self._config.http_timeout,
        )
        if response.status_code == 404:
            return None
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientHTTPError(f"{response.status_code} from {url}", response=response)
        response.raise_for_status()
        if not response.content:
            return None
        payload = response.json()
        return payload if isinstance(payload, dict) else None

    def fetch_coin(self, mint: str, *, use_cache: bool = True) -> Optional[Dict[str, Any]]:
        if use_cache:
            with self._cache_lock:
                cached = self._cache.get(mint)
            if cached is not None:
                return cached
        try:
            payload = self._get(f"/coins/{mint}")
        except (RetryError, requests.RequestException, ValueError) as exc:
            METRICS.increment("pumpfun.errors")
            self._logger.debug("PumpFun lookup failed for %s: %s", mint, exc)
            return None
        if payload is None:
            METRICS.increment("pumpfun.not_found")
            return None
        with self._cache_lock:
            self._cache[mint] = payload
        return payload

    def fetch_telemetry_sync(self, mint: str, *, use_cache: bool = True) -> Optional[TokenTelemetry]:
        payload = self.fetch_coin(mint, use_cache=use_cache)
        if payload is None:
            return None
        return TokenTelemetry.from_payload(payload, identity=mint)

    async def fetch_telemetry(self, mint: str, *, use_cache: bool = True) -> Optional[TokenTelemetry]:
        return await asyncio.to_thread(self.fetch_telemetry_sync, mint, use_cache=use_cache)


__all__ = ["PumpFunClient", "TransientHTTPError"]
