"""Language-model commentary attached to score alerts.

The call is best-effort: any failure produces ``Commentary.omitted`` and the
alert goes out without it.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..config.settings import CommentaryConfig, get_app_config
from ..datalake.schemas import Commentary, ScoreResult
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS

SYSTEM_PROMPT = (
    "You are a terse on-chain analyst. Given metrics for a token that launched minutes ago "
    "on a bonding curve, reply with at most two sentences on momentum and obvious red flags. "
    "No financial advice disclaimers."
)


def build_prompt(result: ScoreResult) -> str:
    socials = [
        label
        for label, present in (
            ("twitter", result.has_twitter),
            ("telegram", result.has_telegram),
            ("website", result.has_website),
        )
        if present
    ]
    age = f"{result.age_seconds}s" if result.has_creation_time else "unknown"
    return (
        f"Token {result.symbol} ({result.name})\n"
        f"Score: {result.score}/100, verdict {result.verdict.value}\n"
        f"SOL in curve: {result.sol_in_curve} ({result.bonding_pct}% to graduation)\n"
        f"Velocity: {result.velocity_sol} SOL/min, age {age}\n"
        f"Market cap: ${result.usd_market_cap:,.0f}, replies {result.reply_count}\n"
        f"Socials: {', '.join(socials) or 'none'}; featured: {result.is_featured}; "
        f"whale: {result.whale_flag}"
    )


class CommentaryClient:
    """Chat-completions client for short token commentary."""

    def __init__(
        self,
        config: Optional[CommentaryConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or get_app_config().commentary
        self._transport = transport
        self._logger = get_logger(__name__)

    @property
    def enabled(self) -> bool:
        return bool(self._config.enabled and self._config.api_key)

    async def analyze(self, result: ScoreResult) -> Commentary:
        if not self.enabled:
            return Commentary.omitted("commentary disabled")

        payload: Dict[str, Any] = {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(result)},
            ],
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
        }
        headers = {
            "Authorization": f"Bearer {self._config.api_key}",
            "Content-Type": "application/json",
        }
        url = f"{str(self._config.base_url).rstrip('/')}/chat/completions"
        try:
            async with httpx.AsyncClient(
                timeout=self._config.request_timeout, transport=self._transport
            ) as client:
                response = await client.post(url, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
            text = str(data["choices"][0]["message"]["content"]).strip()
        except httpx.TimeoutException:
            METRICS.increment("commentary.timeouts")
            return Commentary.omitted("timeout")
        except httpx.HTTPStatusError as exc:
            METRICS.increment("commentary.errors")
            self._logger.warning("Commentary request rejected: %s", exc.response.status_code)
            return Commentary.omitted(f"http {exc.response.status_code}")
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            METRICS.increment("commentary.errors")
            self._logger.warning("Commentary request failed: %s", exc)
            return Commentary.omitted(str(exc) or exc.__class__.__name__)

        if not text:
            return Commentary.omitted("empty response")
        METRICS.increment("commentary.generated")
        return Commentary(available=True, text=text)


__all__ = ["CommentaryClient", "build_prompt"]
