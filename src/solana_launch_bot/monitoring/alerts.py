"""Telegram delivery for bot notifications."""

from __future__ import annotations

import asyncio
from typing import Optional

import requests

from ..config.settings import TelegramConfig, get_app_config
from .logger import get_logger
from .metrics import METRICS


class TelegramNotifier:
    """Posts messages to a single Telegram chat.

    Delivery is not retried; a failed send is logged and reported as False.
    """

    def __init__(
        self,
        config: Optional[TelegramConfig] = None,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config or get_app_config().telegram
        self._session = session or requests.Session()
        self._logger = get_logger(__name__)

    @property
    def configured(self) -> bool:
        return self._config.configured

    def send(self, message: str, *, parse_mode: Optional[str] = "HTML", disable_preview: bool = True) -> bool:
        if not self.configured:
            self._logger.debug("Telegram not configured; dropping message")
            return False
        url = f"{str(self._config.api_base_url).rstrip('/')}/bot{self._config.bot_token}/sendMessage"
        payload = {
            "chat_id": self._config.chat_id,
            "text": message,
            "disable_web_page_preview": disable_preview,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        try:
            response = self._session.post(url, json=payload, timeout=self._config.request_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            METRICS.increment("telegram.failures")
            # The URL carries the bot token; never log it.
            self._logger.warning("Failed to send Telegram message: %s", exc.__class__.__name__)
            return False
        METRICS.increment("telegram.sent")
        return True

    async def notify(self, message: str, *, parse_mode: Optional[str] = "HTML", disable_preview: bool = True) -> bool:
        return await asyncio.to_thread(
            self.send, message, parse_mode=parse_mode, disable_preview=disable_preview
        )


__all__ = ["TelegramNotifier"]
