"""
Notifications

Fire-and-forget text delivery. Messages are handed to a single background
worker so the control loop never waits on the network; delivery failures
are logged and dropped, never retried.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests

LOG = logging.getLogger(__name__)


class Notifier:
    """Notification collaborator interface"""

    def send(self, text: str):
        raise NotImplementedError

    def close(self):
        pass


class NullNotifier(Notifier):
    """Logs messages instead of delivering them"""

    def send(self, text: str):
        LOG.info(f"Notification (not delivered): {text[:200]}")


class TelegramNotifier(Notifier):
    """Telegram bot notifier"""

    API_URL = "https://api.telegram.org"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout: float = 5.0,
        dedup_window_seconds: float = 60.0,
    ):
        """
        Initialize Telegram notifier.

        Args:
            bot_token: Bot API token
            chat_id: Destination chat
            timeout: HTTP timeout per message
            dedup_window_seconds: Identical messages within this window are dropped
        """
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self.dedup_window_seconds = dedup_window_seconds
        self._recent = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notifier")

    @classmethod
    def from_env(cls) -> Notifier:
        """TelegramNotifier if TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID are set, else NullNotifier"""
        token = os.environ.get('TELEGRAM_BOT_TOKEN')
        chat_id = os.environ.get('TELEGRAM_CHAT_ID')
        if not token or not chat_id:
            LOG.warning("Telegram credentials not configured, notifications disabled")
            return NullNotifier()
        return cls(token, chat_id)

    def _is_duplicate(self, text: str) -> bool:
        now = time.monotonic()
        with self._lock:
            self._recent = {
                k: t for k, t in self._recent.items() if now - t < self.dedup_window_seconds
            }
            if text in self._recent:
                return True
            self._recent[text] = now
            return False

    def send(self, text: str):
        """Queue a message for delivery and return immediately"""
        if self._is_duplicate(text):
            LOG.debug("Duplicate notification suppressed")
            return
        try:
            self._executor.submit(self._deliver, text)
        except RuntimeError as e:
            LOG.error(f"Notifier closed, message dropped: {e}")

    def _deliver(self, text: str):
        try:
            response = requests.post(
                f"{self.API_URL}/bot{self.bot_token}/sendMessage",
                json={
                    'chat_id': self.chat_id,
                    'text': text,
                    'parse_mode': 'HTML',
                    'disable_web_page_preview': True,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            LOG.debug("Telegram message sent")
        except requests.RequestException as e:
            LOG.error(f"Failed to send Telegram message: {e}")

    def close(self, wait: bool = True):
        """Stop accepting messages; optionally wait for queued deliveries"""
        self._executor.shutdown(wait=wait)


def build_notifier(enabled: Optional[bool] = None) -> Notifier:
    """Notifier from environment; NullNotifier when disabled"""
    if enabled is False:
        return NullNotifier()
    return TelegramNotifier.from_env()
