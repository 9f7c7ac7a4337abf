"""
Outbound Telegram bot messages.

New orders are also pushed to the shop's Telegram chat. Sending is fire and
forget: a failed send is logged and dropped, never retried and never shown to
the admin user.
"""

import logging
from typing import Any, Optional

import requests

logger = logging.getLogger("telegram")


TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramNotifier:
    """
    Sends text messages to one Telegram chat through the Bot API.

    Example:
        notifier = TelegramNotifier(bot_token="123:abc", chat_id="-100200300")
        notifier.send("<b>New order!</b>")
    """

    def __init__(
        self,
        bot_token: Optional[str],
        chat_id: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 5.0,
        api_url: str = TELEGRAM_API_URL,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def send(self, message: str) -> Optional[dict[str, Any]]:
        """
        Send one HTML-formatted message.

        Returns:
            The Bot API response body, or None if nothing was sent or the
            response could not be read
        """
        if not self.configured:
            logger.warning("Telegram credentials not configured")
            return None

        url = f"{self.api_url}/bot{self.bot_token}/sendMessage"
        try:
            response = self.session.post(
                url,
                json={
                    "chat_id": self.chat_id,
                    "text": message,
                    "parse_mode": "HTML",
                },
                timeout=self.timeout,
            )
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"Telegram notification error: {e}")
            return None
        except ValueError as e:
            logger.error(f"Telegram returned a non-JSON response: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Telegram API error: unexpected body {data!r}")
            return None
        if not data.get("ok"):
            logger.error(f"Telegram API error: {data}")
        else:
            logger.info(f"Telegram message sent to chat {self.chat_id}")
        return data
