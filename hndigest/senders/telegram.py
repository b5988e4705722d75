import logging
from typing import Optional

import httpx

from hndigest.config import TelegramConfig
from hndigest.errors import DeliveryError
from hndigest.models import DigestEntry
from hndigest.senders.formatting import entry_to_markdown_v2

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramSender:
    """Post one MarkdownV2 message per digest entry through the Bot API."""

    def __init__(
        self,
        config: TelegramConfig,
        timeout: float = 15,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config
        self.timeout = timeout
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{TELEGRAM_API_URL}/bot{self.config.token}/sendMessage"

    def send(self, digest: list[DigestEntry]) -> int:
        if not digest:
            return 0

        sent = 0
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            for entry in digest:
                payload = {
                    "chat_id": self.config.chat_id,
                    "text": entry_to_markdown_v2(entry),
                    "parse_mode": "MarkdownV2",
                }
                try:
                    resp = client.post(self.endpoint, json=payload)
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    # the request URL contains the bot token
                    logger.error(f"Could not send Telegram message ({sent}/{len(digest)} sent): {type(e).__name__}")
                    raise DeliveryError(f"Telegram delivery failed after {sent} messages") from e
                sent += 1

        logger.info(f"  Telegram: sent {sent} messages to chat {self.config.chat_id}")
        return sent
