from enum import Enum
from typing import Union

from hndigest.config import AppConfig
from hndigest.senders.console import ConsoleSender
from hndigest.senders.smtp import EmailSender
from hndigest.senders.telegram import TelegramSender


class DeliveryChannel(Enum):
    EMAIL = "email"
    TELEGRAM = "telegram"
    CONSOLE = "console"


def select_channel(config: AppConfig) -> DeliveryChannel:
    """Pick the single delivery channel: smtp, else telegram, else console."""
    if config.smtp is not None:
        return DeliveryChannel.EMAIL
    if config.telegram is not None:
        return DeliveryChannel.TELEGRAM
    return DeliveryChannel.CONSOLE


def get_sender(config: AppConfig) -> Union[EmailSender, TelegramSender, ConsoleSender]:
    channel = select_channel(config)
    if channel is DeliveryChannel.EMAIL:
        return EmailSender(config.smtp)
    if channel is DeliveryChannel.TELEGRAM:
        return TelegramSender(config.telegram, timeout=config.feed_timeout)
    return ConsoleSender()
