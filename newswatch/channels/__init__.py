"""Delivery channels. Each implements the Channel contract."""

from newswatch.channels.base import Channel, HttpChannel, RetryingChannel
from newswatch.channels.telegram import TelegramChannel
from newswatch.channels.whatsapp import WhatsAppChannel

__all__ = ["Channel", "HttpChannel", "RetryingChannel", "TelegramChannel", "WhatsAppChannel"]
