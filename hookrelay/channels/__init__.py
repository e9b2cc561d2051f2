"""
Relay Channels Module

Webhook adapters for messaging providers. Each adapter turns a provider
payload into plain text for the agent gateway.

Supported Channels:
- WhatsApp: WaSender API webhooks
"""

from .base import WebhookChannel, InboundMessage, OutboundMessage
from .security import WebhookSecurity, RateLimitConfig
from .whatsapp import WhatsAppChannel

__all__ = [
    "WebhookChannel",
    "InboundMessage",
    "OutboundMessage",
    "WebhookSecurity",
    "RateLimitConfig",
    "WhatsAppChannel",
]
