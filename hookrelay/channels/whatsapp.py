"""
WhatsApp Webhook Channel (WaSender API)

Payload shape handled:

    {"event": "...", "data": {
        "from": "+15551234567", "pushName": "Alice",
        "key": {"id": "..."},
        "message": {"text" | "conversation" | "caption": "..."},
        "text": "..."          # flat variant
    }}

Non-text events (images without caption, status updates, receipts) yield
no message and are acknowledged without relaying.

File: hookrelay/channels/whatsapp.py
"""

import logging
from typing import Any, Dict, Optional

from .base import InboundMessage, WebhookChannel

logger = logging.getLogger("relay.channels.whatsapp")

TEXT_FIELDS = ("text", "conversation", "caption")


def _str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


class WhatsAppChannel(WebhookChannel):
    """WaSender WhatsApp webhook adapter"""

    name = "whatsapp"
    display_name = "WhatsApp"

    def parse(self, payload: Dict[str, Any]) -> Optional[InboundMessage]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            return None

        text = self._find_text(data)
        if not text:
            return None

        return InboundMessage(
            channel=self.name,
            sender_id=_str(data.get("from")) or "unknown",
            sender_name=_str(data.get("pushName")),
            content=text,
            message_id=self._find_message_id(data),
            metadata={"event": payload.get("event")},
        )

    @staticmethod
    def _find_text(data: Dict[str, Any]) -> Optional[str]:
        # Nested message object first, then the flat text field
        message = data.get("message")
        if isinstance(message, dict):
            for key in TEXT_FIELDS:
                text = _str(message.get(key))
                if text:
                    return text
        return _str(data.get("text"))

    @staticmethod
    def _find_message_id(data: Dict[str, Any]) -> Optional[str]:
        key = data.get("key")
        if isinstance(key, dict) and _str(key.get("id")):
            return key["id"]
        message_id = data.get("id")
        if isinstance(message_id, (str, int)) and not isinstance(message_id, bool):
            return str(message_id)
        return None
