"""
Webhook Channel Base Class and Message Models

File: hookrelay/channels/base.py
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class InboundMessage:
    """Text message extracted from a provider webhook"""
    channel: str
    sender_id: str
    content: str
    sender_name: Optional[str] = None
    message_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def sender_label(self) -> str:
        if self.sender_name:
            return f"{self.sender_name} ({self.sender_id})"
        return self.sender_id


@dataclass
class OutboundMessage:
    """Text handed to the agent gateway"""
    sender_label: str
    body: str
    channel_display_name: str

    @property
    def text(self) -> str:
        return f"[{self.channel_display_name} from {self.sender_label}]: {self.body}"


class WebhookChannel(ABC):
    """Provider webhook adapter"""

    name: str = "webhook"
    display_name: str = "Webhook"

    @abstractmethod
    def parse(self, payload: Dict[str, Any]) -> Optional[InboundMessage]:
        """Extract a text message, or None for events that carry no text"""

    def to_outbound(self, message: InboundMessage) -> OutboundMessage:
        return OutboundMessage(
            sender_label=message.sender_label,
            body=message.content,
            channel_display_name=self.display_name,
        )
