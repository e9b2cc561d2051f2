"""
Gateway Communication Protocol

Defines the frames exchanged with the agent gateway over its WebSocket.

Outbound frames are requests:
    {"type": "req", "id": "...", "method": "...", "params": {...}}

Inbound frames are parsed independently per message. Anything that is not a
JSON object is reported as MalformedFrame; the session decides what to do
with it.

File: hookrelay/gateway/protocol.py
"""

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .errors import MalformedFrame

PROTOCOL_VERSION = 1

CONNECT_METHOD = "connect"
SEND_MESSAGE_METHOD = "sendMessage"

CONNECT_ID_PREFIX = "wa-connect"
MESSAGE_ID_PREFIX = "wa-msg"


class FrameKind(Enum):
    """Frame kinds, inferred from the fields present"""
    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class ClientInfo:
    """Static identity presented to the gateway on connect"""
    id: str = "whatsapp-hook"
    display_name: str = "WhatsApp"
    version: str = "1.0.0"
    mode: str = "webchat"
    platform: str = "web"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "version": self.version,
            "mode": self.mode,
            "platform": self.platform,
        }


@dataclass(frozen=True)
class RequestFrame:
    """Gateway request frame"""
    id: str
    method: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps({
            "type": "req",
            "id": self.id,
            "method": self.method,
            "params": self.params,
        })


@dataclass(frozen=True)
class InboundFrame:
    """Frame received from the gateway"""
    kind: FrameKind
    id: Optional[str] = None
    method: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_connect_ack(self) -> bool:
        return self.method == CONNECT_METHOD

    @classmethod
    def from_json(cls, data) -> "InboundFrame":
        """
        Parse a raw inbound frame

        Args:
            data: Text (or bytes) frame as received from the socket

        Returns:
            Parsed InboundFrame

        Raises:
            MalformedFrame: if the frame is not a JSON object
        """
        if isinstance(data, (bytes, bytearray)):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedFrame(f"Frame is not valid UTF-8: {e}") from e

        try:
            obj = json.loads(data)
        except (TypeError, ValueError) as e:
            raise MalformedFrame(f"Frame is not valid JSON: {e}") from e

        if not isinstance(obj, dict):
            raise MalformedFrame(f"Frame is not a JSON object: {type(obj).__name__}")

        method = obj.get("method")
        if not isinstance(method, str):
            method = None
        frame_id = obj.get("id")
        if frame_id is not None:
            frame_id = str(frame_id)

        if method and frame_id:
            kind = FrameKind.REQUEST
        elif method:
            kind = FrameKind.NOTIFICATION
        else:
            kind = FrameKind.RESPONSE

        return cls(kind=kind, id=frame_id, method=method, payload=obj)


def make_request_id(prefix: str) -> str:
    """Correlation id built from a fixed prefix and the current time in ms"""
    return f"{prefix}-{int(time.time() * 1000)}"


def make_connect_request(client: Optional[ClientInfo] = None, role: str = "operator") -> RequestFrame:
    """Build the handshake request"""
    client = client or ClientInfo()
    return RequestFrame(
        id=make_request_id(CONNECT_ID_PREFIX),
        method=CONNECT_METHOD,
        params={
            "minProtocol": PROTOCOL_VERSION,
            "maxProtocol": PROTOCOL_VERSION,
            "client": client.to_dict(),
            "role": role,
            "scopes": [],
        },
    )


def make_send_message_request(text: str) -> RequestFrame:
    """Build the message delivery request"""
    return RequestFrame(
        id=make_request_id(MESSAGE_ID_PREFIX),
        method=SEND_MESSAGE_METHOD,
        params={"text": text},
    )
