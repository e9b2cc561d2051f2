"""
Relay Gateway Module

Delivers webhook messages to the agent gateway over its WebSocket protocol.

Architecture:
- One GatewaySession per message: connect, handshake, send, close
- Sessions run as detached background tasks, the webhook never waits
- Delivery outcome is logged and counted, never returned to the webhook caller
"""

from .config import RelayConfig
from .client import GatewaySessionClient
from .connection import GatewayConnector, build_gateway_url
from .errors import GatewayUnavailable, SessionOutcome
from .protocol import InboundFrame, RequestFrame, ClientInfo
from .session import GatewaySession, SessionResult, SessionState, SessionTimings

__all__ = [
    "RelayConfig",
    "GatewaySessionClient",
    "GatewayConnector",
    "build_gateway_url",
    "GatewayUnavailable",
    "SessionOutcome",
    "InboundFrame",
    "RequestFrame",
    "ClientInfo",
    "GatewaySession",
    "SessionResult",
    "SessionState",
    "SessionTimings",
]
