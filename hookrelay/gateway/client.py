"""
Gateway Session Client

Delivers one message to the agent gateway: connect, run a GatewaySession,
report the outcome. Only GatewayUnavailable (and argument errors) are raised;
every other failure comes back as a SessionResult and is logged.

File: hookrelay/gateway/client.py
"""

import logging
from typing import Optional

from .connection import GatewayConnector
from .errors import error_handler
from .protocol import ClientInfo
from .session import GatewaySession, SessionResult, SessionTimings

logger = logging.getLogger("relay.gateway.client")


class GatewaySessionClient:
    """Single-shot message delivery to the agent gateway"""

    def __init__(
        self,
        connector: GatewayConnector,
        timings: Optional[SessionTimings] = None,
        client_info: Optional[ClientInfo] = None,
    ):
        self.connector = connector
        self.timings = timings or SessionTimings()
        self.client_info = client_info or ClientInfo()

    async def deliver(self, message_text: str) -> SessionResult:
        """
        Deliver a message

        Args:
            message_text: Text already extracted and authenticated upstream

        Returns:
            SessionResult of the session

        Raises:
            ValueError: if message_text is empty
            GatewayUnavailable: if no connection could be opened
        """
        if not isinstance(message_text, str) or not message_text:
            raise ValueError("message_text must be a non-empty string")

        connection = await self.connector.connect()
        session = GatewaySession(
            connection,
            message_text,
            timings=self.timings,
            client=self.client_info,
        )
        result = await session.run()

        error_handler.report(
            result.outcome,
            detail=(
                f"handshake={result.handshake_complete} sent={result.message_sent} "
                f"ignored={result.frames_ignored} elapsed={result.elapsed_seconds:.2f}s"
            ),
            log=logger,
        )
        return result
