"""
Gateway Connection Establishment

Opens the WebSocket to the agent gateway. The gateway token, when present,
travels as the `token` query parameter; without one the connection is still
attempted anonymously and any authorization failure shows up later as a
handshake that never completes.

The upgrade request itself (Upgrade, Connection, Sec-WebSocket-Key,
Sec-WebSocket-Version) is produced by the websockets client.

File: hookrelay/gateway/connection.py
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote, urlencode

import websockets
from websockets.exceptions import WebSocketException

from .errors import GatewayUnavailable

logger = logging.getLogger("relay.gateway.connection")

ConnectFactory = Callable[[str], Awaitable[Any]]


def build_gateway_url(host: str, port: int, token: Optional[str] = None, path: str = "/") -> str:
    """
    Build the gateway WebSocket URL

    Args:
        host: Gateway host
        port: Gateway listening port
        token: Optional bearer token, URL-encoded into the query string
        path: Request path

    Returns:
        ws:// URL; carries no query string when token is empty
    """
    if not path.startswith("/"):
        path = "/" + path
    url = f"ws://{host}:{port}{path}"
    if token:
        url += "?" + urlencode({"token": token}, quote_via=quote)
    return url


def mask_token(url: str) -> str:
    """Hide the token query parameter for logging"""
    head, sep, _ = url.partition("?token=")
    return f"{head}{sep}***" if sep else url


async def open_gateway_connection(url: str, open_timeout: float = 5.0, max_size: int = 2**20):
    """Default connection factory backed by websockets"""
    return await websockets.connect(url, open_timeout=open_timeout, max_size=max_size)


class GatewayConnector:
    """Opens one connection per delivery, no retry"""

    def __init__(
        self,
        host: str,
        port: int,
        token: Optional[str] = None,
        connect: Optional[ConnectFactory] = None,
        open_timeout: float = 5.0,
    ):
        """
        Initialize connector

        Args:
            host: Gateway host
            port: Gateway port, must match the gateway's listening port
            token: Optional gateway token
            connect: Connection factory, defaults to websockets
            open_timeout: Upgrade handshake timeout in seconds

        Raises:
            ValueError: on an invalid host or port
        """
        if not host:
            raise ValueError("Gateway host must not be empty")
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise ValueError(f"Invalid gateway port: {port!r}")

        self.host = host
        self.port = port
        self.url = build_gateway_url(host, port, token)
        self.open_timeout = open_timeout
        self._connect = connect

    async def connect(self):
        """
        Open an accepted connection to the gateway

        Returns:
            Open connection object

        Raises:
            GatewayUnavailable: if the factory fails or returns nothing
        """
        safe_url = mask_token(self.url)
        logger.debug(f"Connecting to gateway: {safe_url}")

        try:
            if self._connect is not None:
                connection = await self._connect(self.url)
            else:
                connection = await open_gateway_connection(self.url, open_timeout=self.open_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise GatewayUnavailable(f"Could not connect to gateway at {safe_url}: {e}") from e

        if connection is None:
            raise GatewayUnavailable(f"No WebSocket returned for {safe_url}")

        return connection
