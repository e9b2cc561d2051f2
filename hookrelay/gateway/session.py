"""
Gateway Delivery Session

One session delivers one message over one connection:

    CONNECTING -> AWAITING_CONNECT_ACK -> SENDING -> LINGERING -> CLOSED

CLOSED is reachable from every state. Inbound frames, connection close and
errors, and timer expiries are all fed as events into a single queue and
consumed by one loop, so transitions never interleave. The first terminal
event settles the session; anything queued after it is dropped.

File: hookrelay/gateway/session.py
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from websockets.exceptions import ConnectionClosedOK, WebSocketException

from .errors import MalformedFrame, SessionOutcome
from .protocol import (
    ClientInfo,
    InboundFrame,
    RequestFrame,
    make_connect_request,
    make_send_message_request,
)

logger = logging.getLogger("relay.gateway.session")

NORMAL_CLOSURE = 1000
CLOSE_REASON_DONE = "done"
CLOSE_REASON_TIMEOUT = "timeout"
CLOSE_REASON_CANCELLED = "cancelled"


class SessionState(Enum):
    CONNECTING = "connecting"
    AWAITING_CONNECT_ACK = "awaiting_connect_ack"
    SENDING = "sending"
    LINGERING = "lingering"
    CLOSED = "closed"


class EventKind(Enum):
    """Events consumed by the session loop; everything but FRAME is terminal"""
    FRAME = "frame"
    REMOTE_CLOSED = "remote_closed"
    TRANSPORT_ERROR = "transport_error"
    SAFETY_TIMEOUT = "safety_timeout"
    LINGER_EXPIRED = "linger_expired"


@dataclass(frozen=True)
class SessionEvent:
    kind: EventKind
    data: Any = None


@dataclass(frozen=True)
class SessionTimings:
    """Session timers in seconds"""
    safety_timeout: float = 10.0
    linger: float = 2.0

    def __post_init__(self):
        if self.safety_timeout <= 0:
            raise ValueError(f"safety_timeout must be positive, got {self.safety_timeout}")
        if self.linger <= 0:
            raise ValueError(f"linger must be positive, got {self.linger}")


@dataclass(frozen=True)
class SessionResult:
    """Settled session"""
    outcome: SessionOutcome
    cause: EventKind
    message_sent: bool
    handshake_complete: bool
    frames_ignored: int
    close_reason: Optional[str]
    elapsed_seconds: float

    @property
    def delivered(self) -> bool:
        return self.outcome is SessionOutcome.DELIVERED


def classify_outcome(cause: EventKind, message_sent: bool) -> SessionOutcome:
    """
    Map the terminal event of a session to its outcome

    Once sendMessage has gone out the message counts as delivered unless the
    transport failed; the gateway never acknowledges sendMessage.
    """
    if cause is EventKind.TRANSPORT_ERROR:
        return SessionOutcome.TRANSPORT_ERROR
    if message_sent:
        return SessionOutcome.DELIVERED
    if cause is EventKind.REMOTE_CLOSED:
        return SessionOutcome.CLOSED_BY_GATEWAY
    if cause is EventKind.SAFETY_TIMEOUT:
        return SessionOutcome.TIMED_OUT
    raise ValueError(f"Not a terminal event: {cause}")


def _cause_for(error: BaseException) -> EventKind:
    if isinstance(error, ConnectionClosedOK):
        return EventKind.REMOTE_CLOSED
    return EventKind.TRANSPORT_ERROR


class GatewaySession:
    """Single-shot handshake and delivery over an open connection"""

    def __init__(
        self,
        connection,
        message_text: str,
        timings: Optional[SessionTimings] = None,
        client: Optional[ClientInfo] = None,
    ):
        """
        Initialize session

        Args:
            connection: Open connection (async send/close, async iteration over frames)
            message_text: Text to deliver
            timings: Safety timeout and linger durations
            client: Identity presented in the connect request

        Raises:
            ValueError: if message_text is empty or not a string
        """
        if not isinstance(message_text, str) or not message_text:
            raise ValueError("message_text must be a non-empty string")

        self.connection = connection
        self.message_text = message_text
        self.timings = timings or SessionTimings()
        self.client = client or ClientInfo()

        self.state = SessionState.CONNECTING
        self.handshake_complete = False
        self.message_sent = False
        self.closed = False
        self.frames_ignored = 0

        self._events: asyncio.Queue = asyncio.Queue()
        self._timers: Dict[str, asyncio.TimerHandle] = {}
        self._reader: Optional[asyncio.Task] = None
        self._result: Optional[SessionResult] = None
        self._close_reason: Optional[str] = None

    @property
    def pending_timers(self) -> Tuple[str, ...]:
        """Names of timers still armed"""
        return tuple(sorted(self._timers))

    @property
    def result(self) -> Optional[SessionResult]:
        return self._result

    async def run(self) -> SessionResult:
        """
        Run the session to completion

        Never raises for protocol or transport failures; the returned
        SessionResult carries the outcome.
        """
        if self._result is not None or self.state is not SessionState.CONNECTING:
            raise RuntimeError("GatewaySession is single-shot")

        loop = asyncio.get_running_loop()
        started = loop.time()

        self._arm_timer("safety", self.timings.safety_timeout, EventKind.SAFETY_TIMEOUT)
        self._reader = asyncio.create_task(self._pump_frames())

        try:
            cause = await self._send_connect()
            while cause is None:
                event = await self._events.get()
                cause = await self._handle(event)
            await self._finish(cause)
        except asyncio.CancelledError:
            await self._close(NORMAL_CLOSURE, CLOSE_REASON_CANCELLED)
            raise
        finally:
            await self._cancel_pending()

        return self._settle(cause, loop.time() - started)

    # Transitions

    async def _send_connect(self) -> Optional[EventKind]:
        cause = await self._send(make_connect_request(self.client))
        if cause is None:
            self.state = SessionState.AWAITING_CONNECT_ACK
        return cause

    async def _handle(self, event: SessionEvent) -> Optional[EventKind]:
        if event.kind is EventKind.FRAME:
            return await self._on_frame(event.data)
        if event.kind is EventKind.TRANSPORT_ERROR:
            logger.error(f"Gateway WebSocket error: {event.data}")
        return event.kind

    async def _on_frame(self, raw) -> Optional[EventKind]:
        if self.state is not SessionState.AWAITING_CONNECT_ACK:
            self.frames_ignored += 1
            return None

        try:
            frame = InboundFrame.from_json(raw)
        except MalformedFrame as e:
            self.frames_ignored += 1
            logger.debug(f"Ignoring frame: {e}")
            return None

        if not frame.is_connect_ack:
            self.frames_ignored += 1
            logger.debug(f"Ignoring {frame.kind.value} frame before connect ack: {frame.method}")
            return None

        self.handshake_complete = True
        return await self._send_message()

    async def _send_message(self) -> Optional[EventKind]:
        if self.message_sent:
            return None
        self.message_sent = True
        self.state = SessionState.SENDING

        cause = await self._send(make_send_message_request(self.message_text))
        if cause is not None:
            return cause

        self.state = SessionState.LINGERING
        self._arm_timer("linger", self.timings.linger, EventKind.LINGER_EXPIRED)
        return None

    async def _finish(self, cause: EventKind):
        self.state = SessionState.CLOSED
        if cause is EventKind.LINGER_EXPIRED:
            await self._close(NORMAL_CLOSURE, CLOSE_REASON_DONE)
        elif cause is EventKind.SAFETY_TIMEOUT:
            logger.warning("Gateway session timeout, closing")
            await self._close(NORMAL_CLOSURE, CLOSE_REASON_TIMEOUT)
        else:
            # Connection is already gone
            self.closed = True

    def _settle(self, cause: EventKind, elapsed: float) -> SessionResult:
        if self._result is None:
            self._result = SessionResult(
                outcome=classify_outcome(cause, self.message_sent),
                cause=cause,
                message_sent=self.message_sent,
                handshake_complete=self.handshake_complete,
                frames_ignored=self.frames_ignored,
                close_reason=self._close_reason,
                elapsed_seconds=elapsed,
            )
        return self._result

    # Connection I/O

    async def _pump_frames(self):
        """Forward inbound frames and connection end into the event queue"""
        try:
            async for raw in self.connection:
                self._events.put_nowait(SessionEvent(EventKind.FRAME, raw))
        except ConnectionClosedOK:
            self._events.put_nowait(SessionEvent(EventKind.REMOTE_CLOSED))
        except (OSError, WebSocketException) as e:
            self._events.put_nowait(SessionEvent(EventKind.TRANSPORT_ERROR, e))
        else:
            self._events.put_nowait(SessionEvent(EventKind.REMOTE_CLOSED))

    async def _send(self, frame: RequestFrame) -> Optional[EventKind]:
        try:
            await self.connection.send(frame.to_json())
        except (OSError, WebSocketException) as e:
            cause = _cause_for(e)
            if cause is EventKind.TRANSPORT_ERROR:
                logger.error(f"Failed to send {frame.method}: {e}")
            else:
                logger.info(f"Gateway closed before {frame.method} was sent")
            return cause
        logger.debug(f"Sent {frame.method} ({frame.id})")
        return None

    async def _close(self, code: int, reason: str):
        if self.closed:
            return
        self.closed = True
        self._close_reason = reason
        try:
            await self.connection.close(code=code, reason=reason)
        except (OSError, WebSocketException) as e:
            logger.debug(f"Close failed: {e}")

    # Timers

    def _arm_timer(self, name: str, delay: float, kind: EventKind):
        loop = asyncio.get_running_loop()
        self._timers[name] = loop.call_later(delay, self._fire_timer, name, kind)

    def _fire_timer(self, name: str, kind: EventKind):
        self._timers.pop(name, None)
        self._events.put_nowait(SessionEvent(kind))

    async def _cancel_pending(self):
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

        if self._reader and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
