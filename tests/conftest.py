"""
pytest shared fixtures for relay tests

File: tests/conftest.py
"""

import asyncio
import json
import socket
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from hookrelay.gateway.session import SessionTimings
from hookrelay.helpers.log_config import reset_configuration


class FakeConnection:
    """In-memory stand-in for a gateway WebSocket"""

    _CLOSED = object()

    def __init__(self, responder=None):
        self.sent = []
        self.close_calls = []
        self.send_error = None
        self.responder = responder
        self._inbox = asyncio.Queue()

    @property
    def sent_frames(self):
        return [json.loads(raw) for raw in self.sent]

    @property
    def sent_methods(self):
        return [frame["method"] for frame in self.sent_frames]

    def feed(self, raw):
        self._inbox.put_nowait(raw)

    def feed_json(self, obj):
        self.feed(json.dumps(obj))

    def remote_close(self):
        self._inbox.put_nowait(self._CLOSED)

    def fail(self, error):
        self._inbox.put_nowait(error)

    async def send(self, data):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(data)
        if self.responder:
            self.responder(self, json.loads(data))

    async def close(self, code=1000, reason=""):
        self.close_calls.append((code, reason))
        self.remote_close()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while True:
            item = await self._inbox.get()
            if item is self._CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


def connect_ack(frame_id="wa-connect-1"):
    return {"type": "res", "id": frame_id, "method": "connect", "ok": True}


def ack_on_connect(connection, frame):
    """Responder that acknowledges the connect request right away"""
    if frame["method"] == "connect":
        connection.feed_json(connect_ack(frame["id"]))


@pytest.fixture(autouse=True)
def reset_logging():
    """Leave relay logging unconfigured so caplog sees records"""
    reset_configuration()
    yield
    reset_configuration()


@pytest.fixture
def fast_timings():
    """Short timers so timeout paths run quickly"""
    return SessionTimings(safety_timeout=0.3, linger=0.05)


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def acking_connection():
    return FakeConnection(responder=ack_on_connect)


@pytest.fixture
def whatsapp_payload():
    """WaSender text message webhook"""
    return {
        "event": "messages.upsert",
        "data": {
            "from": "+15551234567",
            "pushName": "Alice",
            "key": {"id": "3EB0C767D26A1D"},
            "message": {"conversation": "hello agent"},
        },
    }


@pytest.fixture
def make_connection():
    """Factory for extra fake connections"""
    return FakeConnection


@pytest.fixture
def ack_frame():
    return connect_ack


@pytest.fixture
def unused_port():
    """A local TCP port with nothing listening on it"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]

