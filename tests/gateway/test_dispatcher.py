"""
GatewaySessionClient and DeliveryDispatcher tests

File: tests/gateway/test_dispatcher.py
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from hookrelay.gateway.client import GatewaySessionClient
from hookrelay.gateway.connection import GatewayConnector
from hookrelay.gateway.dispatcher import DeliveryDispatcher
from hookrelay.gateway.errors import GatewayUnavailable, SessionOutcome
from hookrelay.gateway.metrics import MetricsCollector


def make_client(connection, timings):
    connector = GatewayConnector("localhost", 18789, connect=AsyncMock(return_value=connection))
    return GatewaySessionClient(connector, timings=timings)


class TestGatewaySessionClient:
    """Single-shot delivery"""

    @pytest.mark.asyncio
    async def test_deliver(self, acking_connection, fast_timings):
        client = make_client(acking_connection, fast_timings)
        result = await client.deliver("hello")

        assert result.outcome is SessionOutcome.DELIVERED
        assert acking_connection.sent_methods == ["connect", "sendMessage"]

    @pytest.mark.asyncio
    async def test_gateway_unavailable_propagates(self, fast_timings):
        connector = GatewayConnector("localhost", 18789, connect=AsyncMock(return_value=None))
        client = GatewaySessionClient(connector, timings=fast_timings)

        with pytest.raises(GatewayUnavailable):
            await client.deliver("hello")

    @pytest.mark.asyncio
    async def test_timeout_does_not_raise(self, connection):
        from hookrelay.gateway.session import SessionTimings
        client = make_client(connection, SessionTimings(safety_timeout=0.1, linger=0.05))

        result = await client.deliver("hello")
        assert result.outcome is SessionOutcome.TIMED_OUT

    @pytest.mark.asyncio
    async def test_empty_text_rejected_before_connecting(self, fast_timings):
        factory = AsyncMock()
        client = GatewaySessionClient(GatewayConnector("localhost", 18789, connect=factory), timings=fast_timings)

        with pytest.raises(ValueError):
            await client.deliver("")
        factory.assert_not_awaited()


class TestDeliveryDispatcher:
    """Fire-and-forget background delivery"""

    @pytest.mark.asyncio
    async def test_dispatch_returns_immediately(self, acking_connection, fast_timings):
        metrics = MetricsCollector()
        dispatcher = DeliveryDispatcher(make_client(acking_connection, fast_timings), metrics=metrics)

        task = dispatcher.dispatch("hello")
        assert not task.done()
        assert dispatcher.active_count == 1

        outcome = await task
        await asyncio.sleep(0)

        assert outcome is SessionOutcome.DELIVERED
        assert dispatcher.active_count == 0
        assert metrics.delivery.dispatched == 1
        assert metrics.outcome_count(SessionOutcome.DELIVERED) == 1

    @pytest.mark.asyncio
    async def test_gateway_unavailable_is_logged_not_raised(self, fast_timings, caplog):
        connector = GatewayConnector("localhost", 18789, connect=AsyncMock(side_effect=ConnectionRefusedError()))
        metrics = MetricsCollector()
        dispatcher = DeliveryDispatcher(GatewaySessionClient(connector, timings=fast_timings), metrics=metrics)

        outcome = await dispatcher.dispatch("hello")

        assert outcome is SessionOutcome.GATEWAY_UNAVAILABLE
        assert metrics.outcome_count(SessionOutcome.GATEWAY_UNAVAILABLE) == 1
        assert metrics.delivery.errors == 1
        assert any("gateway_unavailable" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_unexpected_error_reaches_done_callback(self):
        client = MagicMock()
        client.deliver = AsyncMock(side_effect=RuntimeError("bug"))
        metrics = MetricsCollector()
        dispatcher = DeliveryDispatcher(client, metrics=metrics)

        task = dispatcher.dispatch("hello")
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0)

        assert dispatcher.active_count == 0
        assert metrics.delivery.errors == 1
        assert "bug" in metrics.delivery.last_error

    @pytest.mark.asyncio
    async def test_shutdown_cancels_stragglers(self):
        started = asyncio.Event()

        async def hang(text):
            started.set()
            await asyncio.sleep(10)

        client = MagicMock()
        client.deliver = hang
        dispatcher = DeliveryDispatcher(client)

        task = dispatcher.dispatch("hello")
        await started.wait()
        await dispatcher.shutdown(timeout=0.05)
        await asyncio.sleep(0)

        assert task.cancelled()
        assert dispatcher.active_count == 0

    @pytest.mark.asyncio
    async def test_shutdown_without_tasks(self):
        dispatcher = DeliveryDispatcher(MagicMock())
        await dispatcher.shutdown()
