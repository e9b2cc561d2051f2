"""
Background Delivery Dispatcher

The webhook answers its caller before delivery happens. Each delivery runs
as a detached asyncio task; its outcome is only logged and counted, never
reported back to the webhook caller.

File: hookrelay/gateway/dispatcher.py
"""

import asyncio
import logging
import time
from typing import Optional, Set, TYPE_CHECKING

from .errors import GatewayUnavailable, SessionOutcome, error_handler

if TYPE_CHECKING:
    from .client import GatewaySessionClient
    from .metrics import MetricsCollector

logger = logging.getLogger("relay.gateway.dispatcher")


class DeliveryDispatcher:
    """Runs deliveries as fire-and-forget tasks"""

    def __init__(self, client: "GatewaySessionClient", metrics: "MetricsCollector" = None):
        self.client = client
        self.metrics = metrics
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def dispatch(self, message_text: str) -> asyncio.Task:
        """Schedule a delivery and return immediately"""
        task = asyncio.create_task(self._deliver(message_text))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        if self.metrics:
            self.metrics.record_dispatched()
        return task

    async def _deliver(self, message_text: str) -> SessionOutcome:
        start_time = time.time()
        try:
            result = await self.client.deliver(message_text)
        except GatewayUnavailable as e:
            outcome = error_handler.classify_error(e)
            error_handler.report(outcome, detail=str(e), log=logger)
            self._record(outcome, start_time, error=str(e))
            return outcome

        self._record(result.outcome, start_time)
        return result.outcome

    def _record(self, outcome: SessionOutcome, start_time: float, error: Optional[str] = None):
        if self.metrics:
            duration_ms = (time.time() - start_time) * 1000
            self.metrics.record_session(outcome, duration_ms, error=error)

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Message delivery cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Message injection failed: {error!r}")
            if self.metrics:
                self.metrics.record_error(str(error))

    async def shutdown(self, timeout: float = 5.0):
        """Wait for in-flight deliveries, cancel what is left after timeout"""
        if not self._tasks:
            return
        pending = set(self._tasks)
        logger.info(f"Waiting for {len(pending)} in-flight deliveries")
        done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
