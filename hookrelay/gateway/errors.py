"""
Relay Error Handling Module

Exception hierarchy and outcome reporting for gateway delivery.

Only GatewayUnavailable is ever raised to the caller of a delivery; every
other failure is classified into a SessionOutcome and logged.

File: hookrelay/gateway/errors.py
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger("relay.errors")


class RelayError(Exception):
    """Base class for relay errors"""


class GatewayUnavailable(RelayError):
    """No usable connection to the agent gateway could be obtained"""


class HandshakeTimeout(RelayError):
    """The gateway never acknowledged the connect request"""


class MalformedFrame(RelayError):
    """An inbound frame could not be parsed"""


class TransportError(RelayError):
    """The connection reported an error"""


class SessionOutcome(Enum):
    """How a delivery session ended"""
    DELIVERED = "delivered"
    TIMED_OUT = "timed_out"
    TRANSPORT_ERROR = "transport_error"
    CLOSED_BY_GATEWAY = "closed_by_gateway"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"


@dataclass
class OutcomeReport:
    """How an outcome is reported"""
    description: str
    log_level: str
    delivered: bool = False


OUTCOME_REPORTS: Dict[SessionOutcome, OutcomeReport] = {
    SessionOutcome.DELIVERED: OutcomeReport(
        description="Message handed to gateway",
        log_level="info",
        delivered=True,
    ),
    SessionOutcome.TIMED_OUT: OutcomeReport(
        description="Gateway did not acknowledge connect in time",
        log_level="warning",
    ),
    SessionOutcome.TRANSPORT_ERROR: OutcomeReport(
        description="Gateway connection failed",
        log_level="error",
    ),
    SessionOutcome.CLOSED_BY_GATEWAY: OutcomeReport(
        description="Gateway closed the connection before delivery",
        log_level="warning",
    ),
    SessionOutcome.GATEWAY_UNAVAILABLE: OutcomeReport(
        description="Gateway unavailable",
        log_level="error",
    ),
}


class ErrorHandler:
    """Maps delivery failures to outcomes and logs them"""

    def classify_error(self, error: BaseException) -> SessionOutcome:
        """Classify an exception escaping a delivery"""
        if isinstance(error, GatewayUnavailable):
            return SessionOutcome.GATEWAY_UNAVAILABLE
        if isinstance(error, (HandshakeTimeout, asyncio.TimeoutError)):
            return SessionOutcome.TIMED_OUT
        return SessionOutcome.TRANSPORT_ERROR

    def report(
        self,
        outcome: SessionOutcome,
        detail: Optional[str] = None,
        log: Optional[logging.Logger] = None,
    ) -> OutcomeReport:
        """
        Log an outcome at the level configured for it

        Args:
            outcome: Session outcome
            detail: Extra context appended to the log line
            log: Logger to use (defaults to this module's logger)

        Returns:
            The OutcomeReport used
        """
        entry = OUTCOME_REPORTS[outcome]
        log = log or logger
        log_func = getattr(log, entry.log_level, log.error)
        if detail:
            log_func(f"[{outcome.value}] {entry.description}: {detail}")
        else:
            log_func(f"[{outcome.value}] {entry.description}")
        return entry


# Global error handler instance
error_handler = ErrorHandler()
