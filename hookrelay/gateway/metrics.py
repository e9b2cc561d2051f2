"""
Metrics Collector

File: hookrelay/gateway/metrics.py
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional
import logging

from .errors import SessionOutcome

logger = logging.getLogger("relay.metrics")


@dataclass
class WebhookMetrics:
    """Inbound webhook counters"""
    received: int = 0
    skipped: int = 0
    duplicates: int = 0
    rejected: Dict[str, int] = field(default_factory=dict)
    last_activity: Optional[datetime] = None


@dataclass
class DeliveryMetrics:
    """Gateway delivery counters"""
    dispatched: int = 0
    outcomes: Dict[str, int] = field(default_factory=dict)
    errors: int = 0
    last_error: Optional[str] = None
    total_session_time_ms: float = 0.0
    sessions: int = 0

    @property
    def average_session_time_ms(self) -> float:
        if self.sessions == 0:
            return 0.0
        return self.total_session_time_ms / self.sessions


class MetricsCollector:
    """Metrics collector"""

    def __init__(self):
        self.webhook = WebhookMetrics()
        self.delivery = DeliveryMetrics()
        self._start_time = datetime.now()

    def record_webhook_received(self):
        self.webhook.received += 1
        self.webhook.last_activity = datetime.now()

    def record_webhook_skipped(self, duplicate: bool = False):
        self.webhook.skipped += 1
        if duplicate:
            self.webhook.duplicates += 1

    def record_webhook_rejected(self, reason: str):
        self.webhook.rejected[reason] = self.webhook.rejected.get(reason, 0) + 1

    def record_dispatched(self):
        self.delivery.dispatched += 1

    def record_session(self, outcome: SessionOutcome, duration_ms: float, error: Optional[str] = None):
        key = outcome.value
        self.delivery.outcomes[key] = self.delivery.outcomes.get(key, 0) + 1
        self.delivery.sessions += 1
        self.delivery.total_session_time_ms += duration_ms
        if error:
            self.record_error(error)

    def record_error(self, error: str):
        self.delivery.errors += 1
        self.delivery.last_error = error

    def outcome_count(self, outcome: SessionOutcome) -> int:
        return self.delivery.outcomes.get(outcome.value, 0)

    def get_summary(self) -> Dict:
        return {
            "uptime_seconds": (datetime.now() - self._start_time).total_seconds(),
            "webhook": {
                "received": self.webhook.received,
                "skipped": self.webhook.skipped,
                "duplicates": self.webhook.duplicates,
                "rejected": dict(self.webhook.rejected),
                "last_activity": self.webhook.last_activity.isoformat() if self.webhook.last_activity else None,
            },
            "delivery": {
                "dispatched": self.delivery.dispatched,
                "outcomes": dict(self.delivery.outcomes),
                "errors": self.delivery.errors,
                "last_error": self.delivery.last_error,
                "average_session_time_ms": self.delivery.average_session_time_ms,
            },
        }

    def reset(self):
        """Reset all metrics"""
        self.webhook = WebhookMetrics()
        self.delivery = DeliveryMetrics()
        self._start_time = datetime.now()
