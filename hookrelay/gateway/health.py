"""
Relay Health Check

Provides:
- Gateway readiness probe (TCP reachability of the agent gateway)
- Health report for /api/health

File: hookrelay/gateway/health.py
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .server import RelayState

logger = logging.getLogger("relay.health")


class HealthStatusLevel(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthCheck:
    """Single health check result"""
    name: str
    status: HealthStatusLevel
    message: Optional[str] = None
    latency_ms: Optional[float] = None


@dataclass
class HealthStatus:
    """Overall health status"""
    status: str
    uptime_seconds: float
    timestamp: datetime
    checks: List[Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "uptime_seconds": self.uptime_seconds,
            "timestamp": self.timestamp.isoformat(),
            "checks": self.checks,
        }


class GatewayProbe:
    """Checks that the agent gateway accepts TCP connections"""

    def __init__(self, host: str, port: int, timeout: float = 1.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    async def check(self) -> HealthCheck:
        start = time.time()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            return HealthCheck(
                name="agent_gateway",
                status=HealthStatusLevel.UNHEALTHY,
                message=f"{self.host}:{self.port} unreachable: {str(e) or 'timeout'}",
            )

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return HealthCheck(
            name="agent_gateway",
            status=HealthStatusLevel.HEALTHY,
            message=f"{self.host}:{self.port} reachable",
            latency_ms=(time.time() - start) * 1000,
        )

    async def is_ready(self) -> bool:
        check = await self.check()
        if check.status != HealthStatusLevel.HEALTHY:
            logger.warning(f"Gateway not ready: {check.message}")
            return False
        return True


class HealthChecker:
    """Health checker"""

    def __init__(self, relay_state: "RelayState"):
        self.state = relay_state

    async def check(self) -> HealthStatus:
        """Execute health check"""
        checks = [self._check_relay(), self._check_webhook()]
        if self.state.gateway_probe:
            checks.append(await self.state.gateway_probe.check())

        overall = HealthStatusLevel.HEALTHY
        for check in checks:
            if check.status == HealthStatusLevel.UNHEALTHY:
                overall = HealthStatusLevel.UNHEALTHY
            elif check.status == HealthStatusLevel.DEGRADED and overall == HealthStatusLevel.HEALTHY:
                overall = HealthStatusLevel.DEGRADED

        return HealthStatus(
            status=overall.value,
            uptime_seconds=(datetime.now() - self.state.started_at).total_seconds(),
            timestamp=datetime.now(),
            checks=[{
                "name": c.name,
                "status": c.status.value,
                "message": c.message,
                "latency_ms": c.latency_ms,
            } for c in checks],
        )

    def _check_relay(self) -> HealthCheck:
        if self.state.is_shutting_down:
            return HealthCheck(
                name="relay",
                status=HealthStatusLevel.UNHEALTHY,
                message="Relay is shutting down",
            )
        in_flight = self.state.dispatcher.active_count if self.state.dispatcher else 0
        return HealthCheck(
            name="relay",
            status=HealthStatusLevel.HEALTHY,
            message=f"Relay running, {in_flight} deliveries in flight",
        )

    def _check_webhook(self) -> HealthCheck:
        if not self.state.config or not self.state.config.hook_token:
            return HealthCheck(
                name="webhook",
                status=HealthStatusLevel.DEGRADED,
                message="WHATSAPP_HOOK_TOKEN is not configured",
            )
        return HealthCheck(
            name="webhook",
            status=HealthStatusLevel.HEALTHY,
            message="Webhook configured",
        )
