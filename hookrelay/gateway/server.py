"""
Relay Server

FastAPI application exposing the WhatsApp webhook. The webhook answers
immediately; delivery to the agent gateway runs as a background task and its
outcome is only visible in logs and /api/metrics.

File: hookrelay/gateway/server.py
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hookrelay.channels import WhatsAppChannel, WebhookSecurity
from hookrelay.helpers.log_config import LogSubsystem, configure_logging, get_logger, log_duration

from .client import GatewaySessionClient
from .config import RelayConfig
from .connection import ConnectFactory, GatewayConnector
from .deduplicator import MessageDeduplicator
from .dispatcher import DeliveryDispatcher
from .health import GatewayProbe, HealthChecker
from .metrics import MetricsCollector
from .session import SessionTimings

logger = get_logger(LogSubsystem.WEBHOOK)


@dataclass
class RelayState:
    """Relay runtime state"""
    started_at: datetime = field(default_factory=datetime.now)
    config: Optional[RelayConfig] = None
    channel: Optional[WhatsAppChannel] = None
    security: Optional[WebhookSecurity] = None
    deduplicator: Optional[MessageDeduplicator] = None
    metrics: Optional[MetricsCollector] = None
    dispatcher: Optional[DeliveryDispatcher] = None
    gateway_probe: Optional[GatewayProbe] = None
    health_checker: Optional[HealthChecker] = None
    is_shutting_down: bool = False


def build_state(
    config: RelayConfig,
    connect: Optional[ConnectFactory] = None,
    gateway_probe: Optional[GatewayProbe] = None,
) -> RelayState:
    """Wire relay components from configuration"""
    config.validate()
    state = RelayState(config=config)
    state.metrics = MetricsCollector()
    state.channel = WhatsAppChannel()
    state.security = WebhookSecurity.from_config(config)
    state.deduplicator = MessageDeduplicator(
        ttl_seconds=config.dedup_ttl_seconds,
        max_size=config.dedup_max_size,
    )

    connector = GatewayConnector(
        host=config.gateway_host,
        port=config.gateway_port,
        token=config.gateway_token,
        connect=connect,
        open_timeout=config.connect_timeout_seconds,
    )
    client = GatewaySessionClient(
        connector,
        timings=SessionTimings(
            safety_timeout=config.session_timeout_seconds,
            linger=config.linger_seconds,
        ),
    )
    state.dispatcher = DeliveryDispatcher(client, metrics=state.metrics)
    state.gateway_probe = gateway_probe or GatewayProbe(
        config.gateway_host,
        config.gateway_port,
        timeout=config.readiness_timeout_seconds,
    )
    state.health_checker = HealthChecker(state)
    return state


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(
    config: Optional[RelayConfig] = None,
    connect: Optional[ConnectFactory] = None,
    gateway_probe: Optional[GatewayProbe] = None,
) -> FastAPI:
    """
    Create FastAPI application

    Args:
        config: Relay configuration; loaded from file/environment on startup if omitted
        connect: Gateway connection factory override
        gateway_probe: Gateway readiness probe override
    """
    security = HTTPBearer(auto_error=False)
    holder = {}

    def get_state() -> RelayState:
        state = holder.get("state")
        if state is None:
            raise HTTPException(status_code=503, detail="Relay starting")
        return state

    def verify_admin(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        state: RelayState = Depends(get_state),
    ) -> bool:
        """Verify admin token for operational endpoints"""
        if not state.config.admin_token:
            return True
        if not credentials:
            raise HTTPException(status_code=401, detail="Missing authorization token")
        if credentials.credentials != state.config.admin_token:
            raise HTTPException(status_code=403, detail="Invalid token")
        return True

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle management"""
        cfg = config or RelayConfig.load()
        configure_logging(level=cfg.log_level, log_file=cfg.log_file, secrets=cfg.secrets())
        state = build_state(cfg, connect=connect, gateway_probe=gateway_probe)
        holder["state"] = state
        app.state.relay = state
        logger.info(
            f"Relay started, gateway {cfg.gateway_host}:{cfg.gateway_port} "
            f"(token {'set' if cfg.gateway_token else 'absent'})"
        )
        yield
        state.is_shutting_down = True
        await state.dispatcher.shutdown()
        logger.info("Relay stopped")

    app = FastAPI(
        title="hookrelay",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.post("/hooks/whatsapp")
    async def whatsapp_hook(
        request: Request,
        token: Optional[str] = None,
        state: RelayState = Depends(get_state),
    ):
        """Receive a WaSender webhook and relay its text to the agent"""
        metrics = state.metrics

        if not state.security.is_configured:
            logger.error("WHATSAPP_HOOK_TOKEN is not configured")
            metrics.record_webhook_rejected("not_configured")
            return _error(503, "Webhook not configured")
        if not state.security.check_token(token):
            metrics.record_webhook_rejected("unauthorized")
            return _error(401, "Unauthorized")

        try:
            payload = await request.json()
        except ValueError:
            metrics.record_webhook_rejected("invalid_json")
            return _error(400, "Invalid JSON body")
        if not isinstance(payload, dict):
            metrics.record_webhook_rejected("invalid_json")
            return _error(400, "Invalid JSON body")

        metrics.record_webhook_received()

        message = state.channel.parse(payload)
        if message is None:
            metrics.record_webhook_skipped()
            return {"ok": True, "skipped": True}

        # Ids are remembered only once the message is dispatched
        if state.deduplicator.seen(message.message_id, message.sender_id):
            metrics.record_webhook_skipped(duplicate=True)
            return {"ok": True, "skipped": True, "duplicate": True}

        if not state.security.validate_message(message):
            metrics.record_webhook_rejected("too_long")
            return _error(413, "Message too long")
        if not state.security.check_rate_limit(message):
            metrics.record_webhook_rejected("rate_limited")
            return _error(429, "Rate limited")

        text = state.channel.to_outbound(message).text
        logger.info(f"Received message: {text[:100]}")

        with log_duration(logger, "gateway_readiness_probe"):
            ready = await state.gateway_probe.is_ready()
        if not ready:
            metrics.record_webhook_rejected("gateway_not_ready")
            return _error(503, "Gateway not ready")

        # A concurrent copy may have been accepted while the probe ran
        if not state.deduplicator.remember(message.message_id, message.sender_id):
            metrics.record_webhook_skipped(duplicate=True)
            return {"ok": True, "skipped": True, "duplicate": True}

        state.dispatcher.dispatch(text)
        return {"ok": True}

    @app.get("/api/health")
    async def health_check():
        """Health check"""
        state = holder.get("state")
        if state is None:
            return {"status": "starting"}
        status = await state.health_checker.check()
        return status.to_dict()

    @app.get("/api/metrics")
    async def get_metrics(
        authorized: bool = Depends(verify_admin),
        state: RelayState = Depends(get_state),
    ):
        """Webhook and delivery counters"""
        return {
            "metrics": state.metrics.get_summary(),
            "in_flight": state.dispatcher.active_count,
        }

    @app.get("/api/config")
    async def get_config(
        authorized: bool = Depends(verify_admin),
        state: RelayState = Depends(get_state),
    ):
        """Effective configuration with secrets masked"""
        return state.config.to_dict()

    return app


# Create application instance
app = create_app()


def run_server(host: str = "127.0.0.1", port: int = 8787, reload: bool = False, log_level: str = "info"):
    """Run relay server"""
    import uvicorn

    uvicorn.run(
        "hookrelay.gateway.server:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )
