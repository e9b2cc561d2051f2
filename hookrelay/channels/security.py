"""
Webhook Security Module

File: hookrelay/channels/security.py
"""

import hmac
import time
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Optional

from .base import InboundMessage

logger = logging.getLogger("relay.channels.security")


@dataclass
class RateLimitConfig:
    """Rate limit configuration"""
    max_requests: int = 10
    window_seconds: int = 60


@dataclass
class RateLimitState:
    """Rate limit state"""
    requests: list = field(default_factory=list)

    def is_limited(self, config: RateLimitConfig) -> bool:
        now = time.time()
        self.requests = [t for t in self.requests if now - t < config.window_seconds]
        if len(self.requests) >= config.max_requests:
            return True
        self.requests.append(now)
        return False


class WebhookSecurity:
    """Token check, per-sender rate limit and message validation"""

    def __init__(
        self,
        hook_token: Optional[str],
        rate_limit: Optional[RateLimitConfig] = None,
        max_message_length: int = 10000,
    ):
        self.hook_token = hook_token
        self.rate_config = rate_limit or RateLimitConfig()
        self.max_message_length = max_message_length
        self._rate_limits: Dict[str, RateLimitState] = defaultdict(RateLimitState)

    @classmethod
    def from_config(cls, config) -> "WebhookSecurity":
        return cls(
            hook_token=config.hook_token,
            rate_limit=RateLimitConfig(
                max_requests=config.rate_limit_max_requests,
                window_seconds=config.rate_limit_window_seconds,
            ),
            max_message_length=config.max_message_length,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.hook_token)

    def check_token(self, token: Optional[str]) -> bool:
        """Constant-time comparison against the configured hook token"""
        if not self.hook_token or not token:
            return False
        return hmac.compare_digest(token.encode("utf-8"), self.hook_token.encode("utf-8"))

    def check_rate_limit(self, message: InboundMessage) -> bool:
        key = f"{message.channel}:{message.sender_id}"
        self._drop_idle_senders()
        if self._rate_limits[key].is_limited(self.rate_config):
            logger.warning(f"Rate limited: {key}")
            return False
        return True

    def _drop_idle_senders(self):
        now = time.time()
        idle = [
            key for key, state in self._rate_limits.items()
            if not state.requests or now - state.requests[-1] >= self.rate_config.window_seconds
        ]
        for key in idle:
            del self._rate_limits[key]

    @property
    def tracked_senders(self) -> int:
        return len(self._rate_limits)

    def validate_message(self, message: InboundMessage) -> bool:
        if len(message.content) > self.max_message_length:
            logger.warning(f"Message too long from {message.channel}:{message.sender_id}")
            return False
        return True
