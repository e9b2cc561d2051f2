"""
Relay Configuration Management

Supports:
- YAML configuration files
- Environment variable overrides
- ${VAR} references inside YAML values

File: hookrelay/gateway/config.py
"""

import os
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger("relay.config")


@dataclass
class RelayConfig:
    """Relay configuration"""
    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8787
    config_path: str = "conf/relay.yaml"
    admin_token: Optional[str] = None

    # Agent gateway
    gateway_host: str = "localhost"
    gateway_port: int = 18789
    gateway_token: Optional[str] = None
    session_timeout_seconds: float = 10.0
    linger_seconds: float = 2.0
    connect_timeout_seconds: float = 5.0
    readiness_timeout_seconds: float = 1.0

    # Webhook
    hook_token: Optional[str] = None
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 60
    max_message_length: int = 10000
    dedup_ttl_seconds: int = 60
    dedup_max_size: int = 1000

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def load(cls, config_path: str = None) -> "RelayConfig":
        """Load configuration from file and environment"""
        path = config_path or os.environ.get("RELAY_CONFIG_PATH", "conf/relay.yaml")

        config = cls(config_path=path)

        # Load from file
        if os.path.exists(path):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = cls._replace_env_vars(yaml.safe_load(f) or {})
                if not isinstance(data, dict):
                    raise ValueError("top-level document must be a mapping")
                config._apply(data)
                logger.info(f"Loaded config from {path}")
            except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
                logger.warning(f"Failed to load config from {path}: {e}")

        # Environment variable overrides
        config.host = os.environ.get("RELAY_HOST", config.host)
        config.port = int(os.environ.get("RELAY_PORT", config.port))
        config.admin_token = os.environ.get("RELAY_ADMIN_TOKEN", config.admin_token)
        config.gateway_host = os.environ.get("GATEWAY_HOST", config.gateway_host)
        config.gateway_port = int(os.environ.get("GATEWAY_PORT", config.gateway_port))
        config.gateway_token = os.environ.get("GATEWAY_TOKEN", config.gateway_token) or None
        config.hook_token = os.environ.get("WHATSAPP_HOOK_TOKEN", config.hook_token) or None
        config.log_level = os.environ.get("RELAY_LOG_LEVEL", config.log_level)

        return config

    def _apply(self, data: Dict[str, Any]):
        """Apply a parsed YAML document"""
        server = data.get("server") or {}
        self.host = server.get("host", self.host)
        self.port = int(server.get("port", self.port))
        self.admin_token = server.get("admin_token", self.admin_token)

        gateway = data.get("gateway") or {}
        self.gateway_host = gateway.get("host", self.gateway_host)
        self.gateway_port = int(gateway.get("port", self.gateway_port))
        self.gateway_token = gateway.get("token", self.gateway_token)
        self.session_timeout_seconds = float(gateway.get("session_timeout_seconds", self.session_timeout_seconds))
        self.linger_seconds = float(gateway.get("linger_seconds", self.linger_seconds))
        self.connect_timeout_seconds = float(gateway.get("connect_timeout_seconds", self.connect_timeout_seconds))

        webhook = data.get("webhook") or {}
        self.hook_token = webhook.get("token", self.hook_token)
        rate_limit = webhook.get("rate_limit") or {}
        self.rate_limit_max_requests = rate_limit.get("max_requests", self.rate_limit_max_requests)
        self.rate_limit_window_seconds = rate_limit.get("window_seconds", self.rate_limit_window_seconds)
        self.max_message_length = webhook.get("max_message_length", self.max_message_length)

        logging_cfg = data.get("logging") or {}
        self.log_level = logging_cfg.get("level", self.log_level)
        self.log_file = logging_cfg.get("file", self.log_file)

    def validate(self) -> "RelayConfig":
        """Raise ValueError on settings the relay cannot run with"""
        for name in ("port", "gateway_port"):
            value = getattr(self, name)
            if not 0 < value < 65536:
                raise ValueError(f"{name} out of range: {value}")
        for name in ("session_timeout_seconds", "linger_seconds", "connect_timeout_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        return self

    def secrets(self) -> Dict[str, str]:
        """Configured secret values, for log redaction"""
        named = {
            "GATEWAY_TOKEN": self.gateway_token,
            "WHATSAPP_HOOK_TOKEN": self.hook_token,
            "RELAY_ADMIN_TOKEN": self.admin_token,
        }
        return {k: v for k, v in named.items() if v}

    @staticmethod
    def _replace_env_vars(obj: Any) -> Any:
        """Recursively replace environment variable references"""
        if isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_key = obj[2:-1]
            return os.environ.get(env_key, "")
        elif isinstance(obj, dict):
            return {k: RelayConfig._replace_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [RelayConfig._replace_env_vars(item) for item in obj]
        return obj

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return {
            "server": {
                "host": self.host,
                "port": self.port,
                "admin_token": "***" if self.admin_token else None,
            },
            "gateway": {
                "host": self.gateway_host,
                "port": self.gateway_port,
                "token": "***" if self.gateway_token else None,
                "session_timeout_seconds": self.session_timeout_seconds,
                "linger_seconds": self.linger_seconds,
            },
            "webhook": {
                "token": "***" if self.hook_token else None,
                "rate_limit": {
                    "max_requests": self.rate_limit_max_requests,
                    "window_seconds": self.rate_limit_window_seconds,
                },
            },
        }
