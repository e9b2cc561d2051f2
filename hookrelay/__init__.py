"""hookrelay: relays messaging webhooks into an agent gateway."""

__version__ = "1.0.0"
