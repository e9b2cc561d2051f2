#!/usr/bin/env python3
"""
hookrelay - Startup Entry Point

Starts the webhook relay that forwards WhatsApp messages into the agent
gateway.

Usage:
    python run_relay.py [--host HOST] [--port PORT] [--config CONFIG]

Architecture:
    - Relay runs as a FastAPI service with uvicorn
    - POST /hooks/whatsapp?token=... answers immediately
    - Each message is delivered over its own short-lived gateway WebSocket
"""

import argparse
import logging
import os
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("relay.main")


def main():
    parser = argparse.ArgumentParser(
        description="hookrelay - WhatsApp webhook to agent gateway relay"
    )

    parser.add_argument(
        "--host",
        default=os.environ.get("RELAY_HOST", "127.0.0.1"),
        help="Bind host (default: 127.0.0.1, use 0.0.0.0 for remote access)"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=int(os.environ.get("RELAY_PORT", "8787")),
        help="Bind port (default: 8787)"
    )
    parser.add_argument(
        "--config", "-c",
        default=os.environ.get("RELAY_CONFIG_PATH", "conf/relay.yaml"),
        help="Configuration file path"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload (development mode)"
    )

    args = parser.parse_args()

    # The app reads its configuration on startup
    os.environ["RELAY_CONFIG_PATH"] = args.config
    os.environ["RELAY_PORT"] = str(args.port)
    os.environ["RELAY_HOST"] = args.host
    if args.verbose:
        os.environ["RELAY_LOG_LEVEL"] = "DEBUG"

    log_level = "debug" if args.verbose else "info"

    logger.info("=" * 60)
    logger.info("hookrelay - WhatsApp webhook relay")
    logger.info("=" * 60)
    logger.info(f"Host:    {args.host}")
    logger.info(f"Port:    {args.port}")
    logger.info(f"Config:  {args.config}")
    logger.info(f"Webhook: http://{args.host}:{args.port}/hooks/whatsapp?token=...")
    logger.info("=" * 60)

    try:
        from hookrelay.gateway.server import run_server
        run_server(
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=log_level,
        )
    except ImportError as e:
        logger.error(f"Failed to import relay server: {e}")
        logger.error("Please ensure all dependencies are installed:")
        logger.error("  pip install -e .")
        sys.exit(1)


if __name__ == "__main__":
    main()
