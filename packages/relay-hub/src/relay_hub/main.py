#!/usr/bin/env python3

import argparse
import logging
import sys

import uvicorn

from .config import HubConfig
from .packet_store import PacketStore
from .service import create_app

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point for the relay hub."""
    parser = argparse.ArgumentParser(description="Relay Hub")
    parser.add_argument("--host", default=None, help="Override HUB_HOST")
    parser.add_argument("--port", type=int, default=None, help="Override HUB_PORT")
    parser.add_argument("--db", default=None, help="Override HUB_DB")
    args = parser.parse_args()

    try:
        config = HubConfig.from_env()
        if args.host or args.port or args.db:
            config = HubConfig(
                host=args.host or config.host,
                port=args.port or config.port,
                db_path=args.db or config.db_path,
                pending_limit=config.pending_limit,
            )
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Optional environment variables:")
        logger.error("  - HUB_HOST: interface to bind (default 0.0.0.0)")
        logger.error("  - HUB_PORT: TCP port (default 7000)")
        logger.error("  - HUB_DB: SQLite database path (default ./hub.sqlite)")
        logger.error("  - HUB_PENDING_LIMIT: default /pending page size (default 50)")
        sys.exit(1)

    config.log_config()

    try:
        store = PacketStore(config.db_path)
    except Exception as e:
        logger.error(f"Failed to open packet store at {config.db_path}: {e}", exc_info=True)
        sys.exit(1)

    app = create_app(store, pending_limit=config.pending_limit)
    logger.info(f"Hub listening on {config.host}:{config.port}, db={config.db_path}")
    try:
        uvicorn.run(app, host=config.host, port=config.port)
    finally:
        store.close()


if __name__ == "__main__":
    main()
