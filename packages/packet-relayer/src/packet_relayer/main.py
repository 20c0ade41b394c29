#!/usr/bin/env python3

import argparse
import asyncio
import logging
import signal
import sys

from .relayer import PacketRelayer

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main() -> int:
    """Main entry point for the Packet Relayer."""
    try:
        relayer = PacketRelayer.from_env()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Required environment variables:")
        logger.error("  - SOURCE_RPC_URL: Source ledger JSON-RPC endpoint")
        logger.error("  - PACKET_SENDER_ADDRESS: PacketSender contract address on the source ledger")
        logger.error("  - DESTINATION_RPC_URL: Destination ledger JSON-RPC endpoint")
        logger.error("  - PACKET_RECEIVER_ADDRESS: PacketReceiver contract address on the destination ledger")
        logger.error("  - RELAYER_PRIVATE_KEY: Key signing destination transactions and attestations")
        logger.error("  - HUB_URL: Relay hub base URL")
        return 1

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, relayer.stop)
        except NotImplementedError:
            pass  # Windows

    try:
        await relayer.run()
    except RuntimeError as e:
        logger.error(f"Startup failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
    return 0


def run() -> None:
    parser = argparse.ArgumentParser(description="Packet Relayer")
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug logging"
    )
    args = parser.parse_args()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")


if __name__ == "__main__":
    run()
