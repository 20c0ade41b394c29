"""
Event watcher for PacketSent events on the source ledger.

Turns each raw log into a Packet, fetching the receipt and block needed to
build its proof, and hands it to the relayer. Deduplication is left to the
hub: every event produces exactly one submission attempt.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Awaitable, Callable

from web3 import Web3
from web3.exceptions import BlockNotFound, TransactionNotFound
from web3.types import EventData

from .errors import TransientDependencyError
from .models import Packet
from .utils.retry import retry_transient

logger = logging.getLogger(__name__)


class EventWatcher:
    """Normalizes PacketSent events into Packets for the relay pipeline."""

    def __init__(
        self,
        w3_source: Web3,
        src_chain_id: int,
        dst_chain_id: int,
        on_packet: Callable[[Packet], Awaitable[Any]],
        retry_count: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        """
        Args:
            w3_source: Web3 instance for the source ledger
            src_chain_id: Chain ID of the source ledger
            dst_chain_id: Only events addressed to this chain are relayed
            on_packet: Async callback receiving each normalized packet
            retry_count: Retries while receipt or block are not available yet
            retry_base_delay: First retry delay in seconds
        """
        self.w3_source = w3_source
        self.src_chain_id = src_chain_id
        self.dst_chain_id = dst_chain_id
        self.on_packet = on_packet
        self.retry_count = retry_count
        self.retry_base_delay = retry_base_delay

        self.events_seen = 0
        self.events_skipped = 0
        self.events_failed = 0

    @staticmethod
    def _tx_hash_of(event: EventData) -> str | None:
        match event.get('transactionHash'):
            case None:
                return None
            case bytes() as tx_hash_bytes:
                return Web3.to_hex(tx_hash_bytes)
            case str() as tx_hash:
                return tx_hash if tx_hash.startswith('0x') else '0x' + tx_hash
            case other:
                logger.warning(f"Unexpected transaction hash type: {type(other)}")
                return None

    async def fetch_proof(self, tx_hash: str) -> dict[str, Any]:
        """
        Collect the source-ledger context describing where a packet was emitted.

        Raises:
            TransientDependencyError: If the node has not indexed the receipt or
                block yet, or cannot be reached
        """
        try:
            receipt = await asyncio.to_thread(self.w3_source.eth.get_transaction_receipt, tx_hash)
            block = await asyncio.to_thread(self.w3_source.eth.get_block, receipt['blockNumber'])
        except (TransactionNotFound, BlockNotFound) as e:
            raise TransientDependencyError(f"Source context for {tx_hash} not available yet: {e}") from e
        except OSError as e:
            raise TransientDependencyError(f"Source RPC unreachable: {e}") from e

        if not receipt or not block:
            raise TransientDependencyError(f"Source context for {tx_hash} not available yet")

        return {
            "txHash": tx_hash,
            "blockNumber": receipt['blockNumber'],
            "blockHash": Web3.to_hex(receipt['blockHash']),
            "header": {
                "number": block['number'],
                "hash": Web3.to_hex(block['hash']),
                "parentHash": Web3.to_hex(block['parentHash']),
                "timestamp": block['timestamp'],
            },
        }

    async def normalize(self, event: EventData) -> Packet | None:
        """
        Build a Packet from a PacketSent log.

        Returns:
            The packet, or None if the event is not for our destination or
            lacks a transaction hash

        Raises:
            TransientDependencyError: If the proof context stayed unavailable
                through every retry
        """
        tx_hash = self._tx_hash_of(event)
        if tx_hash is None:
            logger.warning("PacketSent event missing transaction hash")
            return None

        args: Mapping[str, Any] = event.get('args', {})
        dst_chain_id = int(args['dstChainId'])
        if dst_chain_id != self.dst_chain_id:
            logger.debug(f"Skipping packet for chain {dst_chain_id} in tx {tx_hash[:10]}...")
            return None

        proof = await retry_transient(
            lambda: self.fetch_proof(tx_hash),
            retries=self.retry_count,
            base_delay=self.retry_base_delay,
            description=f"Fetching source context for {tx_hash[:10]}...",
        )

        commitment = args['commitment']
        packet = Packet(
            src_chain_id=self.src_chain_id,
            dst_chain_id=dst_chain_id,
            src_seq=int(args['seq']),
            sender=Web3.to_checksum_address(args['sender']),
            receiver=Web3.to_checksum_address(args['receiver']),
            payload=bytes(args['payload']),
            commitment=Web3.to_hex(commitment) if isinstance(commitment, bytes) else commitment,
            proof=proof,
        )

        logger.info(
            f"PacketSent detected - TX: {tx_hash[:10]}... seq={packet.src_seq} "
            f"sender={packet.sender} block={proof['blockNumber']}"
        )
        return packet

    async def handle_event(self, event: EventData) -> Packet | None:
        """
        Listener callback: normalize the event and pass it on.

        A TransientDependencyError is re-raised so the listener keeps its block
        cursor and the event is fetched again on the next poll. Any other
        failure belongs to this one event: it is logged with the transaction
        hash and counted, and the listener moves on.
        """
        self.events_seen += 1
        try:
            packet = await self.normalize(event)
            if packet is None:
                self.events_skipped += 1
                return None

            await self.on_packet(packet)
            return packet
        except TransientDependencyError:
            raise
        except Exception as e:
            self.events_failed += 1
            logger.error(
                f"Dropping PacketSent event in tx {self._tx_hash_of(event)}: {e}",
                exc_info=True,
            )
            return None

    def get_stats(self) -> dict:
        return {
            'events_seen': self.events_seen,
            'events_skipped': self.events_skipped,
            'events_failed': self.events_failed,
        }
