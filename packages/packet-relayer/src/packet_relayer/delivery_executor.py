#!/usr/bin/env python3
"""Packet delivery to the destination ledger.

This module submits attested packets to the PacketReceiver contract, waits
for the destination ledger to confirm inclusion and only then reports the
delivery back to the hub.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from hexbytes import HexBytes
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import TimeExhausted
from web3.types import TxReceipt

from .errors import PipelineFailure
from .models import Attestation, Packet
from .utils.retry import retry_transient

if TYPE_CHECKING:
    from .hub_client import HubClient
    from .utils.contract_utility import ContractUtility

logger = logging.getLogger(__name__)


class DeliveryExecutor:
    """Delivers attested packets and confirms them with the hub."""

    GAS_LIMIT = 3_000_000

    def __init__(
        self,
        contract_util: "ContractUtility",
        receiver_address: str,
        hub_client: "HubClient",
        confirmation_timeout: int = 60,
        retry_count: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        """
        Initialize the DeliveryExecutor.

        Args:
            contract_util: Utility holding the signing Web3 for the destination
            receiver_address: Address of the PacketReceiver contract
            hub_client: Client used to report confirmed deliveries
            confirmation_timeout: Seconds to wait for inclusion before giving up
            retry_count: Retries for transient hub errors when marking delivered
            retry_base_delay: First retry delay in seconds
        """
        self.contract_util: ContractUtility = contract_util
        self.hub_client = hub_client
        self.receiver_address: str = Web3.to_checksum_address(receiver_address)
        self.confirmation_timeout = confirmation_timeout
        self.retry_count = retry_count
        self.retry_base_delay = retry_base_delay

        self.w3: Web3 = contract_util.w3
        self.contract: Contract = self.w3.eth.contract(
            address=self.receiver_address,
            abi=contract_util.get_contract_abi("PacketReceiver"),
        )

        logger.info(f"DeliveryExecutor targeting PacketReceiver at {self.receiver_address}")

    @staticmethod
    def build_packet_struct(packet: Packet, hub_seq: int) -> dict[str, Any]:
        """Packet tuple in the shape recvPacket expects."""
        return {
            'srcChainId': packet.src_chain_id,
            'dstChainId': packet.dst_chain_id,
            'srcSeq': packet.src_seq,
            'sender': Web3.to_checksum_address(packet.sender),
            'receiver': Web3.to_checksum_address(packet.receiver),
            'payload': packet.payload,
            'commitment': HexBytes(packet.commitment),
            'hubSeq': hub_seq,
        }

    def _send_and_wait(self, packet: Packet, attestation: Attestation) -> TxReceipt:
        struct = self.build_packet_struct(packet, attestation.hub_seq)
        tx_hash: HexBytes = self.contract.functions.recvPacket(
            struct,
            attestation.signature,
        ).transact({
            'gas': self.GAS_LIMIT,
            'gasPrice': self.w3.eth.gas_price,
        })
        logger.info(f"recvPacket submitted for hubSeq={attestation.hub_seq}: {Web3.to_hex(tx_hash)}")

        return self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.confirmation_timeout)

    async def deliver(self, packet: Packet, attestation: Attestation) -> str:
        """
        Submit the attested packet and block until the destination confirms it.

        Returns:
            Hash of the confirmed destination transaction

        Raises:
            PipelineFailure: If the transaction was rejected, reverted or not
                confirmed within the timeout
        """
        hub_seq = attestation.hub_seq
        try:
            receipt = await asyncio.to_thread(self._send_and_wait, packet, attestation)
        except TimeExhausted as e:
            raise PipelineFailure(
                f"recvPacket for hubSeq={hub_seq} not confirmed within {self.confirmation_timeout}s",
                hub_seq=hub_seq,
            ) from e
        except Exception as e:
            raise PipelineFailure(f"recvPacket for hubSeq={hub_seq} failed: {e}", hub_seq=hub_seq) from e

        tx_hash = Web3.to_hex(receipt['transactionHash'])
        if (status := receipt.get('status', 0)) != 1:
            raise PipelineFailure(
                f"recvPacket for hubSeq={hub_seq} reverted (status={status}, tx={tx_hash})",
                hub_seq=hub_seq,
            )

        logger.info(f"✓ hubSeq={hub_seq} confirmed in block {receipt['blockNumber']} ({tx_hash})")
        return tx_hash

    async def report_delivered(self, hub_seq: int) -> int:
        """
        Tell the hub that destination inclusion was confirmed.

        Must only be called after deliver() returned.

        Returns:
            Number of hub records changed (0 if it was already marked)
        """
        changes = await retry_transient(
            lambda: self.hub_client.mark_delivered(hub_seq),
            retries=self.retry_count,
            base_delay=self.retry_base_delay,
            description=f"markDelivered({hub_seq})",
        )
        if changes == 0:
            logger.info(f"hubSeq={hub_seq} was already marked delivered")
        return changes
