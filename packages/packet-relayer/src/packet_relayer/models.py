"""
Shared data models for the packet relayer.

This module contains data classes and types used across the relayer components.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class Packet:
    """A cross-ledger message observed on the source ledger.

    Attributes:
        src_chain_id: Chain ID of the source ledger
        dst_chain_id: Chain ID of the destination ledger
        src_seq: Sequence number assigned by the PacketSender contract
        sender: Address that sent the packet on the source ledger
        receiver: Address the packet is for on the destination ledger
        payload: Raw message bytes
        commitment: 0x-prefixed 32-byte hash emitted with the packet
        proof: Source inclusion metadata, carried through the hub as-is
    """
    src_chain_id: int
    dst_chain_id: int
    src_seq: int
    sender: str
    receiver: str
    payload: bytes
    commitment: str
    proof: dict[str, Any] | None = field(default=None, compare=False)

    @property
    def label(self) -> str:
        return f"{self.src_chain_id}:{self.src_seq}->{self.dst_chain_id}"

    def to_submission(self) -> dict[str, Any]:
        """Body of the hub's POST /submit."""
        return {
            "srcChainId": str(self.src_chain_id),
            "dstChainId": str(self.dst_chain_id),
            "srcSeq": self.src_seq,
            "sender": self.sender,
            "receiver": self.receiver,
            "payloadHex": "0x" + self.payload.hex(),
            "commitment": self.commitment,
            "proof": self.proof,
        }


@dataclass(frozen=True, slots=True)
class PendingPacket:
    """An undelivered record returned by the hub's GET /pending."""
    packet: Packet
    hub_seq: int
    created_at: int  # unix milliseconds

    @classmethod
    def from_hub(cls, data: dict[str, Any]) -> "PendingPacket":
        """
        Build from one entry of the hub's pending list.

        Raises:
            ValueError: If the chain IDs are not numeric or a field is malformed
        """
        payload_hex: str = data["payloadHex"]
        packet = Packet(
            src_chain_id=int(data["srcChainId"]),
            dst_chain_id=int(data["dstChainId"]),
            src_seq=int(data["srcSeq"]),
            sender=data["sender"],
            receiver=data["receiver"],
            payload=bytes.fromhex(payload_hex.removeprefix("0x")),
            commitment=data["commitment"],
            proof=data.get("proof"),
        )
        return cls(packet=packet, hub_seq=int(data["hubSeq"]), created_at=int(data.get("createdAt", 0)))


@dataclass(frozen=True, slots=True)
class PendingPage:
    """One page of GET /pending.

    Attributes:
        records: Entries readable on the relayer side
        size: Number of entries the hub returned, readable or not
        last_hub_seq: hubSeq of the hub's last entry, the cursor for the next
            page; None when the page is empty
    """
    records: list[PendingPacket]
    size: int = 0
    last_hub_seq: int | None = None


@dataclass(frozen=True, slots=True)
class SubmitOutcome:
    """Result of registering a packet with the hub."""
    hub_seq: int | None = None
    duplicate: bool = False


@dataclass(frozen=True, slots=True)
class Attestation:
    """Signature binding a packet to its hubSeq.

    Attributes:
        hub_seq: Sequence number the signature was computed over
        digest: keccak256 of the ABI-encoded packet fields and hubSeq
        signature: 65-byte EIP-191 signature over the digest
        signer: Address of the signing key
    """
    hub_seq: int
    digest: bytes
    signature: bytes
    signer: str


class PacketState(Enum):
    """Relayer-observed lifecycle of one packet."""
    DETECTED = "detected"
    SUBMITTED = "submitted"
    ATTESTED = "attested"
    DELIVERED = "delivered"
    MARKED = "marked"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass(slots=True)
class RelayResult:
    """Final outcome of one pipeline run."""
    packet: Packet
    state: PacketState
    hub_seq: int | None = None
    tx_hash: str | None = None
    failed_at: PacketState | None = None
    error: str | None = None
