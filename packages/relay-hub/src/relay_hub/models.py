"""
Data models for the relay hub.

A Packet is what the source side hands us; a HubRecord is the packet as the
hub persisted it, with its global sequence number and delivery flag.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Packet:
    """A cross-ledger message as submitted to the hub.

    Attributes:
        src_chain_id: Source ledger identifier
        dst_chain_id: Destination ledger identifier
        src_seq: Source-assigned sequence number (non-negative)
        sender: Sender address on the source ledger
        receiver: Receiver address on the destination ledger
        payload: Raw message bytes
        commitment: Source-computed hash of the packet, stored as given
        proof: Source inclusion evidence, stored and returned uninterpreted
    """
    src_chain_id: str
    dst_chain_id: str
    src_seq: int
    sender: str
    receiver: str
    payload: bytes
    commitment: str
    proof: Any = field(default=None, compare=False)

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.src_chain_id, self.dst_chain_id, self.src_seq)

    @property
    def payload_hex(self) -> str:
        return "0x" + self.payload.hex()


@dataclass(frozen=True, slots=True)
class HubRecord:
    """A packet registered at the hub."""
    packet: Packet
    hub_seq: int
    delivered: bool
    created_at: int  # unix milliseconds

    def to_dict(self) -> dict[str, Any]:
        """Wire representation used by the HTTP API."""
        p = self.packet
        return {
            "hubSeq": self.hub_seq,
            "srcChainId": p.src_chain_id,
            "dstChainId": p.dst_chain_id,
            "srcSeq": p.src_seq,
            "sender": p.sender,
            "receiver": p.receiver,
            "payloadHex": p.payload_hex,
            "commitment": p.commitment,
            "proof": p.proof,
            "delivered": self.delivered,
            "createdAt": self.created_at,
        }
