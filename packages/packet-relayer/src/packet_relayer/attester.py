"""
Hub attestations for registered packets.

The attestation is an EIP-191 personal-message signature over

    keccak256(abi.encode(uint256 srcChainId, uint256 dstChainId, uint256 srcSeq,
                         address sender, address receiver, bytes payload,
                         bytes32 commitment, uint256 hubSeq))

which is exactly what the destination PacketReceiver recovers the signer
from. Field order and widths are part of that contract; do not reorder them.
"""

import logging

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3 import Web3

from .errors import AttestationError
from .models import Attestation, Packet

logger = logging.getLogger(__name__)

ATTESTATION_TYPES = [
    "uint256",  # srcChainId
    "uint256",  # dstChainId
    "uint256",  # srcSeq
    "address",  # sender
    "address",  # receiver
    "bytes",    # payload
    "bytes32",  # commitment
    "uint256",  # hubSeq
]


class Attester:
    """Signs the (packet, hubSeq) binding with the relayer's key."""

    def __init__(self, account: LocalAccount):
        self.account = account

    @classmethod
    def from_key(cls, private_key: str) -> "Attester":
        return cls(Account.from_key(private_key))

    @property
    def address(self) -> str:
        return self.account.address

    @staticmethod
    def encode(packet: Packet, hub_seq: int) -> bytes:
        """
        ABI-encode the bound fields in wire order.

        Raises:
            AttestationError: If a field does not fit its wire type
        """
        try:
            commitment = bytes(HexBytes(packet.commitment))
            if len(commitment) != 32:
                raise ValueError(f"commitment must be 32 bytes, got {len(commitment)}")

            values = [
                int(packet.src_chain_id),
                int(packet.dst_chain_id),
                packet.src_seq,
                Web3.to_checksum_address(packet.sender),
                Web3.to_checksum_address(packet.receiver),
                packet.payload,
                commitment,
                hub_seq,
            ]
            return encode(ATTESTATION_TYPES, values)
        except (EncodingError, ValueError, TypeError) as e:
            raise AttestationError(f"Cannot encode packet {packet.label} with hubSeq={hub_seq}: {e}") from e

    @classmethod
    def digest(cls, packet: Packet, hub_seq: int) -> bytes:
        return bytes(Web3.keccak(cls.encode(packet, hub_seq)))

    def attest(self, packet: Packet, hub_seq: int) -> Attestation:
        """
        Sign the digest of (packet, hub_seq).

        Returns:
            Attestation carrying the digest and the 65-byte signature
        """
        digest = self.digest(packet, hub_seq)
        signed = self.account.sign_message(encode_defunct(primitive=digest))

        logger.info(f"Attested packet {packet.label} hubSeq={hub_seq} digest={Web3.to_hex(digest)[:18]}...")
        return Attestation(
            hub_seq=hub_seq,
            digest=digest,
            signature=bytes(signed.signature),
            signer=self.account.address,
        )

    @classmethod
    def recover_signer(cls, packet: Packet, hub_seq: int, signature: bytes) -> str:
        """Recover the address that signed (packet, hub_seq)."""
        digest = cls.digest(packet, hub_seq)
        return Account.recover_message(encode_defunct(primitive=digest), signature=signature)

    @classmethod
    def verify(cls, packet: Packet, hub_seq: int, signature: bytes, signer: str) -> bool:
        """Check a signature the way the destination verifier does."""
        try:
            recovered = cls.recover_signer(packet, hub_seq, signature)
        except (AttestationError, ValueError):
            return False
        return recovered == Web3.to_checksum_address(signer)
