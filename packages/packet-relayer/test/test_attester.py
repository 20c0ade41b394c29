#!/usr/bin/env python3
"""Unit tests for the Attester."""

import pytest
from eth_abi import encode
from web3 import Web3

from conftest import COMMITMENT, PRIVATE_KEY, RECEIVER, SENDER, SIGNER, make_packet
from packet_relayer.attester import ATTESTATION_TYPES, Attester
from packet_relayer.errors import AttestationError


@pytest.fixture
def attester() -> Attester:
    return Attester.from_key(PRIVATE_KEY)


def word(encoded: bytes, index: int) -> bytes:
    return encoded[index * 32:(index + 1) * 32]


class TestEncoding:
    """Wire layout of the attested fields."""

    def test_type_list_is_fixed(self):
        assert ATTESTATION_TYPES == [
            "uint256", "uint256", "uint256", "address", "address", "bytes", "bytes32", "uint256",
        ]

    def test_field_order_and_widths(self):
        packet = make_packet(src_seq=5)
        encoded = Attester.encode(packet, hub_seq=1)

        # 8 head words + length word + one padded data word for b"hi"
        assert len(encoded) == 10 * 32
        assert int.from_bytes(word(encoded, 0), "big") == packet.src_chain_id
        assert int.from_bytes(word(encoded, 1), "big") == packet.dst_chain_id
        assert int.from_bytes(word(encoded, 2), "big") == 5
        assert word(encoded, 3)[12:] == Web3.to_bytes(hexstr=SENDER)
        assert word(encoded, 4)[12:] == Web3.to_bytes(hexstr=RECEIVER)
        assert int.from_bytes(word(encoded, 5), "big") == 8 * 32  # offset of payload
        assert word(encoded, 6) == Web3.to_bytes(hexstr=COMMITMENT)
        assert int.from_bytes(word(encoded, 7), "big") == 1
        assert int.from_bytes(word(encoded, 8), "big") == 2
        assert word(encoded, 9) == b"hi" + b"\x00" * 30

    def test_matches_plain_abi_encoding(self, packet):
        expected = encode(
            ATTESTATION_TYPES,
            [
                packet.src_chain_id,
                packet.dst_chain_id,
                packet.src_seq,
                SENDER,
                RECEIVER,
                b"hi",
                Web3.to_bytes(hexstr=COMMITMENT),
                7,
            ],
        )
        assert Attester.encode(packet, 7) == expected
        assert Attester.digest(packet, 7) == bytes(Web3.keccak(expected))

    def test_lowercase_addresses_encode_like_checksummed(self, packet):
        lowered = make_packet(sender=SENDER.lower(), receiver=RECEIVER.lower())
        assert Attester.encode(lowered, 1) == Attester.encode(packet, 1)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"src_chain_id": "A"},
            {"dst_chain_id": "B"},
            {"commitment": "0xc0ffee"},
            {"commitment": "not-hex"},
            {"sender": "0xAA"},
            {"src_seq": -1},
        ],
    )
    def test_unencodable_packet_raises(self, overrides):
        with pytest.raises(AttestationError):
            Attester.encode(make_packet(**overrides), 1)


class TestSigning:
    """Signature binding to hubSeq."""

    def test_signer_address(self, attester):
        assert attester.address == SIGNER

    def test_attestation_recovers_to_signer(self, attester, packet):
        attestation = attester.attest(packet, hub_seq=1)

        assert attestation.hub_seq == 1
        assert attestation.signer == SIGNER
        assert len(attestation.signature) == 65
        assert attestation.digest == Attester.digest(packet, 1)
        assert Attester.recover_signer(packet, 1, attestation.signature) == SIGNER
        assert Attester.verify(packet, 1, attestation.signature, SIGNER)

    def test_signature_does_not_verify_for_other_hub_seq(self, attester, packet):
        attestation = attester.attest(packet, hub_seq=1)
        assert not Attester.verify(packet, 2, attestation.signature, SIGNER)

    def test_signature_does_not_verify_for_other_payload(self, attester, packet):
        attestation = attester.attest(packet, hub_seq=1)
        tampered = make_packet(payload=b"ho")
        assert not Attester.verify(tampered, 1, attestation.signature, SIGNER)

    def test_attestation_is_deterministic(self, attester, packet):
        assert attester.attest(packet, 3).signature == attester.attest(packet, 3).signature
