"""Shared fixtures for relayer tests."""

from unittest.mock import MagicMock

import httpx
import pytest
from hexbytes import HexBytes
from web3 import Web3

from packet_relayer.attester import Attester
from packet_relayer.delivery_executor import DeliveryExecutor
from packet_relayer.hub_client import HubClient
from packet_relayer.models import Packet
from packet_relayer.pipeline import PacketPipeline
from packet_relayer.utils.contract_utility import ContractUtility
from relay_hub.packet_store import PacketStore
from relay_hub.service import create_app

# Well-known development key; never holds real funds
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SIGNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

SRC_CHAIN_ID = 31337
DST_CHAIN_ID = 31338
SENDER = Web3.to_checksum_address("0x" + "aa" * 20)
RECEIVER = Web3.to_checksum_address("0x" + "bb" * 20)
COMMITMENT = "0xc0ffee" + "00" * 29
DEST_TX_HASH = HexBytes(b"\x12" * 32)
RECEIVER_CONTRACT = "0x" + "cc" * 20


def make_packet(src_seq: int = 0, **overrides) -> Packet:
    fields = dict(
        src_chain_id=SRC_CHAIN_ID,
        dst_chain_id=DST_CHAIN_ID,
        src_seq=src_seq,
        sender=SENDER,
        receiver=RECEIVER,
        payload=b"hi",
        commitment=COMMITMENT,
        proof={"txHash": "0x" + "34" * 32, "blockNumber": 9},
    )
    fields.update(overrides)
    return Packet(**fields)


@pytest.fixture
def packet() -> Packet:
    return make_packet()


@pytest.fixture
def hub_store(tmp_path):
    with PacketStore(tmp_path / "hub.sqlite") as store:
        yield store


@pytest.fixture
def hub_app(hub_store):
    return create_app(hub_store)


@pytest.fixture
def hub_client(hub_app) -> HubClient:
    """HubClient talking to an in-process hub."""
    return HubClient("http://hub.test", transport=httpx.ASGITransport(app=hub_app))


@pytest.fixture
def destination():
    """
    Mock destination ledger.

    recvPacket(...).transact() returns DEST_TX_HASH and the receipt wait
    reports status 1 unless a test overrides it.
    """
    contract_util = MagicMock(spec=ContractUtility)
    contract_util.get_contract_abi.side_effect = ContractUtility().get_contract_abi

    w3 = MagicMock()
    w3.eth.gas_price = 1_000_000_000
    w3.eth.wait_for_transaction_receipt.return_value = {
        'status': 1,
        'transactionHash': DEST_TX_HASH,
        'blockNumber': 10,
    }
    contract = MagicMock()
    contract.functions.recvPacket.return_value.transact.return_value = DEST_TX_HASH
    w3.eth.contract.return_value = contract

    contract_util.w3 = w3
    return contract_util


def build_pipeline(hub_client, destination) -> PacketPipeline:
    """Pipeline with a real Attester and no retry delays."""
    executor = DeliveryExecutor(
        contract_util=destination,
        receiver_address=RECEIVER_CONTRACT,
        hub_client=hub_client,
        confirmation_timeout=5,
        retry_count=1,
        retry_base_delay=0,
    )
    return PacketPipeline(
        hub_client=hub_client,
        attester=Attester.from_key(PRIVATE_KEY),
        executor=executor,
        retry_count=1,
        retry_base_delay=0,
    )
