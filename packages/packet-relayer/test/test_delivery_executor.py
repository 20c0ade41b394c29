"""Unit tests for the DeliveryExecutor."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from hexbytes import HexBytes
from web3.exceptions import TimeExhausted

from conftest import COMMITMENT, DEST_TX_HASH, PRIVATE_KEY, RECEIVER, RECEIVER_CONTRACT, SENDER, make_packet
from packet_relayer.attester import Attester
from packet_relayer.delivery_executor import DeliveryExecutor
from packet_relayer.errors import PipelineFailure, TransientDependencyError


@pytest.fixture
def hub():
    hub = MagicMock()
    hub.mark_delivered = AsyncMock(return_value=1)
    return hub


@pytest.fixture
def executor(destination, hub) -> DeliveryExecutor:
    return DeliveryExecutor(
        contract_util=destination,
        receiver_address=RECEIVER_CONTRACT,
        hub_client=hub,
        confirmation_timeout=5,
        retry_count=2,
        retry_base_delay=0,
    )


@pytest.fixture
def attestation(packet):
    return Attester.from_key(PRIVATE_KEY).attest(packet, hub_seq=1)


class TestDeliver:
    """Test suite for recvPacket submission and confirmation."""

    def test_contract_bound_to_receiver(self, executor, destination):
        _, kwargs = destination.w3.eth.contract.call_args
        assert kwargs['address'] == executor.receiver_address
        assert kwargs['abi'] == destination.get_contract_abi("PacketReceiver")

    def test_packet_struct(self):
        struct = DeliveryExecutor.build_packet_struct(make_packet(src_seq=5), hub_seq=9)
        assert struct == {
            'srcChainId': 31337,
            'dstChainId': 31338,
            'srcSeq': 5,
            'sender': SENDER,
            'receiver': RECEIVER,
            'payload': b"hi",
            'commitment': HexBytes(COMMITMENT),
            'hubSeq': 9,
        }

    @pytest.mark.asyncio
    async def test_confirmed_delivery_returns_tx_hash(self, executor, destination, packet, attestation):
        """Test that a status-1 receipt yields the destination tx hash."""
        tx_hash = await executor.deliver(packet, attestation)

        assert tx_hash == "0x" + "12" * 32
        recv = destination.w3.eth.contract.return_value.functions.recvPacket
        struct, signature = recv.call_args.args
        assert struct['hubSeq'] == 1
        assert signature == attestation.signature
        tx_params = recv.return_value.transact.call_args.args[0]
        assert tx_params['gas'] == DeliveryExecutor.GAS_LIMIT
        destination.w3.eth.wait_for_transaction_receipt.assert_called_once_with(DEST_TX_HASH, timeout=5)

    @pytest.mark.asyncio
    async def test_reverted_receipt_fails(self, executor, destination, packet, attestation):
        destination.w3.eth.wait_for_transaction_receipt.return_value = {
            'status': 0,
            'transactionHash': DEST_TX_HASH,
            'blockNumber': 10,
        }

        with pytest.raises(PipelineFailure, match="reverted") as exc_info:
            await executor.deliver(packet, attestation)
        assert exc_info.value.hub_seq == 1

    @pytest.mark.asyncio
    async def test_confirmation_timeout_fails(self, executor, destination, packet, attestation):
        destination.w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("slow")

        with pytest.raises(PipelineFailure, match="not confirmed within 5s") as exc_info:
            await executor.deliver(packet, attestation)
        assert exc_info.value.hub_seq == 1

    @pytest.mark.asyncio
    async def test_rejected_transaction_fails(self, executor, destination, packet, attestation):
        """Test that a node-side rejection (e.g. estimate failure) is a pipeline failure."""
        recv = destination.w3.eth.contract.return_value.functions.recvPacket
        recv.return_value.transact.side_effect = ValueError("execution reverted: bad attestation")

        with pytest.raises(PipelineFailure, match="bad attestation"):
            await executor.deliver(packet, attestation)
        destination.w3.eth.wait_for_transaction_receipt.assert_not_called()


class TestReportDelivered:
    """Test suite for markDelivered reporting."""

    @pytest.mark.asyncio
    async def test_reports_hub_seq(self, executor, hub):
        assert await executor.report_delivered(3) == 1
        hub.mark_delivered.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_transient_hub_error_is_retried(self, executor, hub):
        hub.mark_delivered.side_effect = [TransientDependencyError("hub down"), 1]

        assert await executor.report_delivered(3) == 1
        assert hub.mark_delivered.await_count == 2

    @pytest.mark.asyncio
    async def test_already_marked_returns_zero(self, executor, hub):
        hub.mark_delivered.return_value = 0
        assert await executor.report_delivered(3) == 0
