"""
Per-packet relay pipeline.

Each packet runs as one sequential task:

    DETECTED -> SUBMITTED(hubSeq) -> ATTESTED -> DELIVERED -> MARKED
                     \\-> DUPLICATE

Any failing step ends the task as FAILED. Whatever happens, the caller gets a
single RelayResult back; nothing escapes as an exception.
"""

import logging

from .attester import Attester
from .delivery_executor import DeliveryExecutor
from .errors import RelayerError
from .hub_client import HubClient
from .models import Packet, PacketState, RelayResult
from .utils.retry import retry_transient

logger = logging.getLogger(__name__)


class PacketPipeline:
    """Drives packets through submit → attest → deliver → mark."""

    def __init__(
        self,
        hub_client: HubClient,
        attester: Attester,
        executor: DeliveryExecutor,
        retry_count: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        self.hub_client = hub_client
        self.attester = attester
        self.executor = executor
        self.retry_count = retry_count
        self.retry_base_delay = retry_base_delay

        # hubSeqs currently between submission and marking in this process
        self.in_flight: set[int] = set()

    async def run(self, packet: Packet) -> RelayResult:
        """Relay a freshly detected packet."""
        result = RelayResult(packet=packet, state=PacketState.DETECTED)
        try:
            outcome = await retry_transient(
                lambda: self.hub_client.submit(packet),
                retries=self.retry_count,
                base_delay=self.retry_base_delay,
                description=f"Submitting packet {packet.label}",
            )
        except Exception as e:
            return self._failed(result, e)

        if outcome.duplicate:
            logger.info(f"Packet {packet.label} already registered at the hub, nothing to do")
            result.state = PacketState.DUPLICATE
            return result

        result.hub_seq = outcome.hub_seq
        result.state = PacketState.SUBMITTED
        return await self._deliver(result)

    async def resume(self, packet: Packet, hub_seq: int) -> RelayResult | None:
        """
        Continue a packet already registered at the hub, starting at attestation.

        Returns:
            The result, or None if this hubSeq is already being relayed here
        """
        if hub_seq in self.in_flight:
            logger.debug(f"hubSeq={hub_seq} already in flight, not resuming")
            return None

        result = RelayResult(packet=packet, state=PacketState.SUBMITTED, hub_seq=hub_seq)
        logger.info(f"Resuming undelivered hubSeq={hub_seq} ({packet.label})")
        return await self._deliver(result)

    async def _deliver(self, result: RelayResult) -> RelayResult:
        packet = result.packet
        hub_seq = result.hub_seq
        self.in_flight.add(hub_seq)
        try:
            attestation = self.attester.attest(packet, hub_seq)
            result.state = PacketState.ATTESTED

            result.tx_hash = await self.executor.deliver(packet, attestation)
            result.state = PacketState.DELIVERED

            await self.executor.report_delivered(hub_seq)
            result.state = PacketState.MARKED
            logger.info(f"Packet {packet.label} relayed as hubSeq={hub_seq}: {result.tx_hash}")
            return result
        except Exception as e:
            return self._failed(result, e)
        finally:
            self.in_flight.discard(hub_seq)

    @staticmethod
    def _failed(result: RelayResult, error: Exception) -> RelayResult:
        result.failed_at = result.state
        result.state = PacketState.FAILED
        result.error = str(error)

        where = f"hubSeq={result.hub_seq}" if result.hub_seq is not None else "before registration"
        if result.failed_at == PacketState.DELIVERED:
            logger.error(
                f"Packet {result.packet.label} ({where}) confirmed on destination "
                f"({result.tx_hash}) but not marked delivered: {error}"
            )
        elif isinstance(error, RelayerError):
            logger.error(f"Packet {result.packet.label} ({where}) failed after {result.failed_at.value}: {error}")
        else:
            logger.error(
                f"Packet {result.packet.label} ({where}) failed after {result.failed_at.value}: {error}",
                exc_info=True,
            )
        return result
