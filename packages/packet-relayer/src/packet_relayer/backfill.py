"""
Recovery of hub records that were registered but never marked delivered.

A crash between submission and marking, a lost markDelivered response or a
failed delivery all leave the record pending at the hub. The backfill reads
listPending and resumes such records from attestation onwards.
"""

import asyncio
import logging
import time
from typing import Callable

from .errors import RelayerError
from .hub_client import HubClient
from .models import PacketState, PendingPacket, RelayResult
from .pipeline import PacketPipeline

logger = logging.getLogger(__name__)


class PendingBackfill:
    """Periodically resumes undelivered records on this relayer's route."""

    def __init__(
        self,
        hub_client: HubClient,
        pipeline: PacketPipeline,
        src_chain_id: int,
        dst_chain_id: int,
        page_size: int = 50,
        min_age: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            hub_client: Client for the hub's pending list
            pipeline: Pipeline used to resume records
            src_chain_id: Source chain of this relayer's route
            dst_chain_id: Destination chain of this relayer's route
            page_size: Records requested per page of a sweep
            min_age: Seconds a record must have been registered before it is
                resumed, leaving time for the relayer that submitted it
            clock: Wall-clock seconds, compared with the record's createdAt
        """
        self.hub_client = hub_client
        self.pipeline = pipeline
        self.src_chain_id = src_chain_id
        self.dst_chain_id = dst_chain_id
        self.page_size = page_size
        self.min_age = min_age
        self._clock = clock

        self.is_running = False
        self.resumed = 0
        self.recovered = 0

    async def run_once(self) -> list[RelayResult]:
        """
        Sweep the whole pending list and resume the eligible records.

        Pages are requested with the last hubSeq seen as cursor, so records on
        other routes or too young to resume never hide later ones. The sweep
        ends on a short page or when the hub cannot be read.
        """
        now_ms = int(self._clock() * 1000)
        results: list[RelayResult] = []
        after_hub_seq = 0

        while True:
            try:
                page = await self.hub_client.list_pending_page(self.page_size, after_hub_seq)
            except RelayerError as e:
                logger.warning(f"Backfill could not list pending records after hubSeq={after_hub_seq}: {e}")
                break

            for record in page.records:
                result = await self._resume_if_eligible(record, now_ms)
                if result is not None:
                    results.append(result)

            if page.size < self.page_size or page.last_hub_seq is None:
                break
            if page.last_hub_seq <= after_hub_seq:
                logger.warning(f"Hub pending cursor did not advance past hubSeq={after_hub_seq}")
                break
            after_hub_seq = page.last_hub_seq

        if results:
            logger.info(
                f"Backfill resumed {len(results)} records, "
                f"{sum(r.state == PacketState.MARKED for r in results)} delivered"
            )
        return results

    async def _resume_if_eligible(self, record: PendingPacket, now_ms: int) -> RelayResult | None:
        packet = record.packet
        if (packet.src_chain_id, packet.dst_chain_id) != (self.src_chain_id, self.dst_chain_id):
            return None
        if now_ms - record.created_at < self.min_age * 1000:
            return None

        result = await self.pipeline.resume(packet, record.hub_seq)
        if result is None:
            return None

        self.resumed += 1
        if result.state == PacketState.MARKED:
            self.recovered += 1
        return result

    async def start(self, interval: int) -> None:
        """Sweep immediately, then every ``interval`` seconds until stopped."""
        self.is_running = True
        logger.info(f"Starting pending backfill every {interval} seconds")
        while self.is_running:
            await self.run_once()
            await asyncio.sleep(interval)

    def stop(self) -> None:
        self.is_running = False
