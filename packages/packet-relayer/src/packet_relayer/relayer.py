"""
Packet Relayer implementation.

This module contains the main relayer service that checks its dependencies,
starts event monitoring and the pending backfill, and runs one pipeline task
per detected packet.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from web3 import Web3

from .attester import Attester
from .backfill import PendingBackfill
from .config import RelayerConfig
from .delivery_executor import DeliveryExecutor
from .event_watcher import EventWatcher
from .hub_client import HubClient
from .models import Packet, PacketState, RelayResult
from .pipeline import PacketPipeline
from .utils.contract_utility import ContractUtility
from .utils.polling_event_listener import PollingEventListener

logger = logging.getLogger(__name__)


class PacketRelayer:
    """
    Main relayer service that orchestrates event monitoring and relaying.

    This class focuses on coordination and lifecycle management, delegating
    per-packet work to the PacketPipeline.
    """

    STATUS_LOG_INTERVAL = 30  # seconds
    STARTUP_RETRY_DELAY = 1.0  # seconds

    def __init__(
        self,
        config: RelayerConfig,
        w3_source: Optional[Web3] = None,
        contract_util: Optional[ContractUtility] = None,
        hub_client: Optional[HubClient] = None,
    ):
        """
        Initialize the Packet Relayer.

        Args:
            config: Relayer configuration
            w3_source: Web3 for the source ledger (built from config if omitted)
            contract_util: Signing contract utility for the destination ledger
            hub_client: Client for the relay hub
        """
        self.config = config
        self.running = False

        monitoring = config.monitoring
        self.w3_source = w3_source or Web3(Web3.HTTPProvider(
            config.source_chain.rpc_url,
            request_kwargs={'timeout': monitoring.rpc_timeout},
        ))
        self.contract_util = contract_util or ContractUtility(
            rpc_url=config.destination_chain.rpc_url,
            secret=config.destination_chain.private_key,
            request_timeout=monitoring.rpc_timeout,
        )
        self.hub_client = hub_client or HubClient(
            config.hub.url,
            timeout=config.hub.request_timeout,
        )
        self.attester = Attester.from_key(config.destination_chain.private_key)

        # Built once chain IDs are known
        self.pipeline: Optional[PacketPipeline] = None
        self.watcher: Optional[EventWatcher] = None
        self.backfill: Optional[PendingBackfill] = None
        self.packet_listener: Optional[PollingEventListener] = None

        self._packet_tasks: set[asyncio.Task] = set()
        self._semaphore = asyncio.Semaphore(monitoring.max_concurrent_packets)
        self.results: dict[PacketState, int] = {state: 0 for state in PacketState}

        self.shutdown_event = asyncio.Event()

    @classmethod
    def from_env(cls) -> "PacketRelayer":
        """
        Create a PacketRelayer instance from environment variables.

        Raises:
            ValueError: If required environment variables are missing
        """
        config = RelayerConfig.from_env()
        config.log_config()
        return cls(config)

    async def _wait_for(self, name: str, check: Callable[[], Awaitable[bool]]) -> None:
        """Retry a dependency check until it succeeds or startup retries run out."""
        attempts = self.config.monitoring.startup_retries
        for attempt in range(1, attempts + 1):
            try:
                if await check():
                    logger.info(f"{name} is reachable")
                    return
                reason = "not ready"
            except Exception as e:
                reason = str(e)
            logger.info(f"Waiting for {name} ({attempt}/{attempts}): {reason}")
            await asyncio.sleep(self.STARTUP_RETRY_DELAY)
        raise RuntimeError(f"{name} unreachable after {attempts} attempts")

    async def wait_for_dependencies(self) -> None:
        """
        Block until the source RPC, destination RPC and hub respond.

        Raises:
            RuntimeError: If a dependency stays unreachable
        """
        dest_w3 = self.contract_util.w3

        async def source_ready() -> bool:
            await asyncio.to_thread(lambda: self.w3_source.eth.block_number)
            return True

        async def destination_ready() -> bool:
            await asyncio.to_thread(lambda: dest_w3.eth.block_number)
            return True

        await self._wait_for("source RPC", source_ready)
        await self._wait_for("destination RPC", destination_ready)
        await self._wait_for("hub", self.hub_client.health)

        src_chain_id = int(await asyncio.to_thread(lambda: self.w3_source.eth.chain_id))
        dst_chain_id = int(await asyncio.to_thread(lambda: dest_w3.eth.chain_id))
        self.config = self.config.with_chain_ids(src_chain_id, dst_chain_id)
        logger.info(f"Relaying chain {src_chain_id} -> chain {dst_chain_id}")

    def init_components(self) -> None:
        """Build the pipeline, watcher, backfill and listener."""
        config = self.config
        monitoring = config.monitoring
        src_chain_id = config.source_chain.chain_id
        dst_chain_id = config.destination_chain.chain_id
        if src_chain_id is None or dst_chain_id is None:
            raise RuntimeError("Chain IDs unknown; call wait_for_dependencies() first")

        executor = DeliveryExecutor(
            contract_util=self.contract_util,
            receiver_address=config.destination_chain.packet_receiver_address,
            hub_client=self.hub_client,
            confirmation_timeout=monitoring.confirmation_timeout,
            retry_count=monitoring.retry_count,
            retry_base_delay=monitoring.retry_base_delay,
        )
        self.pipeline = PacketPipeline(
            hub_client=self.hub_client,
            attester=self.attester,
            executor=executor,
            retry_count=monitoring.retry_count,
            retry_base_delay=monitoring.retry_base_delay,
        )
        self.watcher = EventWatcher(
            w3_source=self.w3_source,
            src_chain_id=src_chain_id,
            dst_chain_id=dst_chain_id,
            on_packet=self.dispatch,
            retry_count=monitoring.retry_count,
            retry_base_delay=monitoring.retry_base_delay,
        )
        self.backfill = PendingBackfill(
            hub_client=self.hub_client,
            pipeline=self.pipeline,
            src_chain_id=src_chain_id,
            dst_chain_id=dst_chain_id,
            min_age=monitoring.confirmation_timeout,
        )
        self.packet_listener = PollingEventListener(
            w3=self.w3_source,
            contract_address=config.source_chain.packet_sender_address,
            event_name="PacketSent",
            abi=self.contract_util.get_contract_abi("PacketSender"),
            lookback_blocks=monitoring.lookback_blocks,
            argument_filters={"dstChainId": dst_chain_id},
        )
        logger.info(f"Attesting as {self.attester.address}")

    async def dispatch(self, packet: Packet) -> asyncio.Task:
        """Start the pipeline for a packet as its own task."""
        task = asyncio.create_task(self._relay(packet), name=f"packet-{packet.label}")
        self._packet_tasks.add(task)
        task.add_done_callback(self._packet_tasks.discard)
        return task

    async def _relay(self, packet: Packet) -> RelayResult:
        async with self._semaphore:
            result = await self.pipeline.run(packet)
        self.results[result.state] += 1
        return result

    async def _periodic_status_logger(self) -> None:
        """Log status periodically while running."""
        while self.running:
            await asyncio.sleep(self.STATUS_LOG_INTERVAL)
            stats = self.get_stats()
            logger.info(
                f"Status: {stats['in_progress']} in progress, {stats['marked']} relayed, "
                f"{stats['duplicate']} duplicates, {stats['failed']} failed, "
                f"{stats['recovered']} recovered by backfill"
            )

    async def _check_task_health(self, tasks: dict[str, asyncio.Task]) -> bool:
        """Check if any critical task has failed."""
        for name, task in tasks.items():
            if task.done() and name != "status":
                try:
                    await task
                except Exception as e:
                    logger.error(f"{name} task failed: {e}", exc_info=True)
                return False
        return True

    async def _cleanup_tasks(self, tasks: dict[str, asyncio.Task]) -> None:
        """Clean up all tasks, listeners and connections."""
        if self.packet_listener:
            await self.packet_listener.stop()
        if self.backfill:
            self.backfill.stop()

        # In-flight deliveries are abandoned; the backfill resumes them on restart
        pending = [t for t in [*tasks.values(), *self._packet_tasks] if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await self.hub_client.aclose()

    async def run(self) -> None:
        """Main event loop for the relayer service."""
        self.running = True
        logger.info("Packet Relayer starting...")

        tasks: dict[str, asyncio.Task] = {}
        try:
            await self.wait_for_dependencies()
            self.init_components()

            tasks = {
                "watch": asyncio.create_task(
                    self.packet_listener.start_polling(
                        callback=self.watcher.handle_event,
                        interval=self.config.monitoring.polling_interval
                    )
                ),
                "backfill": asyncio.create_task(
                    self.backfill.start(self.config.monitoring.backfill_interval)
                ),
                "status": asyncio.create_task(self._periodic_status_logger()),
            }

            logger.info("Event monitoring started, waiting for packets...")

            while self.running:
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=1.0)
                    break
                except asyncio.TimeoutError:
                    pass

                if not await self._check_task_health(tasks):
                    logger.error("Critical task failure, shutting down")
                    break

        except Exception as e:
            logger.error(f"Error in main loop: {e}", exc_info=True)
            raise
        finally:
            self.running = False
            await self._cleanup_tasks(tasks)
            logger.info("Packet Relayer stopped")

    def stop(self) -> None:
        """Stop the relayer service."""
        self.running = False
        self.shutdown_event.set()

    def get_stats(self) -> dict:
        """
        Get current relayer statistics.

        Returns:
            Dictionary with per-state counters and, once wired, the
            watcher's event counters
        """
        stats = {state.value: count for state, count in self.results.items()}
        stats['in_progress'] = len(self._packet_tasks)
        stats['recovered'] = self.backfill.recovered if self.backfill else 0
        if self.watcher:
            stats.update(self.watcher.get_stats())
        return stats
