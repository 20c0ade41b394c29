"""
Polling-based event listener utility for blockchain event monitoring.

"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from web3 import Web3
from web3.types import EventData


class PollingEventListener:
    """
    Utility for polling contract events via HTTP JSON-RPC.

    The block cursor only advances after every event in a range has been
    handed to the callback without raising, so a failed range is fetched
    again on the next poll.
    """

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        event_name: str,
        abi: List[Dict[str, Any]],
        lookback_blocks: int = 100,
        argument_filters: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the polling event listener.

        Args:
            w3: Web3 instance connected to the ledger to watch
            contract_address: Address of the contract to monitor
            event_name: Name of the event to listen for
            abi: Contract ABI containing the event
            lookback_blocks: Number of blocks to look back on startup
            argument_filters: Indexed-argument filters passed to get_logs
        """
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.event_name = event_name
        self.lookback_blocks = lookback_blocks
        self.argument_filters = argument_filters

        self.contract = self.w3.eth.contract(
            address=self.contract_address,
            abi=abi
        )

        if not hasattr(self.contract.events, event_name):
            raise ValueError(f"Event {event_name} not found in contract ABI")
        self.event_obj = getattr(self.contract.events, event_name)

        # State tracking
        self.last_processed_block: Optional[int] = None
        self.is_running = False

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _get_logs(self, from_block: int, to_block: int) -> List[EventData]:
        kwargs: Dict[str, Any] = {"from_block": from_block, "to_block": to_block}
        if self.argument_filters:
            kwargs["argument_filters"] = self.argument_filters
        return await asyncio.to_thread(self.event_obj.get_logs, **kwargs)

    async def _dispatch(self, events: List[EventData], callback: Callable[[EventData], Awaitable[Any]]) -> None:
        for event in events:
            await callback(event)

    async def initial_sync(self, callback: Callable[[EventData], Awaitable[Any]]) -> None:
        """
        Catch up on events from the lookback window.

        Args:
            callback: Async function to call for each event found
        """
        current_block = await asyncio.to_thread(lambda: self.w3.eth.block_number)
        from_block = max(0, current_block - self.lookback_blocks)

        self.logger.info(
            f"Initial sync for {self.event_name} events "
            f"from block {from_block} to {current_block}"
        )

        events = await self._get_logs(from_block, current_block)
        if events:
            self.logger.info(f"Found {len(events)} historical {self.event_name} events")
            await self._dispatch(events, callback)
        else:
            self.logger.info(f"No historical {self.event_name} events found")

        self.last_processed_block = current_block

    async def poll_for_events(self, callback: Callable[[EventData], Awaitable[Any]]) -> int:
        """
        Poll for new events since the last processed block.

        Args:
            callback: Async function to call for each new event

        Returns:
            Number of events handed to the callback
        """
        try:
            current_block = await asyncio.to_thread(lambda: self.w3.eth.block_number)

            if self.last_processed_block is not None and current_block <= self.last_processed_block:
                return 0

            from_block = (
                self.last_processed_block + 1
                if self.last_processed_block is not None
                else current_block
            )

            events = await self._get_logs(from_block, current_block)
            if events:
                self.logger.info(
                    f"Found {len(events)} new {self.event_name} events "
                    f"in blocks {from_block}-{current_block}"
                )
                await self._dispatch(events, callback)

            self.last_processed_block = current_block
            return len(events)

        except Exception as e:
            # Cursor stays put; the same range is retried next poll
            self.logger.error(f"Error polling for {self.event_name} events: {e}")
            return 0

    async def start_polling(
        self,
        callback: Callable[[EventData], Awaitable[Any]],
        interval: int = 4
    ) -> None:
        """
        Start polling for events at the specified interval.

        Args:
            callback: Async function to call when events are received
            interval: Polling interval in seconds
        """
        if self.is_running:
            self.logger.warning("Polling already running")
            return

        self.is_running = True
        self.logger.info(
            f"Starting polling for {self.event_name} events "
            f"on {self.contract_address} every {interval} seconds"
        )

        try:
            await self.initial_sync(callback)
        except Exception as e:
            # Fall back to regular polling from the lookback start
            self.logger.error(f"Error during initial sync: {e}")

        while self.is_running:
            try:
                await asyncio.sleep(interval)
                if self.last_processed_block is None:
                    await self.initial_sync(callback)
                else:
                    await self.poll_for_events(callback)
            except asyncio.CancelledError:
                self.logger.info("Polling cancelled")
                raise
            except Exception as e:
                self.logger.error(f"Error in polling loop: {e}")

    async def stop(self) -> None:
        """Stop the polling loop."""
        self.logger.info(f"Stopping polling for {self.event_name} events")
        self.is_running = False

    def get_status(self) -> Dict[str, Any]:
        """
        Get current status of the polling listener.

        Returns:
            Dictionary with status information
        """
        return {
            "is_running": self.is_running,
            "last_processed_block": self.last_processed_block,
            "contract_address": self.contract_address,
            "event_name": self.event_name,
        }
