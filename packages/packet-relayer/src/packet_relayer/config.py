"""Configuration management for the packet relayer.

This module provides type-safe configuration dataclasses with validation for
the relayer that watches PacketSent events on the source ledger, registers
them with the hub and delivers them to the destination ledger.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from urllib.parse import urlparse

from web3 import Web3

logger = logging.getLogger(__name__)


def _validate_url(url: str, name: str, env_var: str) -> None:
    if not url:
        raise ValueError(f"{name} is required ({env_var})")

    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(
            f"Invalid {name} scheme: {parsed.scheme}. Expected http or https"
        )


def _checksum(address: str, name: str, env_var: str) -> str:
    if not address:
        raise ValueError(f"{name} is required ({env_var})")

    if not Web3.is_address(address):
        raise ValueError(f"Invalid {name}: {address}")

    return Web3.to_checksum_address(address)


@dataclass(frozen=True, slots=True)
class SourceChainConfig:
    """Configuration for the source ledger.

    Attributes:
        rpc_url: HTTP(S) JSON-RPC endpoint of the source ledger
        packet_sender_address: Checksummed address of the PacketSender contract
        chain_id: Chain ID (fetched from RPC, not configured)
    """

    rpc_url: str
    packet_sender_address: str
    chain_id: int | None = None

    def __post_init__(self) -> None:
        """Validate source chain configuration."""
        _validate_url(self.rpc_url, "source RPC URL", "SOURCE_RPC_URL")
        object.__setattr__(
            self,
            'packet_sender_address',
            _checksum(self.packet_sender_address, "PacketSender address", "PACKET_SENDER_ADDRESS"),
        )


@dataclass(frozen=True, slots=True)
class DestinationChainConfig:
    """Configuration for the destination ledger.

    Attributes:
        rpc_url: HTTP(S) JSON-RPC endpoint of the destination ledger
        packet_receiver_address: Checksummed address of the PacketReceiver contract
        private_key: Relayer key; signs destination transactions and attestations
        chain_id: Chain ID (fetched from RPC, not configured)
    """

    rpc_url: str
    packet_receiver_address: str
    private_key: str
    chain_id: int | None = None

    def __post_init__(self) -> None:
        """Validate destination chain configuration."""
        _validate_url(self.rpc_url, "destination RPC URL", "DESTINATION_RPC_URL")
        object.__setattr__(
            self,
            'packet_receiver_address',
            _checksum(self.packet_receiver_address, "PacketReceiver address", "PACKET_RECEIVER_ADDRESS"),
        )

        if not self.private_key:
            raise ValueError("Relayer private key is required (RELAYER_PRIVATE_KEY)")

        key = self.private_key.removeprefix('0x')
        if len(key) != 64:
            raise ValueError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )
        try:
            int(key, 16)
        except ValueError:
            raise ValueError("Invalid private key format. Must be hexadecimal") from None


@dataclass(frozen=True, slots=True)
class HubEndpointConfig:
    """Where the relay hub lives and how long to wait for it."""

    url: str
    request_timeout: float = 10.0  # seconds

    def __post_init__(self) -> None:
        _validate_url(self.url, "hub URL", "HUB_URL")
        if self.request_timeout <= 0:
            raise ValueError(f"Hub request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ValueError(f"Hub request timeout too long (max 120s), got {self.request_timeout}")


@dataclass(frozen=True, slots=True)
class MonitoringConfig:
    """Configuration for event monitoring and packet processing."""
    polling_interval: int = 4  # seconds between event polls
    lookback_blocks: int = 100  # blocks to look back on startup
    rpc_timeout: int = 30  # JSON-RPC request timeout in seconds
    retry_count: int = 3  # retries for transient dependency errors
    retry_base_delay: float = 1.0  # seconds, doubled on every retry
    confirmation_timeout: int = 60  # seconds to wait for destination inclusion
    backfill_interval: int = 30  # seconds between listPending sweeps
    max_concurrent_packets: int = 10
    startup_retries: int = 30  # attempts to reach each dependency at startup

    def __post_init__(self) -> None:
        """Validate monitoring configuration."""
        if self.polling_interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.polling_interval}")
        if self.polling_interval > 300:
            raise ValueError(f"Polling interval too long (max 300s), got {self.polling_interval}")

        if self.lookback_blocks < 0:
            raise ValueError(f"Lookback blocks must be non-negative, got {self.lookback_blocks}")
        if self.lookback_blocks > 10_000:
            raise ValueError(f"Lookback blocks too high (max 10000), got {self.lookback_blocks}")

        if self.rpc_timeout <= 0:
            raise ValueError(f"RPC timeout must be positive, got {self.rpc_timeout}")

        if self.retry_count < 0:
            raise ValueError(f"Retry count must be non-negative, got {self.retry_count}")
        if self.retry_count > 10:
            raise ValueError(f"Retry count too high (max 10), got {self.retry_count}")

        if self.retry_base_delay < 0:
            raise ValueError(f"Retry delay must be non-negative, got {self.retry_base_delay}")

        if self.confirmation_timeout <= 0:
            raise ValueError(f"Confirmation timeout must be positive, got {self.confirmation_timeout}")

        if self.backfill_interval <= 0:
            raise ValueError(f"Backfill interval must be positive, got {self.backfill_interval}")

        if self.max_concurrent_packets <= 0:
            raise ValueError(
                f"Max concurrent packets must be positive, got {self.max_concurrent_packets}"
            )

        if self.startup_retries <= 0:
            raise ValueError(f"Startup retries must be positive, got {self.startup_retries}")


@dataclass(frozen=True, slots=True)
class RelayerConfig:
    """Main configuration class for the packet relayer."""

    source_chain: SourceChainConfig
    destination_chain: DestinationChainConfig
    hub: HubEndpointConfig
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_env(cls) -> "RelayerConfig":
        """
        Load configuration from environment variables.

        Returns:
            RelayerConfig: Validated configuration

        Raises:
            ValueError: If required environment variables are missing or invalid
        """
        source_chain = SourceChainConfig(
            rpc_url=os.environ.get("SOURCE_RPC_URL", ""),
            packet_sender_address=os.environ.get("PACKET_SENDER_ADDRESS", ""),
        )

        destination_chain = DestinationChainConfig(
            rpc_url=os.environ.get("DESTINATION_RPC_URL", ""),
            packet_receiver_address=os.environ.get("PACKET_RECEIVER_ADDRESS", ""),
            private_key=os.environ.get("RELAYER_PRIVATE_KEY", ""),
        )

        try:
            request_timeout = float(os.environ.get("HUB_REQUEST_TIMEOUT", "10"))
            numeric = {
                name: int(os.environ.get(env_var, default))
                for name, env_var, default in (
                    ("polling_interval", "POLLING_INTERVAL", "4"),
                    ("lookback_blocks", "LOOKBACK_BLOCKS", "100"),
                    ("rpc_timeout", "RPC_TIMEOUT", "30"),
                    ("retry_count", "RETRY_COUNT", "3"),
                    ("confirmation_timeout", "CONFIRMATION_TIMEOUT", "60"),
                    ("backfill_interval", "BACKFILL_INTERVAL", "30"),
                    ("max_concurrent_packets", "MAX_CONCURRENT_PACKETS", "10"),
                    ("startup_retries", "STARTUP_RETRIES", "30"),
                )
            }
        except ValueError as e:
            raise ValueError(f"Numeric setting is not a number: {e}") from None

        hub = HubEndpointConfig(
            url=os.environ.get("HUB_URL", ""),
            request_timeout=request_timeout,
        )
        monitoring = MonitoringConfig(**numeric)

        return cls(
            source_chain=source_chain,
            destination_chain=destination_chain,
            hub=hub,
            monitoring=monitoring,
        )

    def with_chain_ids(self, source_chain_id: int, destination_chain_id: int) -> "RelayerConfig":
        """
        Create a new config with both chain IDs set.

        The config is frozen, so chain IDs fetched from the RPC endpoints after
        connecting produce a new instance.
        """
        return replace(
            self,
            source_chain=replace(self.source_chain, chain_id=source_chain_id),
            destination_chain=replace(self.destination_chain, chain_id=destination_chain_id),
        )

    def log_config(self) -> None:
        """Log configuration settings (hiding sensitive data)."""
        logger.info("=" * 60)
        logger.info("Packet Relayer Configuration")
        logger.info("=" * 60)

        logger.info("Source Chain:")
        logger.info(f"  RPC URL: {self.source_chain.rpc_url}")
        logger.info(f"  PacketSender: {self.source_chain.packet_sender_address}")
        if self.source_chain.chain_id is not None:
            logger.info(f"  Chain ID: {self.source_chain.chain_id}")

        logger.info("Destination Chain:")
        logger.info(f"  RPC URL: {self.destination_chain.rpc_url}")
        logger.info(f"  PacketReceiver: {self.destination_chain.packet_receiver_address}")
        logger.info(f"  Private Key: {'[SET]' if self.destination_chain.private_key else '[NOT SET]'}")
        if self.destination_chain.chain_id is not None:
            logger.info(f"  Chain ID: {self.destination_chain.chain_id}")

        logger.info("Hub:")
        logger.info(f"  URL: {self.hub.url}")
        logger.info(f"  Request Timeout: {self.hub.request_timeout}s")

        logger.info("Monitoring Settings:")
        logger.info(f"  Polling Interval: {self.monitoring.polling_interval}s")
        logger.info(f"  Lookback Blocks: {self.monitoring.lookback_blocks}")
        logger.info(f"  Retry Count: {self.monitoring.retry_count}")
        logger.info(f"  Confirmation Timeout: {self.monitoring.confirmation_timeout}s")
        logger.info(f"  Backfill Interval: {self.monitoring.backfill_interval}s")
        logger.info(f"  Max Concurrent Packets: {self.monitoring.max_concurrent_packets}")
        logger.info("=" * 60)
