"""Configuration management for the relay hub.

Settings are loaded from environment variables into a frozen, validated
dataclass, with defaults matching a single-node deployment.
"""

import logging
import os
from dataclasses import dataclass
from typing import ClassVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HubConfig:
    """Configuration for the hub process.

    Attributes:
        host: Interface the HTTP server binds to
        port: TCP port of the HTTP server
        db_path: SQLite file holding the packet table
        pending_limit: Default page size of GET /pending
    """

    host: str = "0.0.0.0"
    port: int = 7000
    db_path: str = "./hub.sqlite"
    pending_limit: int = 50

    MAX_PENDING_LIMIT: ClassVar[int] = 500

    def __post_init__(self) -> None:
        """Validate hub configuration."""
        if not self.host:
            raise ValueError("Hub host is required (HUB_HOST)")

        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid hub port: {self.port}")

        if not self.db_path:
            raise ValueError("Hub database path is required (HUB_DB)")

        if self.pending_limit <= 0:
            raise ValueError(f"Pending limit must be positive, got {self.pending_limit}")
        if self.pending_limit > self.MAX_PENDING_LIMIT:
            raise ValueError(
                f"Pending limit too high (max {self.MAX_PENDING_LIMIT}), got {self.pending_limit}"
            )

    @classmethod
    def from_env(cls) -> "HubConfig":
        """Load configuration from environment variables.

        Raises:
            ValueError: If a variable is present but invalid
        """
        try:
            port = int(os.environ.get("HUB_PORT", "7000"))
            pending_limit = int(os.environ.get("HUB_PENDING_LIMIT", "50"))
        except ValueError as e:
            raise ValueError(f"HUB_PORT and HUB_PENDING_LIMIT must be integers: {e}") from None

        return cls(
            host=os.environ.get("HUB_HOST", "0.0.0.0"),
            port=port,
            db_path=os.environ.get("HUB_DB", "./hub.sqlite"),
            pending_limit=pending_limit,
        )

    def log_config(self) -> None:
        """Log the configuration."""
        logger.info("=" * 60)
        logger.info("Relay Hub Configuration")
        logger.info("=" * 60)
        logger.info(f"  Listen: {self.host}:{self.port}")
        logger.info(f"  Database: {self.db_path}")
        logger.info(f"  Pending page size: {self.pending_limit}")
        logger.info("=" * 60)
