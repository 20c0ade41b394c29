"""
Relay Hub package.

Sequencing and bookkeeping authority for cross-ledger packets: assigns each
registered packet a global hubSeq and tracks its delivery.
"""

from .config import HubConfig
from .errors import DuplicateError, HubError, ValidationError
from .models import HubRecord, Packet
from .packet_store import PacketStore
from .service import create_app

__all__ = [
    "HubConfig",
    "HubError",
    "DuplicateError",
    "ValidationError",
    "Packet",
    "HubRecord",
    "PacketStore",
    "create_app",
]
__version__ = "0.1.0"
