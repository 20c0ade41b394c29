"""
Packet Relayer package.

Watches PacketSent events on a source ledger, registers each packet with the
relay hub, attests the hub-assigned order and delivers the packet to the
destination ledger.
"""

from .attester import Attester
from .config import RelayerConfig
from .event_watcher import EventWatcher
from .hub_client import HubClient
from .models import Attestation, Packet, PacketState, RelayResult
from .pipeline import PacketPipeline
from .relayer import PacketRelayer

__all__ = [
    "Attester",
    "Attestation",
    "EventWatcher",
    "HubClient",
    "Packet",
    "PacketPipeline",
    "PacketRelayer",
    "PacketState",
    "RelayerConfig",
    "RelayResult",
]
__version__ = "0.1.0"
