"""
Error taxonomy for the relay hub.

Every hub operation is a single atomic attempt; these exceptions describe
why an attempt was refused. None of them is retried by the hub itself.
"""


class HubError(Exception):
    """Base class for hub-side errors."""


class ValidationError(HubError):
    """Malformed input, rejected before any store mutation."""


class DuplicateError(HubError):
    """The (srcChainId, dstChainId, srcSeq) key is already registered."""

    def __init__(self, src_chain_id: str, dst_chain_id: str, src_seq: int):
        self.src_chain_id = src_chain_id
        self.dst_chain_id = dst_chain_id
        self.src_seq = src_seq
        super().__init__(
            f"Packet {src_chain_id}:{src_seq} -> {dst_chain_id} already submitted"
        )
