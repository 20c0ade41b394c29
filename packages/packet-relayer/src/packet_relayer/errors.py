"""
Error taxonomy for the packet relayer.

The relayer owns all retry policy: TransientDependencyError is retried with
backoff, everything else ends the current attempt for one packet.
"""


class RelayerError(Exception):
    """Base class for relayer errors."""


class TransientDependencyError(RelayerError):
    """A ledger node or the hub is unreachable or not caught up yet."""


class HubRejectedError(RelayerError):
    """The hub refused a request as malformed; retrying will not help."""


class AttestationError(RelayerError):
    """The packet cannot be encoded into the attestation wire format."""


class PipelineFailure(RelayerError):
    """A step after submission failed for this attempt.

    The record stays undelivered at the hub and can be picked up again from
    listPending, so the hubSeq is carried along for reconciliation.
    """

    def __init__(self, message: str, hub_seq: int | None = None):
        self.hub_seq = hub_seq
        super().__init__(message)
