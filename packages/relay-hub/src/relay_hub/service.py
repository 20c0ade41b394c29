"""
HTTP surface of the relay hub.

Thin FastAPI handlers over the PacketStore. Input is validated by pydantic
models before the store is touched; validation failures map to 400 and
duplicate submissions to 409 so callers can tell "already registered" apart
from a server fault.
"""

import logging
from typing import Any, Callable

from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import HubConfig
from .errors import DuplicateError, ValidationError
from .models import Packet
from .packet_store import MAX_INTEGER, PacketStore

logger = logging.getLogger(__name__)

# Called with each packet before it is stored; raises ValidationError to reject.
ProofVerifier = Callable[[Packet], None]


class SubmitRequest(BaseModel):
    """Body of POST /submit."""
    model_config = ConfigDict(populate_by_name=True)

    src_chain_id: str = Field(alias="srcChainId", min_length=1)
    dst_chain_id: str = Field(alias="dstChainId", min_length=1)
    src_seq: int = Field(alias="srcSeq", ge=0, le=MAX_INTEGER, strict=True)
    sender: str = Field(min_length=1)
    receiver: str = Field(min_length=1)
    payload_hex: str = Field(alias="payloadHex", pattern=r"^0x([0-9a-fA-F]{2})*$")
    commitment: str = Field(min_length=1)
    proof: Any = None

    def to_packet(self) -> Packet:
        return Packet(
            src_chain_id=self.src_chain_id,
            dst_chain_id=self.dst_chain_id,
            src_seq=self.src_seq,
            sender=self.sender,
            receiver=self.receiver,
            payload=bytes.fromhex(self.payload_hex[2:]),
            commitment=self.commitment,
            proof=self.proof,
        )


class MarkDeliveredRequest(BaseModel):
    """Body of POST /markDelivered."""
    model_config = ConfigDict(populate_by_name=True)

    hub_seq: int = Field(alias="hubSeq", gt=0, le=MAX_INTEGER, strict=True)


def create_app(
    store: PacketStore,
    pending_limit: int = 50,
    proof_verifier: ProofVerifier | None = None,
) -> FastAPI:
    """
    Build the hub application around an open store.

    Args:
        store: Packet store backing every handler
        pending_limit: Default page size of GET /pending
        proof_verifier: Optional hook validating a packet's proof before it is
            registered. Without one, proofs are accepted as supplied.
    """
    app = FastAPI(title="Relay Hub", version="0.1.0")
    app.state.store = store

    if proof_verifier is None:
        logger.warning("No proof verifier installed; proofs and commitments are accepted as supplied")

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": jsonable_encoder(exc.errors())})

    @app.exception_handler(ValidationError)
    async def validation_handler(_request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(DuplicateError)
    async def duplicate_handler(_request: Request, exc: DuplicateError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"error": "Already submitted", "detail": str(exc)},
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True}

    @app.post("/submit")
    def submit(body: SubmitRequest) -> dict[str, Any]:
        packet = body.to_packet()
        if proof_verifier is not None:
            proof_verifier(packet)
        hub_seq = store.submit(packet)
        return {"ok": True, "hubSeq": hub_seq}

    @app.get("/pending")
    def pending(
        limit: int | None = Query(default=None, ge=1, le=HubConfig.MAX_PENDING_LIMIT),
        after_hub_seq: int = Query(default=0, alias="afterHubSeq", ge=0, le=MAX_INTEGER),
    ) -> dict[str, Any]:
        records = store.list_pending(limit or pending_limit, after_hub_seq)
        return {"packets": [record.to_dict() for record in records]}

    @app.post("/markDelivered")
    def mark_delivered(body: MarkDeliveredRequest) -> dict[str, Any]:
        changes = store.mark_delivered(body.hub_seq)
        return {"ok": True, "changes": changes}

    return app
