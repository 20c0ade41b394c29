"""
Client for the relay hub's HTTP API.

Maps hub responses onto the relayer's error taxonomy: 409 is a duplicate
(not an error), 400 is a rejection that retrying cannot fix, and transport
failures, timeouts and 5xx responses are transient.
"""

import logging
from typing import Any

import httpx

from .errors import HubRejectedError, TransientDependencyError
from .models import Packet, PendingPacket, PendingPage, SubmitOutcome

logger = logging.getLogger(__name__)


class HubClient:
    """Async client for the hub's submit / pending / markDelivered routes."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            base_url: Hub root URL, e.g. http://hub:7000
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests mount the hub app here)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientDependencyError(f"Hub {method} {path} timed out") from e
        except httpx.TransportError as e:
            raise TransientDependencyError(f"Hub unreachable at {self.base_url}: {e}") from e

        if response.status_code >= 500:
            raise TransientDependencyError(
                f"Hub {method} {path} failed with HTTP {response.status_code}"
            )
        return response

    @staticmethod
    def _rejection(response: httpx.Response) -> HubRejectedError:
        try:
            detail = response.json().get("error")
        except ValueError:
            detail = response.text
        return HubRejectedError(f"Hub rejected request (HTTP {response.status_code}): {detail}")

    async def health(self) -> bool:
        """Return True if the hub answers its liveness check."""
        response = await self._request("GET", "/health")
        return response.status_code == 200 and bool(response.json().get("ok"))

    async def submit(self, packet: Packet) -> SubmitOutcome:
        """
        Register a packet with the hub.

        Returns:
            SubmitOutcome with the assigned hubSeq, or duplicate=True if the
            packet was already registered

        Raises:
            HubRejectedError: The hub found the submission malformed
            TransientDependencyError: The hub could not be reached
        """
        response = await self._request("POST", "/submit", json=packet.to_submission())

        if response.status_code == 409:
            logger.info(f"Hub reports packet {packet.label} already submitted")
            return SubmitOutcome(duplicate=True)
        if response.status_code != 200:
            raise self._rejection(response)

        hub_seq = int(response.json()["hubSeq"])
        logger.info(f"Hub assigned hubSeq={hub_seq} to packet {packet.label}")
        return SubmitOutcome(hub_seq=hub_seq)

    async def list_pending(
        self, limit: int | None = None, after_hub_seq: int = 0
    ) -> list[PendingPacket]:
        """Fetch undelivered records in ascending hubSeq order."""
        page = await self.list_pending_page(limit, after_hub_seq)
        return page.records

    async def list_pending_page(
        self, limit: int | None = None, after_hub_seq: int = 0
    ) -> PendingPage:
        """
        Fetch one page of undelivered records with hubSeq above ``after_hub_seq``.

        Records whose fields cannot be represented on the relayer side (for
        example non-numeric chain IDs) are skipped with a warning, but still
        count towards the page size and move the cursor.
        """
        params: dict[str, int] = {}
        if limit:
            params["limit"] = limit
        if after_hub_seq:
            params["afterHubSeq"] = after_hub_seq
        response = await self._request("GET", "/pending", params=params or None)
        if response.status_code != 200:
            raise self._rejection(response)

        entries = response.json().get("packets", [])
        pending: list[PendingPacket] = []
        last_hub_seq: int | None = None
        for entry in entries:
            try:
                last_hub_seq = int(entry["hubSeq"])
            except (KeyError, TypeError, ValueError):
                pass
            try:
                pending.append(PendingPacket.from_hub(entry))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping unreadable pending record {entry.get('hubSeq')}: {e}")
        return PendingPage(records=pending, size=len(entries), last_hub_seq=last_hub_seq)

    async def mark_delivered(self, hub_seq: int) -> int:
        """
        Report confirmed destination inclusion.

        Returns:
            Number of records the hub changed (0 or 1)
        """
        response = await self._request("POST", "/markDelivered", json={"hubSeq": hub_seq})
        if response.status_code != 200:
            raise self._rejection(response)
        return int(response.json().get("changes", 0))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HubClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
