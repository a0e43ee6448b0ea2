"""HTTP adapter for the catalog service."""

import logging
from datetime import date
from uuid import UUID

import httpx

from app.config import settings
from app.gateways.base import CatalogError, CatalogGateway, RoomQuote

logger = logging.getLogger(__name__)

# Transport failures and malformed bodies (bad JSON, missing or invalid fields)
RESPONSE_ERRORS = (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError)


class HttpCatalogGateway(CatalogGateway):
    """Catalog gateway calling the catalog service's REST API."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None) -> None:
        self._base_url = (base_url or settings.catalog_base_url).rstrip("/")
        self._timeout = timeout or settings.catalog_timeout_seconds
        self._http_client: httpx.AsyncClient | None = None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def get_room_quote(self, room_id: str) -> RoomQuote | None:
        try:
            response = await self.http_client.get(f"/rooms/{room_id}")
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
            return RoomQuote(
                room_id=str(data["id"]),
                property_id=str(data["propertyId"]),
                tenant_owner_id=UUID(str(data["tenantId"])),
                base_price=int(data["basePrice"]),
                currency=data.get("currency") or settings.default_currency,
            )
        except RESPONSE_ERRORS as e:
            logger.warning(f"Catalog room lookup failed for room {room_id}: {e!r}")
            raise CatalogError(str(e)) from e

    async def is_room_available(self, room_id: str, check_in: date, check_out: date) -> bool:
        try:
            response = await self.http_client.get(
                f"/rooms/{room_id}/availability",
                params={"checkIn": check_in.isoformat(), "checkOut": check_out.isoformat()},
            )
            response.raise_for_status()
            return bool(response.json().get("available"))
        except RESPONSE_ERRORS as e:
            logger.warning(f"Catalog availability check failed for room {room_id}: {e!r}")
            raise CatalogError(str(e)) from e
