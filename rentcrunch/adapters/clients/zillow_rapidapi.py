# rentcrunch/adapters/clients/zillow_rapidapi.py
from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from ...config import settings
from ...domain.errors import ProviderError
from ...schemas import RentEstimateOut, ZillowSearchPage
from .http_resilience import RetryPolicy, resilient_request

log = logging.getLogger(__name__)


class ZillowRapidApiClient:
    """
    Low-level HTTP client for the Zillow RapidAPI endpoints.
    Returns validated-but-raw payloads, not domain Properties.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        host: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.RAPIDAPI_KEY
        self._base_url = (base_url or settings.ZILLOW_BASE_URL or "").rstrip("/")
        self._host = host or settings.RAPIDAPI_HOST
        self._transport = transport
        self._policy = policy

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ProviderError("RAPIDAPI_KEY is not set")
        return {
            "accept": "application/json",
            "X-RapidAPI-Key": self._api_key,
            "X-RapidAPI-Host": self._host,
        }

    def _build_url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _get_json(self, path: str, params: dict[str, Any], *, timeout_s: float | None = None) -> Any:
        headers = self._headers()
        url = self._build_url(path)
        log.debug("zillow GET %s params=%s", url, params)
        resp = await resilient_request(
            "GET",
            url,
            headers=headers,
            params=params,
            timeout_s=timeout_s,
            transport=self._transport,
            policy=self._policy,
        )
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"non-JSON response from {path}") from e

    async def search(self, location: str, *, page: int = 1, home_type: str = "Houses") -> Any:
        """
        propertyExtendedSearch. `page` is 1-based.

        Returns the raw JSON: a search page ({"props": [...], "totalResultCount": N})
        or, for an exact address, a single property object (has a top-level "zpid").
        """
        params = {"location": location, "home_type": home_type or "Houses", "page": int(page)}
        return await self._get_json("/propertyExtendedSearch", params)

    async def search_page(self, location: str, *, page: int = 1, home_type: str = "Houses") -> ZillowSearchPage:
        data = await self.search(location, page=page, home_type=home_type)
        if not isinstance(data, dict):
            return ZillowSearchPage()
        try:
            return ZillowSearchPage.model_validate(data)
        except ValidationError as e:
            raise ProviderError(f"malformed search payload for {location!r}: {e.error_count()} errors") from e

    async def rent_estimate(
        self,
        *,
        address: str,
        bedrooms: float | None = None,
        bathrooms: float | None = None,
        sqft: float | None = None,
        property_type: str = "SingleFamily",
    ) -> float:
        """
        rentEstimate. Returns a positive rent or raises ProviderError when the
        payload has no usable rent.
        """
        params: dict[str, Any] = {
            "propertyType": property_type,
            "address": address,
            "beds": bedrooms or 3,
            "baths": bathrooms or 2,
            "sqft": sqft or 1500,
            "d": 0.5,
        }
        data = await self._get_json("/rentEstimate", params, timeout_s=settings.HTTP_RENT_TIMEOUT_S)
        if not isinstance(data, dict):
            raise ProviderError(f"invalid rent estimate payload for {address!r}")
        try:
            out = RentEstimateOut.model_validate(data)
        except ValidationError as e:
            raise ProviderError(f"invalid rent estimate payload for {address!r}") from e
        if out.rent is None or out.rent <= 0:
            raise ProviderError(f"no rent estimate for {address!r}")
        return float(out.rent)
