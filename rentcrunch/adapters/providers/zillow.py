# rentcrunch/adapters/providers/zillow.py
from __future__ import annotations

import logging
from typing import Callable

from ...config import settings
from ...domain.types import Property, RentSource, SearchFilters
from ...schemas import ZillowSearchPage
from ..cache import TTLCache
from ..clients.zillow_rapidapi import ZillowRapidApiClient
from .base import ListingProvider, UpdateCallback, UpdateHub
from .canonical import property_from_payload
from .enrichment import RentEnrichmentQueue

log = logging.getLogger(__name__)


class ZillowListingProvider(ListingProvider):
    """
    Listing provider over the Zillow RapidAPI endpoints.

    - count/page requests share a search cache (raw pages, filters applied after)
    - price/bed/bath/ratio filters are applied client-side
    - listings without a provider rent estimate get the 0.7% fallback and are
      queued for background rent enrichment; refined properties are pushed to
      subscribers
    """

    def __init__(
        self,
        client: ZillowRapidApiClient | None = None,
        *,
        search_cache: TTLCache | None = None,
        rent_cache: TTLCache | None = None,
        enrich_rents: bool = True,
        enrichment: RentEnrichmentQueue | None = None,
    ) -> None:
        self._client = client or ZillowRapidApiClient()
        self._search_cache = search_cache if search_cache is not None else TTLCache(settings.SEARCH_CACHE_TTL_S)
        self._rent_cache = rent_cache if rent_cache is not None else TTLCache(settings.RENT_CACHE_TTL_S)
        self._hub = UpdateHub()
        self._enrichment: RentEnrichmentQueue | None = None
        if enrich_rents:
            self._enrichment = enrichment or RentEnrichmentQueue(
                self._fetch_rent,
                self._hub.publish,
                rent_cache=self._rent_cache,
            )

    @classmethod
    def from_settings(cls) -> "ZillowListingProvider":
        return cls(ZillowRapidApiClient())

    @property
    def enrichment(self) -> RentEnrichmentQueue | None:
        return self._enrichment

    # -------------------------
    # ListingProvider
    # -------------------------

    async def count_matches(self, location: str, filters: SearchFilters) -> int:
        cache_key = f"count_{location.lower()}_{filters.property_type}"
        cached = self._search_cache.get(cache_key)
        if cached is not None:
            log.debug("using cached count for %s", location)
            return int(cached)

        page = await self._search_page(location, 0, filters.property_type)
        total = max(0, int(page.total_result_count or 0))
        self._search_cache.set(cache_key, total)
        return total

    async def fetch_page(
        self,
        location: str,
        page_index: int,
        filters: SearchFilters,
        *,
        tag: int | None = None,
    ) -> list[Property]:
        page = await self._search_page(location, page_index, filters.property_type)

        out: list[Property] = []
        seen: set[str] = set()
        for item in page.props:
            prop = property_from_payload(item)
            if prop is None or prop.property_id in seen:
                continue
            if not filters.matches(prop):
                continue
            seen.add(prop.property_id)
            out.append(prop)

        if self._enrichment is not None:
            needs_rent = [p for p in out if p.rent_source == RentSource.calculated]
            if needs_rent:
                self._enrichment.enqueue_many(needs_rent, tag=tag)

        return out

    async def fetch_by_address(self, address: str) -> Property | None:
        data = await self._client.search(address, page=1)
        if isinstance(data, dict) and data.get("zpid") is not None:
            return property_from_payload(data)

        # Address search fell back to a list of candidates: take an exact-ish match only
        page = ZillowSearchPage.model_validate(data) if isinstance(data, dict) else ZillowSearchPage()
        wanted = address.split(",")[0].strip().lower()
        for item in page.props:
            prop = property_from_payload(item)
            if prop is not None and prop.address.lower().startswith(wanted):
                return prop
        return None

    def subscribe_to_property_updates(self, callback: UpdateCallback) -> Callable[[], None]:
        return self._hub.subscribe(callback)

    async def aclose(self) -> None:
        if self._enrichment is not None:
            await self._enrichment.aclose()

    # -------------------------
    # Internals
    # -------------------------

    async def _search_page(self, location: str, page_index: int, home_type: str) -> ZillowSearchPage:
        cache_key = f"search_{location.lower()}_{page_index}_{home_type}"
        cached = self._search_cache.get(cache_key)
        if cached is not None:
            log.debug("using cached search page %s for %s", page_index + 1, location)
            return cached

        # provider pages are 1-based
        page = await self._client.search_page(location, page=page_index + 1, home_type=home_type)
        self._search_cache.set(cache_key, page)
        return page

    async def _fetch_rent(self, prop: Property) -> float:
        return await self._client.rent_estimate(
            address=prop.address,
            bedrooms=prop.bedrooms,
            bathrooms=prop.bathrooms,
            sqft=prop.sqft,
        )
