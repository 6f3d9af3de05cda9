# rentcrunch/adapters/providers/stub_json.py
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable

from ...config import settings
from ...domain.parsing import to_float
from ...domain.types import Property, RentSource, SearchFilters
from .base import ListingProvider, PropertyUpdate, UpdateCallback, UpdateHub
from .canonical import property_from_payload

log = logging.getLogger(__name__)


def _as_list_of_dicts(payload: Any) -> list[dict[str, Any]]:
    """
    Accept either:
      - list[dict]
      - {"props": list[dict]} (propertyExtendedSearch shape)
    """
    if isinstance(payload, list):
        return [x for x in payload if isinstance(x, dict)]
    if isinstance(payload, dict):
        v = payload.get("props")
        if isinstance(v, list):
            return [x for x in v if isinstance(x, dict)]
    return []


def location_slug(location: str) -> str:
    """'Detroit, MI' -> 'detroit-mi'"""
    return re.sub(r"[^a-z0-9]+", "-", location.strip().lower()).strip("-")


@dataclass
class StubJsonProvider(ListingProvider):
    """
    Offline listing provider for development/testing.

    Reads listing payloads from fixtures:
      data/stub_listings/<location-slug>.json

    Items use the Zillow search item shape. An optional `refinedRent` key is
    pushed to subscribers `refine_delay_s` after the page containing it was
    fetched, imitating a slower rent-estimate pass.
    """

    fixtures_dir: Path
    page_size: int = 42
    refine_delay_s: float = 0.5
    _hub: UpdateHub = field(default_factory=UpdateHub, repr=False)

    @classmethod
    def from_settings(cls) -> "StubJsonProvider":
        return cls(fixtures_dir=Path(settings.STUB_LISTINGS_DIR), page_size=settings.PAGE_SIZE)

    def _load(self, location: str) -> list[dict[str, Any]]:
        path = self.fixtures_dir / f"{location_slug(location)}.json"
        if not path.exists():
            # Dev-friendly: missing fixture means "no listings"
            return []
        return _as_list_of_dicts(json.loads(path.read_text(encoding="utf-8")))

    def _matching(self, location: str, filters: SearchFilters) -> list[tuple[Property, dict[str, Any]]]:
        out = []
        for it in self._load(location):
            prop = property_from_payload(it)
            if prop is not None and filters.matches(prop):
                out.append((prop, it))
        return out

    async def count_matches(self, location: str, filters: SearchFilters) -> int:
        # filters are applied before paging, so the count is exact
        return len(self._matching(location, filters))

    async def fetch_page(
        self,
        location: str,
        page_index: int,
        filters: SearchFilters,
        *,
        tag: int | None = None,
    ) -> list[Property]:
        start = int(page_index) * self.page_size
        out: list[Property] = []

        for prop, it in self._matching(location, filters)[start : start + self.page_size]:
            out.append(prop)

            refined = to_float(it.get("refinedRent"))
            if refined is not None and refined > 0:
                self._schedule_refinement(replace(prop, rent_estimate=refined, rent_source=RentSource.zillow), tag)

        return out

    async def fetch_by_address(self, address: str) -> Property | None:
        wanted = address.split(",")[0].strip().lower()
        for path in sorted(self.fixtures_dir.glob("*.json")):
            for it in _as_list_of_dicts(json.loads(path.read_text(encoding="utf-8"))):
                prop = property_from_payload(it)
                if prop is not None and prop.address.lower().startswith(wanted):
                    return prop
        return None

    def subscribe_to_property_updates(self, callback: UpdateCallback) -> Callable[[], None]:
        return self._hub.subscribe(callback)

    def _schedule_refinement(self, prop: Property, tag: int | None) -> None:
        loop = asyncio.get_running_loop()
        loop.call_later(self.refine_delay_s, self._hub.publish, PropertyUpdate(property=prop, tag=tag))
