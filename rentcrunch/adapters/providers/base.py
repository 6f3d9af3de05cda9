# rentcrunch/adapters/providers/base.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from ...domain.types import Property, SearchFilters

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropertyUpdate:
    """
    An unsolicited single-property refinement (e.g. a late rent estimate).

    `tag` echoes the tag passed to the fetch_page call that produced the
    property, so consumers can tell which search it belongs to. None = unknown.
    """
    property: Property
    tag: int | None = None


UpdateCallback = Callable[[PropertyUpdate], None]


class ListingProvider(Protocol):
    async def count_matches(self, location: str, filters: SearchFilters) -> int:
        raise NotImplementedError

    async def fetch_page(
        self,
        location: str,
        page_index: int,
        filters: SearchFilters,
        *,
        tag: int | None = None,
    ) -> list[Property]:
        """One page of results; page_index is 0-based."""
        raise NotImplementedError

    async def fetch_by_address(self, address: str) -> Property | None:
        raise NotImplementedError

    def subscribe_to_property_updates(self, callback: UpdateCallback) -> Callable[[], None]:
        """Register a push-update listener; returns an unsubscribe callable."""
        raise NotImplementedError


class UpdateHub:
    """Subscriber list shared by provider implementations."""

    def __init__(self) -> None:
        self._callbacks: list[UpdateCallback] = []

    def subscribe(self, callback: UpdateCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    def publish(self, update: PropertyUpdate) -> None:
        for cb in list(self._callbacks):
            try:
                cb(update)
            except Exception:
                log.exception("property update callback failed property_id=%s", update.property.property_id)

    def __len__(self) -> int:
        return len(self._callbacks)
