# tests/conftest.py
import asyncio
from typing import Callable

import pytest

from rentcrunch.adapters.clients import http_resilience
from rentcrunch.adapters.providers.base import PropertyUpdate, UpdateHub
from rentcrunch.config import settings
from rentcrunch.domain.types import CashflowSettings, Property, RentSource, SearchFilters


@pytest.fixture(autouse=True)
def _fast_http(monkeypatch):
    """No rate limiting or backoff sleeps; fresh circuit breaker per test."""
    monkeypatch.setattr(settings, "HTTP_RATE_LIMIT_RPS", 0.0)
    monkeypatch.setattr(settings, "HTTP_BACKOFF_BASE_S", 0.0)
    http_resilience.reset_circuit()
    yield
    http_resilience.reset_circuit()


def _make_property(
    property_id: str,
    *,
    price: float = 100_000.0,
    rent: float = 1_000.0,
    address: str | None = None,
    **kw,
) -> Property:
    return Property(
        property_id=property_id,
        address=address if address is not None else f"{property_id} Main St, Detroit, MI",
        price=price,
        rent_estimate=rent,
        **kw,
    )


@pytest.fixture
def make_property() -> Callable[..., Property]:
    return _make_property


@pytest.fixture
def default_settings() -> CashflowSettings:
    return CashflowSettings()


class FakeProvider:
    """
    Scriptable ListingProvider.

    `listings` maps location -> properties; count_matches reports len() (or
    `total` when given) and fetch_page slices by page_size. With
    hold_pages=True every page waits on its gate until release() is called.
    """

    def __init__(
        self,
        listings: dict[str, list[Property]] | None = None,
        *,
        page_size: int = 42,
        total: int | None = None,
        count_error: Exception | None = None,
        count_delay_s: float = 0.0,
        page_errors: dict[int, Exception] | None = None,
        hold_pages: bool = False,
        by_address: dict[str, Property] | None = None,
    ) -> None:
        self.listings = listings or {}
        self.page_size = page_size
        self.total = total
        self.count_error = count_error
        self.count_delay_s = count_delay_s
        self.page_errors = page_errors or {}
        self.hold_pages = hold_pages
        self.by_address = by_address or {}

        self.count_calls: list[str] = []
        self.page_calls: list[tuple[str, int, int | None]] = []
        self._gates: dict[int, asyncio.Event] = {}
        self._hub = UpdateHub()

    def gate(self, page_index: int) -> asyncio.Event:
        if page_index not in self._gates:
            self._gates[page_index] = asyncio.Event()
        return self._gates[page_index]

    def release(self, *page_indexes: int) -> None:
        for i in page_indexes:
            self.gate(i).set()

    def push(self, prop: Property, tag: int | None = None) -> None:
        self._hub.publish(PropertyUpdate(property=prop, tag=tag))

    async def count_matches(self, location: str, filters: SearchFilters) -> int:
        self.count_calls.append(location)
        if self.count_delay_s:
            await asyncio.sleep(self.count_delay_s)
        if self.count_error is not None:
            raise self.count_error
        if self.total is not None:
            return self.total
        return len(self.listings.get(location, []))

    async def fetch_page(self, location, page_index, filters, *, tag=None) -> list[Property]:
        self.page_calls.append((location, page_index, tag))
        if self.hold_pages:
            await self.gate(page_index).wait()
        err = self.page_errors.get(page_index)
        if err is not None:
            raise err
        start = page_index * self.page_size
        return [p for p in self.listings.get(location, [])[start : start + self.page_size] if filters.matches(p)]

    async def fetch_by_address(self, address: str) -> Property | None:
        return self.by_address.get(address)

    def subscribe_to_property_updates(self, callback):
        return self._hub.subscribe(callback)


@pytest.fixture
def fake_provider() -> Callable[..., FakeProvider]:
    return FakeProvider


def listing_batch(prefix: str, n: int, *, base_price: float = 80_000.0) -> list[Property]:
    return [
        _make_property(
            f"{prefix}{i}",
            price=base_price + i * 1_000,
            rent=900.0 + (i % 7) * 50,
            bedrooms=3,
            bathrooms=1.0,
            rent_source=RentSource.zillow,
        )
        for i in range(n)
    ]


@pytest.fixture
def make_listings() -> Callable[..., list[Property]]:
    return listing_batch


async def settle(rounds: int = 20) -> None:
    """Let queued callbacks and the session writer run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def run_pending() -> Callable[..., object]:
    return settle
