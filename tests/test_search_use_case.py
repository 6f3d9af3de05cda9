# tests/test_search_use_case.py
from pathlib import Path

import pytest

from rentcrunch.adapters.providers.stub_json import StubJsonProvider
from rentcrunch.adapters.providers.zillow import ZillowListingProvider
from rentcrunch.config import settings
from rentcrunch.domain.parsing import build_filters
from rentcrunch.domain.types import SortConfig, SortDirection, SortKey
from rentcrunch.service_layer.use_cases.search import build_listing_provider, run_search

FIXTURES = Path(__file__).resolve().parents[1] / "data" / "stub_listings"


def test_provider_builder_falls_back_to_stub_in_dev(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "dev")
    monkeypatch.setattr(settings, "LISTING_PROVIDER", "zillow")
    monkeypatch.setattr(settings, "RAPIDAPI_KEY", None)
    assert isinstance(build_listing_provider(), StubJsonProvider)

    monkeypatch.setattr(settings, "RAPIDAPI_KEY", "k")
    assert isinstance(build_listing_provider(), ZillowListingProvider)


def test_provider_builder_is_strict_outside_dev(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod")
    monkeypatch.setattr(settings, "LISTING_PROVIDER", "realtor")
    with pytest.raises(ValueError):
        build_listing_provider()


@pytest.mark.asyncio
async def test_run_search_ranks_by_score():
    provider = StubJsonProvider(fixtures_dir=FIXTURES, refine_delay_s=0.01)
    report = await run_search("Detroit, MI", provider=provider, timeout_s=5)

    assert len(report.rows) == 8
    assert report.degraded is False
    scores = [r.score for r in report.rows]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_run_search_with_filters_and_sort():
    provider = StubJsonProvider(fixtures_dir=FIXTURES, refine_delay_s=0.01)
    report = await run_search(
        "Detroit, MI",
        provider=provider,
        filters=build_filters(max_price="130,000"),
        sort=SortConfig(SortKey.price, SortDirection.asc),
        timeout_s=5,
    )
    prices = [r.property.price for r in report.rows]
    assert prices == sorted(prices)
    assert all(p <= 130_000 for p in prices)
