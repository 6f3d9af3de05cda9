# rentcrunch/service_layer/use_cases/search.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ...adapters.providers.base import ListingProvider
from ...adapters.providers.stub_json import StubJsonProvider
from ...adapters.providers.zillow import ZillowListingProvider
from ...config import settings
from ...domain.overrides import OverrideStore
from ...domain.types import CashflowSettings, SearchFilters, SessionSnapshot, SortConfig, SortDirection, SortKey
from ..analysis import AnalyzedProperty, analyze_all
from ..search_session import SearchSession

log = logging.getLogger(__name__)


@dataclass
class SearchReport:
    snapshot: SessionSnapshot
    rows: list[AnalyzedProperty]

    @property
    def degraded(self) -> bool:
        return self.snapshot.degraded


def build_listing_provider() -> ListingProvider:
    """
    Provider builder that will NOT brick local dev.

    - zillow without RAPIDAPI_KEY -> stub_json in dev/local/test, error elsewhere
    - unknown sources -> stub_json in dev/local/test, error elsewhere
    """
    src = (settings.LISTING_PROVIDER or "").strip().lower()
    dev = settings.ENV.lower() in ("dev", "local", "test")

    if src == "stub_json":
        return StubJsonProvider.from_settings()
    if src == "zillow":
        if settings.RAPIDAPI_KEY:
            return ZillowListingProvider.from_settings()
        if dev:
            log.warning("RAPIDAPI_KEY not set; using stub_json listings")
            return StubJsonProvider.from_settings()
        raise ValueError("LISTING_PROVIDER=zillow requires RAPIDAPI_KEY")

    if dev:
        log.warning("unknown LISTING_PROVIDER=%r; using stub_json listings", src)
        return StubJsonProvider.from_settings()
    raise ValueError(f"Unknown LISTING_PROVIDER={src!r}. Use zillow or stub_json.")


async def run_search(
    location: Any,
    *,
    filters: SearchFilters | None = None,
    provider: ListingProvider | None = None,
    sort: SortConfig | None = None,
    cashflow_settings: CashflowSettings | None = None,
    overrides: OverrideStore | None = None,
    timeout_s: float | None = None,
) -> SearchReport:
    """One complete search, analyzed. Builds (and closes) a provider when none is given."""
    owned = provider is None
    provider = provider or build_listing_provider()
    session = SearchSession(
        provider,
        settings=cashflow_settings,
        overrides=overrides,
        sort=sort or SortConfig(SortKey.score, SortDirection.desc),
    )
    try:
        session.start_search(location, filters)
        snap = await session.wait_until_complete(timeout=timeout_s)
        return SearchReport(snapshot=snap, rows=analyze_all(snap.properties, session.settings, session.overrides))
    finally:
        await session.aclose()
        closer = getattr(provider, "aclose", None)
        if owned and closer is not None:
            await closer()
