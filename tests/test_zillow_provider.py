# tests/test_zillow_provider.py
import httpx
import pytest

from rentcrunch.adapters.cache import TTLCache
from rentcrunch.adapters.clients.zillow_rapidapi import ZillowRapidApiClient
from rentcrunch.adapters.providers.zillow import ZillowListingProvider
from rentcrunch.config import settings
from rentcrunch.domain.errors import ProviderError
from rentcrunch.domain.parsing import build_filters
from rentcrunch.domain.types import RentSource, SearchFilters

SEARCH_PAGE = {
    "totalResultCount": 4,
    "props": [
        {"zpid": 1001, "address": "10 Oak St, Detroit, MI", "price": 90000, "rentZestimate": 1100, "bedrooms": 3,
         "bathrooms": 1, "livingArea": 1000, "daysOnZillow": 5, "detailUrl": "/homedetails/1001_zpid/"},
        {"zpid": 1002, "address": "12 Oak St, Detroit, MI", "price": 150000, "rentZestimate": None, "bedrooms": 4,
         "bathrooms": 2, "livingArea": 1600, "daysOnZillow": -1},
        {"zpid": 1001, "address": "10 Oak St, Detroit, MI", "price": 90000, "rentZestimate": 1100},
        {"zpid": 1003, "address": "14 Oak St, Detroit, MI", "price": None},
    ],
}


class _Api:
    """Routes RapidAPI paths to canned payloads and records requests."""

    def __init__(self, *, rent=1375.0, search=SEARCH_PAGE, single=None):
        self.rent = rent
        self.search = search
        self.single = single
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/propertyExtendedSearch":
            if self.single is not None:
                return httpx.Response(200, json=self.single)
            return httpx.Response(200, json=self.search)
        if request.url.path == "/rentEstimate":
            return httpx.Response(200, json={"rent": self.rent})
        return httpx.Response(404, json={"message": "not found"})

    def paths(self):
        return [r.url.path for r in self.requests]


def _provider(api, **kw):
    client = ZillowRapidApiClient(
        api_key="test-key",
        base_url="https://zillow.test",
        host="zillow.test",
        transport=httpx.MockTransport(api),
    )
    return ZillowListingProvider(client, search_cache=TTLCache(60), rent_cache=TTLCache(60), **kw)


@pytest.fixture(autouse=True)
def _fast_enrichment(monkeypatch):
    monkeypatch.setattr(settings, "ENRICH_BATCH_INTERVAL_S", 0.0)


@pytest.mark.asyncio
async def test_count_is_cached_and_sends_rapidapi_headers():
    api = _Api()
    provider = _provider(api, enrich_rents=False)

    assert await provider.count_matches("Detroit, MI", SearchFilters()) == 4
    assert await provider.count_matches("Detroit, MI", SearchFilters()) == 4

    assert len(api.requests) == 1
    req = api.requests[0]
    assert req.headers["X-RapidAPI-Key"] == "test-key"
    assert req.headers["X-RapidAPI-Host"] == "zillow.test"
    assert req.url.params["page"] == "1"
    assert req.url.params["home_type"] == "Houses"


@pytest.mark.asyncio
async def test_fetch_page_maps_dedups_and_falls_back_on_rent():
    api = _Api()
    provider = _provider(api, enrich_rents=False)

    props = await provider.fetch_page("Detroit, MI", 1, SearchFilters())

    assert api.requests[0].url.params["page"] == "2"
    assert [p.property_id for p in props] == ["1001", "1002"]
    first, second = props
    assert first.rent_source == RentSource.zillow
    assert first.url == "https://www.zillow.com/homedetails/1001_zpid/"
    assert second.rent_estimate == pytest.approx(150_000 * 0.007)
    assert second.rent_source == RentSource.calculated
    assert second.days_on_market is None
    assert second.url.endswith("/homes/1002_zpid/")


@pytest.mark.asyncio
async def test_fetch_page_applies_client_side_filters():
    provider = _provider(_Api(), enrich_rents=False)
    props = await provider.fetch_page("Detroit, MI", 0, build_filters(max_price="100,000"))
    assert [p.property_id for p in props] == ["1001"]


@pytest.mark.asyncio
async def test_calculated_rents_are_enriched_and_pushed_with_tag():
    api = _Api(rent=1_375.0)
    provider = _provider(api)
    updates = []
    provider.subscribe_to_property_updates(updates.append)

    await provider.fetch_page("Detroit, MI", 0, SearchFilters(), tag=7)
    await provider.enrichment.join()

    assert len(updates) == 1
    assert updates[0].tag == 7
    assert updates[0].property.property_id == "1002"
    assert updates[0].property.rent_estimate == 1_375.0
    assert updates[0].property.rent_source == RentSource.zillow
    assert api.requests[-1].url.params["address"] == "12 Oak St, Detroit, MI"

    # second pass is served from the rent cache
    await provider.fetch_page("Detroit, MI", 0, SearchFilters(), tag=8)
    await provider.enrichment.join()
    assert api.paths().count("/rentEstimate") == 1
    assert updates[-1].tag == 8
    assert provider.enrichment.stats.cache_hits == 1
    await provider.aclose()


@pytest.mark.asyncio
async def test_enrichment_gives_up_and_pushes_calculated_rent(monkeypatch):
    monkeypatch.setattr(settings, "ENRICH_MAX_RETRIES", 1)
    api = _Api(rent=0)
    provider = _provider(api)
    updates = []
    provider.subscribe_to_property_updates(updates.append)

    await provider.fetch_page("Detroit, MI", 0, SearchFilters(), tag=3)
    await provider.enrichment.join()

    assert api.paths().count("/rentEstimate") == 2
    assert len(updates) == 1
    assert updates[0].property.rent_source == RentSource.calculated
    assert provider.enrichment.stats.gave_up == 1
    await provider.aclose()


@pytest.mark.asyncio
async def test_fetch_by_address_single_property_payload():
    single = {
        "zpid": 88191007,
        "address": {"streetAddress": "4103 Buckingham Ave", "city": "Detroit", "state": "MI", "zipcode": "48224"},
        "price": 139900,
        "rentZestimate": 1380,
        "bedrooms": 3,
        "bathrooms": 2,
    }
    provider = _provider(_Api(single=single), enrich_rents=False)

    prop = await provider.fetch_by_address("4103 Buckingham Ave, Detroit, MI")
    assert prop is not None
    assert prop.property_id == "88191007"
    assert prop.address == "4103 Buckingham Ave, Detroit, MI, 48224"


@pytest.mark.asyncio
async def test_fetch_by_address_matches_candidate_list():
    provider = _provider(_Api(), enrich_rents=False)
    prop = await provider.fetch_by_address("12 Oak St, Detroit, MI")
    assert prop is not None and prop.property_id == "1002"
    assert await provider.fetch_by_address("99 Elm St, Detroit, MI") is None


@pytest.mark.asyncio
async def test_missing_api_key_is_a_provider_error():
    client = ZillowRapidApiClient(api_key="", transport=httpx.MockTransport(_Api()))
    provider = ZillowListingProvider(client, enrich_rents=False)
    assert client.enabled is False
    with pytest.raises(ProviderError):
        await provider.count_matches("Detroit, MI", SearchFilters())
