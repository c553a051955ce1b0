"""이슈 분류 및 공급자 검색 테스트."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from yuber.config import SearchConfig
from yuber.core.exceptions import ServiceUnavailableError
from yuber.providers import (
    MockProviderSearch,
    ProviderSearch,
    YelpProviderSearch,
    categorize_issue,
    create_provider_search,
)
from yuber.providers.search import load_catalog
from yuber.store import Location


class TestCategorizeIssue:
    """키워드 분류 테스트."""

    @pytest.mark.parametrize(
        "issue, category, confidence",
        [
            ("I'm LOCKED OUT of my car", "locksmith", 0.95),
            ("Water everywhere in the kitchen", "plumber", 0.9),
            ("burst pipe", "plumber", 0.9),
            ("electrical sparks from the panel", "electrician", 0.9),
            ("broken window", "glass", 0.85),
            ("my fence is wobbly", "handyman", 0.5),
        ],
    )
    def test_keywords(self, issue, category, confidence):
        result = categorize_issue(issue)

        assert result.category == category
        assert result.confidence == confidence

    def test_locked_out_beats_other_keywords(self):
        assert categorize_issue("locked out and the window is broken").category == "locksmith"

    def test_empty_issue(self):
        assert categorize_issue("").category == "handyman"


class TestMockProviderSearch:
    """목업 카탈로그 검색 테스트."""

    def test_catalog_loaded(self):
        catalog = load_catalog()

        for category in ("plumber", "electrician", "locksmith"):
            assert len(catalog[category]) == 5
        top = catalog["plumber"][0]
        assert top.id == "plumber-43228-001"
        assert top.name == "Columbus Plumbing Pros"
        assert top.rating == 4.9
        assert top.review_count == 287
        assert top.location.lat == pytest.approx(39.9652)

    def test_implements_protocol(self):
        assert isinstance(MockProviderSearch(), ProviderSearch)

    @pytest.mark.asyncio
    async def test_search_category(self, columbus):
        providers = await MockProviderSearch().search("plumber", columbus)

        assert len(providers) == 5
        assert all(p.category == "plumber" for p in providers)

    @pytest.mark.asyncio
    async def test_plural_category(self, columbus):
        providers = await MockProviderSearch().search("Electricians", columbus)

        assert providers[0].category == "electrician"

    @pytest.mark.asyncio
    async def test_unknown_category_falls_back_to_handyman(self, columbus):
        providers = await MockProviderSearch().search("roofer", columbus)

        assert {p.category for p in providers} == {"handyman"}

    @pytest.mark.asyncio
    async def test_far_location_filtered(self):
        providers = await MockProviderSearch().search("plumber", Location(lat=40.7128, lng=-74.0060))

        assert providers == []

    def test_factory_default_mock(self):
        assert isinstance(create_provider_search(SearchConfig()), MockProviderSearch)

    def test_factory_yelp(self):
        assert isinstance(create_provider_search(SearchConfig(backend="yelp")), YelpProviderSearch)

    def test_factory_unknown(self):
        with pytest.raises(ValueError):
            create_provider_search(SearchConfig(backend="bing"))


class _FakeResponse:
    def __init__(self, status, payload=None, text=""):
        self.status = status
        self._payload = payload
        self._text = text

    async def json(self):
        return self._payload

    async def text(self):
        return self._text


class _FakeRequest:
    def __init__(self, response=None, error=None):
        self._response = response
        self._error = error

    async def __aenter__(self):
        if self._error:
            raise self._error
        return self._response

    async def __aexit__(self, *exc):
        return False


def _yelp_with(request):
    search = YelpProviderSearch(SearchConfig(backend="yelp", yelp_api_key="test-key"))
    session = MagicMock()
    session.get.return_value = request
    search._get_session = AsyncMock(return_value=session)
    return search, session


class TestYelpProviderSearch:
    """Yelp 검색 테스트 (HTTP 모킹)."""

    @pytest.mark.asyncio
    async def test_missing_api_key(self, columbus):
        search = YelpProviderSearch(SearchConfig(backend="yelp", yelp_api_key=""))

        with pytest.raises(ServiceUnavailableError):
            await search.search("plumber", columbus)

    @pytest.mark.asyncio
    async def test_transforms_businesses(self, columbus):
        payload = {
            "businesses": [
                {
                    "id": "yelp-1",
                    "name": "Yelp Plumbing",
                    "rating": 4.5,
                    "review_count": 42,
                    "distance": 1609.344,
                    "phone": "+16145550000",
                    "coordinates": {"latitude": 39.96, "longitude": -83.12},
                },
                {"id": "yelp-2", "name": "Closed Co", "rating": 4.9, "is_closed": True},
            ]
        }
        search, session = _yelp_with(_FakeRequest(_FakeResponse(200, payload)))

        providers = await search.search("plumber", columbus)

        assert [p.id for p in providers] == ["yelp-1", "yelp-2"]
        assert providers[0].distance == 1.0
        assert providers[0].location.lng == -83.12
        assert providers[1].available is False

        _, kwargs = session.get.call_args
        assert kwargs["params"]["term"] == "plumber"
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"

    @pytest.mark.asyncio
    async def test_http_error_propagates(self, columbus):
        search, _ = _yelp_with(_FakeRequest(_FakeResponse(500, text="boom")))

        with pytest.raises(ServiceUnavailableError) as exc_info:
            await search.search("plumber", columbus)

        assert exc_info.value.details == {"status": 500}

    @pytest.mark.asyncio
    async def test_connection_error_not_retried(self, columbus):
        search, session = _yelp_with(_FakeRequest(error=aiohttp.ClientConnectionError("down")))

        with pytest.raises(ServiceUnavailableError):
            await search.search("plumber", columbus)

        assert session.get.call_count == 1
