"""공급자 검색 백엔드.

- MockProviderSearch: 패키지에 포함된 Columbus, OH 카탈로그
- YelpProviderSearch: Yelp Fusion API (aiohttp)

검색 오류는 ServiceUnavailableError로 호출자에게 전달되며 재시도하지
않습니다.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import aiohttp
import yaml

from yuber.config import SearchConfig, get_config
from yuber.core.exceptions import ServiceUnavailableError
from yuber.store.models import Location

from .categorize import FALLBACK_CATEGORY
from .models import GeoPoint, ProviderOption

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).parent / "data" / "mock_providers.yaml"
MILES_PER_DEGREE_LATITUDE = 69.0
METERS_PER_MILE = 1609.344


@runtime_checkable
class ProviderSearch(Protocol):
    """카테고리/위치 기반 공급자 검색."""

    async def search(self, category: str, location: Location) -> List[ProviderOption]: ...


def load_catalog(path: Path | str = CATALOG_PATH) -> Dict[str, List[ProviderOption]]:
    """카탈로그 YAML 로드."""
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    catalog: Dict[str, List[ProviderOption]] = {}
    for category, entries in (raw.get("providers") or {}).items():
        catalog[category] = [ProviderOption(category=category, **entry) for entry in entries or []]
    return catalog


class MockProviderSearch:
    """목업 카탈로그 검색.

    카테고리가 없으면 단순 복수형(plumbers)을 시도한 뒤 handyman으로
    대체합니다. 위치 기준 반경 밖의 공급자는 제외합니다.
    """

    def __init__(
        self,
        catalog: Optional[Dict[str, List[ProviderOption]]] = None,
        radius_miles: float = 5.0,
    ):
        self.catalog = catalog if catalog is not None else load_catalog()
        self.radius_miles = radius_miles

    def _providers_for(self, category: str) -> List[ProviderOption]:
        normalized = (category or "").strip().lower()
        if normalized in self.catalog:
            return self.catalog[normalized]
        if normalized.endswith("s") and normalized[:-1] in self.catalog:
            return self.catalog[normalized[:-1]]
        logger.debug(f"카탈로그에 없는 카테고리, {FALLBACK_CATEGORY}로 대체: {category!r}")
        return self.catalog.get(FALLBACK_CATEGORY, [])

    def _within_radius(self, provider: ProviderOption, location: Location) -> bool:
        if provider.location is None:
            return True
        degree_radius = self.radius_miles / MILES_PER_DEGREE_LATITUDE
        return (
            abs(provider.location.lat - location.lat) <= degree_radius
            and abs(provider.location.lng - location.lng) <= degree_radius
        )

    async def search(self, category: str, location: Location) -> List[ProviderOption]:
        providers = [p for p in self._providers_for(category) if self._within_radius(p, location)]
        logger.info(f"목업 공급자 검색: category={category}, results={len(providers)}")
        return providers


class YelpProviderSearch:
    """Yelp Fusion 비즈니스 검색."""

    def __init__(self, config: Optional[SearchConfig] = None):
        self.config = config or get_config().search
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    @staticmethod
    def _to_option(business: Dict[str, Any], category: str) -> ProviderOption:
        coords = business.get("coordinates") or {}
        location = None
        if coords.get("latitude") is not None and coords.get("longitude") is not None:
            location = GeoPoint(lat=coords["latitude"], lng=coords["longitude"])

        return ProviderOption(
            id=business["id"],
            name=business.get("name", ""),
            category=category,
            rating=business.get("rating") or 0.0,
            review_count=business.get("review_count") or 0,
            # Yelp 거리는 미터 단위
            distance=round((business.get("distance") or 0.0) / METERS_PER_MILE, 2),
            available=not business.get("is_closed", False),
            phone=business.get("phone") or None,
            location=location,
        )

    async def search(self, category: str, location: Location) -> List[ProviderOption]:
        if not self.config.yelp_api_key:
            raise ServiceUnavailableError("YELP_API_KEY is not configured")

        params = {
            "term": category,
            "latitude": str(location.lat),
            "longitude": str(location.lng),
            "limit": str(self.config.limit),
            "sort_by": "rating",
        }
        headers = {
            "Authorization": f"Bearer {self.config.yelp_api_key}",
            "Accept": "application/json",
        }

        session = await self._get_session()
        try:
            async with session.get(self.config.yelp_url, params=params, headers=headers) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    logger.error(f"Yelp API 오류: {resp.status} - {error_text[:200]}")
                    raise ServiceUnavailableError(
                        f"Yelp search failed ({resp.status})",
                        details={"status": resp.status},
                    )
                data = await resp.json()
        except aiohttp.ClientError as e:
            logger.error(f"Yelp API 연결 오류: {e}")
            raise ServiceUnavailableError(f"Yelp search failed: {e}")

        businesses = data.get("businesses") or []
        options = [self._to_option(b, category) for b in businesses if b.get("id")]
        logger.info(f"Yelp 공급자 검색: category={category}, results={len(options)}")
        return options


def create_provider_search(config: Optional[SearchConfig] = None) -> ProviderSearch:
    """설정된 백엔드로 검색기 생성."""
    cfg = config or get_config().search
    if cfg.backend == "yelp":
        return YelpProviderSearch(cfg)
    if cfg.backend != "mock":
        raise ValueError(f"지원하지 않는 검색 백엔드: {cfg.backend}")
    return MockProviderSearch()
