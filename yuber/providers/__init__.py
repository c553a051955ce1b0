"""공급자 검색/선택 모듈."""

from .categorize import CategoryResult, categorize_issue
from .models import CostEstimate, GeoPoint, ProviderOption, ProviderSelection
from .search import (
    MockProviderSearch,
    ProviderSearch,
    YelpProviderSearch,
    create_provider_search,
)
from .selection import estimate_cost, estimate_eta_minutes, rank_providers, select_provider

__all__ = [
    "CategoryResult",
    "CostEstimate",
    "GeoPoint",
    "MockProviderSearch",
    "ProviderOption",
    "ProviderSearch",
    "ProviderSelection",
    "YelpProviderSearch",
    "categorize_issue",
    "create_provider_search",
    "estimate_cost",
    "estimate_eta_minutes",
    "rank_providers",
    "select_provider",
]
