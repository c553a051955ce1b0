"""공급자 선택 엔진.

후보 공급자 목록에서 배차할 공급자를 고릅니다. 순위 기준(우선순위 순):

1. 배차 불가 공급자는 완전히 제외
2. 선호 평점(기본 4.0) 이상 그룹 우선, 그 안에서 평점 내림차순
3. 거리 오름차순
4. 리뷰 수 내림차순

후보가 없으면 오류가 아니라 ``no_providers`` 상태를 돌려줍니다.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional

from yuber.agents.state import DispatchState
from yuber.config import DispatchConfig, get_config
from yuber.core.tracer import traced
from yuber.store.models import Location

from .models import CostEstimate, ProviderOption, ProviderSelection

logger = logging.getLogger(__name__)


def _settings(settings: Optional[DispatchConfig]) -> DispatchConfig:
    return settings or get_config().dispatch


def rank_providers(
    candidates: Iterable[ProviderOption],
    settings: Optional[DispatchConfig] = None,
) -> List[ProviderOption]:
    """배차 가능한 공급자를 순위순으로 정렬."""
    cfg = _settings(settings)
    available = [p for p in candidates if p.available]
    return sorted(
        available,
        key=lambda p: (
            p.rating < cfg.min_preferred_rating,
            -p.rating,
            p.distance,
            -p.review_count,
        ),
    )


def estimate_eta_minutes(
    provider: ProviderOption,
    settings: Optional[DispatchConfig] = None,
) -> int:
    """도착 예정 시간(분). 공급자가 제시한 값이 있으면 그 값을 사용."""
    if provider.eta_minutes is not None:
        return provider.eta_minutes
    cfg = _settings(settings)
    return max(cfg.min_eta_minutes, math.ceil(provider.distance * cfg.minutes_per_mile))


def estimate_cost(
    provider: ProviderOption,
    settings: Optional[DispatchConfig] = None,
) -> CostEstimate:
    """예상 비용 범위 (1시간 ~ 2시간 작업 + 출장비)."""
    cfg = _settings(settings)
    hourly = provider.hourly_rate
    if hourly is None:
        hourly = cfg.category_hourly_rates.get(provider.category, cfg.default_hourly_rate)

    return CostEstimate(
        min=round(hourly * cfg.cost_low_multiplier + provider.call_out_fee, 2),
        max=round(hourly * cfg.cost_high_multiplier + provider.call_out_fee, 2),
        hourly_rate=hourly,
        call_out_fee=provider.call_out_fee,
    )


@traced("selection", name="select_provider")
def select_provider(
    candidates: Iterable[ProviderOption],
    category: Optional[str] = None,
    location: Optional[Location] = None,
    max_options: int = 1,
    settings: Optional[DispatchConfig] = None,
) -> ProviderSelection:
    """후보 목록에서 공급자 선택.

    Args:
        candidates: 검색된 후보 공급자
        category: 서비스 카테고리
        location: 사용자 위치 (후보의 distance는 이 위치 기준)
        max_options: 2 이상이면 상위 N개를 선택지로 제시
        settings: 배차 설정 (없으면 전역 설정)

    Returns:
        ProviderSelection (recommending / multiple_options / no_providers)
    """
    ranked = rank_providers(candidates, settings)

    if not ranked:
        logger.info(f"배차 가능한 공급자 없음 (category={category})")
        return ProviderSelection(state=DispatchState.NO_PROVIDERS, category=category)

    best = ranked[0]
    if max_options > 1 and len(ranked) >= 2:
        state = DispatchState.MULTIPLE_OPTIONS
        options = ranked[:max_options]
    else:
        state = DispatchState.RECOMMENDING
        options = [best]

    logger.info(
        f"공급자 선택: {best.id} (rating={best.rating}, distance={best.distance}, "
        f"state={state.value}, candidates={len(ranked)})"
    )

    return ProviderSelection(
        state=state,
        category=category,
        provider=best,
        options=options,
        eta_minutes=estimate_eta_minutes(best, settings),
        cost=estimate_cost(best, settings),
    )
