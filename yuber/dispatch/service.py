"""배차 서비스.

서비스 요청 생성, 공급자 검색/선택, 배차 확정을 담당합니다.
"""

from __future__ import annotations

import logging
from typing import Optional

from yuber.config import DispatchConfig, get_config
from yuber.core.exceptions import (
    InvalidRequestStateError,
    ProviderUnavailableError,
    RequestNotFoundError,
    ValidationError,
)
from yuber.core.tracer import traced
from yuber.providers.categorize import categorize_issue
from yuber.providers.models import ProviderOption, ProviderSelection
from yuber.providers.search import ProviderSearch
from yuber.providers.selection import estimate_cost, estimate_eta_minutes, select_provider
from yuber.store.models import (
    DISPATCHABLE_STATUSES,
    Dispatch,
    Location,
    RequestStatus,
    ServiceRequest,
)
from yuber.store.repository import DispatchStore

logger = logging.getLogger(__name__)

URGENCY_LEVELS = ("low", "medium", "high")


class DispatchService:
    """배차 서비스."""

    def __init__(
        self,
        store: DispatchStore,
        search: ProviderSearch,
        settings: Optional[DispatchConfig] = None,
    ):
        self.store = store
        self.search = search
        self.settings = settings or get_config().dispatch

    async def create_request(
        self,
        user_id: str,
        issue: str,
        location: Location,
        urgency: str = "medium",
    ) -> ServiceRequest:
        """서비스 요청 생성 (이슈 카테고리 자동 분류)."""
        if not issue or not issue.strip():
            raise ValidationError("issue cannot be empty")
        if urgency not in URGENCY_LEVELS:
            raise ValidationError(f"Unknown urgency: {urgency}", details={"urgency": urgency})

        category = categorize_issue(issue)
        logger.info(f"이슈 분류: {category.category} (confidence={category.confidence})")
        return await self.store.create_request(
            user_id=user_id,
            issue=issue.strip(),
            location=location,
            category=category.category,
            urgency=urgency,
        )

    async def _load_dispatchable(self, request_id: str) -> ServiceRequest:
        request = await self.store.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        if request.status not in DISPATCHABLE_STATUSES:
            raise InvalidRequestStateError(request_id, request.status.value)
        return request

    @traced("search", name="find_providers")
    async def find_providers(
        self,
        request_id: str,
        max_options: Optional[int] = None,
    ) -> ProviderSelection:
        """요청에 맞는 공급자 검색 및 선택.

        Args:
            request_id: 서비스 요청 ID
            max_options: 제시할 최대 선택지 수 (없으면 설정값)

        Returns:
            ProviderSelection

        Raises:
            RequestNotFoundError: 요청 없음
            InvalidRequestStateError: 배차 불가 상태
        """
        request = await self._load_dispatchable(request_id)
        category = request.category or categorize_issue(request.issue).category

        await self.store.update_request(request_id, status=RequestStatus.SEARCHING, category=category)

        candidates = await self.search.search(category, request.location)
        selection = select_provider(
            candidates,
            category=category,
            location=request.location,
            max_options=max_options if max_options is not None else self.settings.max_options,
            settings=self.settings,
        )

        if selection.has_provider:
            await self.store.update_request(request_id, status=RequestStatus.MATCHED)

        return selection

    @traced("dispatch", name="confirm_dispatch")
    async def confirm_dispatch(self, request_id: str, provider: ProviderOption) -> Dispatch:
        """공급자 배차 확정.

        배차 레코드를 생성하고 요청에 연결한 뒤 요청 상태를 dispatched로
        변경합니다.

        Raises:
            RequestNotFoundError: 요청 없음
            InvalidRequestStateError: 배차 불가 상태
            ProviderUnavailableError: 공급자 배차 불가
        """
        await self._load_dispatchable(request_id)
        if not provider.available:
            raise ProviderUnavailableError(provider.id)

        cost = estimate_cost(provider, self.settings)
        dispatch = await self.store.create_dispatch(
            request_id=request_id,
            provider_id=provider.id,
            provider_name=provider.name,
            eta_minutes=estimate_eta_minutes(provider, self.settings),
            cost_min=cost.min,
            cost_max=cost.max,
        )
        await self.store.update_request(
            request_id,
            status=RequestStatus.DISPATCHED,
            dispatch_id=dispatch.id,
        )

        logger.info(
            f"배차 확정: {dispatch.id} (request={request_id}, provider={provider.id}, "
            f"eta={dispatch.eta_minutes}분, cost={dispatch.cost_min}-{dispatch.cost_max})"
        )
        return dispatch
