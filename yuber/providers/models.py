"""공급자 Pydantic 모델."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from yuber.agents.state import DispatchState


class GeoPoint(BaseModel):
    """위경도 좌표."""

    lat: float
    lng: float


class ProviderOption(BaseModel):
    """검색 결과로 받은 서비스 공급자. 코어에서는 읽기 전용."""

    id: str = Field(..., description="공급자 ID")
    name: str = Field(..., description="상호명")
    category: str = Field("handyman", description="서비스 카테고리")
    rating: float = Field(0.0, ge=0, le=5, description="평점 (0-5)")
    review_count: int = Field(0, ge=0, description="리뷰 수")
    distance: float = Field(0.0, ge=0, description="거리 (마일)")
    available: bool = Field(True, description="배차 가능 여부")
    eta_minutes: Optional[int] = Field(None, ge=0, description="공급자가 제시한 도착 예정 시간")
    hourly_rate: Optional[float] = Field(None, ge=0, description="시간당 요금")
    call_out_fee: float = Field(0.0, ge=0, description="출장비")
    specialties: List[str] = Field(default_factory=list, description="전문 분야")
    phone: Optional[str] = Field(None, description="전화번호")
    location: Optional[GeoPoint] = Field(None, description="공급자 위치")


class CostEstimate(BaseModel):
    """예상 비용 범위."""

    min: float
    max: float
    hourly_rate: float
    call_out_fee: float = 0.0


class ProviderSelection(BaseModel):
    """공급자 선택 결과."""

    state: DispatchState = Field(..., description="선택 결과 상태")
    category: Optional[str] = Field(None, description="서비스 카테고리")
    provider: Optional[ProviderOption] = Field(None, description="추천 공급자 (최상위)")
    options: List[ProviderOption] = Field(default_factory=list, description="순위순 후보 목록")
    eta_minutes: Optional[int] = Field(None, description="추천 공급자 도착 예정 시간")
    cost: Optional[CostEstimate] = Field(None, description="추천 공급자 예상 비용")

    @property
    def has_provider(self) -> bool:
        return self.provider is not None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
