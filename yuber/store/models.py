"""저장소 데이터 모델.

서비스 요청, 배차, 결제 레코드를 정의합니다.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


class RequestStatus(str, Enum):
    PENDING = "pending"
    CATEGORIZED = "categorized"
    SEARCHING = "searching"
    MATCHED = "matched"
    DISPATCHED = "dispatched"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# 배차 생성이 가능한 요청 상태
DISPATCHABLE_STATUSES = frozenset({
    RequestStatus.PENDING,
    RequestStatus.CATEGORIZED,
    RequestStatus.SEARCHING,
    RequestStatus.MATCHED,
})


class DispatchStatus(str, Enum):
    DISPATCHED = "dispatched"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# 결제 상태 전이 (역행/건너뛰기 불가). failed는 생성 시점에만 기록됨
PAYMENT_TRANSITIONS: Dict[PaymentStatus, frozenset] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED}),
    PaymentStatus.COMPLETED: frozenset(),
    PaymentStatus.FAILED: frozenset(),
}

# 새 결제 레코드가 가질 수 있는 초기 상태
PAYMENT_INITIAL_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.FAILED})


@dataclass
class Location:
    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass
class ServiceRequest:
    """사용자 서비스 요청."""

    id: str
    user_id: str
    issue: str
    location: Location
    category: Optional[str] = None
    urgency: str = "medium"  # low, medium, high
    status: RequestStatus = RequestStatus.PENDING
    dispatch_id: Optional[str] = None
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class Dispatch:
    """공급자 배차 레코드."""

    id: str
    request_id: str
    provider_id: str
    provider_name: str
    eta_minutes: int
    cost_min: float
    cost_max: float
    status: DispatchStatus = DispatchStatus.DISPATCHED
    dispatched_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


@dataclass
class Payment:
    """결제 시도 레코드. 시도 한 번당 하나씩 생성."""

    id: str
    dispatch_id: str
    amount: float
    method: str
    status: PaymentStatus
    transaction_id: str
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data
