"""배차 도메인 저장소 모듈.

사용자, 서비스 요청, 배차, 결제 레코드를 SQLite에 저장합니다.
"""

from .models import (
    DISPATCHABLE_STATUSES,
    PAYMENT_TRANSITIONS,
    Dispatch,
    DispatchStatus,
    Location,
    Payment,
    PaymentStatus,
    RequestStatus,
    ServiceRequest,
)
from .repository import DispatchStore

__all__ = [
    "DISPATCHABLE_STATUSES",
    "PAYMENT_TRANSITIONS",
    "Dispatch",
    "DispatchStatus",
    "DispatchStore",
    "Location",
    "Payment",
    "PaymentStatus",
    "RequestStatus",
    "ServiceRequest",
]
