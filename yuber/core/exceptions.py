"""배차 플랫폼 예외 계층.

모든 예외는 ``AppError``를 상속하며 ``{code, message, details?}`` 형태로
직렬화됩니다. 입력 검증/조회 실패/상태 충돌/외부 서비스 장애의 네 갈래로
나뉘고, 배차 도메인 오류는 각 갈래의 하위 클래스로 고정된 코드를 가집니다.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AppError(Exception):
    """배차 플랫폼 기본 예외."""

    error_code: str = "INTERNAL_ERROR"
    message: str = "Internal error"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """도구 표면의 error 필드 형태로 변환."""
        payload: Dict[str, Any] = {"code": self.error_code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    """입력 검증 실패. 저장소는 변경되지 않음."""

    error_code = "INVALID_INPUT"
    message = "Invalid input"


class NotFoundError(AppError):
    error_code = "NOT_FOUND"
    message = "Requested resource was not found"


class ConflictError(AppError):
    """현재 상태에서 허용되지 않는 작업."""

    error_code = "CONFLICT"
    message = "Operation conflicts with current state"


class ServiceUnavailableError(AppError):
    """LLM/검색 등 외부 협력자 장애. 재시도하지 않고 호출자에게 전달."""

    error_code = "SERVICE_UNAVAILABLE"
    message = "External service is unavailable"


# ============================================
# 배차 도메인 오류
# ============================================


class RequestNotFoundError(NotFoundError):
    error_code = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        super().__init__(f"Request {request_id} not found", details={"request_id": request_id})


class PaymentNotFoundError(NotFoundError):
    error_code = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        super().__init__(f"Payment {payment_id} not found", details={"payment_id": payment_id})


class ProviderNotFoundError(NotFoundError):
    """검색 결과로 제시되지 않은 공급자."""

    error_code = "PROVIDER_NOT_FOUND"


class InvalidRequestStateError(ConflictError):
    """배차할 수 없는 요청 상태 (이미 배차됨 등)."""

    error_code = "INVALID_REQUEST_STATE"

    def __init__(self, request_id: str, status: str):
        super().__init__(
            f"Request is in {status} state, cannot dispatch",
            details={"request_id": request_id, "status": status},
        )


class InvalidTransitionError(ConflictError):
    """배차 흐름/결제 상태 머신의 허용되지 않은 전이."""

    error_code = "INVALID_TRANSITION"


class ProviderUnavailableError(ConflictError):
    error_code = "PROVIDER_UNAVAILABLE"

    def __init__(self, provider_id: str):
        super().__init__(f"Provider {provider_id} is not available", details={"provider_id": provider_id})
