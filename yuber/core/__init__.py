"""Core 모듈.

공통 예외 클래스, 도구 결과 모델, 로깅, 트레이싱을 제공합니다.
"""

from yuber.core.exceptions import (
    AppError,
    ValidationError,
    NotFoundError,
    ConflictError,
    ServiceUnavailableError,
    RequestNotFoundError,
    PaymentNotFoundError,
    ProviderNotFoundError,
    InvalidRequestStateError,
    InvalidTransitionError,
    ProviderUnavailableError,
)
from yuber.core.results import ToolError, ToolResult

__all__ = [
    "AppError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ServiceUnavailableError",
    "RequestNotFoundError",
    "PaymentNotFoundError",
    "ProviderNotFoundError",
    "InvalidRequestStateError",
    "InvalidTransitionError",
    "ProviderUnavailableError",
    "ToolError",
    "ToolResult",
]
