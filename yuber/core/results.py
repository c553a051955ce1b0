"""도구 호출 결과 모델.

도구 표면은 ``{success, data?, error?}`` 형태를 반환합니다. 값이 없는 키는
직렬화 시 생략됩니다.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .exceptions import AppError


class ToolError(BaseModel):
    code: str = Field(..., description="오류 코드")
    message: str = Field(..., description="오류 메시지")


class ToolResult(BaseModel):
    """도구 실행 결과."""

    success: bool
    data: Optional[Any] = None
    error: Optional[ToolError] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ToolResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, data: Any = None) -> "ToolResult":
        return cls(success=False, error=ToolError(code=code, message=message), data=data)

    @classmethod
    def from_error(cls, error: AppError) -> "ToolResult":
        return cls.fail(error.error_code, error.message)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
