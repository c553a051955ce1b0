"""메모리 데이터 모델."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """대화 메시지. 생성 후 변경되지 않음."""

    id: str
    session_id: str
    user_id: str
    role: MessageRole
    content: str
    created_at: str

    def to_llm_format(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["role"] = self.role.value
        return data


@dataclass
class UserContext:
    """읽기 시점에 집계되는 사용자 컨텍스트.

    Attributes:
        user_id: 사용자 ID
        preferences: 사용자 선호 설정 (예약 키 제외)
        favorite_providers: 즐겨찾기 공급자 ID (중복 없음, 추가 순서 유지)
        recent_issues: 최근 요청 이슈 (최신순, 최대 10개)
        request_count: 전체 요청 수
    """

    user_id: str
    preferences: Dict[str, str] = field(default_factory=dict)
    favorite_providers: List[str] = field(default_factory=list)
    recent_issues: List[str] = field(default_factory=list)
    request_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_prompt_note(self) -> str:
        """LLM 시스템 메시지로 전달할 요약. 알려진 정보가 없으면 빈 문자열."""
        lines = []
        if self.request_count > 0:
            lines.append(f"This user has made {self.request_count} previous requests.")
        if self.recent_issues:
            lines.append(f"Recent issues: {', '.join(self.recent_issues[:3])}.")
        if self.favorite_providers:
            lines.append(f"Favorite providers: {', '.join(self.favorite_providers)}.")
        if self.preferences:
            prefs = ", ".join(f"{k}={v}" for k, v in sorted(self.preferences.items()))
            lines.append(f"Preferences: {prefs}.")
        if not lines:
            return ""
        return "User context: " + " ".join(lines)
