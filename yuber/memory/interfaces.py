"""메모리 기능 인터페이스.

오케스트레이터는 구체 구현이 아니라 이 프로토콜에 의존합니다.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, runtime_checkable

from .models import Message, MessageRole, UserContext


@runtime_checkable
class ConversationMemory(Protocol):
    """세션 단위 대화 기록."""

    async def add_message(
        self, session_id: str, user_id: str, role: MessageRole | str, content: str
    ) -> Message: ...

    async def get_messages(self, session_id: str, limit: Optional[int] = None) -> List[Message]: ...

    async def get_agent_messages(
        self, session_id: str, limit: Optional[int] = None
    ) -> List[Dict[str, str]]: ...

    async def count_messages(self, session_id: str) -> int: ...

    async def clear_session(self, session_id: str) -> int: ...

    async def prune(self, session_id: str, keep_count: int) -> int: ...


@runtime_checkable
class UserContextMemory(Protocol):
    """사용자 선호/즐겨찾기/요청 이력."""

    async def set_preference(self, user_id: str, key: str, value: str) -> None: ...

    async def get_preference(self, user_id: str, key: str) -> Optional[str]: ...

    async def get_all_preferences(self, user_id: str) -> Dict[str, str]: ...

    async def add_favorite_provider(self, user_id: str, provider_id: str) -> None: ...

    async def remove_favorite_provider(self, user_id: str, provider_id: str) -> None: ...

    async def get_favorite_providers(self, user_id: str) -> List[str]: ...

    async def get_context(self, user_id: str) -> UserContext: ...
