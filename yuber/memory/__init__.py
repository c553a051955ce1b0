"""대화/사용자 컨텍스트 메모리 모듈."""

from .conversation_memory import SqliteConversationMemory
from .interfaces import ConversationMemory, UserContextMemory
from .models import Message, MessageRole, UserContext
from .user_context_memory import FAVORITES_KEY, SqliteUserContextMemory

__all__ = [
    "FAVORITES_KEY",
    "ConversationMemory",
    "Message",
    "MessageRole",
    "SqliteConversationMemory",
    "SqliteUserContextMemory",
    "UserContext",
    "UserContextMemory",
]
