"""대화 메모리 테스트."""

import pytest

from yuber.core.exceptions import ValidationError
from yuber.memory import ConversationMemory, Message, MessageRole, SqliteConversationMemory


async def _fill(memory, session_id, count, user_id="user_001"):
    for i in range(count):
        role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
        await memory.add_message(session_id, user_id, role, f"메시지{i}")


class TestMessageModel:
    """메시지 모델 테스트."""

    def test_to_llm_format(self):
        msg = Message(
            id="msg_1",
            session_id="s1",
            user_id="u1",
            role=MessageRole.USER,
            content="배관이 터졌어요",
            created_at="2026-01-01T00:00:00+00:00",
        )

        assert msg.to_llm_format() == {"role": "user", "content": "배관이 터졌어요"}
        assert msg.to_dict()["role"] == "user"


class TestSqliteConversationMemory:
    """SQLite 대화 메모리 테스트."""

    def test_implements_protocol(self, conversation_memory):
        assert isinstance(conversation_memory, ConversationMemory)

    @pytest.mark.asyncio
    async def test_add_and_get_chronological(self, conversation_memory):
        await _fill(conversation_memory, "s1", 4)

        messages = await conversation_memory.get_messages("s1")

        assert [m.content for m in messages] == ["메시지0", "메시지1", "메시지2", "메시지3"]
        assert messages[0].role is MessageRole.USER
        assert messages[1].role is MessageRole.ASSISTANT

    @pytest.mark.asyncio
    async def test_role_from_string(self, conversation_memory):
        message = await conversation_memory.add_message("s1", "u1", "system", "note")

        assert message.role is MessageRole.SYSTEM

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self, conversation_memory):
        with pytest.raises(ValidationError):
            await conversation_memory.add_message("s1", "u1", "robot", "beep")

        assert await conversation_memory.get_messages("s1") == []

    @pytest.mark.asyncio
    async def test_limit_returns_most_recent_in_order(self, conversation_memory):
        """limit은 최근 N개를 시간순으로 반환."""
        await _fill(conversation_memory, "s1", 10)

        messages = await conversation_memory.get_messages("s1", limit=3)

        assert [m.content for m in messages] == ["메시지7", "메시지8", "메시지9"]

    @pytest.mark.asyncio
    async def test_sessions_isolated(self, conversation_memory):
        await _fill(conversation_memory, "s1", 2)
        await _fill(conversation_memory, "s2", 3)

        assert len(await conversation_memory.get_messages("s1")) == 2
        assert len(await conversation_memory.get_messages("s2")) == 3

    @pytest.mark.asyncio
    async def test_get_agent_messages(self, conversation_memory):
        await _fill(conversation_memory, "s1", 3)

        history = await conversation_memory.get_agent_messages("s1", limit=2)

        assert history == [
            {"role": "assistant", "content": "메시지1"},
            {"role": "user", "content": "메시지2"},
        ]

    @pytest.mark.asyncio
    async def test_clear_session(self, conversation_memory):
        await _fill(conversation_memory, "s1", 3)
        await _fill(conversation_memory, "s2", 1)

        deleted = await conversation_memory.clear_session("s1")

        assert deleted == 3
        assert await conversation_memory.get_messages("s1") == []
        assert await conversation_memory.count_messages("s2") == 1

    @pytest.mark.asyncio
    async def test_prune_keeps_most_recent(self, conversation_memory):
        await _fill(conversation_memory, "s1", 8)

        deleted = await conversation_memory.prune("s1", keep_count=5)

        assert deleted == 3
        remaining = await conversation_memory.get_messages("s1")
        assert [m.content for m in remaining] == [f"메시지{i}" for i in range(3, 8)]

    @pytest.mark.asyncio
    async def test_prune_under_limit_noop(self, conversation_memory):
        await _fill(conversation_memory, "s1", 2)

        assert await conversation_memory.prune("s1", keep_count=5) == 0
        assert await conversation_memory.count_messages("s1") == 2

    @pytest.mark.asyncio
    async def test_prune_negative_rejected(self, conversation_memory):
        with pytest.raises(ValidationError):
            await conversation_memory.prune("s1", keep_count=-1)

    @pytest.mark.asyncio
    async def test_persistent_across_instances(self, db_path):
        """커밋 후 반환되므로 새 인스턴스에서도 조회 가능."""
        first = SqliteConversationMemory(db_path)
        await first.add_message("s1", "u1", MessageRole.USER, "hello")

        second = SqliteConversationMemory(db_path)
        messages = await second.get_messages("s1")

        assert [m.content for m in messages] == ["hello"]
