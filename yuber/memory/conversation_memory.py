"""대화 메모리 (SQLite).

세션별 메시지를 시간순으로 저장하고, LLM 컨텍스트 창에 맞게 최근
메시지를 조회하거나 오래된 메시지를 정리합니다.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from yuber.core.exceptions import ValidationError

from .models import Message, MessageRole

logger = logging.getLogger(__name__)


def _get_db_path() -> Path:
    from yuber.config import get_config

    return Path(get_config().paths.sqlite_path)


class SqliteConversationMemory:
    """대화 메모리."""

    def __init__(self, db_path: Optional[Path | str] = None):
        self.db_path = Path(db_path) if db_path else _get_db_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        conn = self._get_conn()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS conversation_messages (
                    id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_conv_messages_session "
                "ON conversation_messages(session_id, created_at)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            session_id=row["session_id"],
            user_id=row["user_id"],
            role=MessageRole(row["role"]),
            content=row["content"],
            created_at=row["created_at"],
        )

    async def add_message(
        self,
        session_id: str,
        user_id: str,
        role: MessageRole | str,
        content: str,
    ) -> Message:
        """메시지 추가.

        Raises:
            ValidationError: 알 수 없는 역할
        """
        try:
            role = MessageRole(role)
        except ValueError:
            raise ValidationError(f"Unknown message role: {role}", details={"role": str(role)})

        message = Message(
            id=f"msg_{uuid.uuid4().hex[:12]}",
            session_id=session_id,
            user_id=user_id,
            role=role,
            content=content,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO conversation_messages (id, session_id, user_id, role, content, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.session_id,
                    message.user_id,
                    message.role.value,
                    message.content,
                    message.created_at,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug(f"메시지 추가: {message.id} (session={session_id}, role={role.value})")
        return message

    async def get_messages(self, session_id: str, limit: Optional[int] = None) -> List[Message]:
        """세션 메시지 조회.

        Args:
            session_id: 세션 ID
            limit: 최근 N개만 (시간순으로 반환)
        """
        conn = self._get_conn()
        try:
            if limit is not None:
                rows = conn.execute(
                    """
                    SELECT * FROM (
                        SELECT *, rowid AS seq FROM conversation_messages
                        WHERE session_id = ?
                        ORDER BY created_at DESC, rowid DESC
                        LIMIT ?
                    ) ORDER BY created_at ASC, seq ASC
                    """,
                    (session_id, max(limit, 0)),
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT * FROM conversation_messages
                    WHERE session_id = ?
                    ORDER BY created_at ASC, rowid ASC
                    """,
                    (session_id,),
                ).fetchall()
            return [self._row_to_message(row) for row in rows]
        finally:
            conn.close()

    async def get_agent_messages(self, session_id: str, limit: Optional[int] = None) -> List[Dict[str, str]]:
        """LLM 입력 형식({role, content})으로 조회."""
        messages = await self.get_messages(session_id, limit)
        return [m.to_llm_format() for m in messages]

    async def count_messages(self, session_id: str) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM conversation_messages WHERE session_id = ?",
                (session_id,),
            ).fetchone()
            return int(row["count"])
        finally:
            conn.close()

    async def clear_session(self, session_id: str) -> int:
        """세션 메시지 전체 삭제. 삭제된 개수 반환."""
        conn = self._get_conn()
        try:
            cursor = conn.execute(
                "DELETE FROM conversation_messages WHERE session_id = ?", (session_id,)
            )
            conn.commit()
            deleted = cursor.rowcount
        finally:
            conn.close()

        logger.info(f"세션 메시지 삭제: {session_id} ({deleted}개)")
        return deleted

    async def prune(self, session_id: str, keep_count: int) -> int:
        """최근 keep_count개만 남기고 삭제. 삭제된 개수 반환."""
        if keep_count < 0:
            raise ValidationError("keep_count must be non-negative", details={"keep_count": keep_count})

        conn = self._get_conn()
        try:
            cursor = conn.execute(
                """
                DELETE FROM conversation_messages
                WHERE session_id = ? AND id NOT IN (
                    SELECT id FROM conversation_messages
                    WHERE session_id = ?
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT ?
                )
                """,
                (session_id, session_id, keep_count),
            )
            conn.commit()
            deleted = cursor.rowcount
        finally:
            conn.close()

        if deleted:
            logger.info(f"오래된 메시지 정리: {session_id} ({deleted}개 삭제, {keep_count}개 유지)")
        return deleted
