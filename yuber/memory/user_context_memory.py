"""사용자 컨텍스트 메모리 (SQLite).

선호 설정과 즐겨찾기 공급자를 저장하고, 요청 이력에서 최근 이슈와
요청 수를 집계합니다.

즐겨찾기는 예약된 선호 키(``favorite_providers``) 아래 JSON 리스트로
저장됩니다. 저장된 값이 손상된 경우 빈 리스트로 취급하고 경고만 남깁니다.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from yuber.store import DispatchStore

from .models import UserContext

logger = logging.getLogger(__name__)

FAVORITES_KEY = "favorite_providers"


def _decode_favorites(user_id: str, raw: Optional[str]) -> List[str]:
    if raw is None:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"즐겨찾기 데이터 손상 (user={user_id}): {e}")
        return []

    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        logger.warning(f"즐겨찾기 데이터 형식 오류 (user={user_id}): {type(value).__name__}")
        return []

    # 저장본에 중복이 있어도 첫 등장 순서만 유지
    return list(dict.fromkeys(value))


class SqliteUserContextMemory:
    """사용자 컨텍스트 메모리."""

    def __init__(
        self,
        store: DispatchStore,
        db_path: Optional[Path | str] = None,
        max_recent_issues: int = 10,
    ):
        """초기화.

        Args:
            store: 사용자/요청 이력을 가진 배차 저장소
            db_path: 선호 설정 DB 경로 (없으면 store와 같은 DB)
            max_recent_issues: 컨텍스트에 포함할 최근 이슈 수
        """
        self.store = store
        self.db_path = Path(db_path) if db_path else store.db_path
        self.max_recent_issues = max_recent_issues
        self._ensure_tables()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_preferences (
                    user_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT,
                    UNIQUE(user_id, key)
                )
            """)
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _upsert(conn: sqlite3.Connection, user_id: str, key: str, value: str) -> None:
        conn.execute(
            """
            INSERT INTO user_preferences (user_id, key, value, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (user_id, key, value, datetime.now(timezone.utc).isoformat()),
        )

    # ============================================
    # 선호 설정
    # ============================================

    async def set_preference(self, user_id: str, key: str, value: str) -> None:
        """선호 설정 저장 (last-write-wins)."""
        await self.store.ensure_user(user_id)

        conn = self._get_conn()
        try:
            self._upsert(conn, user_id, key, value)
            conn.commit()
        finally:
            conn.close()

        logger.debug(f"선호 설정 저장: user={user_id}, key={key}")

    async def get_preference(self, user_id: str, key: str) -> Optional[str]:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT value FROM user_preferences WHERE user_id = ? AND key = ?",
                (user_id, key),
            ).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()

    async def get_all_preferences(self, user_id: str) -> Dict[str, str]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT key, value FROM user_preferences WHERE user_id = ? ORDER BY key",
                (user_id,),
            ).fetchall()
            return {row["key"]: row["value"] for row in rows}
        finally:
            conn.close()

    # ============================================
    # 즐겨찾기
    # ============================================

    def _modify_favorites(self, user_id: str, provider_id: str, add: bool) -> Tuple[List[str], bool]:
        """즐겨찾기 갱신. (갱신 후 목록, 변경 여부) 반환.

        목록이 바뀌지 않으면 저장본(손상된 값 포함)을 건드리지 않습니다.
        """
        conn = self._get_conn()
        try:
            # 읽기-수정-쓰기를 한 트랜잭션으로 묶어 동시 갱신 유실 방지
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT value FROM user_preferences WHERE user_id = ? AND key = ?",
                (user_id, FAVORITES_KEY),
            ).fetchone()
            current = _decode_favorites(user_id, row["value"] if row else None)

            if add:
                updated = current if provider_id in current else current + [provider_id]
            else:
                updated = [f for f in current if f != provider_id]

            if updated == current:
                conn.rollback()
                return current, False

            self._upsert(conn, user_id, FAVORITES_KEY, json.dumps(updated))
            conn.commit()
            return updated, True
        finally:
            conn.close()

    async def add_favorite_provider(self, user_id: str, provider_id: str) -> None:
        """즐겨찾기 추가. 이미 있으면 변화 없음."""
        favorites, changed = self._modify_favorites(user_id, provider_id, add=True)
        if not changed:
            return
        await self.store.ensure_user(user_id)
        logger.info(f"즐겨찾기 추가: user={user_id}, provider={provider_id} (총 {len(favorites)}개)")

    async def remove_favorite_provider(self, user_id: str, provider_id: str) -> None:
        """즐겨찾기 제거. 없으면 아무것도 쓰지 않음."""
        _, changed = self._modify_favorites(user_id, provider_id, add=False)
        if changed:
            logger.info(f"즐겨찾기 제거: user={user_id}, provider={provider_id}")

    async def get_favorite_providers(self, user_id: str) -> List[str]:
        """즐겨찾기 목록 (추가 순서). 없거나 손상되면 빈 리스트."""
        raw = await self.get_preference(user_id, FAVORITES_KEY)
        return _decode_favorites(user_id, raw)

    # ============================================
    # 집계
    # ============================================

    async def get_context(self, user_id: str) -> UserContext:
        """선호, 즐겨찾기, 최근 이슈, 요청 수를 집계."""
        preferences = await self.get_all_preferences(user_id)
        preferences.pop(FAVORITES_KEY, None)

        favorites = await self.get_favorite_providers(user_id)
        recent = await self.store.get_requests_by_user(user_id, limit=self.max_recent_issues)
        request_count = await self.store.count_requests_by_user(user_id)

        return UserContext(
            user_id=user_id,
            preferences=preferences,
            favorite_providers=favorites,
            recent_issues=[r.issue for r in recent if r.issue],
            request_count=request_count,
        )
