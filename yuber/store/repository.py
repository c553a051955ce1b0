"""배차 저장소.

사용자, 서비스 요청, 배차, 결제 레코드의 영속화를 담당합니다.
모든 변경 작업은 반환 전에 커밋됩니다.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from yuber.core.exceptions import InvalidTransitionError, PaymentNotFoundError, RequestNotFoundError

from .models import (
    PAYMENT_INITIAL_STATUSES,
    PAYMENT_TRANSITIONS,
    Dispatch,
    DispatchStatus,
    Location,
    Payment,
    PaymentStatus,
    RequestStatus,
    ServiceRequest,
)

logger = logging.getLogger(__name__)


def _get_db_path() -> Path:
    """데이터베이스 경로 반환."""
    from yuber.config import get_config

    return Path(get_config().paths.sqlite_path)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DispatchStore:
    """배차 도메인 저장소 (SQLite)."""

    def __init__(self, db_path: Optional[Path | str] = None):
        """초기화.

        Args:
            db_path: 데이터베이스 경로 (없으면 설정에서 로드)
        """
        self.db_path = Path(db_path) if db_path else _get_db_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _get_conn(self) -> sqlite3.Connection:
        """DB 연결."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        """테이블 생성."""
        conn = self._get_conn()
        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    created_at TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS service_requests (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    issue TEXT NOT NULL,
                    category TEXT,
                    urgency TEXT DEFAULT 'medium',
                    lat REAL,
                    lng REAL,
                    status TEXT DEFAULT 'pending',
                    dispatch_id TEXT,
                    created_at TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS dispatches (
                    id TEXT PRIMARY KEY,
                    request_id TEXT NOT NULL,
                    provider_id TEXT NOT NULL,
                    provider_name TEXT,
                    eta_minutes INTEGER,
                    cost_min REAL,
                    cost_max REAL,
                    status TEXT DEFAULT 'dispatched',
                    dispatched_at TEXT,
                    FOREIGN KEY (request_id) REFERENCES service_requests(id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS payments (
                    id TEXT PRIMARY KEY,
                    dispatch_id TEXT NOT NULL,
                    amount REAL NOT NULL,
                    method TEXT NOT NULL,
                    status TEXT NOT NULL,
                    transaction_id TEXT,
                    created_at TEXT,
                    updated_at TEXT
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_requests_user ON service_requests(user_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_requests_created ON service_requests(created_at)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_payments_dispatch ON payments(dispatch_id)")

            conn.commit()
            logger.debug("배차 테이블 초기화 완료")
        finally:
            conn.close()

    # ============================================
    # 사용자
    # ============================================

    async def ensure_user(self, user_id: str) -> None:
        """사용자 레코드가 없으면 생성."""
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO users (id, created_at) VALUES (?, ?)",
                (user_id, _now()),
            )
            conn.commit()
        finally:
            conn.close()

    async def user_exists(self, user_id: str) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
            return row is not None
        finally:
            conn.close()

    # ============================================
    # 서비스 요청
    # ============================================

    @staticmethod
    def _row_to_request(row: sqlite3.Row) -> ServiceRequest:
        return ServiceRequest(
            id=row["id"],
            user_id=row["user_id"],
            issue=row["issue"],
            category=row["category"],
            urgency=row["urgency"],
            location=Location(lat=row["lat"], lng=row["lng"]),
            status=RequestStatus(row["status"]),
            dispatch_id=row["dispatch_id"],
            created_at=row["created_at"],
        )

    async def create_request(
        self,
        user_id: str,
        issue: str,
        location: Location,
        category: Optional[str] = None,
        urgency: str = "medium",
    ) -> ServiceRequest:
        """서비스 요청 생성."""
        await self.ensure_user(user_id)

        request = ServiceRequest(
            id=f"req_{uuid.uuid4().hex[:12]}",
            user_id=user_id,
            issue=issue,
            location=location,
            category=category,
            urgency=urgency,
            status=RequestStatus.CATEGORIZED if category else RequestStatus.PENDING,
            created_at=_now(),
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO service_requests
                    (id, user_id, issue, category, urgency, lat, lng, status, dispatch_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, ?)
                """,
                (
                    request.id,
                    request.user_id,
                    request.issue,
                    request.category,
                    request.urgency,
                    location.lat,
                    location.lng,
                    request.status.value,
                    request.created_at,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(f"서비스 요청 생성: {request.id} (user={user_id})")
        return request

    async def get_request(self, request_id: str) -> Optional[ServiceRequest]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM service_requests WHERE id = ?", (request_id,)).fetchone()
            return self._row_to_request(row) if row else None
        finally:
            conn.close()

    async def get_requests_by_user(self, user_id: str, limit: Optional[int] = None) -> List[ServiceRequest]:
        """사용자 요청 목록 (최신순)."""
        conn = self._get_conn()
        try:
            query = "SELECT * FROM service_requests WHERE user_id = ? ORDER BY created_at DESC, rowid DESC"
            params: List[Any] = [user_id]
            if limit is not None:
                query += " LIMIT ?"
                params.append(limit)
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_request(row) for row in rows]
        finally:
            conn.close()

    async def count_requests_by_user(self, user_id: str) -> int:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) AS count FROM service_requests WHERE user_id = ?", (user_id,)
            ).fetchone()
            return int(row["count"])
        finally:
            conn.close()

    async def update_request(
        self,
        request_id: str,
        status: Optional[RequestStatus] = None,
        category: Optional[str] = None,
        dispatch_id: Optional[str] = None,
    ) -> ServiceRequest:
        """요청 상태/카테고리/배차 링크 업데이트."""
        updates = []
        values: List[Any] = []

        if status is not None:
            updates.append("status = ?")
            values.append(RequestStatus(status).value)
        if category is not None:
            updates.append("category = ?")
            values.append(category)
        if dispatch_id is not None:
            updates.append("dispatch_id = ?")
            values.append(dispatch_id)

        if updates:
            values.append(request_id)
            conn = self._get_conn()
            try:
                cursor = conn.execute(
                    f"UPDATE service_requests SET {', '.join(updates)} WHERE id = ?",
                    values,
                )
                conn.commit()
                if cursor.rowcount == 0:
                    raise RequestNotFoundError(request_id)
            finally:
                conn.close()

        request = await self.get_request(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    # ============================================
    # 배차
    # ============================================

    @staticmethod
    def _row_to_dispatch(row: sqlite3.Row) -> Dispatch:
        return Dispatch(
            id=row["id"],
            request_id=row["request_id"],
            provider_id=row["provider_id"],
            provider_name=row["provider_name"] or "",
            eta_minutes=int(row["eta_minutes"]),
            cost_min=float(row["cost_min"]),
            cost_max=float(row["cost_max"]),
            status=DispatchStatus(row["status"]),
            dispatched_at=row["dispatched_at"],
        )

    async def create_dispatch(
        self,
        request_id: str,
        provider_id: str,
        provider_name: str,
        eta_minutes: int,
        cost_min: float,
        cost_max: float,
    ) -> Dispatch:
        """배차 레코드 생성 (status=dispatched)."""
        dispatch = Dispatch(
            id=f"dsp_{uuid.uuid4().hex[:12]}",
            request_id=request_id,
            provider_id=provider_id,
            provider_name=provider_name,
            eta_minutes=eta_minutes,
            cost_min=cost_min,
            cost_max=cost_max,
            status=DispatchStatus.DISPATCHED,
            dispatched_at=_now(),
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO dispatches
                    (id, request_id, provider_id, provider_name, eta_minutes, cost_min, cost_max, status, dispatched_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    dispatch.id,
                    dispatch.request_id,
                    dispatch.provider_id,
                    dispatch.provider_name,
                    dispatch.eta_minutes,
                    dispatch.cost_min,
                    dispatch.cost_max,
                    dispatch.status.value,
                    dispatch.dispatched_at,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(f"배차 생성: {dispatch.id} (request={request_id}, provider={provider_id})")
        return dispatch

    async def get_dispatch(self, dispatch_id: str) -> Optional[Dispatch]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM dispatches WHERE id = ?", (dispatch_id,)).fetchone()
            return self._row_to_dispatch(row) if row else None
        finally:
            conn.close()

    # ============================================
    # 결제
    # ============================================

    @staticmethod
    def _row_to_payment(row: sqlite3.Row) -> Payment:
        return Payment(
            id=row["id"],
            dispatch_id=row["dispatch_id"],
            amount=float(row["amount"]),
            method=row["method"],
            status=PaymentStatus(row["status"]),
            transaction_id=row["transaction_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def create_payment(
        self,
        dispatch_id: str,
        amount: float,
        method: str,
        status: PaymentStatus,
    ) -> Payment:
        """결제 레코드 생성. 초기 상태는 pending 또는 failed만 허용."""
        status = PaymentStatus(status)
        if status not in PAYMENT_INITIAL_STATUSES:
            raise InvalidTransitionError(
                f"Payment cannot be created in status '{status.value}'",
                details={"status": status.value},
            )

        now = _now()
        payment = Payment(
            id=f"pay_{uuid.uuid4().hex[:12]}",
            dispatch_id=dispatch_id,
            amount=float(amount),
            method=method,
            status=status,
            transaction_id=f"txn_{uuid.uuid4().hex[:16]}",
            created_at=now,
            updated_at=now,
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO payments
                    (id, dispatch_id, amount, method, status, transaction_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    payment.id,
                    payment.dispatch_id,
                    payment.amount,
                    payment.method,
                    payment.status.value,
                    payment.transaction_id,
                    payment.created_at,
                    payment.updated_at,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.info(f"결제 생성: {payment.id} (dispatch={dispatch_id}, status={status.value})")
        return payment

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM payments WHERE id = ?", (payment_id,)).fetchone()
            return self._row_to_payment(row) if row else None
        finally:
            conn.close()

    async def get_payments_by_dispatch(self, dispatch_id: str) -> List[Payment]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM payments WHERE dispatch_id = ? ORDER BY created_at ASC, rowid ASC",
                (dispatch_id,),
            ).fetchall()
            return [self._row_to_payment(row) for row in rows]
        finally:
            conn.close()

    async def update_payment_status(self, payment_id: str, status: PaymentStatus) -> Payment:
        """결제 상태 전진. 역행이나 건너뛰기는 InvalidTransitionError."""
        status = PaymentStatus(status)
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM payments WHERE id = ?", (payment_id,)).fetchone()
            if row is None:
                raise PaymentNotFoundError(payment_id)

            current = PaymentStatus(row["status"])
            if status not in PAYMENT_TRANSITIONS[current]:
                raise InvalidTransitionError(
                    f"Payment cannot move from '{current.value}' to '{status.value}'",
                    details={"payment_id": payment_id, "from": current.value, "to": status.value},
                )

            # 조건부 UPDATE로 동시 전이 경합 시에도 역행 방지
            cursor = conn.execute(
                "UPDATE payments SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (status.value, _now(), payment_id, current.value),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise InvalidTransitionError(
                    f"Payment {payment_id} changed concurrently",
                    details={"payment_id": payment_id},
                )

            row = conn.execute("SELECT * FROM payments WHERE id = ?", (payment_id,)).fetchone()
            logger.debug(f"결제 상태 전이: {payment_id} {current.value} -> {status.value}")
            return self._row_to_payment(row)
        finally:
            conn.close()
