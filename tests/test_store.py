"""배차 저장소 테스트."""

import sqlite3

import pytest

from yuber.core.exceptions import ConflictError, NotFoundError
from yuber.store import (
    DispatchStatus,
    DispatchStore,
    PaymentStatus,
    RequestStatus,
)


class TestUsers:
    """사용자 레코드 테스트."""

    @pytest.mark.asyncio
    async def test_ensure_user_idempotent(self, store):
        await store.ensure_user("user_001")
        await store.ensure_user("user_001")

        assert await store.user_exists("user_001")

        conn = sqlite3.connect(store.db_path)
        try:
            count = conn.execute("SELECT COUNT(*) FROM users WHERE id = 'user_001'").fetchone()[0]
        finally:
            conn.close()
        assert count == 1

    @pytest.mark.asyncio
    async def test_unknown_user(self, store):
        assert not await store.user_exists("ghost")


class TestServiceRequests:
    """서비스 요청 테스트."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store, columbus):
        request = await store.create_request("user_001", "Burst pipe", columbus, category="plumber")

        assert request.id.startswith("req_")
        assert request.status is RequestStatus.CATEGORIZED

        loaded = await store.get_request(request.id)
        assert loaded.issue == "Burst pipe"
        assert loaded.location.lat == pytest.approx(39.9612)
        assert loaded.category == "plumber"
        assert await store.user_exists("user_001")

    @pytest.mark.asyncio
    async def test_uncategorized_request_is_pending(self, store, columbus):
        request = await store.create_request("user_001", "Something odd", columbus)

        assert request.status is RequestStatus.PENDING

    @pytest.mark.asyncio
    async def test_get_missing_request(self, store):
        assert await store.get_request("req_missing") is None

    @pytest.mark.asyncio
    async def test_requests_most_recent_first(self, store, columbus):
        for issue in ("first", "second", "third"):
            await store.create_request("user_001", issue, columbus)

        requests = await store.get_requests_by_user("user_001")

        assert [r.issue for r in requests] == ["third", "second", "first"]
        assert len(await store.get_requests_by_user("user_001", limit=2)) == 2
        assert await store.count_requests_by_user("user_001") == 3

    @pytest.mark.asyncio
    async def test_zero_limit_returns_nothing(self, store, columbus):
        """limit=0은 '제한 없음'이 아니라 빈 결과."""
        await store.create_request("user_001", "first", columbus)

        assert await store.get_requests_by_user("user_001", limit=0) == []

    @pytest.mark.asyncio
    async def test_update_request(self, store, columbus):
        request = await store.create_request("user_001", "Leak", columbus)

        updated = await store.update_request(
            request.id, status=RequestStatus.DISPATCHED, dispatch_id="dsp_1"
        )

        assert updated.status is RequestStatus.DISPATCHED
        assert updated.dispatch_id == "dsp_1"

    @pytest.mark.asyncio
    async def test_update_missing_request(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            await store.update_request("req_missing", status=RequestStatus.SEARCHING)

        assert exc_info.value.error_code == "REQUEST_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_to_dict(self, store, columbus):
        request = await store.create_request("user_001", "Leak", columbus)

        data = request.to_dict()
        assert data["status"] == "pending"
        assert data["location"] == {"lat": 39.9612, "lng": -83.1259}


class TestDispatches:
    """배차 레코드 테스트."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store, columbus):
        request = await store.create_request("user_001", "Leak", columbus)
        dispatch = await store.create_dispatch(
            request.id, "plumber-43228-001", "Columbus Plumbing Pros", 2, 95.0, 190.0
        )

        loaded = await store.get_dispatch(dispatch.id)
        assert loaded.status is DispatchStatus.DISPATCHED
        assert loaded.provider_name == "Columbus Plumbing Pros"
        assert loaded.cost_max == 190.0
        assert loaded.dispatched_at


class TestPayments:
    """결제 레코드 및 상태 전이 테스트."""

    @pytest.mark.asyncio
    async def test_forward_transitions(self, store):
        payment = await store.create_payment("dsp_1", 85.5, "card", PaymentStatus.PENDING)
        assert payment.transaction_id.startswith("txn_")

        payment = await store.update_payment_status(payment.id, PaymentStatus.PROCESSING)
        assert payment.status is PaymentStatus.PROCESSING

        payment = await store.update_payment_status(payment.id, PaymentStatus.COMPLETED)
        assert payment.status is PaymentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_skip_rejected(self, store):
        """pending -> completed 건너뛰기 불가."""
        payment = await store.create_payment("dsp_1", 10, "card", PaymentStatus.PENDING)

        with pytest.raises(ConflictError):
            await store.update_payment_status(payment.id, PaymentStatus.COMPLETED)

        assert (await store.get_payment(payment.id)).status is PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_regression_rejected(self, store):
        """completed 이후 역행 불가."""
        payment = await store.create_payment("dsp_1", 10, "card", PaymentStatus.PENDING)
        await store.update_payment_status(payment.id, PaymentStatus.PROCESSING)
        await store.update_payment_status(payment.id, PaymentStatus.COMPLETED)

        for status in (PaymentStatus.PENDING, PaymentStatus.PROCESSING, PaymentStatus.FAILED):
            with pytest.raises(ConflictError):
                await store.update_payment_status(payment.id, status)

    @pytest.mark.asyncio
    async def test_failed_is_terminal(self, store):
        payment = await store.create_payment("dsp_1", 10, "card", PaymentStatus.FAILED)

        with pytest.raises(ConflictError):
            await store.update_payment_status(payment.id, PaymentStatus.PROCESSING)

    @pytest.mark.asyncio
    async def test_cannot_create_completed(self, store):
        with pytest.raises(ConflictError):
            await store.create_payment("dsp_1", 10, "card", PaymentStatus.COMPLETED)

        assert await store.get_payments_by_dispatch("dsp_1") == []

    @pytest.mark.asyncio
    async def test_update_missing_payment(self, store):
        with pytest.raises(NotFoundError):
            await store.update_payment_status("pay_missing", PaymentStatus.PROCESSING)

    @pytest.mark.asyncio
    async def test_payments_by_dispatch(self, store):
        await store.create_payment("dsp_1", 10, "card", PaymentStatus.FAILED)
        await store.create_payment("dsp_1", 10, "card", PaymentStatus.PENDING)
        await store.create_payment("dsp_2", 10, "card", PaymentStatus.PENDING)

        payments = await store.get_payments_by_dispatch("dsp_1")

        assert [p.status for p in payments] == [PaymentStatus.FAILED, PaymentStatus.PENDING]


def test_store_uses_configured_path(tmp_path, monkeypatch):
    """경로 미지정 시 설정의 sqlite_path 사용."""
    target = tmp_path / "nested" / "configured.db"
    monkeypatch.setenv("SQLITE_PATH", str(target))

    store = DispatchStore()

    assert store.db_path == target
    assert target.exists()
