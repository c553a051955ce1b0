"""결제 처리 테스트."""

from unittest.mock import patch

import pytest

from yuber.payments import PaymentProcessor, never_fail, random_failure_policy
from yuber.store import PaymentStatus


@pytest.fixture
def processor(store):
    return PaymentProcessor(store, failure_policy=never_fail)


class TestPaymentValidation:
    """입력 검증 테스트 (레코드 생성 없음)."""

    @pytest.mark.parametrize(
        "dispatch_id, amount, method, message",
        [
            (None, 10.0, "card", "Missing dispatchId, amount, or method"),
            ("d1", None, "card", "Missing dispatchId, amount, or method"),
            ("d1", 10.0, "", "Missing dispatchId, amount, or method"),
            ("   ", 10.0, "card", "dispatchId cannot be empty"),
            ("d1", 10.0, "  ", "method cannot be empty"),
            ("d1", 0, "card", "amount must be positive"),
            ("d1", -5.0, "card", "amount must be positive"),
            ("d1", float("nan"), "card", "amount must be positive"),
            ("d1", float("inf"), "card", "amount must be positive"),
            ("d1", float("-inf"), "card", "amount must be positive"),
            ("d1", "85", "card", "amount must be positive"),
            ("d1", True, "card", "amount must be positive"),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_input(self, processor, store, dispatch_id, amount, method, message):
        result = await processor.process_payment(dispatch_id, amount, method)

        assert result.success is False
        assert result.error.code == "INVALID_INPUT"
        assert result.error.message == message
        assert await store.get_payments_by_dispatch("d1") == []

    @pytest.mark.asyncio
    async def test_validation_before_failure_simulation(self, processor, store):
        result = await processor.process_payment("d1", -1, "card", simulate_failure=True)

        assert result.error.code == "INVALID_INPUT"
        assert await store.get_payments_by_dispatch("d1") == []


class TestPaymentProcessing:
    """결제 성공/실패 경로 테스트."""

    @pytest.mark.asyncio
    async def test_success(self, processor, store):
        result = await processor.process_payment("d1", 85.50, "card")

        assert result.success is True
        assert result.data["status"] == "completed"
        assert result.data["amount"] == 85.50
        assert result.data["method"] == "card"
        assert result.data["id"].startswith("pay_")
        assert result.data["transaction_id"].startswith("txn_")
        assert "error" not in result.to_dict()

        payments = await store.get_payments_by_dispatch("d1")
        assert len(payments) == 1
        assert payments[0].status is PaymentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_success_passes_through_processing(self, processor, store):
        """성공 경로는 pending -> processing -> completed 순서로 전진."""
        with patch.object(store, "update_payment_status", wraps=store.update_payment_status) as spy:
            result = await processor.process_payment("d1", 85.50, "card")

        assert [c.args for c in spy.await_args_list] == [
            (result.data["id"], PaymentStatus.PROCESSING),
            (result.data["id"], PaymentStatus.COMPLETED),
        ]

    @pytest.mark.asyncio
    async def test_simulated_failure(self, processor, store):
        result = await processor.process_payment("d1", 85.50, "card", simulate_failure=True)

        assert result.success is False
        assert result.error.code == "PAYMENT_FAILED"
        assert result.error.message == "Payment processing failed"
        assert result.data["status"] == "failed"

        payments = await store.get_payments_by_dispatch("d1")
        assert [p.status for p in payments] == [PaymentStatus.FAILED]

    @pytest.mark.asyncio
    async def test_policy_failure(self, store):
        processor = PaymentProcessor(store, failure_policy=lambda: True)

        result = await processor.process_payment("d1", 40, "cash")

        assert result.error.code == "PAYMENT_FAILED"

    @pytest.mark.asyncio
    async def test_every_attempt_recorded(self, processor, store):
        """실패 후 재시도하면 레코드가 하나 더 생성됨."""
        await processor.process_payment("d1", 85.50, "card", simulate_failure=True)
        await processor.process_payment("d1", 85.50, "card")

        payments = await store.get_payments_by_dispatch("d1")
        assert [p.status for p in payments] == [PaymentStatus.FAILED, PaymentStatus.COMPLETED]
        assert payments[0].id != payments[1].id

    @pytest.mark.asyncio
    async def test_default_policy_from_config(self, store, monkeypatch):
        monkeypatch.setenv("PAYMENT_FAILURE_RATE", "1.0")

        result = await PaymentProcessor(store).process_payment("d1", 10, "card")

        assert result.error.code == "PAYMENT_FAILED"


class TestFailurePolicy:
    """실패 정책 테스트."""

    def test_rate_bounds(self):
        assert random_failure_policy(0.0)() is False
        assert random_failure_policy(1.0)() is True

    @pytest.mark.parametrize("rate", [-0.1, 1.5])
    def test_invalid_rate(self, rate):
        with pytest.raises(ValueError):
            random_failure_policy(rate)
