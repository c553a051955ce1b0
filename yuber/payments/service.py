"""결제 처리 (시뮬레이션).

검증을 통과한 결제 시도는 성공/실패와 무관하게 항상 레코드로 남습니다.

- 실패: ``failed`` 상태로 바로 생성, ``PAYMENT_FAILED`` 반환 (예외 아님)
- 성공: ``pending`` -> ``processing`` -> ``completed``
"""

from __future__ import annotations

import logging
import math
import random
from typing import Any, Callable, Optional

from yuber.config import get_config
from yuber.core.results import ToolResult
from yuber.core.tracer import traced
from yuber.store.models import PaymentStatus
from yuber.store.repository import DispatchStore

logger = logging.getLogger(__name__)

FailurePolicy = Callable[[], bool]

PAYMENT_FAILED = "PAYMENT_FAILED"
INVALID_INPUT = "INVALID_INPUT"


def random_failure_policy(rate: float) -> FailurePolicy:
    """rate 확률로 실패를 결정하는 정책."""
    if not 0.0 <= rate <= 1.0:
        raise ValueError(f"failure rate must be within [0, 1]: {rate}")

    def policy() -> bool:
        return random.random() < rate

    return policy


def never_fail() -> bool:
    return False


def _validate(dispatch_id: Any, amount: Any, method: Any) -> Optional[str]:
    """검증 실패 메시지 (첫 번째 위반만). 통과하면 None."""
    if not dispatch_id or amount is None or not method:
        return "Missing dispatchId, amount, or method"
    if not isinstance(dispatch_id, str) or not dispatch_id.strip():
        return "dispatchId cannot be empty"
    if not isinstance(method, str) or not method.strip():
        return "method cannot be empty"
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return "amount must be positive"
    # NaN/무한대는 저장하면 직렬화 시 null로 바뀜
    if isinstance(amount, float) and not math.isfinite(amount):
        return "amount must be positive"
    if amount <= 0:
        return "amount must be positive"
    return None


class PaymentProcessor:
    """결제 처리기."""

    def __init__(
        self,
        store: DispatchStore,
        failure_policy: Optional[FailurePolicy] = None,
    ):
        """초기화.

        Args:
            store: 결제 레코드 저장소
            failure_policy: 실패 여부 결정 함수 (없으면 설정된 확률의 랜덤 정책)
        """
        self.store = store
        self.failure_policy = failure_policy or random_failure_policy(get_config().payments.failure_rate)

    @traced("payment", name="process_payment")
    async def process_payment(
        self,
        dispatch_id: Any,
        amount: Any,
        method: Any,
        simulate_failure: bool = False,
    ) -> ToolResult:
        """결제 처리.

        Args:
            dispatch_id: 배차 ID
            amount: 결제 금액 (양수)
            method: 결제 수단
            simulate_failure: True면 무조건 실패 경로

        Returns:
            ToolResult (success, data=결제 레코드, error)
        """
        error = _validate(dispatch_id, amount, method)
        if error:
            logger.info(f"결제 입력 검증 실패: {error}")
            return ToolResult.fail(INVALID_INPUT, error)

        if simulate_failure or self.failure_policy():
            payment = await self.store.create_payment(
                dispatch_id=dispatch_id,
                amount=amount,
                method=method,
                status=PaymentStatus.FAILED,
            )
            logger.warning(f"결제 실패: {payment.id} (dispatch={dispatch_id}, amount={amount})")
            return ToolResult.fail(PAYMENT_FAILED, "Payment processing failed", data=payment.to_dict())

        payment = await self.store.create_payment(
            dispatch_id=dispatch_id,
            amount=amount,
            method=method,
            status=PaymentStatus.PENDING,
        )
        await self.store.update_payment_status(payment.id, PaymentStatus.PROCESSING)
        payment = await self.store.update_payment_status(payment.id, PaymentStatus.COMPLETED)

        logger.info(f"결제 완료: {payment.id} (dispatch={dispatch_id}, amount={amount}, method={method})")
        return ToolResult.ok(payment.to_dict())
