"""결제 모듈."""

from .service import PaymentProcessor, never_fail, random_failure_policy

__all__ = ["PaymentProcessor", "never_fail", "random_failure_policy"]
