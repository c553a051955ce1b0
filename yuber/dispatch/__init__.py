"""배차 모듈."""

from .flow import DispatchFlow
from .service import DispatchService

__all__ = ["DispatchFlow", "DispatchService"]
