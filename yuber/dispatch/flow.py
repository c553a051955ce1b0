"""요청 단위 배차 상태 머신.

    searching -> recommending | multiple_options | no_providers
    recommending <-> multiple_options
    recommending | multiple_options -> dispatched (confirm()으로만)

no_providers와 dispatched는 종료 상태입니다.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List

from yuber.agents.state import DispatchState
from yuber.core.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)

_S = DispatchState

TRANSITIONS: Dict[DispatchState, FrozenSet[DispatchState]] = {
    _S.SEARCHING: frozenset({_S.RECOMMENDING, _S.MULTIPLE_OPTIONS, _S.NO_PROVIDERS}),
    _S.RECOMMENDING: frozenset({_S.MULTIPLE_OPTIONS}),
    _S.MULTIPLE_OPTIONS: frozenset({_S.RECOMMENDING}),
    _S.NO_PROVIDERS: frozenset(),
    _S.DISPATCHED: frozenset(),
}

CONFIRMABLE_STATES = frozenset({_S.RECOMMENDING, _S.MULTIPLE_OPTIONS})
TERMINAL_STATES = frozenset({_S.NO_PROVIDERS, _S.DISPATCHED})


class DispatchFlow:
    """요청 하나의 배차 진행 상태."""

    def __init__(self, request_id: str, state: DispatchState = DispatchState.SEARCHING):
        self.request_id = request_id
        self.state = DispatchState(state)
        self.history: List[DispatchState] = [self.state]

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_advance(self, target: DispatchState) -> bool:
        return DispatchState(target) in TRANSITIONS[self.state]

    def _move(self, target: DispatchState) -> DispatchState:
        logger.debug(f"배차 상태 전이: {self.request_id} {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)
        return target

    def advance(self, target: DispatchState) -> DispatchState:
        """dispatched를 제외한 상태로 전이.

        Raises:
            InvalidTransitionError: 허용되지 않은 전이
        """
        target = DispatchState(target)
        if target is DispatchState.DISPATCHED:
            raise InvalidTransitionError(
                "Dispatch requires explicit confirmation",
                details={"request_id": self.request_id, "from": self.state.value},
            )
        if not self.can_advance(target):
            raise InvalidTransitionError(
                f"Cannot move dispatch from '{self.state.value}' to '{target.value}'",
                details={"request_id": self.request_id, "from": self.state.value, "to": target.value},
            )
        return self._move(target)

    def ensure_confirmable(self) -> None:
        """확정 가능한 상태인지 확인.

        Raises:
            InvalidTransitionError: 추천/선택지 제시 상태가 아님
        """
        if self.state not in CONFIRMABLE_STATES:
            raise InvalidTransitionError(
                f"Cannot confirm dispatch in '{self.state.value}' state",
                details={"request_id": self.request_id, "from": self.state.value},
            )

    def confirm(self) -> DispatchState:
        """예약 확정. 추천/선택지 제시 상태에서만 가능."""
        self.ensure_confirmable()
        return self._move(DispatchState.DISPATCHED)
