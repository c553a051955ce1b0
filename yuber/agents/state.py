from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict


class IntakeStatus(str, Enum):
    """접수(HelpAgent) 단계 상태."""

    NEEDS_CLARIFICATION = "needs_clarification"
    READY_TO_SEARCH = "ready_to_search"


class MissingInfo(str, Enum):
    """접수에 아직 부족한 정보."""

    ISSUE = "issue"
    LOCATION = "location"
    URGENCY = "urgency"
    NONE = "none"


class DispatchState(str, Enum):
    """배차(DispatchAgent) 진행 상태. 요청당 하나만 활성."""

    SEARCHING = "searching"
    RECOMMENDING = "recommending"
    MULTIPLE_OPTIONS = "multiple_options"
    DISPATCHED = "dispatched"
    NO_PROVIDERS = "no_providers"


@dataclass(frozen=True)
class AgentState:
    state: IntakeStatus
    missing: MissingInfo

    @property
    def ready(self) -> bool:
        return self.state is IntakeStatus.READY_TO_SEARCH

    def to_dict(self) -> Dict[str, str]:
        return {"state": self.state.value, "missing": self.missing.value}


@dataclass(frozen=True)
class DispatchMarker:
    state: DispatchState

    def to_dict(self) -> Dict[str, str]:
        return {"state": self.state.value}


# 마커가 없거나 깨졌을 때 대화를 막지 않는 보수적 기본값
DEFAULT_AGENT_STATE = AgentState(IntakeStatus.NEEDS_CLARIFICATION, MissingInfo.ISSUE)
