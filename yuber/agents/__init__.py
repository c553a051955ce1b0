"""에이전트 모듈: 상태 마커 파서, 프롬프트, 오케스트레이터.

오케스트레이터는 ``yuber.agents.orchestrator``에서 직접 import합니다.
"""

from .state import AgentState, DispatchMarker, DispatchState, IntakeStatus, MissingInfo
from .state_parser import (
    ParsedMarker,
    parse_agent_state,
    parse_dispatch_state,
    parse_state_marker,
    resolve_agent_state,
)

__all__ = [
    "AgentState",
    "DispatchMarker",
    "DispatchState",
    "IntakeStatus",
    "MissingInfo",
    "ParsedMarker",
    "parse_agent_state",
    "parse_dispatch_state",
    "parse_state_marker",
    "resolve_agent_state",
]
