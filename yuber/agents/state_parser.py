"""LLM 응답의 상태 마커 파서.

LLM 응답 끝에 붙는 제어용 마커를 추출합니다.

- 접수 마커: ``[STATE: needs_clarification|ready_to_search, missing: issue|location|urgency|none]``
- 배차 마커: ``[DISPATCH_STATE: searching|recommending|multiple_options|dispatched|no_providers]``

키워드는 대소문자를 구분하지 않습니다. 문법에 맞지 않는 마커는 없는 것으로
취급하며, 이 경우 원문을 그대로 돌려줍니다. 파서는 순수 함수이며 예외를
던지지 않습니다.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from .state import (
    DEFAULT_AGENT_STATE,
    AgentState,
    DispatchMarker,
    DispatchState,
    IntakeStatus,
    MissingInfo,
)

AGENT_STATE_PATTERN = re.compile(
    r"\[STATE:\s*(needs_clarification|ready_to_search),\s*missing:\s*(issue|location|urgency|none)\]",
    re.IGNORECASE,
)
DISPATCH_STATE_PATTERN = re.compile(
    r"\[DISPATCH_STATE:\s*(searching|recommending|multiple_options|dispatched|no_providers)\]",
    re.IGNORECASE,
)

Marker = Union[AgentState, DispatchMarker]


@dataclass(frozen=True)
class ParsedMarker:
    """파싱 결과. state가 None이면 마커 없음."""

    state: Optional[Marker]
    clean_text: str

    def to_dict(self):
        return {
            "state": self.state.to_dict() if self.state is not None else None,
            "clean_text": self.clean_text,
        }


def _strip_match(text: str, match: "re.Match[str]") -> str:
    return (text[: match.start()] + text[match.end():]).strip()


def _to_agent_state(match: "re.Match[str]") -> AgentState:
    return AgentState(
        state=IntakeStatus(match.group(1).lower()),
        missing=MissingInfo(match.group(2).lower()),
    )


def _to_dispatch_marker(match: "re.Match[str]") -> DispatchMarker:
    return DispatchMarker(state=DispatchState(match.group(1).lower()))


def parse_agent_state(text: Any) -> ParsedMarker:
    """접수 마커 추출."""
    if not isinstance(text, str):
        return ParsedMarker(state=None, clean_text="" if text is None else str(text))
    match = AGENT_STATE_PATTERN.search(text)
    if not match:
        return ParsedMarker(state=None, clean_text=text)
    return ParsedMarker(state=_to_agent_state(match), clean_text=_strip_match(text, match))


def parse_dispatch_state(text: Any) -> ParsedMarker:
    """배차 마커 추출."""
    if not isinstance(text, str):
        return ParsedMarker(state=None, clean_text="" if text is None else str(text))
    match = DISPATCH_STATE_PATTERN.search(text)
    if not match:
        return ParsedMarker(state=None, clean_text=text)
    return ParsedMarker(state=_to_dispatch_marker(match), clean_text=_strip_match(text, match))


def parse_state_marker(text: Any) -> ParsedMarker:
    """두 문법 중 텍스트에서 먼저 나타나는 마커 하나만 추출.

    Args:
        text: LLM 응답 텍스트

    Returns:
        ParsedMarker (마커가 없으면 state=None, 원문 그대로)
    """
    if not isinstance(text, str):
        return ParsedMarker(state=None, clean_text="" if text is None else str(text))

    agent_match = AGENT_STATE_PATTERN.search(text)
    dispatch_match = DISPATCH_STATE_PATTERN.search(text)

    if agent_match and (not dispatch_match or agent_match.start() < dispatch_match.start()):
        return ParsedMarker(state=_to_agent_state(agent_match), clean_text=_strip_match(text, agent_match))
    if dispatch_match:
        return ParsedMarker(state=_to_dispatch_marker(dispatch_match), clean_text=_strip_match(text, dispatch_match))
    return ParsedMarker(state=None, clean_text=text)


def resolve_agent_state(parsed: ParsedMarker) -> AgentState:
    """접수 상태 확정. 마커가 없으면 추가 확인이 필요한 것으로 간주."""
    if isinstance(parsed.state, AgentState):
        return parsed.state
    return DEFAULT_AGENT_STATE
