"""처리 파이프라인 트레이서.

에이전트 처리 과정의 각 단계를 추적하고 기록합니다.
- LLM 호출
- 상태 마커 파싱
- 메모리 조회/저장
- 공급자 검색/선택
- 배차 생성
- 결제 처리

트레이서는 순수한 통과(pass-through) 래퍼입니다. 감싼 호출의 반환값과
예외를 바꾸지 않고, 재시도하지 않으며, 예외가 발생해도 시작/종료 시각과
메타데이터를 기록합니다.
"""

from __future__ import annotations

import functools
import inspect
import json
import logging
import time
import uuid
from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class TraceStep:
    """단일 처리 단계"""
    step_id: str
    step_type: str  # llm | parser | memory | search | selection | dispatch | payment
    name: str
    input_data: Optional[Dict[str, Any]] = None
    output_data: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    start_time: float = 0.0
    end_time: float = 0.0
    duration_ms: float = 0.0
    success: bool = True
    error: Optional[str] = None


@dataclass
class TraceSession:
    """전체 요청 처리 세션"""
    session_id: str
    user_id: str
    user_message: str
    timestamp: str
    steps: List[TraceStep] = field(default_factory=list)
    final_response: Optional[Dict[str, Any]] = None
    total_duration_ms: float = 0.0
    llm_calls: int = 0
    failed_steps: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "user_message": self.user_message,
            "timestamp": self.timestamp,
            "steps": [asdict(s) for s in self.steps],
            "final_response": self.final_response,
            "summary": {
                "total_duration_ms": self.total_duration_ms,
                "total_steps": len(self.steps),
                "llm_calls": self.llm_calls,
                "failed_steps": self.failed_steps,
            },
        }


# 동시 요청 간 세션이 섞이지 않도록 컨텍스트별로 보관
_current_session: ContextVar[Optional[TraceSession]] = ContextVar("trace_session", default=None)


class Tracer:
    """파이프라인 트레이서"""

    _sessions: List[TraceSession] = []
    _detached_steps: Deque[TraceStep] = deque(maxlen=200)
    _save_dir: Optional[Path] = None
    _enabled: bool = True
    _max_sessions: int = 100

    @classmethod
    def enable(cls):
        cls._enabled = True

    @classmethod
    def disable(cls):
        cls._enabled = False

    @classmethod
    def is_enabled(cls) -> bool:
        return cls._enabled

    @classmethod
    def set_save_dir(cls, save_dir: Optional[Path | str]) -> None:
        """세션 JSON 저장 디렉토리 설정 (None이면 저장 안 함)."""
        cls._save_dir = Path(save_dir) if save_dir else None

    @classmethod
    def reset(cls) -> None:
        """기록된 세션/단계 초기화 (테스트용)."""
        cls._sessions = []
        cls._detached_steps.clear()
        _current_session.set(None)

    @classmethod
    def start_session(cls, user_id: str, user_message: str) -> str:
        """새 추적 세션 시작"""
        if not cls._enabled:
            return ""

        session_id = f"trace_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
        _current_session.set(TraceSession(
            session_id=session_id,
            user_id=user_id,
            user_message=user_message,
            timestamp=datetime.now().isoformat(),
        ))
        return session_id

    @classmethod
    def end_session(cls, final_response: Optional[Dict[str, Any]] = None) -> Optional[TraceSession]:
        """세션 종료 및 저장"""
        session = _current_session.get()
        if not cls._enabled or session is None:
            return None

        session.final_response = final_response
        session.total_duration_ms = sum(s.duration_ms for s in session.steps)
        session.llm_calls = sum(1 for s in session.steps if s.step_type == "llm")
        session.failed_steps = sum(1 for s in session.steps if not s.success)

        cls._sessions.append(session)
        if len(cls._sessions) > cls._max_sessions:
            cls._sessions = cls._sessions[-cls._max_sessions:]

        cls._save_session(session)

        _current_session.set(None)
        return session

    @classmethod
    def record_step(cls, step: TraceStep) -> None:
        """단계를 현재 세션(없으면 분리 버퍼)에 기록"""
        session = _current_session.get()
        if session is not None:
            step.step_id = f"step_{len(session.steps):03d}"
            session.steps.append(step)
        else:
            cls._detached_steps.append(step)

    @classmethod
    @contextmanager
    def trace_step(
        cls,
        step_type: str,
        name: str,
        input_data: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Optional[TraceStep]]:
        """컨텍스트 매니저로 단계 추적"""
        if not cls._enabled:
            yield None
            return

        step = TraceStep(
            step_id="",
            step_type=step_type,
            name=name,
            input_data=cls._sanitize_data(input_data),
            metadata=dict(metadata or {}),
            start_time=time.time(),
        )

        try:
            yield step
            step.success = True
        except BaseException as e:
            step.success = False
            step.error = f"{type(e).__name__}: {e}"
            raise
        finally:
            step.end_time = time.time()
            step.duration_ms = (step.end_time - step.start_time) * 1000
            cls.record_step(step)

    @classmethod
    def get_current_session(cls) -> Optional[TraceSession]:
        return _current_session.get()

    @classmethod
    def get_recent_sessions(cls, limit: int = 10) -> List[TraceSession]:
        return cls._sessions[-limit:]

    @classmethod
    def get_detached_steps(cls) -> List[TraceStep]:
        return list(cls._detached_steps)

    @classmethod
    def get_session_by_id(cls, session_id: str) -> Optional[TraceSession]:
        for session in cls._sessions:
            if session.session_id == session_id:
                return session
        return None

    @classmethod
    def _sanitize_data(cls, data: Any, max_str_len: int = 500) -> Any:
        """민감 정보 마스킹 및 크기 제한"""
        if data is None:
            return None
        if isinstance(data, str):
            if "sk-" in data or "api_key" in data.lower():
                return "[REDACTED]"
            if len(data) > max_str_len:
                return data[:max_str_len] + "..."
            return data
        if isinstance(data, dict):
            return {k: cls._sanitize_data(v, max_str_len) for k, v in data.items()}
        if isinstance(data, (list, tuple)):
            return [cls._sanitize_data(item, max_str_len) for item in list(data)[:20]]
        if isinstance(data, (int, float, bool)):
            return data
        return repr(data)[:max_str_len]

    @classmethod
    def _save_session(cls, session: TraceSession):
        """세션을 파일로 저장"""
        if cls._save_dir is None:
            return
        try:
            cls._save_dir.mkdir(parents=True, exist_ok=True)
            filepath = cls._save_dir / f"{session.session_id}.json"
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(session.to_dict(), f, ensure_ascii=False, indent=2, default=str)
        except OSError as e:
            logger.warning(f"트레이스 저장 실패: {e}")


def _summarize_output(result: Any) -> Optional[Dict[str, Any]]:
    # 기록용 요약 실패가 감싼 호출의 결과를 바꾸면 안 됨
    try:
        if result is None:
            return None
        if hasattr(result, "to_dict"):
            summary = result.to_dict()
        elif isinstance(result, dict):
            summary = result
        else:
            summary = {"value": result}
        return Tracer._sanitize_data(summary)
    except Exception as e:
        logger.debug(f"트레이스 출력 요약 실패: {e}")
        return {"value": "[unserializable]"}


def traced(
    step_type: str,
    name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """함수 호출을 트레이스 단계로 기록하는 데코레이터.

    동기/비동기 함수 모두 지원합니다. 감싼 함수의 결과와 예외는 그대로
    호출자에게 전달됩니다.

    Args:
        step_type: 단계 유형 (llm, parser, memory, selection, payment ...)
        name: 단계 이름 (없으면 함수 이름)
        metadata: 단계에 첨부할 고정 메타데이터
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        step_name = name or func.__qualname__

        def _input_of(args: tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
            try:
                bound = inspect.signature(func).bind_partial(*args, **kwargs)
            except TypeError:
                return {"args": list(args), "kwargs": kwargs}
            return {k: v for k, v in bound.arguments.items() if k not in ("self", "cls")}

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                if not Tracer.is_enabled():
                    return await func(*args, **kwargs)
                with Tracer.trace_step(step_type, step_name, _input_of(args, kwargs), metadata) as step:
                    result = await func(*args, **kwargs)
                    if step is not None:
                        step.output_data = _summarize_output(result)
                    return result

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            if not Tracer.is_enabled():
                return func(*args, **kwargs)
            with Tracer.trace_step(step_type, step_name, _input_of(args, kwargs), metadata) as step:
                result = func(*args, **kwargs)
                if step is not None:
                    step.output_data = _summarize_output(result)
                return result

        return sync_wrapper

    return decorator


def start_trace(user_id: str, user_message: str) -> str:
    return Tracer.start_session(user_id, user_message)


def end_trace(final_response: Optional[Dict[str, Any]] = None) -> Optional[TraceSession]:
    return Tracer.end_session(final_response)


def trace_step(step_type: str, name: str, input_data: Optional[Dict[str, Any]] = None):
    return Tracer.trace_step(step_type, name, input_data)


def get_current_trace() -> Optional[TraceSession]:
    return Tracer.get_current_session()
