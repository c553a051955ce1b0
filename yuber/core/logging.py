"""JSON 구조화 로깅.

모든 로그 레코드에 현재 대화 세션/사용자/요청 ID를 붙입니다. 컨텍스트는
``log_context``로 한 턴 범위에만 바인딩하고 종료 시 이전 값으로 복원합니다.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

_CONTEXT_VARS: Dict[str, ContextVar[Optional[str]]] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "session_id": session_id_var,
}

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: Optional[str] = None) -> str:
    """요청 ID 설정. 없으면 8자리 ID 생성."""
    request_id = request_id or uuid.uuid4().hex[:8]
    request_id_var.set(request_id)
    return request_id


def get_user_id() -> Optional[str]:
    return user_id_var.get()


def set_user_id(user_id: Optional[str]) -> None:
    user_id_var.set(user_id)


def get_session_id() -> Optional[str]:
    return session_id_var.get()


def set_session_id(session_id: Optional[str]) -> None:
    session_id_var.set(session_id)


@contextmanager
def log_context(**values: Optional[str]) -> Iterator[None]:
    """블록 범위로 로그 컨텍스트 바인딩.

    Example:
        with log_context(session_id="sess_1", user_id="user_001"):
            logger.info("접수 시작")
    """
    unknown = set(values) - set(_CONTEXT_VARS)
    if unknown:
        raise ValueError(f"알 수 없는 로그 컨텍스트 키: {sorted(unknown)}")

    tokens = [(_CONTEXT_VARS[key], _CONTEXT_VARS[key].set(value)) for key, value in values.items()]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def current_context() -> Dict[str, str]:
    """값이 있는 컨텍스트 필드만 반환."""
    return {key: var.get() for key, var in _CONTEXT_VARS.items() if var.get()}


class JSONFormatter(logging.Formatter):
    """한 줄 JSON 로그 포매터."""

    def __init__(self, service: Optional[str] = None):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.service:
            entry["service"] = self.service

        entry.update(current_context())
        entry.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }
        return json.dumps(entry, ensure_ascii=False, default=str)


class ContextLogger(logging.LoggerAdapter):
    """호출 시점의 로그 컨텍스트를 extra로 전달하는 어댑터."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra.update(current_context())
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    json_format: bool = True,
    service: Optional[str] = None,
) -> logging.Logger:
    """루트 로거 구성 (기존 핸들러 교체).

    Args:
        level: 로그 레벨
        log_file: 로테이션 파일 경로 (None이면 stdout만)
        max_bytes: 파일 최대 크기
        backup_count: 보관할 백업 파일 수
        json_format: False면 사람이 읽는 한 줄 포맷
        service: JSON 로그의 service 필드

    Returns:
        루트 로거
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = JSONFormatter(service) if json_format else logging.Formatter(PLAIN_FORMAT)

    handlers: list = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    return root_logger


def setup_logging_from_config() -> logging.Logger:
    """app.yaml의 logging 섹션으로 구성."""
    from yuber.config import get_config

    app_cfg = get_config().app
    return setup_logging(
        level=app_cfg.log_level,
        log_file=app_cfg.log_file,
        json_format=app_cfg.json_logs,
        service=app_cfg.name,
    )


def get_logger(name: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(name), {})
