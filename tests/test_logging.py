"""로깅 모듈 테스트."""

import json
import logging
import sys

import pytest

from yuber.core.logging import (
    ContextLogger,
    JSONFormatter,
    get_logger,
    get_request_id,
    get_session_id,
    get_user_id,
    log_context,
    request_id_var,
    session_id_var,
    set_request_id,
    set_session_id,
    set_user_id,
    setup_logging,
    setup_logging_from_config,
    user_id_var,
)


@pytest.fixture(autouse=True)
def clear_context():
    """로그 컨텍스트 초기화."""
    request_id_var.set(None)
    user_id_var.set(None)
    session_id_var.set(None)
    yield
    request_id_var.set(None)
    user_id_var.set(None)
    session_id_var.set(None)


@pytest.fixture
def restore_root_logger():
    """루트 로거 핸들러/레벨 복원."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def _record(message="hello", exc_info=None):
    return logging.LogRecord(
        name="yuber.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg=message,
        args=(),
        exc_info=exc_info,
    )


class TestContextVars:
    """요청/세션 컨텍스트 테스트."""

    def test_request_id_auto_generate(self):
        request_id = set_request_id()

        assert len(request_id) == 8
        assert get_request_id() == request_id

    def test_session_id(self):
        assert get_session_id() is None
        set_session_id("sess_1")
        assert get_session_id() == "sess_1"


class TestJSONFormatter:
    """JSON 포매터 테스트."""

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record("배차 확정")))

        assert data["level"] == "INFO"
        assert data["logger"] == "yuber.test"
        assert data["message"] == "배차 확정"
        assert data["source"]["line"] == 10
        assert "request_id" not in data

    def test_context_fields(self):
        set_request_id("req-1")
        set_user_id("user_001")
        set_session_id("sess_1")

        data = json.loads(JSONFormatter().format(_record()))

        assert data["request_id"] == "req-1"
        assert data["user_id"] == "user_001"
        assert data["session_id"] == "sess_1"

    def test_extra_fields(self):
        record = _record()
        record.extra_fields = {"dispatch_id": "dsp_1"}

        data = json.loads(JSONFormatter().format(record))

        assert data["dispatch_id"] == "dsp_1"

    def test_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record(exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestContextLogger:
    """컨텍스트 로거 테스트."""

    def test_get_logger(self):
        assert isinstance(get_logger("yuber.test"), ContextLogger)

    def test_process_adds_context(self):
        set_user_id("user_001")

        _, kwargs = get_logger("yuber.test").process("msg", {})

        assert kwargs["extra"] == {"user_id": "user_001"}


class TestSetupLogging:
    """로깅 설정 테스트."""

    def test_console_json(self, restore_root_logger):
        root = setup_logging(level="DEBUG")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_file_handler(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "yuber.log"

        root = setup_logging(log_file=str(log_file), json_format=False)
        logging.getLogger("yuber.test").info("파일 로그")
        for handler in root.handlers:
            handler.flush()

        assert len(root.handlers) == 2
        assert "파일 로그" in log_file.read_text(encoding="utf-8")

    def test_from_config(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        root = setup_logging_from_config()

        assert root.level == logging.WARNING


class TestLogContext:
    """범위 기반 로그 컨텍스트 테스트."""

    def test_bound_and_restored(self):
        set_user_id("outer")

        with log_context(user_id="inner", session_id="sess_1"):
            data = json.loads(JSONFormatter().format(_record()))
            assert data["user_id"] == "inner"
            assert data["session_id"] == "sess_1"

        assert get_user_id() == "outer"
        assert get_session_id() is None

    def test_restored_on_error(self):
        with pytest.raises(RuntimeError):
            with log_context(session_id="sess_1"):
                raise RuntimeError("boom")

        assert get_session_id() is None

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            with log_context(order_id="o1"):
                pass

    def test_service_field(self):
        data = json.loads(JSONFormatter(service="yuber-dispatch").format(_record()))

        assert data["service"] == "yuber-dispatch"
