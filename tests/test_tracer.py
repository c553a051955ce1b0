"""트레이서 테스트."""

import json

import pytest

from yuber.core.tracer import Tracer, traced


@traced("selection", name="double")
def _double(value):
    return value * 2


@traced("search")
async def _lookup(key, fail=False):
    if fail:
        raise KeyError(key)
    return {"key": key, "api_key": "secret"}


class TestTraced:
    """traced 데코레이터 테스트."""

    def test_sync_pass_through(self):
        assert _double(21) == 42

        steps = Tracer.get_detached_steps()
        assert len(steps) == 1
        assert steps[0].name == "double"
        assert steps[0].input_data == {"value": 21}
        assert steps[0].output_data == {"value": 42}
        assert steps[0].success is True

    @pytest.mark.asyncio
    async def test_async_pass_through(self):
        result = await _lookup("plumber")

        assert result == {"key": "plumber", "api_key": "secret"}
        step = Tracer.get_detached_steps()[0]
        assert step.step_type == "search"
        assert step.output_data["api_key"] == "secret"
        assert step.output_data["key"] == "plumber"

    @pytest.mark.asyncio
    async def test_exception_recorded_and_propagated(self):
        with pytest.raises(KeyError):
            await _lookup("plumber", fail=True)

        step = Tracer.get_detached_steps()[0]
        assert step.success is False
        assert step.error.startswith("KeyError")
        assert step.end_time >= step.start_time

    def test_disabled_still_calls(self):
        Tracer.disable()
        try:
            assert _double(2) == 4
        finally:
            Tracer.enable()
        assert Tracer.get_detached_steps() == []


class TestTraceSession:
    """세션 기록 테스트."""

    def test_steps_in_session(self):
        session_id = Tracer.start_session("user_001", "help")
        _double(1)
        with Tracer.trace_step("llm", "HelpAgent"):
            pass

        session = Tracer.end_session({"ok": True})

        assert session.session_id == session_id
        assert [s.step_id for s in session.steps] == ["step_000", "step_001"]
        assert session.llm_calls == 1
        assert Tracer.get_current_session() is None
        assert Tracer.get_session_by_id(session_id) is session
        assert Tracer.get_detached_steps() == []

    def test_failed_step_counted(self):
        Tracer.start_session("user_001", "help")
        with pytest.raises(ValueError):
            with Tracer.trace_step("parser", "parse"):
                raise ValueError("bad")

        session = Tracer.end_session()

        assert session.failed_steps == 1

    def test_sanitize_redacts_keys(self):
        assert Tracer._sanitize_data("sk-abc123") == "[REDACTED]"
        assert Tracer._sanitize_data("x" * 600).endswith("...")

    def test_save_dir(self, tmp_path):
        Tracer.set_save_dir(tmp_path / "traces")
        session_id = Tracer.start_session("user_001", "help")
        _double(3)
        Tracer.end_session()

        saved = json.loads((tmp_path / "traces" / f"{session_id}.json").read_text(encoding="utf-8"))
        assert saved["summary"]["total_steps"] == 1
        assert saved["steps"][0]["name"] == "double"
