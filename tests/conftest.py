"""pytest 설정 및 공통 fixture."""

import pytest

from yuber.config import Config
from yuber.core.tracer import Tracer
from yuber.memory import SqliteConversationMemory, SqliteUserContextMemory
from yuber.store import DispatchStore, Location

# pytest-asyncio 모드 설정
pytest_plugins = ["pytest_asyncio"]


@pytest.fixture(autouse=True)
def reset_config():
    """각 테스트 전/후에 Config 싱글톤 리셋."""
    Config.reset_instance()
    yield
    Config.reset_instance()


@pytest.fixture(autouse=True)
def reset_tracer():
    """트레이서 기록 초기화."""
    Tracer.enable()
    Tracer.set_save_dir(None)
    Tracer.reset()
    yield
    Tracer.reset()


@pytest.fixture
def db_path(tmp_path):
    """임시 SQLite 경로."""
    return tmp_path / "yuber_test.db"


@pytest.fixture
def store(db_path):
    return DispatchStore(db_path)


@pytest.fixture
def conversation_memory(db_path):
    return SqliteConversationMemory(db_path)


@pytest.fixture
def user_memory(store):
    return SqliteUserContextMemory(store)


@pytest.fixture
def columbus():
    """Columbus, OH 43228 중심 좌표."""
    return Location(lat=39.9612, lng=-83.1259)


@pytest.fixture
def test_user_id():
    """테스트용 사용자 ID."""
    return "user_001"
