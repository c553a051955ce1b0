"""통합 설정 로더 모듈.

configs/ 아래의 YAML 설정 파일을 로드하고 관리합니다.
환경변수 오버라이드를 지원합니다.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


# 기본 설정 디렉토리
DEFAULT_CONFIG_DIR = Path("configs")


def load_yaml(path: Path | str) -> Dict[str, Any]:
    """YAML 파일 로드."""
    path = Path(path)
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_env_or_default(key: str, default: Any) -> Any:
    """환경변수 또는 기본값 반환."""
    env_val = os.environ.get(key)
    if env_val is not None:
        # 타입 변환 (bool은 int의 하위 타입이므로 먼저 검사)
        if isinstance(default, bool):
            return env_val.lower() in ("true", "1", "yes")
        if isinstance(default, int):
            return int(env_val)
        if isinstance(default, float):
            return float(env_val)
        return env_val
    return default


@dataclass
class AppConfig:
    """앱 전역 설정."""

    name: str = "yuber-dispatch"
    version: str = "1.0.0"
    description: str = "On-demand local services dispatch agent"
    environment: str = "development"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    json_logs: bool = True


@dataclass
class LLMConfig:
    """LLM 설정."""

    provider: str = "openai"
    model: str = "gpt-4o"
    api_key: str = ""
    base_url: Optional[str] = None
    temperature: float = 0.4
    max_tokens: int = 1024
    timeout: int = 30
    api_version: str = "2023-06-01"  # Anthropic용


@dataclass
class PathsConfig:
    """경로 설정."""

    sqlite_path: str = "data/yuber.db"
    traces_dir: str = "data/traces"
    logs_dir: str = "logs"


@dataclass
class DispatchConfig:
    """공급자 선택/배차 설정."""

    min_preferred_rating: float = 4.0
    minutes_per_mile: float = 2.5
    min_eta_minutes: int = 1
    cost_low_multiplier: float = 1.0
    cost_high_multiplier: float = 2.0
    default_hourly_rate: float = 85.0
    category_hourly_rates: Dict[str, float] = field(default_factory=lambda: {
        "plumber": 95.0,
        "electrician": 100.0,
        "locksmith": 75.0,
        "glass": 80.0,
        "handyman": 65.0,
    })
    max_options: int = 3


@dataclass
class PaymentConfig:
    """결제 시뮬레이션 설정."""

    failure_rate: float = 0.1
    default_method: str = "card"


@dataclass
class MemoryConfig:
    """대화/사용자 컨텍스트 메모리 설정."""

    max_recent_issues: int = 10
    max_context_messages: int = 20
    prune_threshold: int = 50


@dataclass
class SearchConfig:
    """공급자 검색 설정."""

    backend: str = "mock"  # mock, yelp
    yelp_api_key: str = ""
    yelp_url: str = "https://api.yelp.com/v3/businesses/search"
    timeout: int = 10
    limit: int = 20


class Config:
    """통합 설정 클래스."""

    _instance: Optional["Config"] = None

    def __init__(self, config_dir: Path | str = DEFAULT_CONFIG_DIR):
        self.config_dir = Path(config_dir)
        self._app: Optional[AppConfig] = None
        self._llm: Optional[LLMConfig] = None
        self._paths: Optional[PathsConfig] = None
        self._dispatch: Optional[DispatchConfig] = None
        self._payments: Optional[PaymentConfig] = None
        self._memory: Optional[MemoryConfig] = None
        self._search: Optional[SearchConfig] = None
        self._raw: Dict[str, Dict[str, Any]] = {}
        self._load_all()

    @classmethod
    def get_instance(cls, config_dir: Path | str = DEFAULT_CONFIG_DIR) -> "Config":
        """싱글톤 인스턴스 반환."""
        if cls._instance is None:
            cls._instance = cls(config_dir)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """싱글톤 인스턴스 리셋 (테스트용)."""
        cls._instance = None

    def _load_all(self) -> None:
        """모든 설정 파일 로드."""
        for section in ("app", "llm", "paths", "dispatch", "payments", "memory", "search"):
            self._raw[section] = load_yaml(self.config_dir / f"{section}.yaml")

    @property
    def app(self) -> AppConfig:
        """앱 설정."""
        if self._app is None:
            raw = self._raw.get("app", {})
            app_cfg = raw.get("app", {})
            logging_cfg = raw.get("logging", {})

            self._app = AppConfig(
                name=app_cfg.get("name", "yuber-dispatch"),
                version=app_cfg.get("version", "1.0.0"),
                description=app_cfg.get("description", ""),
                environment=get_env_or_default("APP_ENV", app_cfg.get("environment", "development")),
                log_level=get_env_or_default("LOG_LEVEL", logging_cfg.get("level", "INFO")),
                log_file=logging_cfg.get("file"),
                json_logs=logging_cfg.get("json", True),
            )
        return self._app

    @property
    def llm(self) -> LLMConfig:
        """LLM 설정."""
        if self._llm is None:
            raw = self._raw.get("llm", {})
            provider = get_env_or_default("LLM_PROVIDER", raw.get("provider", "openai"))
            provider_cfg = raw.get(provider, {})

            # API 키는 환경변수 우선
            api_key_env = f"{provider.upper()}_API_KEY"
            api_key = get_env_or_default(api_key_env, provider_cfg.get("api_key", ""))

            self._llm = LLMConfig(
                provider=provider,
                model=get_env_or_default("LLM_MODEL", provider_cfg.get("model", "gpt-4o")),
                api_key=api_key,
                base_url=provider_cfg.get("base_url"),
                temperature=provider_cfg.get("temperature", 0.4),
                max_tokens=provider_cfg.get("max_tokens", 1024),
                timeout=provider_cfg.get("timeout", 30),
                api_version=provider_cfg.get("api_version", "2023-06-01"),
            )
        return self._llm

    @property
    def paths(self) -> PathsConfig:
        """경로 설정."""
        if self._paths is None:
            raw = self._raw.get("paths", {})
            storage = raw.get("storage", {})
            outputs = raw.get("outputs", {})

            self._paths = PathsConfig(
                sqlite_path=get_env_or_default("SQLITE_PATH", storage.get("sqlite_path", "data/yuber.db")),
                traces_dir=outputs.get("traces", "data/traces"),
                logs_dir=outputs.get("logs", "logs"),
            )
        return self._paths

    @property
    def dispatch(self) -> DispatchConfig:
        """배차 설정."""
        if self._dispatch is None:
            raw = self._raw.get("dispatch", {})
            selection = raw.get("selection", {})
            eta = raw.get("eta", {})
            cost = raw.get("cost", {})
            defaults = DispatchConfig()

            self._dispatch = DispatchConfig(
                min_preferred_rating=selection.get("min_preferred_rating", defaults.min_preferred_rating),
                max_options=selection.get("max_options", defaults.max_options),
                minutes_per_mile=eta.get("minutes_per_mile", defaults.minutes_per_mile),
                min_eta_minutes=eta.get("min_minutes", defaults.min_eta_minutes),
                cost_low_multiplier=cost.get("low_multiplier", defaults.cost_low_multiplier),
                cost_high_multiplier=cost.get("high_multiplier", defaults.cost_high_multiplier),
                default_hourly_rate=cost.get("default_hourly_rate", defaults.default_hourly_rate),
                category_hourly_rates=cost.get("category_hourly_rates", defaults.category_hourly_rates),
            )
        return self._dispatch

    @property
    def payments(self) -> PaymentConfig:
        """결제 설정."""
        if self._payments is None:
            raw = self._raw.get("payments", {})
            simulation = raw.get("simulation", {})

            self._payments = PaymentConfig(
                failure_rate=get_env_or_default(
                    "PAYMENT_FAILURE_RATE", float(simulation.get("failure_rate", 0.1))
                ),
                default_method=raw.get("default_method", "card"),
            )
        return self._payments

    @property
    def memory(self) -> MemoryConfig:
        """메모리 설정."""
        if self._memory is None:
            raw = self._raw.get("memory", {})
            user_cfg = raw.get("user_context", {})
            conv_cfg = raw.get("conversation", {})

            self._memory = MemoryConfig(
                max_recent_issues=user_cfg.get("max_recent_issues", 10),
                max_context_messages=conv_cfg.get("max_context_messages", 20),
                prune_threshold=conv_cfg.get("prune_threshold", 50),
            )
        return self._memory

    @property
    def search(self) -> SearchConfig:
        """공급자 검색 설정."""
        if self._search is None:
            raw = self._raw.get("search", {})
            yelp_cfg = raw.get("yelp", {})

            self._search = SearchConfig(
                backend=get_env_or_default("SEARCH_BACKEND", raw.get("backend", "mock")),
                yelp_api_key=get_env_or_default("YELP_API_KEY", yelp_cfg.get("api_key", "")),
                yelp_url=yelp_cfg.get("url", "https://api.yelp.com/v3/businesses/search"),
                timeout=yelp_cfg.get("timeout", 10),
                limit=yelp_cfg.get("limit", 20),
            )
        return self._search

    def get_raw(self, section: str) -> Dict[str, Any]:
        """원시 설정 데이터 반환."""
        return self._raw.get(section, {})


# 편의 함수
def get_config(config_dir: Path | str = DEFAULT_CONFIG_DIR) -> Config:
    """설정 인스턴스 반환."""
    return Config.get_instance(config_dir)
