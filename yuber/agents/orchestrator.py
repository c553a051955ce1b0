"""오케스트레이터: 접수 대화 -> 공급자 검색 -> 배차 확정 -> 결제.

LLM 호출은 ``CompletionFn``으로 주입받으며, 메모리/배차/결제 컴포넌트도
모두 생성자에서 주입됩니다. 오케스트레이터가 직접 보관하는 상태는 요청별
배차 흐름과 마지막 검색 결과뿐입니다.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from yuber.config import MemoryConfig, get_config
from yuber.core.exceptions import InvalidTransitionError, ProviderNotFoundError, ValidationError
from yuber.core.logging import log_context
from yuber.core.results import ToolResult
from yuber.core.tracer import Tracer
from yuber.dispatch.flow import DispatchFlow
from yuber.dispatch.service import DispatchService
from yuber.llm.client import CompletionFn, get_client
from yuber.memory.conversation_memory import SqliteConversationMemory
from yuber.memory.interfaces import ConversationMemory, UserContextMemory
from yuber.memory.models import MessageRole
from yuber.memory.user_context_memory import FAVORITES_KEY, SqliteUserContextMemory
from yuber.payments.service import PaymentProcessor
from yuber.providers.models import ProviderOption, ProviderSelection
from yuber.providers.search import create_provider_search
from yuber.store.models import Dispatch, Location, ServiceRequest
from yuber.store.repository import DispatchStore

from .prompts import DISPATCH_AGENT_INSTRUCTIONS, HELP_AGENT_INSTRUCTIONS, format_selection_note
from .state import AgentState, DispatchState
from .state_parser import parse_agent_state, parse_dispatch_state, resolve_agent_state

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


@dataclass
class ChatResult:
    """접수 대화 한 턴의 결과."""

    session_id: str
    response: str
    agent_state: AgentState
    marker_found: bool
    message_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "response": self.response,
            "agent_state": self.agent_state.to_dict(),
            "marker_found": self.marker_found,
            "message_count": self.message_count,
        }


@dataclass
class SearchResult:
    """공급자 검색 턴의 결과."""

    request_id: str
    state: DispatchState
    selection: ProviderSelection
    response: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "state": self.state.value,
            "selection": self.selection.to_dict(),
            "response": self.response,
        }


@dataclass
class BookingResult:
    """배차 확정 및 결제 결과."""

    request_id: str
    dispatch: Dispatch
    payment: ToolResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "dispatch": self.dispatch.to_dict(),
            "payment": self.payment.to_dict(),
        }


@dataclass
class UserHistory:
    """사용자 이력 (요청 + 배차, 즐겨찾기, 선호)."""

    user_id: str
    requests: List[ServiceRequest]
    dispatches: Dict[str, Dispatch]
    favorites: List[str]
    preferences: Dict[str, str]

    def to_dict(self) -> Dict[str, Any]:
        requests = []
        for request in self.requests:
            entry = request.to_dict()
            dispatch = self.dispatches.get(request.id)
            if dispatch is not None:
                entry["dispatch"] = dispatch.to_dict()
            requests.append(entry)
        return {
            "user_id": self.user_id,
            "requests": requests,
            "favorites": self.favorites,
            "preferences": self.preferences,
        }


@contextmanager
def _turn(user_id: str, message: str, session_id: Optional[str] = None) -> Iterator[None]:
    """한 턴 동안 로그 컨텍스트와 트레이스 세션을 유지."""
    bound = {"user_id": user_id}
    if session_id:
        bound["session_id"] = session_id

    # 이미 활성 세션이 있으면 그 안에 단계만 기록
    owns_session = Tracer.is_enabled() and Tracer.get_current_session() is None
    with log_context(**bound):
        if owns_session:
            Tracer.start_session(user_id, message)
        try:
            yield
        finally:
            if owns_session:
                Tracer.end_session()


class DispatchOrchestrator:
    """배차 오케스트레이터."""

    def __init__(
        self,
        complete: CompletionFn,
        conversation_memory: ConversationMemory,
        user_context_memory: UserContextMemory,
        dispatch_service: DispatchService,
        payment_processor: PaymentProcessor,
        memory_settings: Optional[MemoryConfig] = None,
    ):
        self.complete = complete
        self.conversation_memory = conversation_memory
        self.user_context_memory = user_context_memory
        self.dispatch_service = dispatch_service
        self.payment_processor = payment_processor
        self.memory_settings = memory_settings or get_config().memory

        self._flows: Dict[str, DispatchFlow] = {}
        self._selections: Dict[str, ProviderSelection] = {}

    async def _generate(self, agent: str, messages: List[Dict[str, str]]) -> str:
        with Tracer.trace_step("llm", agent, {"message_count": len(messages)}) as step:
            text = await self.complete(messages)
            if step is not None:
                step.output_data = Tracer._sanitize_data({"text": text})
            return text

    async def _history(self, session_id: str) -> List[Dict[str, str]]:
        return await self.conversation_memory.get_agent_messages(
            session_id, self.memory_settings.max_context_messages
        )

    async def _prune_if_needed(self, session_id: str) -> int:
        message_count = await self.conversation_memory.count_messages(session_id)
        threshold = self.memory_settings.prune_threshold
        if message_count > threshold:
            await self.conversation_memory.prune(session_id, threshold)
        return message_count

    # ============================================
    # 접수 대화
    # ============================================

    async def chat(self, session_id: str, user_id: str, message: str) -> ChatResult:
        """접수 대화 한 턴 처리.

        사용자 메시지를 저장하고, 최근 히스토리와 사용자 컨텍스트로 LLM을
        호출한 뒤 상태 마커를 분리합니다. 마커가 없거나 깨져 있으면
        추가 확인이 필요한 상태로 간주합니다.

        Args:
            session_id: 대화 세션 ID
            user_id: 사용자 ID
            message: 사용자 메시지

        Returns:
            ChatResult

        Raises:
            ValidationError: 빈 세션 ID/사용자 ID/메시지
        """
        if not session_id or not user_id or not message or not message.strip():
            raise ValidationError("session_id, user_id and message are required")

        with _turn(user_id, message, session_id):
            await self.conversation_memory.add_message(session_id, user_id, MessageRole.USER, message)

            history = await self._history(session_id)
            context = await self.user_context_memory.get_context(user_id)

            messages = [{"role": "system", "content": HELP_AGENT_INSTRUCTIONS}]
            note = context.to_prompt_note()
            if note:
                messages.append({"role": "system", "content": note})
            messages.extend(history)

            raw = await self._generate("HelpAgent", messages)

            with Tracer.trace_step("parser", "parse_agent_state"):
                parsed = parse_agent_state(raw)
            agent_state = resolve_agent_state(parsed)
            if parsed.state is None:
                logger.warning(f"상태 마커 없음, 기본 상태로 처리 (session={session_id})")

            await self.conversation_memory.add_message(
                session_id, user_id, MessageRole.ASSISTANT, parsed.clean_text
            )
            message_count = await self._prune_if_needed(session_id)

            logger.info(
                f"접수 응답: state={agent_state.state.value}, "
                f"missing={agent_state.missing.value}, messages={message_count}"
            )

        return ChatResult(
            session_id=session_id,
            response=parsed.clean_text,
            agent_state=agent_state,
            marker_found=parsed.state is not None,
            message_count=message_count,
        )

    # ============================================
    # 검색/배차
    # ============================================

    async def open_request(
        self,
        user_id: str,
        issue: str,
        location: Location,
        urgency: str = "medium",
    ) -> ServiceRequest:
        """접수 완료된 내용으로 서비스 요청 생성."""
        return await self.dispatch_service.create_request(user_id, issue, location, urgency)

    def get_flow(self, request_id: str) -> Optional[DispatchFlow]:
        return self._flows.get(request_id)

    async def search_providers(
        self,
        session_id: str,
        user_id: str,
        request_id: str,
        max_options: Optional[int] = None,
    ) -> SearchResult:
        """공급자 검색 후 디스패치 에이전트 응답 생성.

        배차 상태는 선택 엔진 결과로 결정됩니다. LLM이 붙인 마커는 응답
        텍스트에서 제거만 하고 상태 결정에는 쓰지 않습니다.
        """
        with _turn(user_id, f"search:{request_id}", session_id):
            # 배차 불가 요청이면 find_providers가 먼저 실패하므로 기존 흐름은 유지됨
            selection = await self.dispatch_service.find_providers(request_id, max_options)
            flow = DispatchFlow(request_id)
            flow.advance(selection.state)
            self._flows[request_id] = flow
            self._selections[request_id] = selection

            messages = [
                {"role": "system", "content": DISPATCH_AGENT_INSTRUCTIONS},
                {"role": "system", "content": format_selection_note(selection.to_dict())},
            ]
            messages.extend(await self._history(session_id))

            raw = await self._generate("DispatchAgent", messages)
            with Tracer.trace_step("parser", "parse_dispatch_state"):
                parsed = parse_dispatch_state(raw)
            if parsed.state is not None and parsed.state.state is not flow.state:
                logger.debug(
                    f"배차 마커 불일치 무시: marker={parsed.state.state.value}, flow={flow.state.value}"
                )

            await self.conversation_memory.add_message(
                session_id, user_id, MessageRole.ASSISTANT, parsed.clean_text
            )
            await self._prune_if_needed(session_id)

        return SearchResult(
            request_id=request_id,
            state=flow.state,
            selection=selection,
            response=parsed.clean_text,
        )

    def _find_option(self, request_id: str, provider_id: Optional[str]) -> ProviderOption:
        selection = self._selections[request_id]
        if provider_id is None:
            if selection.provider is None:
                raise ProviderNotFoundError("No provider to confirm")
            return selection.provider
        for option in selection.options:
            if option.id == provider_id:
                return option
        raise ProviderNotFoundError(
            f"Provider {provider_id} was not offered for request {request_id}",
            details={"provider_id": provider_id},
        )

    async def confirm_booking(
        self,
        user_id: str,
        request_id: str,
        provider_id: Optional[str] = None,
        amount: Optional[float] = None,
        method: Optional[str] = None,
        simulate_failure: bool = False,
    ) -> BookingResult:
        """예약 확정: 배차 생성 후 결제 처리.

        Args:
            user_id: 사용자 ID
            request_id: 서비스 요청 ID
            provider_id: 선택한 공급자 (없으면 추천 공급자)
            amount: 결제 금액 (없으면 예상 비용 하한)
            method: 결제 수단 (없으면 설정 기본값)
            simulate_failure: 결제 실패 강제

        Raises:
            InvalidTransitionError: 검색 전이거나 확정할 수 없는 상태
            ProviderNotFoundError: 제시되지 않은 공급자
        """
        flow = self._flows.get(request_id)
        if flow is None:
            raise InvalidTransitionError(
                "Providers must be searched before confirming",
                details={"request_id": request_id},
            )
        flow.ensure_confirmable()
        provider = self._find_option(request_id, provider_id)

        with _turn(user_id, f"confirm:{request_id}"):
            dispatch = await self.dispatch_service.confirm_dispatch(request_id, provider)
            flow.confirm()

            payment = await self.payment_processor.process_payment(
                dispatch.id,
                amount if amount is not None else dispatch.cost_min,
                method or get_config().payments.default_method,
                simulate_failure=simulate_failure,
            )

        if not payment.success:
            logger.warning(f"배차는 확정됐으나 결제 실패: dispatch={dispatch.id}")
        return BookingResult(request_id=request_id, dispatch=dispatch, payment=payment)

    # ============================================
    # 이력 / 정리
    # ============================================

    async def get_history(self, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> UserHistory:
        """사용자 요청 이력(최신순, 배차 포함)과 즐겨찾기/선호 조회.

        Raises:
            ValidationError: 빈 사용자 ID 또는 음수 limit
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required")
        if limit < 0:
            raise ValidationError("limit cannot be negative", details={"limit": limit})

        store = self.dispatch_service.store
        requests = await store.get_requests_by_user(user_id, limit=limit)

        dispatches: Dict[str, Dispatch] = {}
        for request in requests:
            if request.dispatch_id:
                dispatch = await store.get_dispatch(request.dispatch_id)
                if dispatch is not None:
                    dispatches[request.id] = dispatch

        preferences = await self.user_context_memory.get_all_preferences(user_id)
        preferences.pop(FAVORITES_KEY, None)
        favorites = await self.user_context_memory.get_favorite_providers(user_id)

        logger.info(
            f"이력 조회: user={user_id}, requests={len(requests)}, favorites={len(favorites)}"
        )
        return UserHistory(
            user_id=user_id,
            requests=requests,
            dispatches=dispatches,
            favorites=favorites,
            preferences=preferences,
        )

    async def aclose(self) -> None:
        """협력 객체의 HTTP 세션 정리 (LLM 클라이언트, 공급자 검색)."""
        owners = [getattr(self.complete, "__self__", None), self.dispatch_service.search]
        for owner in owners:
            close = getattr(owner, "close", None)
            if close is not None:
                await close()


def create_orchestrator(complete: Optional[CompletionFn] = None) -> DispatchOrchestrator:
    """설정 기반 오케스트레이터 생성.

    complete를 주지 않으면 설정된 LLM 클라이언트를 사용합니다.
    """
    config = get_config()
    store = DispatchStore()
    return DispatchOrchestrator(
        complete=complete or get_client().complete,
        conversation_memory=SqliteConversationMemory(store.db_path),
        user_context_memory=SqliteUserContextMemory(
            store, max_recent_issues=config.memory.max_recent_issues
        ),
        dispatch_service=DispatchService(store, create_provider_search(config.search), config.dispatch),
        payment_processor=PaymentProcessor(store),
        memory_settings=config.memory,
    )
