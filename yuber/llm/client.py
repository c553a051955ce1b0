"""LLM 클라이언트 구현 (OpenAI, Anthropic, Local 지원).

오케스트레이터는 ``CompletionFn`` (메시지 히스토리 -> 응답 텍스트)에만
의존합니다. ``LLMClient.complete``가 그 구현체입니다.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import aiohttp

from yuber.config import LLMConfig, get_config
from yuber.core.exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)

CompletionFn = Callable[[List[Dict[str, str]]], Awaitable[str]]

DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "anthropic": "https://api.anthropic.com",
    "local": "http://localhost:8080/v1",
}


def split_system_messages(messages: List[Dict[str, str]]) -> Tuple[Optional[str], List[Dict[str, str]]]:
    """system 역할 메시지를 분리 (Anthropic은 별도 필드로 전달)."""
    system_parts = [m["content"] for m in messages if m.get("role") == "system"]
    rest = [m for m in messages if m.get("role") != "system"]
    return ("\n\n".join(system_parts) if system_parts else None), rest


class LLMClient:
    """LLM 클라이언트"""

    def __init__(self, config: Optional[LLMConfig] = None):
        self.config = config or get_config().llm
        if self.config.provider not in DEFAULT_BASE_URLS:
            raise ValueError(f"지원하지 않는 프로바이더: {self.config.provider}")
        self.base_url = (self.config.base_url or DEFAULT_BASE_URLS[self.config.provider]).rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        """메시지 히스토리(system 포함)로 응답 생성."""
        system_prompt, rest = split_system_messages(messages)
        return await self.chat(rest, system_prompt)

    async def chat(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
    ) -> str:
        """채팅 완성 요청"""
        if self.config.provider == "anthropic":
            return await self._chat_anthropic(messages, system_prompt)
        return await self._chat_openai_compatible(messages, system_prompt)

    async def _post(self, url: str, payload: Dict, headers: Dict[str, str], label: str) -> Dict:
        session = await self._get_session()
        try:
            async with session.post(url, json=payload, headers=headers) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    logger.error(f"{label} API 오류: {resp.status} - {error_text}")
                    raise ServiceUnavailableError(
                        f"{label} API error: {resp.status}",
                        details={"status": resp.status},
                    )
                return await resp.json()
        except aiohttp.ClientError as e:
            logger.error(f"{label} API 연결 오류: {e}")
            raise ServiceUnavailableError(f"{label} API connection error: {e}")

    async def _chat_openai_compatible(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
    ) -> str:
        """OpenAI 및 로컬(OpenAI 호환) API 호출"""
        headers = {"Content-Type": "application/json"}
        if self.config.provider == "openai":
            if not self.config.api_key:
                raise ValueError("OpenAI API 키가 설정되지 않았습니다. configs/llm.yaml을 확인하세요.")
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        full_messages = []
        if system_prompt:
            full_messages.append({"role": "system", "content": system_prompt})
        full_messages.extend(messages)

        payload = {
            "model": self.config.model,
            "messages": full_messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

        label = "OpenAI" if self.config.provider == "openai" else "로컬 LLM"
        data = await self._post(f"{self.base_url}/chat/completions", payload, headers, label)
        return data["choices"][0]["message"]["content"]

    async def _chat_anthropic(
        self,
        messages: List[Dict[str, str]],
        system_prompt: Optional[str] = None,
    ) -> str:
        """Anthropic API 호출"""
        if not self.config.api_key:
            raise ValueError("Anthropic API 키가 설정되지 않았습니다. configs/llm.yaml을 확인하세요.")

        payload = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "messages": messages,
        }
        if system_prompt:
            payload["system"] = system_prompt

        headers = {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.config.api_version,
            "Content-Type": "application/json",
        }

        data = await self._post(f"{self.base_url}/v1/messages", payload, headers, "Anthropic")
        return "".join(block.get("text", "") for block in data.get("content", []) if block.get("type") == "text")


_client: Optional[LLMClient] = None


def get_client(reset: bool = False) -> LLMClient:
    """전역 LLM 클라이언트 (스크립트용)."""
    global _client
    if _client is None or reset:
        _client = LLMClient()
    return _client
