"""LLM 클라이언트 모듈."""

from .client import CompletionFn, LLMClient, get_client, split_system_messages

__all__ = ["CompletionFn", "LLMClient", "get_client", "split_system_messages"]
