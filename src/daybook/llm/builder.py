"""Turns conversation history into validated chat requests."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from daybook.config import LLMConfig
from daybook.exceptions import LLMError, LLMErrorKind
from daybook.llm.models import API_ROLES, ChatMessage, ChatRequest

MAX_CONTEXT_CHARS = 100_000
MAX_SYSTEM_PROMPT_CHARS = 10_000

_ROLE_ALIASES = {"ai": "assistant"}


def to_chat_message(item: Any) -> ChatMessage:
    """Accept a stored ``Message``, a ``ChatMessage`` or a ``{"role", "content"}`` mapping."""
    if isinstance(item, Mapping):
        role, content = item.get("role"), item.get("content")
    else:
        role, content = getattr(item, "role", None), getattr(item, "content", None)
    role = _ROLE_ALIASES.get(role, role)
    return ChatMessage(role=role, content=content if content is not None else "")


def build_request(
    history: Iterable[Any],
    system_prompt: str | None = None,
    *,
    model: str,
    max_tokens: int | None = 1000,
    temperature: float | None = 0.7,
) -> ChatRequest:
    """Build a non-streaming request from ordered history.

    The system prompt, when given, becomes the leading ``system`` entry.

    Raises:
        LLMError: ``INVALID_MESSAGE_FORMAT`` for empty history, empty content or
            an unknown role; ``CONTEXT_TOO_LONG`` above 100,000 characters of
            content; ``SYSTEM_PROMPT_TOO_LONG`` above 10,000 characters.
    """
    messages = [to_chat_message(item) for item in history]
    if not messages:
        raise LLMError(LLMErrorKind.INVALID_MESSAGE_FORMAT, detail="History is empty")
    for message in messages:
        if message.role not in API_ROLES:
            raise LLMError(LLMErrorKind.INVALID_MESSAGE_FORMAT, detail=f"Unknown role: {message.role}")
        if not message.content:
            raise LLMError(LLMErrorKind.INVALID_MESSAGE_FORMAT, detail="Message content is empty")

    total = sum(len(m.content) for m in messages)
    if total > MAX_CONTEXT_CHARS:
        raise LLMError(LLMErrorKind.CONTEXT_TOO_LONG, detail=f"{total} characters")

    if system_prompt:
        if len(system_prompt) > MAX_SYSTEM_PROMPT_CHARS:
            raise LLMError(LLMErrorKind.SYSTEM_PROMPT_TOO_LONG, detail=f"{len(system_prompt)} characters")
        messages.insert(0, ChatMessage(role="system", content=system_prompt))

    return ChatRequest(
        model=model,
        messages=messages,
        stream=False,
        max_tokens=max_tokens,
        temperature=temperature,
    )


def build_single_message_request(
    content: str,
    system_prompt: str | None = None,
    *,
    model: str,
    max_tokens: int | None = 1000,
    temperature: float | None = 0.7,
) -> ChatRequest:
    """Wrap one user message, as used for summaries and morning messages."""
    if not content or not content.strip():
        raise LLMError(LLMErrorKind.INVALID_MESSAGE_FORMAT, detail="Message content is empty")
    return build_request(
        [ChatMessage(role="user", content=content)],
        system_prompt,
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
    )


class RequestBuilder:
    """Binds model and generation parameters from an ``LLMConfig``."""

    def __init__(self, config: LLMConfig):
        self.config = config

    def build(self, history: Iterable[Any], system_prompt: str | None = None) -> ChatRequest:
        return build_request(
            history,
            system_prompt,
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

    def build_single(self, content: str, system_prompt: str | None = None) -> ChatRequest:
        return build_single_message_request(
            content,
            system_prompt,
            model=self.config.model,
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )
