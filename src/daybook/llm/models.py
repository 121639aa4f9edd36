"""Wire models for the chat-completions API."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from daybook.exceptions import LLMError, LLMErrorKind

API_ROLES = ("system", "user", "assistant")


@dataclass
class ChatMessage:
    """A role-tagged message in API format."""

    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """Request envelope for ``POST /chat/completions``."""

    model: str
    messages: list[ChatMessage] = field(default_factory=list)
    stream: bool = False
    max_tokens: int | None = 1000
    temperature: float | None = 0.7
    system_prompt: str | None = None

    @property
    def total_length(self) -> int:
        return sum(len(m.content) for m in self.messages)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in self.messages],
            "stream": self.stream,
        }
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.system_prompt is not None:
            payload["system_prompt"] = self.system_prompt
        return payload

    def encode(self) -> bytes:
        try:
            return json.dumps(self.to_payload()).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise LLMError(LLMErrorKind.ENCODING_ERROR, detail=str(e)) from e


@dataclass
class ChatCompletion:
    """A single completion returned by a transport."""

    text: str
    model: str = ""
    finish_reason: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0


def parse_completion(body: bytes | str) -> ChatCompletion:
    """Extract the completion from a 2xx response body.

    Raises:
        LLMError: ``MALFORMED_RESPONSE`` when the body is not a JSON object,
            ``SERVER_ERROR`` when it carries an ``error`` object,
            ``DECODING_ERROR`` when the choice fields have the wrong shape,
            ``EMPTY_RESPONSE`` when there is no completion text.
    """
    try:
        data = json.loads(body)
    except (TypeError, ValueError) as e:
        raise LLMError(LLMErrorKind.MALFORMED_RESPONSE, detail=str(e)) from e
    if not isinstance(data, dict):
        raise LLMError(LLMErrorKind.MALFORMED_RESPONSE, detail="Response is not a JSON object")

    error = data.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise LLMError(LLMErrorKind.SERVER_ERROR, status_code=500, detail=message)

    choices = data.get("choices")
    if choices is None:
        raise LLMError(LLMErrorKind.EMPTY_RESPONSE)
    if not isinstance(choices, list):
        raise LLMError(LLMErrorKind.DECODING_ERROR, detail="'choices' is not a list")
    if not choices:
        raise LLMError(LLMErrorKind.EMPTY_RESPONSE)

    first = choices[0]
    if not isinstance(first, dict):
        raise LLMError(LLMErrorKind.DECODING_ERROR, detail="choice is not an object")

    content = None
    for key in ("message", "delta"):
        part = first.get(key)
        if part is None:
            continue
        if not isinstance(part, dict):
            raise LLMError(LLMErrorKind.DECODING_ERROR, detail=f"'{key}' is not an object")
        value = part.get("content")
        if value is not None and not isinstance(value, str):
            raise LLMError(LLMErrorKind.DECODING_ERROR, detail=f"'{key}.content' is not a string")
        if value is not None:
            content = value
            break

    if not content:
        raise LLMError(LLMErrorKind.EMPTY_RESPONSE)

    usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
    return ChatCompletion(
        text=content,
        model=data.get("model") or "",
        finish_reason=first.get("finish_reason"),
        prompt_tokens=usage.get("prompt_tokens") or 0,
        completion_tokens=usage.get("completion_tokens") or 0,
    )
