"""Anthropic Messages API transport."""

from __future__ import annotations

import asyncio
import logging

from daybook.config import LLMConfig
from daybook.exceptions import LLMError, LLMErrorKind
from daybook.llm.connectivity import ConnectivityMonitor
from daybook.llm.models import ChatCompletion, ChatRequest
from daybook.llm.transport import BaseChatTransport

logger = logging.getLogger(__name__)


def map_anthropic_error(error: Exception) -> LLMError:
    """Classify an exception raised by the Anthropic SDK."""
    from anthropic import (
        APIConnectionError,
        APIStatusError,
        APITimeoutError,
        AuthenticationError,
        BadRequestError,
        RateLimitError,
    )

    if isinstance(error, (APITimeoutError, asyncio.TimeoutError)):
        return LLMError(LLMErrorKind.NETWORK_TIMEOUT, detail=str(error))
    if isinstance(error, APIConnectionError):
        return LLMError(LLMErrorKind.CONNECTION_FAILED, detail=str(error))
    if isinstance(error, AuthenticationError):
        return LLMError(LLMErrorKind.AUTHENTICATION_FAILED, status_code=401)
    if isinstance(error, RateLimitError):
        return LLMError(LLMErrorKind.RATE_LIMIT_EXCEEDED, status_code=429)
    if isinstance(error, BadRequestError):
        return LLMError(LLMErrorKind.INVALID_REQUEST, status_code=400, detail=str(error))
    if isinstance(error, APIStatusError):
        return LLMError(LLMErrorKind.SERVER_ERROR, status_code=error.status_code, detail=str(error))
    return LLMError(LLMErrorKind.UNKNOWN_ERROR, detail=str(error) or type(error).__name__)


class AnthropicTransport(BaseChatTransport):
    """Sends chat requests through ``anthropic.AsyncAnthropic``.

    Leading ``system`` entries become the SDK's ``system`` parameter. SDK
    retries are disabled; retrying belongs to ``RetryCoordinator``.
    """

    def __init__(
        self,
        config: LLMConfig,
        connectivity: ConnectivityMonitor | None = None,
        client=None,
    ):
        try:
            from anthropic import AsyncAnthropic
        except ImportError:
            raise ImportError(
                "anthropic is required for AnthropicTransport. "
                "Install with: pip install daybook[anthropic]"
            )
        self.config = config
        self.connectivity = connectivity or ConnectivityMonitor(host="api.anthropic.com")
        if client is None:
            client = AsyncAnthropic(
                api_key=config.api_key or None,
                timeout=config.request_timeout,
                max_retries=0,
            )
        self._client = client

    @property
    def client(self):
        """Access the underlying AsyncAnthropic SDK client."""
        return self._client

    async def send(self, request: ChatRequest) -> ChatCompletion:
        self.config.validate()
        if not self.connectivity.is_available:
            raise LLMError(LLMErrorKind.NO_INTERNET_CONNECTION)

        system_parts = [m.content for m in request.messages if m.role == "system"]
        if request.system_prompt:
            system_parts.insert(0, request.system_prompt)
        messages = [m.to_dict() for m in request.messages if m.role != "system"]
        kwargs = {
            "model": request.model,
            "max_tokens": request.max_tokens or self.config.max_tokens,
            "messages": messages,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature

        try:
            response = await asyncio.wait_for(
                self._client.messages.create(**kwargs),
                timeout=self.config.resource_timeout,
            )
        except Exception as e:
            raise map_anthropic_error(e) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise LLMError(LLMErrorKind.EMPTY_RESPONSE)
        return ChatCompletion(
            text=text,
            model=response.model,
            finish_reason=response.stop_reason,
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
        )

    async def aclose(self) -> None:
        await self._client.close()
