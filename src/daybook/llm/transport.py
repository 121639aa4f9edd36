"""Single-attempt chat transports with typed failure classification."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import httpx

from daybook.config import LLMConfig
from daybook.exceptions import LLMError, LLMErrorKind
from daybook.llm.connectivity import ConnectivityMonitor
from daybook.llm.models import ChatCompletion, ChatRequest, parse_completion

logger = logging.getLogger(__name__)

# Dropped mid-flight; reported like a lost network.
_DROPPED_CONNECTION_ERRORS = (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError)


class BaseChatTransport(ABC):
    """Abstract interface for sending one chat request.

    Implementations make exactly one network call per ``send`` and never
    retry; failures are raised as ``LLMError``.
    """

    @abstractmethod
    async def send(self, request: ChatRequest) -> ChatCompletion:
        """Send ``request`` once and return the completion."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def map_status_code(status_code: int) -> LLMError:
    if status_code == 401:
        return LLMError(LLMErrorKind.AUTHENTICATION_FAILED, status_code=status_code)
    if status_code == 429:
        return LLMError(LLMErrorKind.RATE_LIMIT_EXCEEDED, status_code=status_code)
    if status_code == 400:
        return LLMError(LLMErrorKind.INVALID_REQUEST, status_code=status_code)
    return LLMError(LLMErrorKind.SERVER_ERROR, status_code=status_code)


def map_transport_error(error: Exception) -> LLMError:
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return LLMError(LLMErrorKind.NETWORK_TIMEOUT, detail=str(error))
    if isinstance(error, httpx.ConnectError):
        return LLMError(LLMErrorKind.CONNECTION_FAILED, detail=str(error))
    if isinstance(error, _DROPPED_CONNECTION_ERRORS):
        return LLMError(LLMErrorKind.NO_INTERNET_CONNECTION, detail=str(error))
    if isinstance(error, httpx.TransportError):
        return LLMError(LLMErrorKind.CONNECTION_FAILED, detail=str(error))
    return LLMError(LLMErrorKind.UNKNOWN_ERROR, detail=str(error) or type(error).__name__)


class HTTPChatTransport(BaseChatTransport):
    """OpenAI-compatible ``/chat/completions`` client over ``httpx``.

    Args:
        config: Endpoint, key, model and timeouts.
        connectivity: Source of the last known network state. Defaults to an
            unstarted monitor, which reports the network as available.
        client: Pre-built ``httpx.AsyncClient``; the transport does not close
            clients it did not create.
    """

    def __init__(
        self,
        config: LLMConfig,
        connectivity: ConnectivityMonitor | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.connectivity = connectivity or ConnectivityMonitor.for_url(config.base_url or "https://")
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """The underlying ``httpx.AsyncClient``, created on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.config.request_timeout))
        return self._client

    @property
    def is_ready(self) -> bool:
        return self.connectivity.is_available and self.config.is_valid

    @property
    def status(self) -> str:
        if not self.connectivity.is_available:
            return "No internet connection"
        if not self.config.is_valid:
            return "Invalid configuration"
        return "Ready"

    async def _post(self, body: bytes) -> httpx.Response:
        return await self.client.post(
            self.config.completions_url,
            content=body,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
        )

    async def send(self, request: ChatRequest) -> ChatCompletion:
        self.config.validate()
        if not self.connectivity.is_available:
            raise LLMError(LLMErrorKind.NO_INTERNET_CONNECTION)

        body = request.encode()
        try:
            response = await asyncio.wait_for(
                self._post(body), timeout=self.config.resource_timeout
            )
        except Exception as e:
            raise map_transport_error(e) from e

        logger.debug(f"Chat completion returned HTTP {response.status_code}")
        if not response.is_success:
            raise map_status_code(response.status_code)
        return parse_completion(response.content)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def create_transport(
    config: LLMConfig,
    connectivity: ConnectivityMonitor | None = None,
) -> BaseChatTransport:
    """Pick the transport for ``config.provider``."""
    if config.provider == "anthropic":
        from daybook.llm.anthropic import AnthropicTransport

        return AnthropicTransport(config, connectivity=connectivity)
    return HTTPChatTransport(config, connectivity=connectivity)
