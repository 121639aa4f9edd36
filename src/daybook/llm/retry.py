"""Bounded exponential-backoff retry around a chat transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from daybook.exceptions import LLMError, RetryCancelled
from daybook.llm.models import ChatCompletion, ChatRequest
from daybook.llm.transport import BaseChatTransport

logger = logging.getLogger(__name__)

MAX_RETRIES = 3


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt ``attempt``: 1, 2, 4, ..."""
    return float(2 ** attempt)


class RetryCoordinator:
    """Retries recoverable ``LLMError`` failures with exponential backoff.

    At most ``1 + max_retries`` transport calls are made per request.
    Non-recoverable errors are raised on first sight.

    Args:
        transport: Single-attempt transport.
        max_retries: Retries after the first attempt.
        sleep: Awaitable delay function; tests inject a fake clock here.
    """

    def __init__(
        self,
        transport: BaseChatTransport,
        max_retries: int = MAX_RETRIES,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.transport = transport
        self.max_retries = max_retries
        self._sleep = sleep

    async def send_with_retry(
        self,
        request: ChatRequest,
        attempt: int = 0,
        should_continue: Callable[[], bool] | None = None,
    ) -> ChatCompletion:
        """Send ``request``, retrying while the failure is recoverable.

        Args:
            request: The request to send.
            attempt: Starting attempt number (drives the first backoff delay).
            should_continue: Checked before each retry. When it returns False
                the sequence stops with ``RetryCancelled``.
        """
        while True:
            try:
                return await self.transport.send(request)
            except LLMError as e:
                if not e.is_recoverable or attempt >= self.max_retries:
                    logger.warning(f"Chat request failed: {e.debug_message} (attempt {attempt + 1})")
                    raise
                wait = backoff_delay(attempt)
                logger.warning(
                    f"{e.kind.name}, retrying in {wait:g}s (attempt {attempt + 1})"
                )
                await self._sleep(wait)
                if should_continue is not None and not should_continue():
                    raise RetryCancelled("Retry sequence abandoned") from e
                attempt += 1
