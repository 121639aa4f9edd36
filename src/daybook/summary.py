"""End-of-day summaries, chained day over day."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta

from daybook.exceptions import ConversationNotFoundError, LLMError, RetryCancelled
from daybook.llm.builder import RequestBuilder
from daybook.llm.retry import RetryCoordinator
from daybook.models import Conversation
from daybook.prompts import SUMMARY_SYSTEM_PROMPT
from daybook.store import ConversationStore, previous_day, start_of_day

logger = logging.getLogger(__name__)

CONVERSATION_SEPARATOR = "\n\n---\n\n"

# Seconds after which a held processing gate is treated as stuck.
DEFAULT_PROCESSING_TIMEOUT = 600.0


def build_transcript(conversations: Iterable[Conversation]) -> str:
    """Render conversations as ``"{DisplayRole}: {content}"`` lines.

    Blank messages are dropped, and conversations are separated by a
    ``---`` rule.
    """
    blocks = []
    for conversation in conversations:
        lines = []
        for message in sorted(conversation.messages, key=lambda m: m.order):
            content = message.content.strip()
            if content:
                lines.append(f"{message.display_role}: {content}")
        if lines:
            blocks.append("\n".join(lines))
    return CONVERSATION_SEPARATOR.join(blocks)


def build_summary_context(transcript: str, previous_summary: str | None = None) -> str:
    if previous_summary:
        return f"Previous day's summary:\n{previous_summary}\n\nToday's conversations:\n{transcript}"
    return transcript


class DailySummaryOrchestrator:
    """Generates and stores one reflective summary per day.

    A single ``is_processing`` gate serializes all summary work: while one
    date (or a whole catch-up batch) is being processed, further requests
    return immediately without touching the network. Failures are logged and
    swallowed so the date stays eligible for a later attempt.

    Args:
        store: Conversation store.
        retry: Retry coordinator used for every summary request.
        builder: Request builder bound to the configured model.
        processing_timeout: Seconds after which a held gate is considered
            stuck and reclaimed by the next caller.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        store: ConversationStore,
        retry: RetryCoordinator,
        builder: RequestBuilder,
        processing_timeout: float = DEFAULT_PROCESSING_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.retry = retry
        self.builder = builder
        self.processing_timeout = processing_timeout
        self._clock = clock
        self._is_processing = False
        self._started_at: float | None = None
        self._generation = 0

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    def reset(self) -> None:
        """Release the processing gate. Safe to call at any time."""
        self._is_processing = False
        self._started_at = None

    def _acquire(self) -> int | None:
        if self._is_processing:
            held_for = self._clock() - (self._started_at or 0.0)
            if held_for <= self.processing_timeout:
                return None
            logger.warning(f"Summary processing held for {held_for:.0f}s, resetting stuck gate")
            self.reset()
        self._generation += 1
        self._is_processing = True
        self._started_at = self._clock()
        return self._generation

    def _release(self, token: int) -> None:
        # A reclaimed gate belongs to the newer holder.
        if token == self._generation:
            self.reset()

    async def generate_summary_for_date(self, day: date | datetime) -> str | None:
        """Summarize ``day`` unless it already has a summary.

        Returns:
            The new summary, or None when nothing was generated (busy, already
            summarized, no conversation, or a swallowed failure).
        """
        token = self._acquire()
        if token is None:
            logger.debug("Summary generation already in progress")
            return None
        try:
            start = start_of_day(day, self.store.tz)
            existing = self.store.fetch(start)
            if existing is not None and existing.has_summary:
                return None
            conversations = self.store.fetch_for_date(start)
            if not conversations:
                return None
            previous = self.store.fetch(previous_day(start, self.store.tz))
            previous_summary = previous.summary if previous is not None else None
            return await self._summarize(conversations, start, previous_summary)
        finally:
            self._release(token)

    async def generate_missing_summaries(self) -> dict[date, str]:
        """Summarize every day that has messages but no summary, oldest first.

        Days are processed one after another. Each fresh summary is folded
        into the running date-to-summary map before the next day is built,
        so the following day receives it as context.

        Returns:
            Newly generated summaries keyed by calendar day.
        """
        token = self._acquire()
        if token is None:
            logger.debug("Summary generation already in progress")
            return {}
        try:
            conversations = self.store.fetch_all()
            known = {c.date.date(): c.summary for c in conversations if c.has_summary}
            pending = sorted(
                (c for c in conversations if c.has_messages and not c.has_summary),
                key=lambda c: c.date,
            )
            if pending:
                logger.info(f"Generating {len(pending)} missing summaries")

            generated: dict[date, str] = {}
            for conversation in pending:
                day = conversation.date.date()
                previous_summary = known.get(day - timedelta(days=1))
                summary = await self._summarize([conversation], conversation.date, previous_summary)
                if summary:
                    known[day] = summary
                    generated[day] = summary
            return generated
        finally:
            self._release(token)

    async def _summarize(
        self,
        conversations: list[Conversation],
        day: datetime,
        previous_summary: str | None,
    ) -> str | None:
        transcript = build_transcript(conversations)
        if not transcript.strip():
            logger.debug(f"No content to summarize for {day.date()}")
            return None

        target = conversations[0]
        try:
            request = self.builder.build_single(
                build_summary_context(transcript, previous_summary),
                SUMMARY_SYSTEM_PROMPT,
            )
            completion = await self.retry.send_with_retry(
                request,
                should_continue=lambda: self.store.exists(target.id),
            )
            summary = completion.text.strip()
            self.store.set_summary(target, summary)
        except LLMError as e:
            logger.warning(f"Summary for {day.date()} failed: {e.debug_message}")
            return None
        except (RetryCancelled, ConversationNotFoundError):
            logger.info(f"Conversation for {day.date()} was deleted, summary dropped")
            return None

        logger.info(f"Saved summary for {day.date()}")
        return summary

    def clear_summary(self, day: date | datetime) -> bool:
        """Drop the stored summary for ``day`` so it can be regenerated."""
        conversation = self.store.fetch(day)
        if conversation is None or not conversation.has_summary:
            return False
        self.store.set_summary(conversation, None)
        return True
