"""Personalized morning messages built on the previous day's summary."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from daybook.exceptions import LLMError, RetryCancelled
from daybook.llm.builder import RequestBuilder
from daybook.llm.retry import RetryCoordinator
from daybook.prompts import (
    FIRST_DAY_FALLBACK,
    FIRST_DAY_SYSTEM_PROMPT,
    FIRST_MORNING_CONTENT,
    MORNING_FALLBACK,
    MORNING_SYSTEM_PROMPT,
    NO_PREVIOUS_SUMMARY,
)
from daybook.store import ConversationStore, previous_day, start_of_day
from daybook.summary import DailySummaryOrchestrator

logger = logging.getLogger(__name__)

LAST_PROCESSED_DATE_KEY = "last_processed_date"
TODAYS_MORNING_MESSAGE_KEY = "todays_morning_message"


class MorningMessageService:
    """Produces one morning message per day.

    On a new day the previous processed day is summarized first, so the
    morning message can draw on it. A failed request falls back to a fixed
    greeting; the day still counts as processed.
    """

    def __init__(
        self,
        store: ConversationStore,
        retry: RetryCoordinator,
        builder: RequestBuilder,
        summaries: DailySummaryOrchestrator,
    ):
        self.store = store
        self.retry = retry
        self.builder = builder
        self.summaries = summaries

    def _today(self, now: date | datetime | None = None) -> datetime:
        return start_of_day(now or datetime.now(self.store.tz), self.store.tz)

    @property
    def todays_message(self) -> str | None:
        return self.store.get_state(TODAYS_MORNING_MESSAGE_KEY)

    def last_processed_date(self, now: date | datetime | None = None) -> date:
        """Last day a morning message was produced; yesterday on first run."""
        stored = self.store.get_state(LAST_PROCESSED_DATE_KEY)
        if stored:
            return date.fromisoformat(stored)
        return self._today(now).date() - timedelta(days=1)

    def has_processed_today(self, now: date | datetime | None = None) -> bool:
        today = self._today(now).date()
        return self.last_processed_date(now) == today and self.todays_message is not None

    def is_first_day_user(self) -> bool:
        return not any(c.has_messages for c in self.store.fetch_all())

    async def generate_morning_message(self, today: date | datetime | None = None) -> str:
        """Generate, store and return today's morning message."""
        today = self._today(today)
        first_day = self.is_first_day_user()
        try:
            if first_day:
                request = self.builder.build_single(FIRST_MORNING_CONTENT, FIRST_DAY_SYSTEM_PROMPT)
            else:
                yesterday = self.store.fetch(previous_day(today, self.store.tz))
                summary = yesterday.summary if yesterday is not None and yesterday.has_summary else None
                request = self.builder.build_single(summary or NO_PREVIOUS_SUMMARY, MORNING_SYSTEM_PROMPT)
            completion = await self.retry.send_with_retry(request)
            message = completion.text.strip()
        except (LLMError, RetryCancelled) as e:
            logger.warning(f"Morning message failed, using fallback: {e}")
            message = FIRST_DAY_FALLBACK if first_day else MORNING_FALLBACK
        else:
            logger.info(f"Generated morning message for {today.date()}")

        self.store.set_state(TODAYS_MORNING_MESSAGE_KEY, message)
        self.store.set_state(LAST_PROCESSED_DATE_KEY, today.date().isoformat())
        return message

    async def handle_day_change(self, now: date | datetime | None = None) -> str | None:
        """Run the new-day sequence if today has not been processed yet.

        Returns:
            The new morning message, or None if today was already processed.
        """
        today = self._today(now)
        last_processed = self.last_processed_date(today)
        if today.date() <= last_processed:
            return None
        return await self._run_day_change(last_processed, today)

    async def process_current_day(self, now: date | datetime | None = None) -> str:
        """Run the new-day sequence for today regardless of processed state.

        Yesterday is summarized first (if it still lacks a summary), then a
        fresh morning message replaces any stored one.
        """
        today = self._today(now)
        return await self._run_day_change(today.date() - timedelta(days=1), today)

    async def _run_day_change(self, last_processed: date, today: datetime) -> str:
        logger.info(f"New day {today.date()}, last processed {last_processed}")
        await self.summaries.generate_summary_for_date(last_processed)
        return await self.generate_morning_message(today)

    def clear_morning_message(self) -> None:
        self.store.set_state(TODAYS_MORNING_MESSAGE_KEY, None)

    def reset_processing_state(self, now: date | datetime | None = None) -> bool:
        """Forget that today was processed so the next day change runs again.

        Only acts when the last processed date is today. Clears the stored
        morning message and releases the summary gate.

        Returns:
            True if state was reset.
        """
        today = self._today(now).date()
        if self.store.get_state(LAST_PROCESSED_DATE_KEY) != today.isoformat():
            return False
        self.store.set_state(LAST_PROCESSED_DATE_KEY, None)
        self.clear_morning_message()
        self.summaries.reset()
        logger.info(f"Reset processing state for {today}")
        return True
