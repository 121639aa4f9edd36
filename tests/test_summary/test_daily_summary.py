"""Tests for the daily summary orchestrator."""

import asyncio
from datetime import date

import pytest

from daybook.exceptions import LLMError, LLMErrorKind
from daybook.prompts import SUMMARY_SYSTEM_PROMPT
from daybook.summary import DailySummaryOrchestrator, build_summary_context, build_transcript

from conftest import day


@pytest.fixture
def summaries(store, retry, builder):
    return DailySummaryOrchestrator(store, retry, builder)


def _journal(store, d, *entries):
    conversation = store.get_or_create(day(d))
    for role, content in entries:
        store.append(conversation, content, role)
    return store.get(conversation.id)


def _user_content(request):
    return request.messages[-1].content


def test_build_transcript(store):
    first = _journal(store, 5, ("user", "Slept badly "), ("assistant", "Sorry to hear"), ("user", "  "), ("system", "note"))
    second = _journal(store, 6, ("ai", "Welcome back"))
    empty = _journal(store, 7)

    transcript = build_transcript([first, empty, second])

    assert transcript == (
        "You: Slept badly\nAI: Sorry to hear\nSystem: note"
        "\n\n---\n\n"
        "AI: Welcome back"
    )


def test_build_summary_context():
    assert build_summary_context("You: hi") == "You: hi"
    assert build_summary_context("You: hi", "Yesterday was calm.") == (
        "Previous day's summary:\nYesterday was calm.\n\nToday's conversations:\nYou: hi"
    )


@pytest.mark.asyncio
async def test_generate_summary_for_date(summaries, store, transport):
    _journal(store, 4)
    store.set_summary(store.fetch(day(4)), "Day four was quiet.")
    _journal(store, 5, ("user", "Went running"), ("assistant", "Nice!"))
    transport.default = "A day of movement."

    result = await summaries.generate_summary_for_date(day(5, 21))

    assert result == "A day of movement."
    assert store.fetch(day(5)).summary == "A day of movement."
    request = transport.requests[0]
    assert request.messages[0].content == SUMMARY_SYSTEM_PROMPT
    assert _user_content(request) == (
        "Previous day's summary:\nDay four was quiet.\n\n"
        "Today's conversations:\nYou: Went running\nAI: Nice!"
    )
    assert not summaries.is_processing


@pytest.mark.asyncio
async def test_without_previous_summary_sends_transcript_only(summaries, store, transport):
    _journal(store, 5, ("user", "Went running"))
    await summaries.generate_summary_for_date(day(5))
    assert _user_content(transport.requests[0]) == "You: Went running"


@pytest.mark.asyncio
async def test_existing_summary_is_noop(summaries, store, transport):
    conversation = _journal(store, 5, ("user", "hello"))
    store.set_summary(conversation, "done")
    assert await summaries.generate_summary_for_date(day(5)) is None
    assert transport.requests == []


@pytest.mark.asyncio
async def test_no_conversation_is_noop(summaries, transport):
    assert await summaries.generate_summary_for_date(day(5)) is None
    assert transport.requests == []
    assert not summaries.is_processing


@pytest.mark.asyncio
async def test_second_call_while_in_flight_is_noop(summaries, store, transport):
    _journal(store, 5, ("user", "hello"))
    release = asyncio.Event()

    async def on_send(request):
        await release.wait()

    transport.on_send = on_send
    first = asyncio.ensure_future(summaries.generate_summary_for_date(day(5)))
    await asyncio.sleep(0)
    assert summaries.is_processing

    assert await summaries.generate_summary_for_date(day(5)) is None
    assert await summaries.generate_missing_summaries() == {}

    release.set()
    assert await first == "ok"
    assert len(transport.requests) == 1
    assert not summaries.is_processing


@pytest.mark.asyncio
async def test_failure_is_swallowed_and_retriable(summaries, store, transport, fake_sleep):
    _journal(store, 5, ("user", "hello"))
    transport.outcomes = [LLMError(LLMErrorKind.AUTHENTICATION_FAILED)]

    assert await summaries.generate_summary_for_date(day(5)) is None
    assert store.fetch(day(5)).summary is None
    assert not summaries.is_processing

    assert await summaries.generate_summary_for_date(day(5)) == "ok"
    assert store.fetch(day(5)).summary == "ok"


@pytest.mark.asyncio
async def test_missing_summaries_run_in_order_with_chained_context(summaries, store, transport):
    _journal(store, 7, ("user", "day three"))
    _journal(store, 5, ("user", "day one"))
    _journal(store, 6, ("user", "day two"))
    store.get_or_create(day(8))  # no messages, skipped
    transport.outcomes = ["S1", "S2", "S3"]

    async def on_send(request):
        assert summaries.is_processing
        await asyncio.sleep(0)

    transport.on_send = on_send
    generated = await summaries.generate_missing_summaries()

    assert generated == {date(2025, 10, 5): "S1", date(2025, 10, 6): "S2", date(2025, 10, 7): "S3"}
    contents = [_user_content(r) for r in transport.requests]
    assert contents[0] == "You: day one"
    assert contents[1] == "Previous day's summary:\nS1\n\nToday's conversations:\nYou: day two"
    assert contents[2] == "Previous day's summary:\nS2\n\nToday's conversations:\nYou: day three"
    assert [c.summary for c in store.fetch_all()] == ["S1", "S2", "S3", None]
    assert not summaries.is_processing


@pytest.mark.asyncio
async def test_missing_summaries_use_existing_prior_summary(summaries, store, transport):
    previous = _journal(store, 4, ("user", "earlier"))
    store.set_summary(previous, "Already summarized.")
    _journal(store, 5, ("user", "today"))

    await summaries.generate_missing_summaries()

    assert len(transport.requests) == 1
    assert _user_content(transport.requests[0]).startswith("Previous day's summary:\nAlready summarized.")


@pytest.mark.asyncio
async def test_missing_summaries_continue_after_failure(summaries, store, transport):
    _journal(store, 5, ("user", "day one"))
    _journal(store, 6, ("user", "day two"))
    transport.outcomes = [LLMError(LLMErrorKind.CONTEXT_TOO_LONG), "S2"]

    generated = await summaries.generate_missing_summaries()

    assert generated == {date(2025, 10, 6): "S2"}
    assert _user_content(transport.requests[1]) == "You: day two"
    assert store.fetch(day(5)).summary is None


@pytest.mark.asyncio
async def test_stuck_gate_is_reclaimed(store, retry, builder, transport):
    now = [0.0]
    summaries = DailySummaryOrchestrator(store, retry, builder, processing_timeout=60, clock=lambda: now[0])
    _journal(store, 5, ("user", "hello"))

    summaries._acquire()
    assert await summaries.generate_summary_for_date(day(5)) is None

    now[0] = 61.0
    assert await summaries.generate_summary_for_date(day(5)) == "ok"
    assert not summaries.is_processing


def test_reset_is_idempotent(summaries):
    summaries._acquire()
    summaries.reset()
    summaries.reset()
    assert not summaries.is_processing


def test_clear_summary(summaries, store):
    conversation = _journal(store, 5, ("user", "hello"))
    store.set_summary(conversation, "done")
    assert summaries.clear_summary(day(5)) is True
    assert store.fetch(day(5)).summary is None
    assert summaries.clear_summary(day(5)) is False
