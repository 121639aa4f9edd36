"""Tests for the chat orchestrator."""

import asyncio

import pytest

from daybook.chat import ChatOrchestrator
from daybook.exceptions import (
    GENERIC_USER_MESSAGE,
    ConversationBusyError,
    ConversationNotFoundError,
    LLMError,
    LLMErrorKind,
)
from daybook.prompts import CHAT_FALLBACK_REPLY

from conftest import day


@pytest.fixture
def chat(store, retry, builder):
    return ChatOrchestrator(store, retry, builder)


@pytest.mark.asyncio
async def test_successful_turn(chat, store, transport):
    transport.default = "Hi! How was your day?"
    conversation = chat.setup_current_conversation(day(5))

    reply = await chat.send_user_message(conversation, "Hello", "be kind")

    assert reply.succeeded
    messages = store.get(conversation.id).messages
    assert [(m.role, m.content) for m in messages] == [
        ("user", "Hello"),
        ("assistant", "Hi! How was your day?"),
    ]
    sent = transport.requests[0]
    assert [m.role for m in sent.messages] == ["system", "user"]
    assert chat.error_message is None
    assert not chat.is_loading(conversation)


@pytest.mark.asyncio
async def test_request_includes_full_history(chat, store, transport):
    conversation = chat.setup_current_conversation(day(5))
    await chat.send_user_message(conversation, "first")
    await chat.send_user_message(conversation, "second")
    assert [m.content for m in transport.requests[1].messages] == ["first", "ok", "second"]


@pytest.mark.asyncio
async def test_user_message_persisted_before_network_call(chat, store, transport):
    conversation = chat.setup_current_conversation(day(5))
    seen = []

    async def on_send(request):
        seen.append([m.content for m in store.get(conversation.id).messages])
        assert chat.is_loading(conversation)

    transport.on_send = on_send
    await chat.send_user_message(conversation, "Hello")
    assert seen == [["Hello"]]


@pytest.mark.asyncio
async def test_failure_appends_fallback_and_sets_error(chat, store, transport, fake_sleep):
    transport.outcomes = [LLMError(LLMErrorKind.NETWORK_TIMEOUT)] * 4
    conversation = chat.setup_current_conversation(day(5))

    reply = await chat.send_user_message(conversation, "Hello")

    assert reply.error.kind is LLMErrorKind.NETWORK_TIMEOUT
    messages = store.get(conversation.id).messages
    assert [(m.role, m.content) for m in messages] == [
        ("user", "Hello"),
        ("assistant", CHAT_FALLBACK_REPLY),
    ]
    assert chat.error_message == "Request timed out. Please try again."
    assert not chat.is_loading(conversation)
    assert len(transport.requests) == 4
    assert fake_sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_hidden_error_uses_generic_message(chat, transport):
    transport.outcomes = [LLMError(LLMErrorKind.DECODING_ERROR)] * 4
    conversation = chat.setup_current_conversation(day(5))
    await chat.send_user_message(conversation, "Hello")
    assert chat.error_message == GENERIC_USER_MESSAGE


@pytest.mark.asyncio
async def test_validation_error_still_gets_fallback(chat, store, transport):
    conversation = chat.setup_current_conversation(day(5))
    reply = await chat.send_user_message(conversation, "Hello", "p" * 10_001)

    assert reply.error.kind is LLMErrorKind.SYSTEM_PROMPT_TOO_LONG
    assert transport.requests == []
    assert store.get(conversation.id).messages[-1].content == CHAT_FALLBACK_REPLY


@pytest.mark.asyncio
async def test_error_cleared_on_next_send(chat, transport):
    transport.outcomes = [LLMError(LLMErrorKind.AUTHENTICATION_FAILED)]
    conversation = chat.setup_current_conversation(day(5))
    await chat.send_user_message(conversation, "one")
    assert chat.error_message is not None
    await chat.send_user_message(conversation, "two")
    assert chat.error_message is None


@pytest.mark.asyncio
async def test_blank_text_is_ignored(chat, store, transport):
    conversation = chat.setup_current_conversation(day(5))
    assert await chat.send_user_message(conversation, "   \n") is None
    assert store.get(conversation.id).messages == []
    assert transport.requests == []


@pytest.mark.asyncio
async def test_missing_conversation(chat):
    with pytest.raises(ConversationNotFoundError):
        await chat.send_user_message("missing", "Hello")


@pytest.mark.asyncio
async def test_single_flight_per_conversation(chat, store, transport):
    conversation = chat.setup_current_conversation(day(5))
    other = store.get_or_create(day(6))
    release = asyncio.Event()

    async def on_send(request):
        await release.wait()

    transport.on_send = on_send
    first = asyncio.ensure_future(chat.send_user_message(conversation, "one"))
    await asyncio.sleep(0)

    with pytest.raises(ConversationBusyError):
        await chat.send_user_message(conversation, "two")
    assert chat.is_loading()

    second = asyncio.ensure_future(chat.send_user_message(other, "elsewhere"))
    await asyncio.sleep(0)
    release.set()
    await asyncio.gather(first, second)

    assert [m.content for m in store.get(conversation.id).messages] == ["one", "ok"]
    assert not chat.is_loading()


@pytest.mark.asyncio
async def test_deleted_mid_flight_writes_nothing_more(chat, store, transport, fake_sleep):
    conversation = chat.setup_current_conversation(day(5))
    transport.outcomes = [LLMError(LLMErrorKind.CONNECTION_FAILED), "too late"]

    async def on_send(request):
        store.delete_conversation(conversation)

    transport.on_send = on_send
    reply = await chat.send_user_message(conversation, "Hello")

    assert reply.assistant_message is None
    assert len(transport.requests) == 1
    assert not store.exists(conversation.id)
    assert not chat.is_loading(conversation)


def test_clear_conversation(chat, store):
    conversation = chat.setup_current_conversation(day(5))
    store.append(conversation, "hello", "user")
    store.set_summary(conversation, "summary")

    chat.clear_conversation()

    cleared = store.get(conversation.id)
    assert cleared.messages == []
    assert cleared.summary is None


def test_reset_all_data(chat, store):
    chat.setup_current_conversation(day(4))
    store.get_or_create(day(5))

    fresh = chat.reset_all_data(day(6))

    assert [c.id for c in store.fetch_all()] == [fresh.id]
    assert chat.current_conversation.id == fresh.id


@pytest.mark.asyncio
async def test_send_after_deleting_a_message(chat, store, transport):
    conversation = chat.setup_current_conversation(day(5))
    first = await chat.send_user_message(conversation, "one")
    store.delete_message(first.user_message)

    reply = await chat.send_user_message(conversation, "two")

    assert reply.succeeded
    messages = store.get(conversation.id).messages
    assert [m.content for m in messages] == ["ok", "two", "ok"]
    assert [m.order for m in messages] == [1, 2, 3]
    assert [m.content for m in transport.requests[1].messages] == ["ok", "two"]
