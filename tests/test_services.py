"""Tests for service wiring."""

import pytest

from daybook.llm.transport import HTTPChatTransport
from daybook.services import build_services

from conftest import day


def test_build_services_shares_one_store_and_retry(config, store, transport):
    services = build_services(config, store, transport=transport)

    assert services.chat.store is store
    assert services.summaries.store is store
    assert services.morning.summaries is services.summaries
    assert services.retry.transport is transport
    assert services.chat.retry is services.retry
    assert services.builder.config is config


def test_build_services_creates_http_transport(config, store):
    services = build_services(config, store)
    assert isinstance(services.transport, HTTPChatTransport)


@pytest.mark.asyncio
async def test_services_end_to_end(config, store, transport):
    services = build_services(config, store, transport=transport)

    conversation = services.chat.setup_current_conversation(day(5, 9))
    await services.chat.send_user_message(conversation, "I finished the draft.")
    transport.default = "Morning!"

    assert await services.morning.handle_day_change(day(6, 7)) == "Morning!"
    assert store.fetch(day(5)).summary == "Morning!"
    await services.aclose()
