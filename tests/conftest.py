"""Shared fakes for the orchestration tests."""

from datetime import datetime, timezone

import pytest

from daybook.config import LLMConfig
from daybook.exceptions import LLMError
from daybook.llm.builder import RequestBuilder
from daybook.llm.models import ChatCompletion
from daybook.llm.retry import RetryCoordinator
from daybook.llm.transport import BaseChatTransport
from daybook.store import ConversationStore


class FakeTransport(BaseChatTransport):
    """Replays scripted outcomes: strings succeed, ``LLMError`` instances are raised.

    Once the script runs out, every call returns ``default``.
    """

    def __init__(self, outcomes=None, default="ok"):
        self.outcomes = list(outcomes or [])
        self.default = default
        self.requests = []
        self.on_send = None

    async def send(self, request):
        self.requests.append(request)
        if self.on_send is not None:
            await self.on_send(request)
        outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if isinstance(outcome, LLMError):
            raise outcome
        return ChatCompletion(text=outcome, model=request.model)


class FakeSleep:
    """Records backoff delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def day(d, hour=12, minute=0):
    return datetime(2025, 10, d, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def config():
    return LLMConfig(api_key="test-key", base_url="https://api.example.com/v1", model="test-model")


@pytest.fixture
def builder(config):
    return RequestBuilder(config)


@pytest.fixture
def store():
    s = ConversationStore()
    yield s
    s.close()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def retry(transport, fake_sleep):
    return RetryCoordinator(transport, sleep=fake_sleep)
