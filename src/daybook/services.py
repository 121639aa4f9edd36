"""Explicit wiring of the journal services."""

from __future__ import annotations

from dataclasses import dataclass

from daybook.chat import ChatOrchestrator
from daybook.config import LLMConfig
from daybook.llm.builder import RequestBuilder
from daybook.llm.connectivity import ConnectivityMonitor
from daybook.llm.retry import RetryCoordinator
from daybook.llm.transport import BaseChatTransport, create_transport
from daybook.morning import MorningMessageService
from daybook.store import ConversationStore
from daybook.summary import DailySummaryOrchestrator


@dataclass
class JournalServices:
    """Everything a UI shell needs, sharing one store and one transport."""

    store: ConversationStore
    transport: BaseChatTransport
    retry: RetryCoordinator
    builder: RequestBuilder
    chat: ChatOrchestrator
    summaries: DailySummaryOrchestrator
    morning: MorningMessageService

    async def aclose(self) -> None:
        await self.transport.aclose()
        self.store.close()


def build_services(
    config: LLMConfig,
    store: ConversationStore,
    transport: BaseChatTransport | None = None,
    connectivity: ConnectivityMonitor | None = None,
    retry: RetryCoordinator | None = None,
) -> JournalServices:
    """Construct the services for ``config`` around an existing store."""
    transport = transport or create_transport(config, connectivity=connectivity)
    retry = retry or RetryCoordinator(transport)
    builder = RequestBuilder(config)
    summaries = DailySummaryOrchestrator(store, retry, builder)
    return JournalServices(
        store=store,
        transport=transport,
        retry=retry,
        builder=builder,
        chat=ChatOrchestrator(store, retry, builder),
        summaries=summaries,
        morning=MorningMessageService(store, retry, builder, summaries),
    )
