"""Chat-completions request building, transports and retry."""

from daybook.llm.builder import RequestBuilder, build_request, build_single_message_request
from daybook.llm.connectivity import ConnectivityMonitor
from daybook.llm.models import ChatCompletion, ChatMessage, ChatRequest
from daybook.llm.retry import RetryCoordinator
from daybook.llm.transport import BaseChatTransport, HTTPChatTransport, create_transport

__all__ = [
    "RequestBuilder",
    "build_request",
    "build_single_message_request",
    "ConnectivityMonitor",
    "ChatCompletion",
    "ChatMessage",
    "ChatRequest",
    "RetryCoordinator",
    "BaseChatTransport",
    "HTTPChatTransport",
    "create_transport",
]
