"""Unified exception hierarchy for daybook."""

from __future__ import annotations

from enum import Enum


class DaybookError(Exception):
    """Base exception for all daybook errors."""


# LLM
class LLMErrorKind(Enum):
    """Closed classification of LLM failures.

    Each member carries ``(recoverable, user_visible, description)``.
    """

    # Configuration
    MISSING_API_KEY = (False, True, "API configuration is missing. Please check your settings.")
    INVALID_API_KEY = (False, True, "API key is invalid. Please verify your configuration.")
    MISSING_BASE_URL = (False, True, "API endpoint configuration is missing.")
    INVALID_CONFIGURATION = (False, True, "Invalid configuration detected. Please check your settings.")

    # Network
    NO_INTERNET_CONNECTION = (True, True, "No internet connection available. Please check your network.")
    NETWORK_TIMEOUT = (True, True, "Request timed out. Please try again.")
    SERVER_UNAVAILABLE = (True, True, "Service is temporarily unavailable. Please try again later.")
    CONNECTION_FAILED = (True, True, "Failed to connect to the service. Please check your connection.")

    # API
    RATE_LIMIT_EXCEEDED = (True, True, "Too many requests. Please wait a moment before trying again.")
    AUTHENTICATION_FAILED = (False, True, "Authentication failed. Please check your API credentials.")
    INVALID_REQUEST = (True, True, "Invalid request format. Please try again.")
    SERVER_ERROR = (True, True, "Server error occurred (Code: {code}). Please try again later.")
    MALFORMED_RESPONSE = (False, True, "Received invalid response from the service.")

    # Content
    EMPTY_RESPONSE = (True, True, "No response received from the AI service.")
    INVALID_MESSAGE_FORMAT = (True, True, "Message format is invalid. Please try again.")
    CONTEXT_TOO_LONG = (False, True, "Conversation is too long. Please start a new conversation.")
    SYSTEM_PROMPT_TOO_LONG = (False, True, "System prompt is too long. Please shorten it.")

    # Internal
    DECODING_ERROR = (True, False, "Failed to process the response. Please try again.")
    ENCODING_ERROR = (True, False, "Failed to prepare the request. Please try again.")
    UNKNOWN_ERROR = (True, False, "An unexpected error occurred: {detail}")

    def __init__(self, recoverable: bool, user_visible: bool, description: str):
        self.recoverable = recoverable
        self.user_visible = user_visible
        self.description = description


_CONFIGURATION_KINDS = {
    LLMErrorKind.MISSING_API_KEY,
    LLMErrorKind.INVALID_API_KEY,
    LLMErrorKind.MISSING_BASE_URL,
    LLMErrorKind.INVALID_CONFIGURATION,
}

_CONNECTION_KINDS = {
    LLMErrorKind.NO_INTERNET_CONNECTION,
    LLMErrorKind.NETWORK_TIMEOUT,
    LLMErrorKind.CONNECTION_FAILED,
}

GENERIC_USER_MESSAGE = "Something went wrong. Please try again."


class LLMError(DaybookError):
    """A classified failure from the request builder, a transport or the retry loop.

    Args:
        kind: The ``LLMErrorKind`` classification.
        status_code: HTTP status for ``SERVER_ERROR``.
        detail: Free-form detail (``UNKNOWN_ERROR`` text, embedded API error message).
    """

    def __init__(
        self,
        kind: LLMErrorKind,
        status_code: int | None = None,
        detail: str | None = None,
    ):
        self.kind = kind
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.description)

    @property
    def description(self) -> str:
        return self.kind.description.format(
            code=self.status_code if self.status_code is not None else "unknown",
            detail=self.detail or "",
        )

    @property
    def is_recoverable(self) -> bool:
        return self.kind.recoverable

    @property
    def should_show_to_user(self) -> bool:
        return self.kind.user_visible

    @property
    def user_message(self) -> str:
        """Message suitable for display; technical errors get a generic text."""
        if self.should_show_to_user:
            return self.description
        return GENERIC_USER_MESSAGE

    @property
    def recovery_suggestion(self) -> str:
        if self.kind in _CONFIGURATION_KINDS:
            return "Please check your API configuration in the app settings."
        if self.kind in _CONNECTION_KINDS:
            return "Check your internet connection and try again."
        if self.kind is LLMErrorKind.RATE_LIMIT_EXCEEDED:
            return "Wait a few moments before sending another message."
        if self.kind in (LLMErrorKind.SERVER_UNAVAILABLE, LLMErrorKind.SERVER_ERROR):
            return "The service is temporarily unavailable. Please try again in a few minutes."
        if self.kind is LLMErrorKind.CONTEXT_TOO_LONG:
            return "Consider starting a new conversation to continue."
        if self.kind is LLMErrorKind.SYSTEM_PROMPT_TOO_LONG:
            return "Shorten your system prompt to continue."
        return "Please try again. If the problem persists, restart the app."

    @property
    def debug_message(self) -> str:
        """Detailed text for logs, never shown to users."""
        if self.kind is LLMErrorKind.SERVER_ERROR:
            suffix = f" ({self.detail})" if self.detail else ""
            return f"Server error: HTTP {self.status_code}{suffix}"
        if self.kind is LLMErrorKind.UNKNOWN_ERROR:
            return f"Unknown error: {self.detail}"
        return f"{self.kind.name}: {self.description}"

    def __repr__(self) -> str:
        return f"LLMError({self.kind.name}, status_code={self.status_code!r}, detail={self.detail!r})"


class RetryCancelled(DaybookError):
    """A pending retry sequence was abandoned because its caller went away."""


# Store
class StoreError(DaybookError):
    """Base exception for conversation store operations."""


class ConversationNotFoundError(StoreError):
    """The conversation no longer exists in the store."""


# Chat
class ConversationBusyError(DaybookError):
    """A reply is already being generated for this conversation."""
