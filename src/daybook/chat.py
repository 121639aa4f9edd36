"""Send a journal entry and persist the assistant's reply."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from daybook.exceptions import (
    ConversationBusyError,
    ConversationNotFoundError,
    LLMError,
    RetryCancelled,
)
from daybook.llm.builder import RequestBuilder
from daybook.llm.retry import RetryCoordinator
from daybook.models import ROLE_ASSISTANT, ROLE_USER, Conversation, Message
from daybook.prompts import CHAT_FALLBACK_REPLY
from daybook.store import ConversationStore

logger = logging.getLogger(__name__)


@dataclass
class ChatReply:
    """Outcome of one ``send_user_message`` call.

    ``assistant_message`` is the model's reply, the fallback reply when the
    request failed, or None when the conversation was deleted mid-flight.
    """

    user_message: Message
    assistant_message: Message | None
    error: LLMError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.assistant_message is not None


class ChatOrchestrator:
    """Runs one user turn: persist, request, persist the reply.

    Only one turn per conversation may be in flight at a time.
    """

    def __init__(
        self,
        store: ConversationStore,
        retry: RetryCoordinator,
        builder: RequestBuilder,
    ):
        self.store = store
        self.retry = retry
        self.builder = builder
        self.current_conversation: Conversation | None = None
        self.error_message: str | None = None
        self._in_flight: set[str] = set()

    def setup_current_conversation(self, now: datetime | None = None) -> Conversation:
        """Get or create today's conversation and make it current."""
        now = now or datetime.now(self.store.tz)
        self.current_conversation = self.store.get_or_create(now)
        return self.current_conversation

    def is_loading(self, conversation: Conversation | str | None = None) -> bool:
        if conversation is None:
            return bool(self._in_flight)
        return _conversation_id(conversation) in self._in_flight

    async def send_user_message(
        self,
        conversation: Conversation | str,
        text: str,
        system_prompt: str | None = None,
    ) -> ChatReply | None:
        """Append ``text`` as a user message and generate the assistant reply.

        The user message is written before the request is dispatched. A
        terminal failure still leaves an assistant reply in the thread (the
        fallback text) and sets ``error_message``.

        Returns:
            The ``ChatReply``, or None when ``text`` is blank.

        Raises:
            ConversationNotFoundError: The conversation does not exist.
            ConversationBusyError: A reply is already being generated for it.
        """
        if not text or not text.strip():
            logger.debug("Ignoring blank message")
            return None

        conversation_id = _conversation_id(conversation)
        if conversation_id in self._in_flight:
            raise ConversationBusyError(f"Conversation {conversation_id} already has a reply in flight")
        if not self.store.exists(conversation_id):
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")

        self._in_flight.add(conversation_id)
        try:
            user_message = self.store.append(conversation_id, text, ROLE_USER)
            self.error_message = None
            history = self.store.get(conversation_id).messages

            try:
                request = self.builder.build(history, system_prompt)
                completion = await self.retry.send_with_retry(
                    request,
                    should_continue=lambda: self.store.exists(conversation_id),
                )
            except LLMError as e:
                logger.warning(f"Reply failed for conversation {conversation_id}: {e.debug_message}")
                self.error_message = e.user_message
                fallback = self._append_reply(conversation_id, CHAT_FALLBACK_REPLY)
                return ChatReply(user_message, fallback, e)
            except RetryCancelled:
                logger.info(f"Conversation {conversation_id} was deleted, dropping reply")
                return ChatReply(user_message, None)

            reply = self._append_reply(conversation_id, completion.text)
            return ChatReply(user_message, reply)
        finally:
            self._in_flight.discard(conversation_id)

    def _append_reply(self, conversation_id: str, content: str) -> Message | None:
        try:
            return self.store.append(conversation_id, content, ROLE_ASSISTANT)
        except ConversationNotFoundError:
            logger.info(f"Conversation {conversation_id} was deleted, dropping reply")
            return None

    def clear_conversation(self, conversation: Conversation | str | None = None) -> None:
        """Remove the summary and every message, keeping the day's conversation."""
        conversation = conversation or self.current_conversation
        if conversation is None:
            return
        self.store.set_summary(conversation, None)
        removed = self.store.clear_messages(conversation)
        logger.info(f"Cleared {removed} messages from conversation {_conversation_id(conversation)}")

    def reset_all_data(self, now: datetime | None = None) -> Conversation:
        """Delete every conversation, then start a fresh one for today."""
        removed = self.store.clear_all()
        logger.warning(f"Deleted all data ({removed} conversations)")
        self.current_conversation = None
        return self.setup_current_conversation(now)


def _conversation_id(conversation: Conversation | str) -> str:
    return conversation if isinstance(conversation, str) else conversation.id
