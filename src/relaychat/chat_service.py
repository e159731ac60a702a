"""
Chat Service for the relay front end.

This module handles the business logic for chat sessions, including:
- Sending a message and streaming the reply through the relay
- Regenerating the last assistant turn
- Conversation, model and rating management over ``ChatState``
- Fallback turns and transient notifications on failure
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field

from relaychat.config import Configuration
from relaychat.history.chat_store import ChatState
from relaychat.history.export import write_export
from relaychat.history.models import Conversation, Rating, Turn
from relaychat.llm.exceptions import UpstreamError
from relaychat.llm.streaming import StreamAssembler
from relaychat.logging_utils import ContextualLogger, operation_context

logger = logging.getLogger(__name__)

RELAY_CHAT_PATH = "/api/chat"

NotifyVariant = Literal["default", "destructive"]
UpdateCallback = Callable[[str], None]
NotifyCallback = Callable[[str, str, NotifyVariant], None]


class FallbackMessages(BaseModel):
    """Fixed user-visible texts."""
    empty_response: str = "Sorry, I could not generate a response."
    send_error: str = (
        "Sorry, I encountered an error while processing your request. "
        "Please try again."
    )
    regenerate_error: str = (
        "Sorry, I encountered an error while regenerating the response. "
        "Please try again."
    )


class ChatService:
    """
    Conversation orchestrator:
    1. Takes your message
    2. Sends the conversation through the relay with streaming on
    3. Surfaces the running transcript after every fragment
    4. Records the final assistant turn (or a fallback one)
    """

    class ChatServiceConfig(BaseModel):
        model_config = ConfigDict(arbitrary_types_allowed=True)

        http_client: httpx.AsyncClient
        state: ChatState
        assembler: StreamAssembler
        messages: FallbackMessages = Field(default_factory=FallbackMessages)
        on_update: UpdateCallback | None = None
        on_notify: NotifyCallback | None = None

    def __init__(self, service_config: ChatService.ChatServiceConfig):
        self.http_client = service_config.http_client
        self.state = service_config.state
        self.assembler = service_config.assembler
        self.messages = service_config.messages
        self.on_update: UpdateCallback | None = service_config.on_update
        self.on_notify: NotifyCallback | None = service_config.on_notify

    @classmethod
    def from_configuration(
        cls,
        configuration: Configuration,
        http_client: httpx.AsyncClient,
        on_update: UpdateCallback | None = None,
        on_notify: NotifyCallback | None = None,
    ) -> ChatService:
        """Wire a service from YAML configuration."""
        fallback = FallbackMessages(**configuration.get_fallback_messages())
        streaming = configuration.get_streaming_config()
        default_model = configuration.get_llm_config()["default_model"]
        return cls(
            cls.ChatServiceConfig(
                http_client=http_client,
                state=ChatState(selected_model=default_model),
                assembler=StreamAssembler(
                    line_mode=streaming["line_mode"],
                    fallback_message=fallback.empty_response,
                ),
                messages=fallback,
                on_update=on_update,
                on_notify=on_notify,
            )
        )

    # ------------------------------------------------------------------ #
    # Presentation hooks                                                 #
    # ------------------------------------------------------------------ #

    def _handle_update(self, transcript: str) -> None:
        self.state.update_streaming_text(transcript)
        if self.on_update is not None:
            self.on_update(transcript)

    def _notify(
        self, title: str, description: str = "", variant: NotifyVariant = "default"
    ) -> None:
        if self.on_notify is not None:
            self.on_notify(title, description, variant)

    # ------------------------------------------------------------------ #
    # Conversation management                                            #
    # ------------------------------------------------------------------ #

    def ensure_conversation(self) -> Conversation:
        """Return the active conversation, creating one on first use."""
        return self.state.active or self.state.create_conversation()

    def new_conversation(self) -> Conversation:
        return self.state.create_conversation()

    def select_conversation(self, conversation_id: str) -> Conversation:
        return self.state.select(conversation_id)

    def delete_conversation(self, conversation_id: str) -> None:
        self.state.delete(conversation_id)
        self._notify("Chat deleted")

    def select_model(self, model_id: str) -> bool:
        """Change the model for subsequent requests. Refused while loading."""
        if self.state.is_loading:
            return False
        self.state.select_model(model_id)
        return True

    def rate_turn(self, turn_id: str, rating: Rating) -> Rating | None:
        conversation = self.state.active
        if conversation is None:
            raise ValueError("No active conversation")
        new_rating = self.state.rate_turn(conversation.id, turn_id, rating)
        if new_rating is None:
            self._notify("Rating removed")
        else:
            self._notify(f"Message {'liked' if new_rating == 'up' else 'disliked'}")
        return new_rating

    def export_active(self, directory: str = ".") -> str | None:
        conversation = self.state.active
        if conversation is None:
            return None
        path = write_export(conversation, directory)
        self._notify("Chat exported successfully")
        return str(path)

    # ------------------------------------------------------------------ #
    # Requests                                                           #
    # ------------------------------------------------------------------ #

    async def send_message(self, text: str) -> Turn | None:
        """
        Append a user turn and stream the assistant reply.

        Returns the recorded assistant turn, or ``None`` when the input was
        blank, no conversation is active or a request is already in flight.
        """
        content = text.strip()
        conversation = self.state.active
        if not content or conversation is None:
            return None
        if not self.state.begin_request():
            logger.info("Ignoring send while a request is in flight")
            return None

        try:
            is_first = not conversation.turns
            self.state.append_turn(conversation.id, Turn(role="user", content=content))
            if is_first:
                self.state.set_title_from(conversation.id, content)

            return await self._complete_into(
                conversation,
                error_text=self.messages.send_error,
                error_notice="Failed to get response",
            )
        finally:
            self.state.finish_request()

    async def regenerate(self) -> Turn | None:
        """
        Replace the trailing assistant turn with a freshly streamed one.

        Returns the new turn, or ``None`` when there is nothing to regenerate
        or a request is in flight.
        """
        conversation = self.state.active
        if conversation is None or len(conversation.turns) < 2:
            return None
        if conversation.turns[-1].role != "assistant":
            return None
        if not any(turn.role == "user" for turn in conversation.turns[:-1]):
            return None
        if not self.state.begin_request():
            logger.info("Ignoring regenerate while a request is in flight")
            return None

        try:
            removed = self.state.remove_last_turn(conversation.id)
            logger.debug(f"Regenerating turn {removed.id} in {conversation.id}")
            return await self._complete_into(
                conversation,
                error_text=self.messages.regenerate_error,
                error_notice="Failed to regenerate response",
            )
        finally:
            self.state.finish_request()

    async def _complete_into(
        self, conversation: Conversation, *, error_text: str, error_notice: str
    ) -> Turn:
        model = self.state.selected_model
        log = ContextualLogger({"conversation_id": conversation.id, "model": model})

        try:
            content = await self.stream_completion(conversation.to_messages(), model)
        except Exception as e:
            log.error("Chat request failed", error_type=type(e).__name__, error=str(e))
            turn = self.state.append_turn(
                conversation.id, Turn(role="assistant", content=error_text)
            )
            self._notify("Error", error_notice, "destructive")
            return turn

        log.info("Chat request completed", characters=len(content))
        return self.state.append_turn(
            conversation.id, Turn(role="assistant", content=content, model=model)
        )

    async def stream_completion(
        self, messages: list[dict[str, Any]], model: str
    ) -> str:
        """
        POST the conversation to the relay and assemble the streamed reply.

        Raises:
            UpstreamError: On a non-2xx relay status or a transport failure.
        """
        payload = {"messages": messages, "model": model, "stream": True}
        try:
            async with operation_context("relay_stream", context={"model": model}):
                async with self.http_client.stream(
                    "POST", RELAY_CHAT_PATH, json=payload
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        raise UpstreamError(
                            f"API request failed: {response.status_code}",
                            model=model,
                            status_code=response.status_code,
                        )
                    return await self.assembler.assemble(
                        response.aiter_bytes(), on_update=self._handle_update
                    )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Relay request failed: {e!s}", model=model) from e
