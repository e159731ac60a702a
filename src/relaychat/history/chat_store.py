"""
In-memory state container for the chat front end.

All presentation state lives in one ``ChatState`` instance and changes only
through its methods. Nothing here is persisted.
"""

from __future__ import annotations

import logging

from relaychat.history.models import Conversation, Rating, Turn, derive_title

logger = logging.getLogger(__name__)


class ChatState:
    """
    Conversation list, active conversation, selected model and the live
    streaming transcript.

    Conversations are kept newest first. ``is_loading`` guards the single
    in-flight request.
    """

    def __init__(self, selected_model: str) -> None:
        self.conversations: list[Conversation] = []
        self.active_id: str | None = None
        self.selected_model = selected_model
        self.is_loading = False
        self.streaming_text = ""

    # ------------------------------------------------------------------ #
    # Conversations                                                      #
    # ------------------------------------------------------------------ #

    @property
    def active(self) -> Conversation | None:
        if self.active_id is None:
            return None
        return self.find(self.active_id)

    def find(self, conversation_id: str) -> Conversation | None:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def get(self, conversation_id: str) -> Conversation:
        conversation = self.find(conversation_id)
        if conversation is None:
            raise KeyError(f"Unknown conversation: {conversation_id}")
        return conversation

    def create_conversation(self) -> Conversation:
        """Create an empty conversation, make it active and list it first."""
        conversation = Conversation()
        self.conversations.insert(0, conversation)
        self.active_id = conversation.id
        logger.debug(f"Created conversation {conversation.id}")
        return conversation

    def select(self, conversation_id: str) -> Conversation:
        conversation = self.get(conversation_id)
        self.active_id = conversation.id
        return conversation

    def delete(self, conversation_id: str) -> None:
        """
        Remove a conversation. Deleting the active one activates the first
        remaining conversation, or a fresh one when none remain.
        """
        conversation = self.get(conversation_id)
        self.conversations.remove(conversation)
        if self.active_id != conversation_id:
            return
        if self.conversations:
            self.active_id = self.conversations[0].id
        else:
            self.active_id = None
            self.create_conversation()

    # ------------------------------------------------------------------ #
    # Turns                                                              #
    # ------------------------------------------------------------------ #

    def append_turn(self, conversation_id: str, turn: Turn) -> Turn:
        conversation = self.get(conversation_id)
        if any(existing.id == turn.id for existing in conversation.turns):
            raise ValueError(f"Duplicate turn id {turn.id} in {conversation_id}")
        conversation.turns.append(turn)
        return turn

    def remove_last_turn(self, conversation_id: str) -> Turn:
        conversation = self.get(conversation_id)
        if not conversation.turns:
            raise ValueError(f"Conversation {conversation_id} has no turns")
        return conversation.turns.pop()

    def set_title_from(self, conversation_id: str, first_message: str) -> str:
        conversation = self.get(conversation_id)
        conversation.title = derive_title(first_message)
        return conversation.title

    def rate_turn(
        self, conversation_id: str, turn_id: str, rating: Rating
    ) -> Rating | None:
        """Apply a rating; repeating the current rating clears it."""
        conversation = self.get(conversation_id)
        for index, turn in enumerate(conversation.turns):
            if turn.id != turn_id:
                continue
            if turn.role != "assistant":
                raise ValueError("Only assistant turns can be rated")
            new_rating = None if turn.rating == rating else rating
            conversation.turns[index] = turn.model_copy(update={"rating": new_rating})
            return new_rating
        raise KeyError(f"Unknown turn: {turn_id}")

    # ------------------------------------------------------------------ #
    # Request lifecycle                                                  #
    # ------------------------------------------------------------------ #

    def select_model(self, model_id: str) -> None:
        self.selected_model = model_id

    def begin_request(self) -> bool:
        """Claim the single request slot. False if one is already in flight."""
        if self.is_loading:
            return False
        self.is_loading = True
        self.streaming_text = ""
        return True

    def update_streaming_text(self, transcript: str) -> None:
        self.streaming_text = transcript

    def finish_request(self) -> None:
        self.is_loading = False
        self.streaming_text = ""
