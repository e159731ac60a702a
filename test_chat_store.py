#!/usr/bin/env python3
"""
Tests for the in-memory chat state container and title derivation.
"""

import pytest
from pydantic import ValidationError

from relaychat.history.chat_store import ChatState
from relaychat.history.models import Conversation, Turn, derive_title


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Hello", "Hello"),
        ("x" * 30, "x" * 30),
        ("x" * 31, "x" * 30 + "..."),
        ("  padded  ", "padded"),
    ],
)
def test_derive_title(message, expected):
    assert derive_title(message) == expected


class TestConversations:

    def test_new_conversation_is_active_and_first(self):
        state = ChatState(selected_model="m")
        first = state.create_conversation()
        second = state.create_conversation()

        assert state.conversations == [second, first]
        assert state.active is second
        assert second.title == "New Chat"

    def test_select_unknown_raises(self):
        state = ChatState(selected_model="m")
        with pytest.raises(KeyError):
            state.select("missing")

    def test_delete_inactive_keeps_active(self):
        state = ChatState(selected_model="m")
        first = state.create_conversation()
        second = state.create_conversation()

        state.delete(first.id)

        assert state.active is second
        assert state.conversations == [second]

    def test_delete_active_moves_to_first_remaining(self):
        state = ChatState(selected_model="m")
        first = state.create_conversation()
        second = state.create_conversation()
        third = state.create_conversation()
        state.select(second.id)

        state.delete(second.id)

        assert state.active is third
        assert state.conversations == [third, first]

    def test_delete_only_conversation_creates_fresh(self):
        state = ChatState(selected_model="m")
        only = state.create_conversation()

        state.delete(only.id)

        assert len(state.conversations) == 1
        assert state.active is not None
        assert state.active.id != only.id


class TestTurns:

    def test_append_and_remove_last(self):
        state = ChatState(selected_model="m")
        conversation = state.create_conversation()
        user = state.append_turn(conversation.id, Turn(role="user", content="q"))
        bot = state.append_turn(
            conversation.id, Turn(role="assistant", content="a", model="m")
        )

        assert state.remove_last_turn(conversation.id) is bot
        assert conversation.turns == [user]

    def test_remove_from_empty_raises(self):
        state = ChatState(selected_model="m")
        conversation = state.create_conversation()
        with pytest.raises(ValueError):
            state.remove_last_turn(conversation.id)

    def test_duplicate_turn_id_rejected(self):
        state = ChatState(selected_model="m")
        conversation = state.create_conversation()
        state.append_turn(conversation.id, Turn(id="1", role="user", content="a"))
        with pytest.raises(ValueError, match="Duplicate turn id"):
            state.append_turn(conversation.id, Turn(id="1", role="user", content="b"))

    def test_turns_are_immutable(self):
        turn = Turn(role="user", content="a")
        with pytest.raises(ValidationError):
            turn.content = "b"

    def test_rating_toggles(self):
        state = ChatState(selected_model="m")
        conversation = state.create_conversation()
        bot = state.append_turn(conversation.id, Turn(role="assistant", content="a"))

        assert state.rate_turn(conversation.id, bot.id, "up") == "up"
        assert conversation.turns[0].rating == "up"
        assert state.rate_turn(conversation.id, bot.id, "down") == "down"
        assert state.rate_turn(conversation.id, bot.id, "down") is None
        assert conversation.turns[0].rating is None
        assert conversation.turns[0].id == bot.id

    def test_user_turns_cannot_be_rated(self):
        state = ChatState(selected_model="m")
        conversation = state.create_conversation()
        user = state.append_turn(conversation.id, Turn(role="user", content="q"))
        with pytest.raises(ValueError):
            state.rate_turn(conversation.id, user.id, "up")

    def test_to_messages(self):
        conversation = Conversation(
            turns=[
                Turn(role="user", content="q"),
                Turn(role="assistant", content="a", model="m"),
            ]
        )
        assert conversation.to_messages() == [
            {"role": "user", "content": "q"},
            {"role": "assistant", "content": "a"},
        ]


class TestRequestLifecycle:

    def test_single_request_slot(self):
        state = ChatState(selected_model="m")

        assert state.begin_request() is True
        assert state.begin_request() is False
        state.update_streaming_text("partial")
        assert state.streaming_text == "partial"

        state.finish_request()

        assert state.is_loading is False
        assert state.streaming_text == ""
        assert state.begin_request() is True
