"""Tests for reshaping stored turns into alternating LLM messages."""

from showroom_bot.llm.history import CONVERSATION_OPENER, prepare_history
from showroom_bot.schemas.conversation import Speaker, Turn


def customer(text):
    return Turn(speaker=Speaker.CUSTOMER, text=text)


def assistant(text):
    return Turn(speaker=Speaker.ASSISTANT, text=text)


class TestPrepareHistory:

    def test_live_message_split_off(self):
        prepared = prepare_history([customer("Hi")], "Hi")
        assert prepared.turns == []
        assert prepared.live_message == "Hi"

    def test_alternation_preserved(self):
        history = [customer("Hi"), assistant("Hello! Which city?"), customer("Bangalore")]
        prepared = prepare_history(history, "Bangalore")

        assert prepared.turns == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello! Which city?"},
        ]
        assert prepared.live_message == "Bangalore"

    def test_consecutive_turns_are_merged(self):
        history = [
            customer("Hi"),
            customer("Anyone there?"),
            assistant("Yes!"),
            assistant("How can I help?"),
            customer("GLA price"),
        ]
        prepared = prepare_history(history, "GLA price")

        assert prepared.turns == [
            {"role": "user", "content": "Hi\nAnyone there?"},
            {"role": "assistant", "content": "Yes!\nHow can I help?"},
        ]

    def test_opener_added_when_history_starts_with_assistant(self):
        history = [assistant("Thanks for calling us"), customer("Sure")]
        prepared = prepare_history(history, "Sure")

        assert prepared.turns[0] == {"role": "user", "content": CONVERSATION_OPENER}
        assert prepared.turns[1]["role"] == "assistant"

    def test_unanswered_messages_become_part_of_live_message(self):
        history = [
            customer("Hi"),
            assistant("Hello!"),
            customer("Is the X5 available?"),
            customer("Also what about Q7"),
        ]
        prepared = prepare_history(history, "Also what about Q7")

        assert prepared.live_message == "Is the X5 available?\nAlso what about Q7"
        assert prepared.turns[-1]["role"] == "assistant"

    def test_live_message_missing_from_history_is_appended(self):
        history = [customer("Hi"), assistant("Hello!"), customer("Older question")]
        prepared = prepare_history(history, "New question")
        assert prepared.live_message == "Older question\nNew question"

    def test_blank_turns_skipped(self):
        history = [customer("  "), assistant("Hello!"), customer("Hi")]
        prepared = prepare_history(history, "Hi")
        assert prepared.turns[0]["content"] == CONVERSATION_OPENER
