"""Reshape stored conversation turns into what the Messages API accepts."""

from __future__ import annotations

from typing import NamedTuple

from showroom_bot.schemas.conversation import Speaker, Turn

CONVERSATION_OPENER = "(conversation started)"

_ROLES = {Speaker.CUSTOMER: "user", Speaker.ASSISTANT: "assistant"}


class PreparedHistory(NamedTuple):
    turns: list[dict]
    live_message: str


def prepare_history(history: list[Turn], live_message: str) -> PreparedHistory:
    """Turn raw history into strictly alternating user/assistant messages.

    Consecutive same-speaker turns are merged with a newline, a synthetic
    opener is prepended when the history starts with the assistant, and the
    trailing customer turn is split off to be sent as the live message (so
    unanswered messages collected during a handoff are not lost).

    Args:
        history: Stored turns, oldest first; normally ends with the live message
        live_message: The message being answered right now

    Returns:
        PreparedHistory(turns, live_message)
    """
    turns: list[dict] = []
    for turn in history:
        text = turn.text.strip()
        if not text:
            continue
        role = _ROLES[turn.speaker]
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] += "\n" + text
        else:
            turns.append({"role": role, "content": text})

    if turns and turns[0]["role"] != "user":
        turns.insert(0, {"role": "user", "content": CONVERSATION_OPENER})

    live = live_message.strip()
    if turns and turns[-1]["role"] == "user":
        last = turns.pop()["content"]
        # The stored tail already contains the live message (plus anything unanswered)
        live = last if live in last else f"{last}\n{live}"

    return PreparedHistory(turns=turns, live_message=live)
