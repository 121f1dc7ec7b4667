"""Inbound message schema delivered by the messaging transport."""

from typing import Optional

from pydantic import BaseModel


class InboundMessage(BaseModel):
    """Transport-independent inbound event.

    ``sender_is_self`` marks a message typed by the operator account itself
    (a manual reply), which pauses the assistant for that conversation.
    """

    id: str
    conversation_id: str
    body: str = ""
    origin_timestamp: float  # epoch seconds
    sender_is_self: bool = False
    is_group: bool = False
    is_status: bool = False
    display_name: Optional[str] = None
