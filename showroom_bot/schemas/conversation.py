"""Conversation state schemas persisted in Redis."""

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, Field


class ConversationStep(IntEnum):
    """Advisory conversation phase.

    Order: idle → active → qualifying → qualified.
    The step is bookkeeping only; the LLM drives what is actually said.
    """

    IDLE = 0
    ACTIVE = 1
    QUALIFYING = 2
    QUALIFIED = 3


class Speaker(str, Enum):
    CUSTOMER = "customer"
    ASSISTANT = "assistant"


class Turn(BaseModel):
    """Single message in the conversation history."""

    speaker: Speaker
    text: str


class HandoffWindow(BaseModel):
    """Pause window opened when a human operator replies manually."""

    active: bool = False
    until: Optional[float] = None  # epoch seconds


class SessionState(BaseModel):
    """Full per-conversation state."""

    conversation_id: str
    step: ConversationStep = ConversationStep.IDLE

    # Customer
    name: Optional[str] = None
    phone: Optional[str] = None

    # Captured attributes + "already written to the lead store" flags
    product_interest: Optional[str] = None
    product_interest_logged: bool = False
    location: Optional[str] = None
    location_logged: bool = False
    has_logged: bool = False

    history: list[Turn] = Field(default_factory=list)
    handoff: HandoffWindow = Field(default_factory=HandoffWindow)
    messages_count: int = 0
    last_seen: float = 0.0
