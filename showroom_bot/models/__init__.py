"""SQLAlchemy ORM models."""

from showroom_bot.models.base import Base
from showroom_bot.models.lead import ConversationLog, Lead, LearningTip

__all__ = [
    "Base",
    "Lead",
    "ConversationLog",
    "LearningTip",
]
