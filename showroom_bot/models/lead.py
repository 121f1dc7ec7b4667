"""Lead, conversation log and coaching tip models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from showroom_bot.models.base import Base, TimestampMixin, UUIDMixin


class Lead(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "leads"

    first_contact: Mapped[str] = mapped_column(String(50), default="")

    # Customer info
    name: Mapped[str] = mapped_column(String(200), default="")
    phone: Mapped[str] = mapped_column(String(50), index=True)
    location: Mapped[str] = mapped_column(String(200), default="")

    # What they are looking for
    requirement: Mapped[str] = mapped_column(Text, default="")

    # Processing status
    status: Mapped[str] = mapped_column(String(30), default="New Lead")
    last_active: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    follow_up_count: Mapped[int] = mapped_column(Integer, default=0)
    alerted_products: Mapped[str] = mapped_column(Text, default="")


class ConversationLog(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "conversation_logs"

    date: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(200), default="")
    phone: Mapped[str] = mapped_column(String(50), default="")
    summary: Mapped[str] = mapped_column(Text)
    outcome: Mapped[str] = mapped_column(String(50))


class LearningTip(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "learning_tips"

    date: Mapped[str] = mapped_column(String(50))
    tip: Mapped[str] = mapped_column(Text)
