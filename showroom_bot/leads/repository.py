"""SQL lead store — leads, conversation logs and tips in a relational database."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from showroom_bot.errors import LeadStoreError
from showroom_bot.leads.base import FieldValue
from showroom_bot.models.lead import ConversationLog, Lead, LearningTip
from showroom_bot.schemas.lead import (
    ConversationLogEntry,
    LeadField,
    LeadRecord,
    LeadStatus,
    normalize_phone,
)

logger = structlog.get_logger()


def _to_datetime(ts: Optional[float]) -> Optional[datetime]:
    return datetime.fromtimestamp(ts, timezone.utc) if ts else None


def _to_epoch(value: Optional[datetime]) -> Optional[float]:
    if value is None:
        return None
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _column_value(field: LeadField, value: FieldValue):
    if field == LeadField.LAST_ACTIVE:
        return _to_datetime(float(value)) if value else None
    if field == LeadField.FOLLOW_UP_COUNT:
        return int(value)
    return str(value)


class SqlLeadStore:
    """Manages lead creation and updates."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_lead(self, record: LeadRecord) -> None:
        lead = Lead(
            first_contact=record.first_contact,
            name=record.name,
            phone=normalize_phone(record.phone),
            requirement=record.requirement,
            location=record.location,
            status=record.status,
            last_active=_to_datetime(record.last_active),
            follow_up_count=record.follow_up_count,
            alerted_products=record.alerted_products,
        )
        try:
            async with self.session_factory() as db:
                db.add(lead)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("lead_create_failed", phone=lead.phone, error=str(e))
            raise LeadStoreError(f"create_lead failed: {e}") from e

        logger.info("lead_created", lead_id=str(lead.id), phone=lead.phone, store="database")

    async def update_field(
        self,
        phone: str,
        field: LeadField,
        value: FieldValue,
        name: str = "",
    ) -> None:
        """Patch one column on the most recent lead for this phone.

        Creates an "Active Lead" when no row exists yet.
        """
        key = normalize_phone(phone)
        try:
            async with self.session_factory() as db:
                stmt = (
                    select(Lead)
                    .where(Lead.phone == key)
                    .order_by(Lead.created_at.desc())
                    .limit(1)
                )
                lead = (await db.execute(stmt)).scalar_one_or_none()
                if lead is None:
                    lead = Lead(phone=key, name=name, status=LeadStatus.ACTIVE.value)
                    db.add(lead)
                    logger.info("lead_not_found_creating", phone=key, field=field.value)
                setattr(lead, field.value, _column_value(field, value))
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("lead_update_failed", phone=key, field=field.value, error=str(e))
            raise LeadStoreError(f"update_field failed: {e}") from e

        logger.info("lead_updated", phone=key, field=field.value, store="database")

    async def list_leads(self) -> list[LeadRecord]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(select(Lead).order_by(Lead.created_at))
                leads = result.scalars().all()
        except SQLAlchemyError as e:
            raise LeadStoreError(f"list_leads failed: {e}") from e

        return [
            LeadRecord(
                first_contact=lead.first_contact or "",
                name=lead.name or "",
                phone=lead.phone,
                requirement=lead.requirement or "",
                location=lead.location or "",
                status=lead.status or LeadStatus.NEW.value,
                last_active=_to_epoch(lead.last_active),
                follow_up_count=lead.follow_up_count or 0,
                alerted_products=lead.alerted_products or "",
            )
            for lead in leads
        ]

    # ─── Coaching ────────────────────────────────────────────────────

    async def append_conversation_log(self, entry: ConversationLogEntry) -> None:
        try:
            async with self.session_factory() as db:
                db.add(ConversationLog(**entry.model_dump()))
                await db.commit()
        except SQLAlchemyError as e:
            raise LeadStoreError(f"append_conversation_log failed: {e}") from e

    async def get_conversation_logs(self, limit: int) -> list[ConversationLogEntry]:
        try:
            async with self.session_factory() as db:
                stmt = (
                    select(ConversationLog)
                    .order_by(ConversationLog.created_at.desc())
                    .limit(limit)
                )
                rows = (await db.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise LeadStoreError(f"get_conversation_logs failed: {e}") from e

        return [
            ConversationLogEntry(
                date=row.date, name=row.name, phone=row.phone, summary=row.summary, outcome=row.outcome
            )
            for row in reversed(rows)
        ]

    async def append_learning_tip(self, date: str, tip: str) -> None:
        try:
            async with self.session_factory() as db:
                db.add(LearningTip(date=date, tip=tip))
                await db.commit()
        except SQLAlchemyError as e:
            raise LeadStoreError(f"append_learning_tip failed: {e}") from e

    async def get_learning_tips(self) -> list[str]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(select(LearningTip).order_by(LearningTip.created_at))
                return [row.tip for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise LeadStoreError(f"get_learning_tips failed: {e}") from e
