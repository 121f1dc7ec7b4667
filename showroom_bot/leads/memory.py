"""In-process lead store, used when no spreadsheet or database is configured."""

from __future__ import annotations

import structlog

from showroom_bot.leads.base import FieldValue
from showroom_bot.schemas.lead import (
    ConversationLogEntry,
    LeadField,
    LeadRecord,
    LeadStatus,
    normalize_phone,
)

logger = structlog.get_logger()


class InMemoryLeadStore:
    """Keeps leads, conversation logs and tips in lists. Lost on restart."""

    def __init__(self) -> None:
        self.leads: list[LeadRecord] = []
        self.logs: list[ConversationLogEntry] = []
        self.tips: list[str] = []

    async def create_lead(self, record: LeadRecord) -> None:
        self.leads.append(record.model_copy(update={"phone": normalize_phone(record.phone)}))
        logger.info("lead_created", phone=record.phone, store="memory")

    async def update_field(
        self,
        phone: str,
        field: LeadField,
        value: FieldValue,
        name: str = "",
    ) -> None:
        key = normalize_phone(phone)
        for lead in reversed(self.leads):
            if lead.phone == key:
                setattr(lead, field.value, value)
                logger.info("lead_updated", phone=key, field=field.value, store="memory")
                return
        record = LeadRecord(phone=key, name=name, status=LeadStatus.ACTIVE.value)
        setattr(record, field.value, value)
        await self.create_lead(record)

    async def list_leads(self) -> list[LeadRecord]:
        return [lead.model_copy() for lead in self.leads]

    async def append_conversation_log(self, entry: ConversationLogEntry) -> None:
        self.logs.append(entry)

    async def get_conversation_logs(self, limit: int) -> list[ConversationLogEntry]:
        return self.logs[-limit:]

    async def append_learning_tip(self, date: str, tip: str) -> None:
        self.tips.append(tip)

    async def get_learning_tips(self) -> list[str]:
        return list(self.tips)
