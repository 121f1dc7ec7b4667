"""Lead store interfaces consumed by the engine, follow-ups and coaching."""

from __future__ import annotations

from typing import Protocol, Union

from showroom_bot.schemas.lead import ConversationLogEntry, LeadField, LeadRecord

FieldValue = Union[str, int, float]


class LeadStore(Protocol):
    async def create_lead(self, record: LeadRecord) -> None:
        """Append a new lead row."""
        ...

    async def update_field(
        self,
        phone: str,
        field: LeadField,
        value: FieldValue,
        name: str = "",
    ) -> None:
        """Patch one field on the most recent lead for ``phone``.

        Creates the lead (status "Active Lead") when none exists yet.
        """
        ...

    async def list_leads(self) -> list[LeadRecord]:
        ...


class CoachingStore(Protocol):
    async def append_conversation_log(self, entry: ConversationLogEntry) -> None:
        ...

    async def get_conversation_logs(self, limit: int) -> list[ConversationLogEntry]:
        ...

    async def append_learning_tip(self, date: str, tip: str) -> None:
        ...

    async def get_learning_tips(self) -> list[str]:
        ...
