"""Google Sheets lead store.

Leads sheet columns (A..I):
  Date | Name | Phone | Requirement | Location | Status | Last Active | Follow-Ups | Alerted Cars

gspread is synchronous, so every call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials

from showroom_bot.errors import LeadStoreError
from showroom_bot.leads.base import FieldValue
from showroom_bot.schemas.lead import (
    LEAD_COLUMNS,
    ConversationLogEntry,
    LeadField,
    LeadRecord,
    LeadStatus,
    normalize_phone,
)
from showroom_bot.timeutil import from_iso, to_iso

logger = structlog.get_logger()

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

PHONE_COLUMN = LEAD_COLUMNS.index(LeadField.PHONE)


def load_credentials(raw: str) -> Credentials:
    """Build service-account credentials from inline JSON or a key file path."""
    if not raw:
        raise LeadStoreError("GOOGLE_APPLICATION_CREDENTIALS is not set")
    if raw.strip().startswith("{"):
        try:
            info = json.loads(raw)
        except ValueError as e:
            raise LeadStoreError(f"Invalid GOOGLE_APPLICATION_CREDENTIALS JSON: {e}") from e
        return Credentials.from_service_account_info(info, scopes=SCOPES)
    return Credentials.from_service_account_file(raw, scopes=SCOPES)


def _without_header(rows: list[list[str]]) -> list[list[str]]:
    if rows and rows[0] and rows[0][0].strip().lower() == "date":
        return rows[1:]
    return rows


def record_to_row(record: LeadRecord) -> list[Any]:
    row: list[Any] = []
    for column in LEAD_COLUMNS:
        value = getattr(record, column.value)
        if column == LeadField.LAST_ACTIVE:
            value = to_iso(value) if value else ""
        row.append("" if value is None else value)
    return row


def row_to_record(row: list[str]) -> Optional[LeadRecord]:
    """Parse a sheet row; rows without a phone (e.g. the header) give None."""
    cells = list(row) + [""] * (len(LEAD_COLUMNS) - len(row))
    phone = normalize_phone(str(cells[PHONE_COLUMN]))
    if not phone:
        return None
    values = dict(zip((c.value for c in LEAD_COLUMNS), cells))
    try:
        follow_ups = int(values["follow_up_count"] or 0)
    except ValueError:
        follow_ups = 0
    return LeadRecord(
        first_contact=str(values["first_contact"]),
        name=str(values["name"]),
        phone=phone,
        requirement=str(values["requirement"]),
        location=str(values["location"]),
        status=str(values["status"]) or LeadStatus.NEW.value,
        last_active=from_iso(str(values["last_active"])),
        follow_up_count=follow_ups,
        alerted_products=str(values["alerted_products"]),
    )


class SheetsLeadStore:
    """Leads, conversation logs and coaching tips in one spreadsheet."""

    def __init__(
        self,
        credentials: str,
        spreadsheet_id: str,
        leads_worksheet: str = "Sheet1",
        convo_log_worksheet: str = "ConvoLog",
        learning_worksheet: str = "Learning",
        client_factory: Optional[Callable[[], gspread.Client]] = None,
    ):
        if not spreadsheet_id:
            raise LeadStoreError("SPREADSHEET_ID is not set")
        self.credentials = credentials
        self.spreadsheet_id = spreadsheet_id
        self.leads_worksheet = leads_worksheet
        self.convo_log_worksheet = convo_log_worksheet
        self.learning_worksheet = learning_worksheet
        self._client_factory = client_factory
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    def _open(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            if self._client_factory is not None:
                client = self._client_factory()
            else:
                client = gspread.authorize(load_credentials(self.credentials))
            self._spreadsheet = client.open_by_key(self.spreadsheet_id)
        return self._spreadsheet

    def _worksheet(self, name: str) -> gspread.Worksheet:
        return self._open().worksheet(name)

    async def _run(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except LeadStoreError:
            raise
        except Exception as e:
            logger.error("sheets_call_failed", operation=operation, error=str(e))
            raise LeadStoreError(f"{operation} failed: {e}") from e

    # ─── Leads ───────────────────────────────────────────────────────

    async def create_lead(self, record: LeadRecord) -> None:
        record = record.model_copy(update={"phone": normalize_phone(record.phone)})
        await self._run("create_lead", self._append, self.leads_worksheet, record_to_row(record))
        logger.info("lead_created", phone=record.phone, name=record.name, store="sheets")

    async def update_field(
        self,
        phone: str,
        field: LeadField,
        value: FieldValue,
        name: str = "",
    ) -> None:
        key = normalize_phone(phone)
        if field == LeadField.LAST_ACTIVE and isinstance(value, (int, float)):
            cell_value: FieldValue = to_iso(float(value))
        else:
            cell_value = value

        row_number = await self._run("find_lead", self._find_row, key)
        if row_number is None:
            logger.info("lead_not_found_appending", phone=key, field=field.value)
            record = LeadRecord(phone=key, name=name, status=LeadStatus.ACTIVE.value)
            setattr(record, field.value, value)
            await self.create_lead(record)
            return

        column = LEAD_COLUMNS.index(field) + 1
        await self._run("update_field", self._update_cell, row_number, column, cell_value)
        logger.info("lead_updated", phone=key, field=field.value, row=row_number, store="sheets")

    async def list_leads(self) -> list[LeadRecord]:
        rows = await self._run("list_leads", self._all_values, self.leads_worksheet)
        return [record for record in (row_to_record(row) for row in rows) if record]

    def _append(self, worksheet: str, row: list[Any]) -> None:
        self._worksheet(worksheet).append_row(
            row,
            value_input_option="USER_ENTERED",
            insert_data_option="INSERT_ROWS",
        )

    def _find_row(self, phone: str) -> Optional[int]:
        rows = self._worksheet(self.leads_worksheet).get_all_values()
        # Bottom-up: the most recent row for this phone wins
        for index in range(len(rows) - 1, -1, -1):
            row = rows[index]
            if len(row) > PHONE_COLUMN and normalize_phone(str(row[PHONE_COLUMN])) == phone:
                return index + 1  # sheet rows are 1-indexed
        return None

    def _update_cell(self, row: int, column: int, value: FieldValue) -> None:
        self._worksheet(self.leads_worksheet).update_cell(row, column, value)

    def _all_values(self, worksheet: str) -> list[list[str]]:
        return self._worksheet(worksheet).get_all_values()

    # ─── Coaching ────────────────────────────────────────────────────

    async def append_conversation_log(self, entry: ConversationLogEntry) -> None:
        row = [entry.date, entry.name, entry.phone, entry.summary, entry.outcome]
        await self._run("append_conversation_log", self._append, self.convo_log_worksheet, row)

    async def get_conversation_logs(self, limit: int) -> list[ConversationLogEntry]:
        rows = await self._run("get_conversation_logs", self._all_values, self.convo_log_worksheet)
        entries = []
        for row in _without_header(rows)[-limit:]:
            cells = list(row) + [""] * (5 - len(row))
            if not cells[3]:
                continue
            entries.append(
                ConversationLogEntry(
                    date=cells[0], name=cells[1], phone=cells[2], summary=cells[3], outcome=cells[4]
                )
            )
        return entries

    async def append_learning_tip(self, date: str, tip: str) -> None:
        await self._run("append_learning_tip", self._append, self.learning_worksheet, [date, tip])

    async def get_learning_tips(self) -> list[str]:
        rows = await self._run("get_learning_tips", self._all_values, self.learning_worksheet)
        return [row[1].strip() for row in _without_header(rows) if len(row) > 1 and row[1].strip()]
