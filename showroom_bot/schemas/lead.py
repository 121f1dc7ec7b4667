"""Lead schemas shared by all lead stores."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class LeadStatus(str, Enum):
    NEW = "New Lead"
    ACTIVE = "Active Lead"
    FOLLOW_UP_1 = "Follow-Up #1 Sent"
    FOLLOW_UP_2 = "Follow-Up #2 Sent"
    FOLLOW_UP_STOPPED = "Follow-Up Stopped"
    DROPPED = "Dropped"
    WON = "Won"


# Leads in these states are never contacted automatically again
TERMINAL_STATUSES = {
    LeadStatus.DROPPED.value,
    LeadStatus.FOLLOW_UP_STOPPED.value,
    LeadStatus.WON.value,
}


class LeadField(str, Enum):
    """Patchable lead columns, in sheet column order (A..I)."""

    FIRST_CONTACT = "first_contact"
    NAME = "name"
    PHONE = "phone"
    REQUIREMENT = "requirement"
    LOCATION = "location"
    STATUS = "status"
    LAST_ACTIVE = "last_active"
    FOLLOW_UP_COUNT = "follow_up_count"
    ALERTED_PRODUCTS = "alerted_products"


LEAD_COLUMNS: list[LeadField] = list(LeadField)


class LeadRecord(BaseModel):
    """One lead row. Identity key is the normalized phone number."""

    first_contact: str = ""
    name: str = ""
    phone: str
    requirement: str = ""
    location: str = ""
    status: str = LeadStatus.NEW.value
    last_active: Optional[float] = None  # epoch seconds
    follow_up_count: int = 0
    alerted_products: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ConversationLogEntry(BaseModel):
    """Summary of recent turns, fed to the coaching loop."""

    date: str
    name: str = ""
    phone: str = ""
    summary: str
    outcome: str


def normalize_phone(raw: str) -> str:
    """Digits-only phone number (strips "whatsapp:", "+", "@c.us" etc.)."""
    return "".join(ch for ch in raw.split("@", 1)[0] if ch.isdigit())
