"""Follow-up engine — automated follow-ups and new-listing alerts.

Follow-up rules (daily run):
  - 3 days of silence, nothing sent yet  → follow-up #1
  - 6 days of silence after #1           → follow-up #2
  - 6 days of silence after #2           → "Follow-Up Stopped", never contacted again

Listing alerts (after each inventory refresh):
  - every newly listed car is matched against open leads' requirements
  - a lead is alerted about a given model at most once (tracked in alerted_products)
"""

from __future__ import annotations

import asyncio
import re
import time
from typing import Any, Awaitable, Callable, Optional

import structlog

from showroom_bot.config import settings
from showroom_bot.leads.base import LeadStore
from showroom_bot.leads.locks import LeadLocks
from showroom_bot.schemas.inventory import Vehicle
from showroom_bot.schemas.lead import LeadField, LeadRecord, LeadStatus
from showroom_bot.whatsapp.base import MessagingTransport

logger = structlog.get_logger()

DAY = 24 * 60 * 60
FIRST_FOLLOW_UP_AFTER = 3 * DAY
SECOND_FOLLOW_UP_AFTER = 6 * DAY
ALERT_SPACING_SECONDS = 2.0

SPECIFIC_MODELS = (
    "GLA", "GLC", "GLE", "GLS", "X1", "X3", "X5", "X7", "Q3", "Q5", "Q7",
    "A3", "A4", "A6", "A8", "520D", "320D", "DEFENDER", "EVOQUE", "VELAR", "DISCOVERY",
)
BRANDS = ("MERCEDES", "BMW", "AUDI", "LAND ROVER", "JAGUAR", "VOLVO", "PORSCHE", "MINI", "COOPER")
STOP_WORDS = frozenset({
    "A", "AN", "THE", "OR", "AND", "FOR", "UNDER", "OVER", "WITH", "IN", "AT", "TO", "OF",
    "LOOKING", "WANT", "NEED", "BUY", "CAR", "USED", "LUXURY", "SECOND", "HAND", "PRE",
    "OWNED", "BUDGET", "AROUND", "APPROX",
})

_BUDGET = re.compile(r"^\d+L?$")
_PUNCTUATION = re.compile(r"[₹,.]")

FOLLOW_UP_1 = """Hi {name}! 👋 Just checking in from *{business}* 🚗

Were you still looking for a luxury pre-owned car? We have some exciting options available right now!

Feel free to reply anytime, happy to help you find the perfect car 😊"""

FOLLOW_UP_2 = """Hi {name}! 🙏 One last check-in from *{business}*

If you're still exploring premium pre-owned cars in Bangalore, we're here to help. Our team is always available for a no-pressure conversation.

Just reply whenever you're ready! 🚗✨"""

LISTING_ALERT = """Hi {name}! 🎉 Great news from *{business}*!

We just listed a vehicle that matches what you were looking for:

🚗 *{model}*
💰 {price}
📋 {details}
🔗 {url}

Would you like more details or to schedule a viewing? Just reply and we'll take care of everything! 😊"""


def requirement_matches_vehicle(requirement: str, model: str) -> bool:
    """Fuzzy match a lead's free-text requirement against a listing title.

    Tried in order: specific model codes ("GLA", "X5", ...), brand plus any
    other word of the requirement, then generic tokens without stop words
    or budget figures ("40L").

    Examples:
        "Looking for GLA or GLC under 40L" matches "MERCEDES BENZ GLA 200"
        "Audi Q5" matches "AUDI Q5 PREMIUM PLUS"
    """
    if not requirement:
        return False
    req = requirement.upper()
    car = model.upper()

    for code in SPECIFIC_MODELS:
        if code in req and code in car:
            return True

    for brand in BRANDS:
        if brand in req and brand in car:
            remaining = req.replace(brand, "", 1).strip()
            words = [w for w in remaining.split() if len(w) >= 2]
            if not words or any(word in car for word in words):
                return True

    tokens = [
        token
        for token in _PUNCTUATION.sub(" ", req).split()
        if len(token) >= 2 and token not in STOP_WORDS and not _BUDGET.match(token)
    ]
    return any(token in car for token in tokens)


class FollowUpEngine:
    def __init__(
        self,
        lead_store: LeadStore,
        transport: MessagingTransport,
        lead_locks: Optional[LeadLocks] = None,
        business_name: str = settings.business_name,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.lead_store = lead_store
        self.transport = transport
        self.business_name = business_name
        self.lead_locks = lead_locks or LeadLocks()
        self.clock = clock
        self.sleep = sleep

    async def _send(self, phone: str, text: str) -> bool:
        try:
            await self.transport.send_message(phone, text)
        except Exception as e:
            logger.error("follow_up_send_failed", phone=phone, error=str(e))
            return False
        return True

    # ─── Follow-ups ──────────────────────────────────────────────────

    async def run_follow_up_check(self) -> dict[str, int]:
        """Send due follow-ups. Lead fields change only after a successful send.

        Each lead is handled under its phone lock so a customer message
        arriving mid-run cannot interleave its own lead writes.

        Returns:
            Counters: {"first": n, "second": n, "stopped": n}
        """
        stats = {"first": 0, "second": 0, "stopped": 0}
        try:
            leads = await self.lead_store.list_leads()
        except Exception as e:
            logger.error("follow_up_check_failed", error=str(e))
            return stats

        now = self.clock()
        for lead in leads:
            if not lead.phone or not lead.last_active or lead.is_terminal:
                continue
            try:
                async with self.lead_locks.for_phone(lead.phone):
                    outcome = await self._follow_up(lead, now - lead.last_active)
            except Exception as e:
                logger.error("follow_up_lead_failed", phone=lead.phone, error=str(e))
                continue
            if outcome:
                stats[outcome] += 1

        logger.info("follow_up_check_done", **stats)
        return stats

    async def _follow_up(self, lead: LeadRecord, silent_for: float) -> str | None:
        name = lead.name or "there"
        count = lead.follow_up_count

        if count == 0 and silent_for >= FIRST_FOLLOW_UP_AFTER:
            text = FOLLOW_UP_1.format(name=name, business=self.business_name)
            if await self._send(lead.phone, text):
                await self.lead_store.update_field(lead.phone, LeadField.FOLLOW_UP_COUNT, 1)
                await self.lead_store.update_field(
                    lead.phone, LeadField.STATUS, LeadStatus.FOLLOW_UP_1.value
                )
                logger.info("follow_up_sent", phone=lead.phone, number=1)
                return "first"
        elif count == 1 and silent_for >= SECOND_FOLLOW_UP_AFTER:
            text = FOLLOW_UP_2.format(name=name, business=self.business_name)
            if await self._send(lead.phone, text):
                await self.lead_store.update_field(lead.phone, LeadField.FOLLOW_UP_COUNT, 2)
                await self.lead_store.update_field(
                    lead.phone, LeadField.STATUS, LeadStatus.FOLLOW_UP_2.value
                )
                logger.info("follow_up_sent", phone=lead.phone, number=2)
                return "second"
        elif count >= 2 and silent_for >= SECOND_FOLLOW_UP_AFTER:
            await self.lead_store.update_field(
                lead.phone, LeadField.STATUS, LeadStatus.FOLLOW_UP_STOPPED.value
            )
            logger.info("follow_up_stopped", phone=lead.phone)
            return "stopped"
        return None

    # ─── Listing alerts ──────────────────────────────────────────────

    async def send_listing_alerts(self, new_listings: list[Vehicle]) -> int:
        """Tell matching open leads about newly listed cars.

        Returns:
            Number of alerts sent
        """
        if not new_listings:
            return 0
        try:
            leads = await self.lead_store.list_leads()
        except Exception as e:
            logger.error("listing_alerts_failed", error=str(e))
            return 0

        open_leads = [l for l in leads if l.phone and l.requirement and not l.is_terminal]
        sent = 0
        for vehicle in new_listings:
            model = vehicle.model.upper()
            for lead in open_leads:
                if model in lead.alerted_products.upper():
                    continue
                if not requirement_matches_vehicle(lead.requirement, model):
                    continue

                text = LISTING_ALERT.format(
                    name=lead.name or "there",
                    business=self.business_name,
                    model=vehicle.model,
                    price=vehicle.price,
                    details=vehicle.details,
                    url=vehicle.url,
                )
                async with self.lead_locks.for_phone(lead.phone):
                    if not await self._send(lead.phone, text):
                        continue

                    lead.alerted_products = (
                        f"{lead.alerted_products}, {vehicle.model}"
                        if lead.alerted_products
                        else vehicle.model
                    )
                    try:
                        await self.lead_store.update_field(
                            lead.phone, LeadField.ALERTED_PRODUCTS, lead.alerted_products
                        )
                    except Exception as e:
                        logger.error("listing_alert_mark_failed", phone=lead.phone, error=str(e))
                logger.info("listing_alert_sent", phone=lead.phone, model=vehicle.model)
                sent += 1
                await self.sleep(ALERT_SPACING_SECONDS)

        if sent:
            logger.info("listing_alerts_done", sent=sent)
        return sent
