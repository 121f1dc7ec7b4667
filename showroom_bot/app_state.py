"""Object graph for one running bot process."""

from __future__ import annotations

import pathlib
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from showroom_bot.config import Settings
from showroom_bot.conversation.dedup import DedupCache
from showroom_bot.conversation.engine import ConversationEngine
from showroom_bot.conversation.filters import InboundFilter
from showroom_bot.conversation.session import SessionStore
from showroom_bot.followup.engine import FollowUpEngine
from showroom_bot.inventory.cache import InventoryCache, InventorySource
from showroom_bot.inventory.scraper import InventoryScraper
from showroom_bot.leads.base import LeadStore
from showroom_bot.leads.locks import LeadLocks
from showroom_bot.leads.memory import InMemoryLeadStore
from showroom_bot.llm.backend import AnthropicBackend, GenerativeBackend
from showroom_bot.llm.coaching import CoachingService
from showroom_bot.llm.dispatcher import ReplyDispatcher, SerialQueue
from showroom_bot.whatsapp.base import MessagingTransport

logger = structlog.get_logger()


@dataclass
class AppState:
    config: Settings
    sessions: SessionStore
    dedup: DedupCache
    inbound_filter: InboundFilter
    queue: SerialQueue
    dispatcher: ReplyDispatcher
    inventory: InventoryCache
    lead_store: Any
    transport: MessagingTransport
    coaching: CoachingService
    follow_ups: FollowUpEngine
    engine: ConversationEngine
    started_at: float = field(default_factory=time.time)


def build_lead_store(config: Settings) -> LeadStore:
    """Pick the lead store named by LEAD_STORE (sheets | database | memory)."""
    kind = config.lead_store.lower()
    if kind == "sheets":
        from showroom_bot.leads.sheets import SheetsLeadStore

        return SheetsLeadStore(
            credentials=config.google_application_credentials,
            spreadsheet_id=config.spreadsheet_id,
            leads_worksheet=config.leads_worksheet,
            convo_log_worksheet=config.convo_log_worksheet,
            learning_worksheet=config.learning_worksheet,
        )
    if kind == "database":
        from showroom_bot.database import get_engine, get_session_factory
        from showroom_bot.leads.repository import SqlLeadStore

        return SqlLeadStore(get_session_factory(get_engine(config.database_url)))
    if kind != "memory":
        logger.warning("unknown_lead_store_using_memory", lead_store=config.lead_store)
    return InMemoryLeadStore()


def build_app_state(
    config: Settings,
    transport: MessagingTransport,
    redis_client: Any = None,
    backend: Optional[GenerativeBackend] = None,
    lead_store: Optional[Any] = None,
    inventory_source: Optional[InventorySource] = None,
    started_at: Optional[float] = None,
) -> AppState:
    """Wire every component together. Collaborators can be swapped for tests."""
    started_at = time.time() if started_at is None else started_at

    sessions = SessionStore(redis_client, history_limit=config.history_limit)
    dedup_path = pathlib.Path(config.dedup_path) if config.dedup_path else None
    dedup = DedupCache(maxsize=config.dedup_cache_size, path=dedup_path)
    inbound_filter = InboundFilter(
        sessions,
        dedup,
        handoff_seconds=config.handoff_minutes * 60,
        started_at=started_at,
    )

    dispatcher = ReplyDispatcher(
        backend or AnthropicBackend(),
        min_interval=config.llm_min_interval_seconds,
        retry_delays=config.llm_retry_schedule,
    )
    lead_store = lead_store if lead_store is not None else build_lead_store(config)
    coaching = CoachingService(
        lead_store,
        dispatcher,
        business_name=config.business_name,
        assistant_name=config.assistant_name,
    )
    lead_locks = LeadLocks()
    follow_ups = FollowUpEngine(
        lead_store, transport, business_name=config.business_name, lead_locks=lead_locks
    )
    inventory = InventoryCache(
        inventory_source or InventoryScraper(config.inventory_url, config.inventory_base_url),
        retry_delays=config.inventory_retry_schedule,
        on_new_listings=follow_ups.send_listing_alerts,
    )
    queue = SerialQueue("messages")

    engine = ConversationEngine(
        sessions=sessions,
        inbound_filter=inbound_filter,
        queue=queue,
        dispatcher=dispatcher,
        inventory=inventory,
        lead_store=lead_store,
        transport=transport,
        coaching=coaching,
        lead_locks=lead_locks,
        fallback_reply=config.fallback_reply,
        business_name=config.business_name,
        assistant_name=config.assistant_name,
    )

    return AppState(
        config=config,
        sessions=sessions,
        dedup=dedup,
        inbound_filter=inbound_filter,
        queue=queue,
        dispatcher=dispatcher,
        inventory=inventory,
        lead_store=lead_store,
        transport=transport,
        coaching=coaching,
        follow_ups=follow_ups,
        engine=engine,
        started_at=started_at,
    )
