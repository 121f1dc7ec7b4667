"""FastAPI application entry point."""

import logging
import pathlib
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from showroom_bot.api.health import router as health_router
from showroom_bot.api.v1.operator import router as operator_router
from showroom_bot.api.webhooks.whatsapp import router as whatsapp_router
from showroom_bot.app_state import build_app_state
from showroom_bot.config import settings
from showroom_bot.conversation.session import connect_redis
from showroom_bot.scheduler import build_scheduler
from showroom_bot.whatsapp.client import DryRunTransport, get_whatsapp_client

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        *(
            [structlog.dev.ConsoleRenderer()]
            if settings.environment == "development"
            else [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
        ),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level.upper(), logging.INFO)
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(
        "app_starting",
        environment=settings.environment,
        lead_store=settings.lead_store,
    )

    pathlib.Path("data").mkdir(exist_ok=True)
    if settings.lead_store == "database":
        from showroom_bot.database import create_tables

        await create_tables()

    transport = get_whatsapp_client() or DryRunTransport()
    redis_client = connect_redis(settings.redis_url)
    state = build_app_state(settings, transport=transport, redis_client=redis_client)
    app.state.bot = state

    await state.inventory.refresh()
    await state.coaching.refresh_tips()

    scheduler = build_scheduler(state, settings)
    scheduler.start()
    logger.info("app_ready", vehicles=len(state.inventory.snapshot.vehicles))

    yield

    logger.info("app_shutting_down")
    scheduler.shutdown(wait=False)
    await state.queue.close()
    state.sessions.timer.cancel_all()
    if redis_client is not None:
        await redis_client.aclose()


app = FastAPI(
    title="Showroom WhatsApp Assistant",
    description="AI sales assistant for a pre-owned car showroom on WhatsApp",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(whatsapp_router)
app.include_router(operator_router)
app.include_router(health_router)
