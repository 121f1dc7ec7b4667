"""Liveness, component status and pairing page."""

import html

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from showroom_bot.api.dependencies import get_app_state
from showroom_bot.app_state import AppState

router = APIRouter(tags=["health"])


@router.get("/")
async def root(state: AppState = Depends(get_app_state)):
    """Root endpoint."""
    return {
        "name": f"{state.config.business_name} WhatsApp Assistant",
        "version": "0.1.0",
        "status": "running",
    }


@router.get("/health")
async def health(state: AppState = Depends(get_app_state)):
    snapshot = state.inventory.snapshot
    return {
        "status": "ok",
        "started_at": state.started_at,
        "inventory": {
            "available": snapshot.available,
            "vehicles": len(snapshot.vehicles),
            "fetched_at": snapshot.fetched_at,
        },
        "queue_pending": state.queue.pending,
        "llm_calls": state.dispatcher.calls,
        "sessions": len(state.sessions.conversation_ids()),
        "dedup_entries": len(state.dedup),
        "lead_store": state.config.lead_store,
    }


@router.get("/pairing", response_class=HTMLResponse)
async def pairing(state: AppState = Depends(get_app_state)) -> HTMLResponse:
    """Show the transport's one-time linking code, if it needs one."""
    code = getattr(state.transport, "pairing_code", None)
    if code:
        body = (
            "<h2>Link WhatsApp</h2>"
            "<p>Open WhatsApp → Linked devices → Link with phone number, then enter:</p>"
            f"<pre style='font-size:2em'>{html.escape(code)}</pre>"
        )
    else:
        body = "<h2>WhatsApp is already connected.</h2>"
    return HTMLResponse(f"<html><body style='font-family:sans-serif'>{body}</body></html>")
