"""Operator API — manual replies, handoff control, session and lead views."""

from __future__ import annotations

import time
import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from showroom_bot.api.dependencies import get_app_state
from showroom_bot.app_state import AppState
from showroom_bot.errors import TransportError
from showroom_bot.schemas.conversation import Speaker
from showroom_bot.schemas.message import InboundMessage

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/operator", tags=["operator"])


class OperatorMessage(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    conversation_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


@router.post("/messages")
async def send_operator_message(
    payload: OperatorMessage,
    state: AppState = Depends(get_app_state),
) -> dict:
    """Send a manual reply and pause the assistant for this conversation."""
    try:
        sid = await state.transport.send_message(payload.conversation_id, payload.text)
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    await state.engine.submit(
        InboundMessage(
            id=f"operator-{uuid.uuid4()}",
            conversation_id=payload.conversation_id,
            body=payload.text,
            origin_timestamp=time.time(),
            sender_is_self=True,
        )
    )
    session = await state.sessions.append_turn(
        payload.conversation_id, Speaker.ASSISTANT, payload.text
    )

    logger.info("operator_message_sent", conversation_id=payload.conversation_id, sid=sid)
    return {
        "status": "sent",
        "sid": sid,
        "handoff_until": session.handoff.until,
    }


@router.delete("/handoff/{conversation_id}")
async def resume_assistant(
    conversation_id: str,
    state: AppState = Depends(get_app_state),
) -> dict:
    """End a handoff early. Idempotent."""
    await state.sessions.reset_handoff(conversation_id)
    return {"status": "resumed", "conversation_id": conversation_id}


@router.get("/sessions")
async def list_sessions(
    state: AppState = Depends(get_app_state),
) -> dict:
    sessions = []
    for cid in state.sessions.conversation_ids():
        session = await state.sessions.get(cid)
        if session is None:
            continue
        sessions.append(
            {
                "conversation_id": cid,
                "name": session.name,
                "step": session.step.name,
                "product_interest": session.product_interest,
                "location": session.location,
                "messages_count": session.messages_count,
                "handed_off": await state.sessions.is_handed_off(cid),
                "last_seen": session.last_seen,
            }
        )
    sessions.sort(key=lambda s: s["last_seen"], reverse=True)
    return {"sessions": sessions, "total": len(sessions)}


@router.get("/sessions/{conversation_id}")
async def get_session(
    conversation_id: str,
    state: AppState = Depends(get_app_state),
) -> dict:
    session = await state.sessions.get(conversation_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session.model_dump(mode="json")


@router.get("/leads")
async def list_leads(
    status: Optional[str] = Query(None, description="Filter by status"),
    state: AppState = Depends(get_app_state),
) -> dict:
    """List leads from the configured lead store."""
    try:
        leads = await state.lead_store.list_leads()
    except Exception as e:
        logger.error("operator_list_leads_failed", error=str(e))
        raise HTTPException(status_code=502, detail="Lead store unavailable") from e

    if status:
        leads = [lead for lead in leads if lead.status == status]
    return {"leads": [lead.model_dump() for lead in leads], "total": len(leads)}
