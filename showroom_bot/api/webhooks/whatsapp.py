"""WhatsApp (Twilio) webhook endpoint — receives incoming WhatsApp messages."""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Depends, Request, Response

from showroom_bot.api.dependencies import get_app_state
from showroom_bot.app_state import AppState
from showroom_bot.schemas.message import InboundMessage
from showroom_bot.whatsapp.client import to_conversation_id

logger = structlog.get_logger()

router = APIRouter()


@router.post("/webhook/whatsapp")
async def whatsapp_webhook(
    request: Request,
    state: AppState = Depends(get_app_state),
) -> Response:
    """Receive incoming WhatsApp message from Twilio.

    Twilio sends application/x-www-form-urlencoded with fields:
      - From: "whatsapp:+919812345678"
      - Body: message text
      - MessageSid: unique id (redelivered on retries, hence dedup)
      - ProfileName: the sender's WhatsApp display name

    Returns empty 200 OK (Twilio doesn't use the response body); the reply
    is sent later from the message queue.
    """
    form = await request.form()

    from_raw = str(form.get("From", ""))
    body = str(form.get("Body", ""))
    message_sid = str(form.get("MessageSid", ""))
    profile_name = str(form.get("ProfileName", "")) or None

    conversation_id = to_conversation_id(from_raw)
    if not conversation_id or not message_sid:
        logger.warning("whatsapp_malformed_webhook", from_raw=from_raw)
        return Response(status_code=200)

    remember = getattr(state.transport, "remember_display_name", None)
    if remember is not None:
        remember(conversation_id, profile_name)

    message = InboundMessage(
        id=message_sid,
        conversation_id=conversation_id,
        body=body,
        # Twilio forwards in real time and carries no send timestamp
        origin_timestamp=time.time(),
        display_name=profile_name,
    )
    decision = await state.engine.submit(message)

    logger.info(
        "whatsapp_message_received",
        conversation_id=conversation_id,
        message_sid=message_sid,
        text_preview=body[:50],
        decision=decision.value,
    )
    return Response(status_code=200)
