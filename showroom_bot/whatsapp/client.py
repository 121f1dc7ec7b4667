"""Twilio WhatsApp client — sends messages via Twilio API."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Optional

import structlog
from cachetools import TTLCache

from showroom_bot.config import settings
from showroom_bot.errors import TransportError

logger = structlog.get_logger()

# Lazy singleton
_client: Optional["WhatsAppClient"] = None

DISPLAY_NAME_TTL = 24 * 60 * 60
DRY_RUN_HISTORY = 100


def to_conversation_id(address: str) -> str:
    """"whatsapp:+919812345678" -> "919812345678"."""
    return address.replace("whatsapp:", "").strip().lstrip("+")


class WhatsAppClient:
    """Async wrapper around Twilio's synchronous SDK for WhatsApp messaging.

    Twilio has no typing indicator and no contact lookup, so ``set_composing``
    is a no-op and display names come from the ``ProfileName`` field of
    inbound webhooks.
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        twilio: Any = None,
    ):
        if twilio is None:
            from twilio.rest import Client as TwilioClient

            twilio = TwilioClient(account_sid, auth_token)
        self.twilio = twilio
        self.from_number = from_number  # e.g. "+14155238886" (sandbox)
        self._names: TTLCache = TTLCache(maxsize=10_000, ttl=DISPLAY_NAME_TTL)

    @property
    def pairing_code(self) -> Optional[str]:
        # Twilio numbers are linked in the console, never via a code
        return None

    async def send_message(self, conversation_id: str, text: str) -> str:
        """Send a WhatsApp message.

        Args:
            conversation_id: Recipient phone number, digits only (e.g. "919812345678")
            text: Message body

        Returns:
            Twilio message SID
        """
        to_phone = "+" + conversation_id.lstrip("+")
        try:
            # The Twilio SDK is synchronous
            msg = await asyncio.to_thread(
                self.twilio.messages.create,
                body=text,
                from_=f"whatsapp:{self.from_number}",
                to=f"whatsapp:{to_phone}",
            )
        except Exception as e:
            logger.error("whatsapp_send_error", to=to_phone, error=str(e))
            raise TransportError(f"Send to {to_phone} failed: {e}") from e

        logger.info(
            "whatsapp_message_sent",
            to=to_phone,
            sid=msg.sid,
            text_len=len(text),
        )
        return msg.sid

    async def set_composing(self, conversation_id: str) -> None:
        logger.debug("whatsapp_composing_unsupported", conversation_id=conversation_id)

    def remember_display_name(self, conversation_id: str, name: Optional[str]) -> None:
        if name:
            self._names[conversation_id] = name

    async def get_display_name(self, conversation_id: str) -> Optional[str]:
        return self._names.get(conversation_id)


def get_whatsapp_client() -> Optional[WhatsAppClient]:
    """Get or create the singleton WhatsApp client.

    Returns None if Twilio credentials are not configured.
    """
    global _client

    if _client is not None:
        return _client

    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        logger.debug("whatsapp_client_not_configured")
        return None

    _client = WhatsAppClient(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_whatsapp_number,
    )

    logger.info(
        "whatsapp_client_initialized",
        from_number=settings.twilio_whatsapp_number,
    )
    return _client


class DryRunTransport:
    """Stand-in used when Twilio is not configured: logs outbound messages.

    Only the last ``DRY_RUN_HISTORY`` messages are kept in ``sent``.
    """

    pairing_code: Optional[str] = None

    def __init__(self) -> None:
        self.sent: deque[tuple[str, str]] = deque(maxlen=DRY_RUN_HISTORY)
        self._names: TTLCache = TTLCache(maxsize=10_000, ttl=DISPLAY_NAME_TTL)

    async def send_message(self, conversation_id: str, text: str) -> str:
        self.sent.append((conversation_id, text))
        logger.warning(
            "whatsapp_client_not_configured",
            conversation_id=conversation_id,
            text_preview=text[:50],
        )
        return ""

    async def set_composing(self, conversation_id: str) -> None:
        return None

    def remember_display_name(self, conversation_id: str, name: Optional[str]) -> None:
        if name:
            self._names[conversation_id] = name

    async def get_display_name(self, conversation_id: str) -> Optional[str]:
        return self._names.get(conversation_id)
