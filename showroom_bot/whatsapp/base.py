"""Messaging transport interface."""

from typing import Optional, Protocol


class MessagingTransport(Protocol):
    """Outbound side of a chat channel. Inbound messages are pushed by webhooks."""

    async def send_message(self, conversation_id: str, text: str) -> str: ...

    async def set_composing(self, conversation_id: str) -> None: ...

    async def get_display_name(self, conversation_id: str) -> Optional[str]: ...

    @property
    def pairing_code(self) -> Optional[str]: ...
