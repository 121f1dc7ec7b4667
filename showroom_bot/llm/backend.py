"""Generative-text backend — the Anthropic Messages API behind a small interface."""

from __future__ import annotations

from typing import Optional, Protocol

import anthropic
import structlog
from anthropic import AsyncAnthropic

from showroom_bot.config import settings
from showroom_bot.errors import BackendBusyError

logger = structlog.get_logger()

# 429 rate limited, 503 unavailable, 529 overloaded
RETRYABLE_STATUS_CODES = frozenset({429, 503, 529})


class GenerativeBackend(Protocol):
    async def generate(
        self,
        system_instruction: str,
        history: list[dict],
        live_message: str,
    ) -> str:
        """Return the reply text for ``live_message`` given prior alternating turns."""
        ...


def is_retryable_error(error: BaseException) -> bool:
    """Classify backend failures: only rate limiting and overload are retried."""
    if isinstance(error, BackendBusyError):
        return True
    if isinstance(error, anthropic.RateLimitError):
        return True
    if isinstance(error, anthropic.APIStatusError):
        return error.status_code in RETRYABLE_STATUS_CODES
    return False


class AnthropicBackend:
    """Stateless request/response calls to Claude."""

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        model: str = settings.llm_model,
        max_tokens: int = settings.llm_max_tokens,
        temperature: float = settings.llm_temperature,
    ):
        # SDK retries off: the dispatcher owns retry timing
        self.client = client or AsyncAnthropic(api_key=settings.anthropic_api_key, max_retries=0)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def generate(
        self,
        system_instruction: str,
        history: list[dict],
        live_message: str,
    ) -> str:
        kwargs: dict = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [*history, {"role": "user", "content": live_message}],
        }
        if system_instruction:
            kwargs["system"] = system_instruction

        response = await self.client.messages.create(**kwargs)
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()

        logger.info(
            "llm_reply_generated",
            tokens_in=response.usage.input_tokens,
            tokens_out=response.usage.output_tokens,
            length=len(text),
        )
        return text
