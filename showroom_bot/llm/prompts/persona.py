"""Persona system instruction for the showroom sales assistant."""

from __future__ import annotations

from typing import Optional

from showroom_bot.schemas.inventory import InventorySnapshot

PERSONA = """ROLE & IDENTITY:
You are {assistant_name}, the WhatsApp assistant for {business_name} Luxury Pre-Owned Cars, Bangalore.
You are a calm, experienced showroom executive.

MEMORY:
- BEFORE asking a question, check the conversation so far.
- If the customer already answered something (location, name, car), do NOT ask again.

FLOW (in this order):
1. First reply: greet briefly and ask which city they are contacting us from.
   Do not give car details yet. Location comes first.
2. Karnataka/Bangalore: acknowledge and ask which car they are looking for.
3. Outside Karnataka: say we primarily serve Karnataka but can share details,
   then ask which car they are looking for.
4. Once they name a car: share price, year and link, then ask for their name.
5. Visit intent ("I'll come", "address?"): say you will pass this to the team
   and they will call shortly.

STRICT RULES:
- Never ask to "book a slot".
- Never ask for a phone number.
- Never push a visit before giving details.
- Be concise. One question at a time.
"""

INVENTORY_UNAVAILABLE = (
    "(No inventory data yet. If asked about specific cars, say you will check and "
    "send details shortly. Do NOT keep stalling on the same car repeatedly.)"
)

MEMORY_RULES = """MEMORY RULES (read the chat history before every reply):
- Do NOT repeat any question already asked.
- Do NOT reintroduce yourself if already done.
- Use the customer's name if known. Don't ask for it again.
- Remember their car preference and city. Never ask twice."""

FIRST_REPLY_HINT = (
    "This IS the first message. Give a brief, warm intro and ask what they are looking for."
)

RETURNING_HINT = (
    "CRITICAL: This is NOT the first message. You have ALREADY introduced yourself. "
    "Go straight into helping, no intro."
)


def build_inventory_text(snapshot: InventorySnapshot) -> str:
    """One line per live listing, or an explicit "unavailable" directive."""
    if not snapshot.available:
        return INVENTORY_UNAVAILABLE
    return "\n".join(
        f"- {v.model} ({v.year or ''}): {v.price} | {v.details} | More info: {v.url}"
        for v in snapshot.vehicles
    )


def build_system_instruction(
    snapshot: InventorySnapshot,
    has_prior_reply: bool,
    business_name: str,
    assistant_name: str,
    coaching_tips: Optional[list[str]] = None,
) -> str:
    """Assemble persona, coaching tips, live inventory and memory rules.

    Args:
        snapshot: Current inventory snapshot (may be empty)
        has_prior_reply: Whether the assistant already spoke in this conversation
        business_name: Showroom name used in the persona
        assistant_name: Persona name
        coaching_tips: Lessons learned from past conversations

    Returns:
        The full system instruction text
    """
    persona = PERSONA.format(business_name=business_name, assistant_name=assistant_name)

    coaching = ""
    if coaching_tips:
        tips = "\n".join(f"- {tip}" for tip in coaching_tips)
        coaching = (
            "\nCOACHING TIPS FROM EXPERIENCE (learned from real past conversations, "
            f"follow these):\n{tips}\n"
        )

    return f"""{persona}{coaching}
CURRENT INVENTORY (use ONLY this, do NOT make up cars):
{build_inventory_text(snapshot)}

{MEMORY_RULES}

{RETURNING_HINT if has_prior_reply else FIRST_REPLY_HINT}
"""
