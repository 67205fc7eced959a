# persona_dispatch/persona/prompting.py
"""Helpers for the chat layer that consumes a RouteResult."""

from typing import Optional

from persona_dispatch.models import Persona, RouteMethod, RouteResult


def build_system_prompt(persona: Persona, base_prompt: Optional[str] = None) -> str:
    """Assembles the effective system prompt for a persona.

    Order is prefix banner, identity, instructions, then the optional base
    prompt of the host application. Empty parts are skipped.
    """
    parts = [
        persona.system_prompt_prefix,
        persona.identity,
        persona.instructions,
        base_prompt or "",
    ]
    return "\n\n".join(part.strip() for part in parts if part and part.strip())


def resolve_user_content(result: RouteResult, message: str) -> str:
    """Returns the text to send onward as user content.

    For mentions this is the message without the ``@slug`` token.
    """
    if result.method == RouteMethod.MENTION and result.stripped_message:
        return result.stripped_message
    return message
