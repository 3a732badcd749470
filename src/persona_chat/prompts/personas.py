"""
Built-in persona instructions.

A persona instruction is the system-level directive that shapes how the
assistant answers within a conversation. Callers may supply their own; when
they don't, a new conversation starts with the compositor persona.
"""

from enum import Enum


class Persona(str, Enum):
    """Named persona instructions shipped with the application."""

    COMPOSITOR = (
        "You are a composer and songwriting partner. You answer briefly, with "
        "concrete musical ideas: melodies, chord progressions, rhythms and lyric "
        "fragments. You keep the tone warm and curious, and you say so when you "
        "are unsure instead of inventing facts."
    )
    ASSISTANT = (
        "You are a helpful assistant. You answer briefly and honestly, and you "
        "state your level of certainty when you are not sure."
    )


DEFAULT_PERSONA = Persona.COMPOSITOR.value


def resolve_persona(name_or_text: str | None) -> str:
    """
    Resolve a persona reference to its instruction text.

    Accepts a built-in persona name (case-insensitive, e.g. ``"assistant"``)
    or free-form instruction text, which is returned unchanged.
    """
    if not name_or_text:
        return DEFAULT_PERSONA

    try:
        return Persona[name_or_text.strip().upper()].value
    except KeyError:
        return name_or_text
