"""
Conversation identifier generation.

Identifiers combine a time component, a random component and the caller's
pseudo so that ids stay traceable in logs. Uniqueness against live
conversations is enforced by the store, which retries generation under its
lock until an unused id comes up.
"""

import logging
import re
import secrets
import string
import time

logger = logging.getLogger(__name__)

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_RANDOM_LENGTH = 11

# {timestamp36}{random36}-{pseudo}
_CONVERSATION_ID_PATTERN = re.compile(r"^[0-9a-z]{6,}[0-9a-z]{11}-.+$", re.DOTALL)


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("Only non-negative integers can be encoded")
    if value == 0:
        return "0"

    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_conversation_id(pseudo: str) -> str:
    """
    Generate a conversation identifier for a caller.

    Format: {ms-timestamp base36}{11 random base36 chars}-{pseudo}
    Example: lq2k9x1c4f7h2m9p0ar-alice

    Args:
        pseudo: Caller's display name, kept as a traceable suffix

    Returns:
        Conversation identifier (not yet checked against the store)
    """
    if not pseudo:
        raise ValueError("Pseudo is required to generate a conversation id")

    timestamp = to_base36(time.time_ns() // 1_000_000)
    random_part = "".join(
        secrets.choice(_BASE36_ALPHABET) for _ in range(_RANDOM_LENGTH)
    )
    conversation_id = f"{timestamp}{random_part}-{pseudo}"

    logger.debug(f"Generated conversation ID: {conversation_id}")
    return conversation_id


def is_valid_conversation_id(conversation_id: str) -> bool:
    """
    Check that an identifier has the generated shape.

    Args:
        conversation_id: Identifier to check

    Returns:
        True if the id looks like one produced by generate_conversation_id
    """
    if not conversation_id or not isinstance(conversation_id, str):
        return False
    return bool(_CONVERSATION_ID_PATTERN.match(conversation_id))
