"""
Conversation entity.

A conversation owns its ordered turn history, the persona instruction that
shapes the assistant's answers, and the lock that keeps concurrent requests
from interleaving turns.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from .locks import TurnLock
from .models import Turn

logger = logging.getLogger(__name__)


class Conversation:
    """
    One ongoing dialogue.

    ``turns`` is append-only and only grows after a successful provider call.
    ``persona_instruction`` is set once at creation and afterwards only
    replaced by non-empty values.
    """

    def __init__(self, conversation_id: str, persona_instruction: str):
        if not conversation_id:
            raise ValueError("Conversation id cannot be empty")
        if not persona_instruction:
            raise ValueError("Persona instruction cannot be empty")

        self._id = conversation_id
        self._turns: list[Turn] = []
        self.persona_instruction = persona_instruction
        self.created_at = datetime.now(UTC)
        self.last_activity = self.created_at
        self.lock = TurnLock()

        logger.debug(f"Created conversation {self._id}")

    @property
    def id(self) -> str:
        return self._id

    @property
    def turns(self) -> tuple[Turn, ...]:
        """Recorded turns in chronological order (read-only view)."""
        return tuple(self._turns)

    @property
    def turn_count(self) -> int:
        return len(self._turns)

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    def update_persona(self, persona_instruction: str | None) -> bool:
        """
        Replace the persona instruction if a non-empty one is supplied.

        Returns:
            True if the instruction changed
        """
        if not persona_instruction or persona_instruction == self.persona_instruction:
            return False

        self.persona_instruction = persona_instruction
        self.update_activity()
        logger.debug(f"Conversation {self._id}: persona instruction replaced")
        return True

    def record_turn(self, prompt: str, response: str) -> Turn:
        """Append a completed prompt/response pair."""
        turn = Turn(prompt=prompt, response=response)
        self._turns.append(turn)
        self.update_activity()

        logger.debug(f"Conversation {self._id}: recorded turn {len(self._turns)}")
        return turn

    def is_expired(self, ttl_seconds: float) -> bool:
        """
        Check whether the conversation has been idle longer than the TTL.

        Args:
            ttl_seconds: Idle timeout in seconds

        Returns:
            True if the conversation has expired
        """
        elapsed = (datetime.now(UTC) - self.last_activity).total_seconds()
        return elapsed > ttl_seconds

    def summary(self) -> dict[str, Any]:
        return {
            "conversation_id": self._id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "turn_count": len(self._turns),
            "persona_instruction": self.persona_instruction,
            "busy": self.lock.locked(),
        }

    def __repr__(self) -> str:
        return f"Conversation(id='{self._id}', turns={len(self._turns)})"
