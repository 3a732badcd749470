"""
Request validation for Persona Chat.

This module turns the untyped fields of an incoming generate request into a
validated, immutable GenerateRequest, so that storage and provider code never
see unchecked input.
"""

import math
from collections.abc import Mapping
from typing import Any

from ..core.errors import (
    MissingFieldError,
    OutOfRangeError,
    TypeMismatchError,
)
from ..core.models import DEFAULT_RANDOMNESS, DEFAULT_RICHNESS, GenerateRequest


class RequestValidator:
    """Field-by-field validation of generate requests."""

    MAX_PROMPT_LENGTH = 50000

    RANDOMNESS_RANGE = (0.0, 1.0)
    RICHNESS_RANGE = (-2.0, 2.0)

    def __init__(
        self,
        default_randomness: float = DEFAULT_RANDOMNESS,
        default_richness: float = DEFAULT_RICHNESS,
    ) -> None:
        self.default_randomness = default_randomness
        self.default_richness = default_richness

    def validate(self, raw: Mapping[str, Any]) -> GenerateRequest:
        """
        Validate raw request fields.

        Args:
            raw: Untyped request body using wire field names

        Returns:
            Validated, immutable request

        Raises:
            ValidationError: Naming the first offending field
        """
        if not isinstance(raw, Mapping):
            raise TypeMismatchError("Request body must be an object")

        pseudo = self.validate_pseudo(raw.get("pseudo"))
        prompt = self.validate_prompt(raw.get("prompt"))
        conversation_id = self.validate_optional_string(
            raw.get("conversationId"), "conversationId", "ConversationId must be a string"
        )
        ai_personality = self.validate_optional_string(
            raw.get("aiPersonality"), "aiPersonality", "Personality must be a string"
        )
        randomness = self.validate_number(
            raw.get("randomness"),
            "randomness",
            self.RANDOMNESS_RANGE,
            self.default_randomness,
            "Randomness must be between 0 and 1",
        )
        richness = self.validate_number(
            raw.get("richness"),
            "richness",
            self.RICHNESS_RANGE,
            self.default_richness,
            "Richness must be between -2 and 2",
        )

        return GenerateRequest(
            prompt=prompt,
            pseudo=pseudo,
            is_new_conversation=self.parse_flag(raw.get("isNewConversation")),
            randomness=randomness,
            richness=richness,
            ai_personality=ai_personality,
            conversation_id=conversation_id,
        )

    def validate_pseudo(self, value: Any) -> str:
        if value is None or value == "":
            raise MissingFieldError("Pseudo is required", field="pseudo")
        if not isinstance(value, str):
            raise TypeMismatchError("Pseudo must be a string", field="pseudo")
        if not value.strip():
            raise MissingFieldError("Pseudo is required", field="pseudo")
        return value

    def validate_prompt(self, value: Any) -> str:
        if value is None:
            raise MissingFieldError("Prompt is required", field="prompt")
        if not isinstance(value, str):
            raise TypeMismatchError("Prompt must be a string", field="prompt")
        if not value.strip():
            raise MissingFieldError("Prompt cannot be empty", field="prompt")
        if len(value) > self.MAX_PROMPT_LENGTH:
            raise OutOfRangeError(
                f"Prompt exceeds maximum length of {self.MAX_PROMPT_LENGTH} characters",
                field="prompt",
            )
        return value

    @staticmethod
    def validate_optional_string(value: Any, field: str, message: str) -> str | None:
        """Empty strings count as absent."""
        if value is None or value == "":
            return None
        if not isinstance(value, str):
            raise TypeMismatchError(message, field=field)
        return value

    @staticmethod
    def validate_number(
        value: Any,
        field: str,
        bounds: tuple[float, float],
        default: float,
        message: str,
    ) -> float:
        if value is None:
            return default

        # bool is an int subclass but never a valid sampling parameter
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise TypeMismatchError(f"{field.capitalize()} must be a number", field=field)

        low, high = bounds
        if math.isnan(value) or not low <= value <= high:
            raise OutOfRangeError(message, field=field)
        return float(value)

    @staticmethod
    def parse_flag(value: Any) -> bool:
        """Only True and the literal string "true" enable the flag."""
        return value is True or value == "true"


# Global validator instance
_validator = RequestValidator()


def validate_generate_request(
    raw: Mapping[str, Any],
    default_randomness: float | None = None,
    default_richness: float | None = None,
) -> GenerateRequest:
    """Validate a raw generate request with the global validator."""
    if default_randomness is None and default_richness is None:
        return _validator.validate(raw)

    validator = RequestValidator(
        default_randomness=(
            DEFAULT_RANDOMNESS if default_randomness is None else default_randomness
        ),
        default_richness=(
            DEFAULT_RICHNESS if default_richness is None else default_richness
        ),
    )
    return validator.validate(raw)
