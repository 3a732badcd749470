"""
Error taxonomy for conversation handling.

Every failure the session orchestrator can surface derives from SessionError,
which carries a machine-readable ``kind`` and the HTTP status a transport
binding should answer with. Provider failures live in ``clients.base`` and
extend ProviderError defined here.
"""

from typing import Any


class SessionError(Exception):
    """Base exception for all conversation handling errors."""

    kind = "internal_error"
    http_status = 500

    def __init__(self, message: str, kind: str | None = None) -> None:
        self.message = message
        if kind is not None:
            self.kind = kind
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        """True when the caller, not the server, is at fault."""
        return 400 <= self.http_status < 500

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ValidationError(SessionError):
    """Bad or missing input field, or out-of-range parameter."""

    kind = "validation_error"
    http_status = 400

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class MissingFieldError(ValidationError):
    """A required field was absent or empty."""

    kind = "missing_field"


class TypeMismatchError(ValidationError):
    """A field was present with the wrong type."""

    kind = "type_mismatch"


class OutOfRangeError(ValidationError):
    """A numeric or length constraint was violated."""

    kind = "out_of_range"


class ConversationNotFoundError(SessionError):
    """A conversation id was supplied that the store does not know."""

    kind = "conversation_not_found"
    http_status = 404

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class DuplicateIdError(SessionError):
    """A conversation was created under an id that is already in use."""

    kind = "duplicate_id"

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} already exists")
        self.conversation_id = conversation_id


class ConversationBusyError(SessionError):
    """Another turn held the conversation for longer than the lock timeout."""

    kind = "conversation_busy"
    http_status = 503

    def __init__(self, conversation_id: str, timeout: float) -> None:
        super().__init__(
            f"Conversation {conversation_id} is busy (waited {timeout:.1f}s)"
        )
        self.conversation_id = conversation_id
        self.timeout = timeout


class ProviderError(SessionError):
    """The completion provider call failed."""

    kind = "provider_error"
    http_status = 502

    def __init__(
        self,
        message: str,
        provider: str,
        model: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.details = details or {}

    def __str__(self) -> str:
        parts = [f"{self.provider}: {self.message}"]
        if self.model:
            parts.append(f"Model: {self.model}")
        return " | ".join(parts)
