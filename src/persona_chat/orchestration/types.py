"""
Type definitions for session orchestration.

This module defines data classes used by the SessionOrchestrator to hand
results to transport bindings.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class HandlerResult:
    """
    Transport-ready outcome of one request.

    Bindings render ``body`` as JSON with ``status_code``; the orchestrator has
    already logged any failure in full.
    """

    status_code: int
    """HTTP-style status: 200, 4xx for caller errors, 5xx otherwise"""

    body: dict[str, Any] = field(default_factory=dict)
    """``{"response", "conversationId"}`` on success, ``{"message"}`` on failure"""

    error_kind: str | None = None
    """Machine-readable error kind, None on success"""

    @property
    def ok(self) -> bool:
        return self.error_kind is None
