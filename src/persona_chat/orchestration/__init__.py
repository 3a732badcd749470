"""
Session orchestration for conversation turns.

This module provides the SessionOrchestrator class, the single entry point
transport bindings call to handle a generate request.
"""

from .orchestrator import (
    SessionOrchestrator,
    get_session_orchestrator,
    reset_session_orchestrator,
)
from .types import HandlerResult

__all__ = [
    "SessionOrchestrator",
    "get_session_orchestrator",
    "reset_session_orchestrator",
    "HandlerResult",
]
