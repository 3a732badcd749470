"""
In-memory conversation storage.
"""

from .store import (
    MAX_ID_ATTEMPTS,
    ConversationStore,
    get_conversation_store,
    reset_conversation_store,
)

__all__ = [
    "ConversationStore",
    "MAX_ID_ATTEMPTS",
    "get_conversation_store",
    "reset_conversation_store",
]
