"""
In-memory conversation store.

The store is the single process-wide owner of live conversations. Map access
is serialized by one coarse lock, and generating a fresh identifier,
checking it and inserting the conversation happen inside the same critical
section so concurrent creators can never claim the same id.

Conversations live for the lifetime of the process unless the optional
eviction policy is enabled (idle TTL and/or an LRU cap).
"""

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import cast

from ..config.settings import get_settings
from ..core.conversation import Conversation
from ..core.errors import DuplicateIdError
from ..utils.identifiers import generate_conversation_id

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 10

# Global store instance and lock for thread-safe singleton
_global_store: "ConversationStore | None" = None
_store_lock = threading.Lock()


class ConversationStore:
    """
    Process-wide mapping from conversation id to Conversation.

    Eviction never removes a conversation whose turn lock is held, so an
    in-flight turn always records into a conversation that is still live.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_conversations: int | None = None,
        id_factory: Callable[[str], str] = generate_conversation_id,
        max_id_attempts: int = MAX_ID_ATTEMPTS,
    ):
        """
        Initialize the store.

        Args:
            ttl_seconds: Idle time after which a conversation expires (None disables)
            max_conversations: LRU capacity (None means unbounded)
            id_factory: Identifier generator taking the caller's pseudo
            max_id_attempts: Collision retries before giving up
        """
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_conversations is not None and max_conversations < 1:
            raise ValueError("max_conversations must be at least 1")

        self.ttl_seconds = ttl_seconds
        self.max_conversations = max_conversations
        self._id_factory = id_factory
        self._max_id_attempts = max_id_attempts
        self._conversations: OrderedDict[str, Conversation] = OrderedDict()
        self._lock = threading.RLock()

        logger.debug(
            f"ConversationStore initialized (ttl={ttl_seconds}, max={max_conversations})"
        )

    def get(self, conversation_id: str) -> Conversation | None:
        """Return the live conversation for an id, or None."""
        with self._lock:
            conversation = self._get_live(conversation_id)
            if conversation is not None:
                self._conversations.move_to_end(conversation_id)
            return conversation

    def exists(self, conversation_id: str) -> bool:
        with self._lock:
            return self._get_live(conversation_id) is not None

    def create(
        self, conversation_id: str, initial_persona: str, hold_lock: bool = False
    ) -> Conversation:
        """
        Create a conversation under a caller-chosen id.

        Args:
            conversation_id: Identifier for the new conversation
            initial_persona: Persona instruction seeded at creation
            hold_lock: Return the conversation with its turn lock already held

        Raises:
            DuplicateIdError: If the id is already in use
        """
        with self._lock:
            if self._get_live(conversation_id) is not None:
                raise DuplicateIdError(conversation_id)
            return self._insert(conversation_id, initial_persona, hold_lock)

    def create_unique(
        self, pseudo: str, initial_persona: str, hold_lock: bool = False
    ) -> Conversation:
        """
        Create a conversation under a freshly generated, unused id.

        Generation, the collision check and insertion run under the store
        lock as one step.

        Args:
            pseudo: Caller's display name, passed to the id factory
            initial_persona: Persona instruction seeded at creation
            hold_lock: Return the conversation with its turn lock already held

        Raises:
            DuplicateIdError: If no unused id was produced within the attempt limit
        """
        with self._lock:
            conversation_id = ""
            for attempt in range(self._max_id_attempts):
                conversation_id = self._id_factory(pseudo)
                if self._get_live(conversation_id) is None:
                    return self._insert(conversation_id, initial_persona, hold_lock)

                logger.warning(
                    f"Conversation ID collision on attempt {attempt + 1}: {conversation_id}"
                )

            raise DuplicateIdError(conversation_id)

    def evict_expired(self) -> int:
        """
        Remove idle conversations past the TTL.

        Returns:
            Number of conversations evicted
        """
        if self.ttl_seconds is None:
            return 0

        with self._lock:
            expired = [
                conversation_id
                for conversation_id, conversation in self._conversations.items()
                if self._is_evictable(conversation)
                and conversation.is_expired(self.ttl_seconds)
            ]
            for conversation_id in expired:
                del self._conversations[conversation_id]

        if expired:
            logger.info(f"Evicted {len(expired)} expired conversations")
        return len(expired)

    def ids(self) -> list[str]:
        """Ids of stored conversations, least recently used first."""
        with self._lock:
            return list(self._conversations.keys())

    def clear(self) -> None:
        with self._lock:
            self._conversations.clear()
        logger.debug("ConversationStore cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        return isinstance(conversation_id, str) and self.exists(conversation_id)

    def _get_live(self, conversation_id: str) -> Conversation | None:
        """Lookup with lazy TTL expiry. Caller holds the store lock."""
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return None

        if (
            self.ttl_seconds is not None
            and self._is_evictable(conversation)
            and conversation.is_expired(self.ttl_seconds)
        ):
            del self._conversations[conversation_id]
            logger.info(f"Conversation {conversation_id} expired")
            return None

        return conversation

    def _insert(
        self, conversation_id: str, initial_persona: str, hold_lock: bool
    ) -> Conversation:
        """Insert a new conversation. Caller holds the store lock."""
        self._make_room()

        conversation = Conversation(conversation_id, initial_persona)
        if hold_lock:
            conversation.lock.acquire()
        self._conversations[conversation_id] = conversation

        logger.debug(f"Stored conversation {conversation_id} ({len(self._conversations)} live)")
        return conversation

    def _make_room(self) -> None:
        """Evict least recently used conversations down to capacity."""
        if self.max_conversations is None:
            return

        while len(self._conversations) >= self.max_conversations:
            victim = next(
                (
                    conversation_id
                    for conversation_id, conversation in self._conversations.items()
                    if self._is_evictable(conversation)
                ),
                None,
            )
            if victim is None:
                logger.warning(
                    "All conversations are busy, exceeding max_conversations "
                    f"({self.max_conversations})"
                )
                return

            del self._conversations[victim]
            logger.info(f"Evicted least recently used conversation {victim}")

    @staticmethod
    def _is_evictable(conversation: Conversation) -> bool:
        return not conversation.lock.locked()


def get_conversation_store() -> ConversationStore:
    """
    Get the global ConversationStore instance.

    The eviction policy is read from settings on first use.

    Returns:
        Global ConversationStore instance
    """
    global _global_store
    if _global_store is None:
        with _store_lock:
            if _global_store is None:
                settings = get_settings()
                _global_store = ConversationStore(
                    ttl_seconds=settings.conversation.ttl_seconds,
                    max_conversations=settings.conversation.max_conversations,
                )
                logger.debug("Created global ConversationStore instance")
    return cast(ConversationStore, _global_store)


def reset_conversation_store() -> None:
    """
    Reset the global store instance.

    This is primarily used for testing to ensure clean state
    between test runs.
    """
    global _global_store
    with _store_lock:
        _global_store = None
        logger.debug("Reset global ConversationStore instance")
