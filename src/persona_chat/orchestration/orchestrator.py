"""
SessionOrchestrator for conversation turn handling.

This module provides the entry point of the core: one call validates a raw
request, resolves or creates its conversation, assembles context, invokes
the completion provider once and records the turn.
"""

import logging
import threading
import time
from collections.abc import Mapping
from typing import Any, cast

from ..clients import BaseClient
from ..config.settings import AppSettings, get_settings
from ..core.context import build_messages
from ..core.conversation import Conversation
from ..core.errors import (
    ConversationBusyError,
    ConversationNotFoundError,
    SessionError,
)
from ..core.models import GenerateRequest, GenerateResult, ModelRequest
from ..storage import ConversationStore, get_conversation_store
from ..utils.client_factory import create_client_from_config
from ..utils.validation import RequestValidator
from .types import HandlerResult

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"

# Global orchestrator instance and lock for thread-safe singleton
_global_orchestrator: "SessionOrchestrator | None" = None
_orchestrator_lock = threading.Lock()


class SessionOrchestrator:
    """
    End-to-end handling of one conversation turn.

    Flow: validate -> resolve conversation -> assemble context -> invoke
    provider -> record turn -> respond. The conversation's turn lock is held
    from resolution until the turn is recorded (or the request fails); the
    store lock is never held while the provider call is awaited.
    """

    def __init__(
        self,
        client: BaseClient | None = None,
        store: ConversationStore | None = None,
        settings: AppSettings | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Provider client. If None, one is created from configuration
                    on first use.
            store: Conversation store. If None, the global store is used.
            settings: Application settings. If None, global settings are used.
        """
        self.settings = settings if settings is not None else get_settings()
        self.store = store if store is not None else get_conversation_store()
        self._client = client
        self.validator = RequestValidator(
            default_randomness=self.settings.conversation.default_randomness,
            default_richness=self.settings.conversation.default_richness,
        )

        logger.debug("SessionOrchestrator initialized")

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            self._client = create_client_from_config()
        return self._client

    async def generate_response(self, raw: Mapping[str, Any]) -> GenerateResult:
        """
        Handle one turn.

        Args:
            raw: Untyped request body (wire field names)

        Returns:
            Response text and the id of the conversation it was recorded in

        Raises:
            ValidationError: Invalid input, raised before any provider call
            ClientFactoryError: No provider client could be configured
            ConversationNotFoundError: Unknown conversation id
            ConversationBusyError: Conversation held by another turn too long
            ProviderError: Completion provider failure (turn not recorded)
        """
        started = time.perf_counter()
        request = self.validator.validate(raw)
        client = self.client

        conversation = await self._resolve_conversation(request)
        try:
            messages = build_messages(conversation, request.prompt_text, request.pseudo)
            model_request = ModelRequest(
                model=self.settings.provider.model,
                messages=messages,
                top_p=request.randomness,
                frequency_penalty=request.richness,
            )

            model_response = await client.complete(model_request)

            conversation.record_turn(request.prompt_text, model_response.content)
        finally:
            conversation.lock.release()

        logger.info(
            f"Completed turn {conversation.turn_count} of conversation {conversation.id} "
            f"in {time.perf_counter() - started:.2f}s"
        )
        return GenerateResult(
            response=model_response.content, conversation_id=conversation.id
        )

    async def handle(self, raw: Mapping[str, Any]) -> HandlerResult:
        """
        Handle one turn and map the outcome for a transport binding.

        Caller errors keep their specific message; server errors are reported
        generically so provider internals never reach the caller. Every
        failure is logged here in full.
        """
        try:
            result = await self.generate_response(raw)
        except SessionError as e:
            if e.is_client_error:
                logger.error(f"Rejected request ({e.kind}): {e.message}")
                return HandlerResult(
                    status_code=e.http_status,
                    body={"message": e.message},
                    error_kind=e.kind,
                )

            logger.exception(f"Request failed ({e.kind}): {e}")
            return HandlerResult(
                status_code=e.http_status,
                body={"message": INTERNAL_ERROR_MESSAGE},
                error_kind=e.kind,
            )
        except Exception as e:
            logger.exception(f"Unexpected error handling request: {e}")
            return HandlerResult(
                status_code=500,
                body={"message": INTERNAL_ERROR_MESSAGE},
                error_kind=SessionError.kind,
            )

        return HandlerResult(status_code=200, body=result.to_payload())

    async def _resolve_conversation(self, request: GenerateRequest) -> Conversation:
        """
        Find or create the request's conversation and take its turn lock.

        Returns:
            Conversation with its turn lock held by the caller
        """
        if request.is_new_conversation or not request.conversation_id:
            persona = request.ai_personality or self.settings.conversation.default_persona
            conversation = self.store.create_unique(
                request.pseudo, persona, hold_lock=True
            )
            logger.info(
                f"Started conversation {conversation.id} for {request.pseudo}"
            )
            return conversation

        conversation_id = request.conversation_id
        conversation = self.store.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        timeout = self.settings.conversation.lock_timeout
        if not await conversation.lock.acquire_async(timeout):
            raise ConversationBusyError(conversation_id, timeout)

        # Evicted while this request waited for the previous turn
        if self.store.get(conversation_id) is not conversation:
            conversation.lock.release()
            raise ConversationNotFoundError(conversation_id)

        conversation.update_persona(request.ai_personality)
        return conversation

    async def aclose(self) -> None:
        """Close the provider client if one was created."""
        if self._client is not None:
            await self._client.__aexit__(None, None, None)


def get_session_orchestrator() -> SessionOrchestrator:
    """
    Get the global SessionOrchestrator instance.

    Uses a thread-safe, double-checked locking pattern for a consistent
    and performant singleton instance across the application.

    Returns:
        Global SessionOrchestrator instance
    """
    global _global_orchestrator
    if _global_orchestrator is None:
        with _orchestrator_lock:
            # Second check ensures that another thread didn't initialize
            # the instance while the current thread was waiting for the lock.
            if _global_orchestrator is None:
                _global_orchestrator = SessionOrchestrator()
                logger.debug("Created global SessionOrchestrator instance")
    return cast(SessionOrchestrator, _global_orchestrator)


def reset_session_orchestrator() -> None:
    """
    Reset the global orchestrator instance.

    This is primarily used for testing to ensure clean state
    between test runs.
    """
    global _global_orchestrator
    with _orchestrator_lock:
        _global_orchestrator = None
        logger.debug("Reset global SessionOrchestrator instance")
