"""
Core Pydantic models for Persona Chat.

This module contains the data models exchanged between the request validator,
the context assembler, the provider clients and the session orchestrator.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Appended to every raw prompt before it is sent and recorded.
RESPONSE_CUE = "\n\nResponse:"

# Returned (and recorded) when the provider answers without any choice.
NO_RESPONSE_FALLBACK = "No response found"

MAX_OUTPUT_TOKENS = 20
STOP_SEQUENCES = ["\n"]

DEFAULT_RANDOMNESS = 0.6
DEFAULT_RICHNESS = 0.7


class Role(str, Enum):
    """Message roles understood by chat-completion providers."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """Role-tagged unit sent to the completion provider."""
    model_config = ConfigDict(frozen=True)

    role: Role = Field(..., description="Message role (user, assistant, system)")
    content: str = Field(..., description="Message content")
    speaker_label: Optional[str] = Field(
        None, description="Human participant name, user messages only"
    )

    @model_validator(mode='after')
    def validate_speaker_label(self):
        if self.speaker_label is not None and self.role != Role.USER:
            raise ValueError("Only user messages can carry a speaker label")
        return self


class Turn(BaseModel):
    """One recorded prompt/response pair."""
    model_config = ConfigDict(frozen=True)

    prompt: str = Field(..., description="Prompt text as sent, response cue included")
    response: str = Field(..., description="Provider response text")


class GenerateRequest(BaseModel):
    """Validated, immutable form of an incoming generate request."""
    model_config = ConfigDict(frozen=True)

    prompt: str = Field(..., min_length=1, description="Raw user prompt")
    pseudo: str = Field(..., min_length=1, description="Caller's display name")
    is_new_conversation: bool = Field(default=False, description="Force a new conversation")
    randomness: float = Field(
        default=DEFAULT_RANDOMNESS, ge=0.0, le=1.0, description="Nucleus sampling top-p"
    )
    richness: float = Field(
        default=DEFAULT_RICHNESS, ge=-2.0, le=2.0, description="Frequency penalty"
    )
    ai_personality: Optional[str] = Field(None, description="Persona instruction override")
    conversation_id: Optional[str] = Field(None, description="Existing conversation id")

    @property
    def prompt_text(self) -> str:
        """Prompt with the trailing response cue, as sent to the provider."""
        return f"{self.prompt}{RESPONSE_CUE}"


class GenerateResult(BaseModel):
    """Successful outcome of one conversation turn."""
    response: str = Field(..., description="Provider response text")
    conversation_id: str = Field(..., description="Conversation the turn was recorded in")

    def to_payload(self) -> Dict[str, str]:
        """Wire representation used by transport bindings."""
        return {"response": self.response, "conversationId": self.conversation_id}


class TokenUsage(BaseModel):
    """Token usage information from model APIs."""
    input_tokens: int = Field(..., ge=0, description="Number of input tokens")
    output_tokens: int = Field(..., ge=0, description="Number of output tokens")
    total_tokens: int = Field(..., ge=0, description="Total tokens used")

    @model_validator(mode='after')
    def validate_total(self):
        if self.total_tokens != self.input_tokens + self.output_tokens:
            raise ValueError("Total tokens must equal input_tokens + output_tokens")
        return self


class ModelRequest(BaseModel):
    """Standardized completion request for all model providers."""
    model: str = Field(..., min_length=1, description="Model identifier")
    messages: List[Message] = Field(..., min_length=1, description="Conversation messages")
    top_p: float = Field(..., ge=0.0, le=1.0, description="Nucleus sampling parameter")
    frequency_penalty: float = Field(..., ge=-2.0, le=2.0, description="Frequency penalty")
    max_tokens: int = Field(default=MAX_OUTPUT_TOKENS, ge=1, description="Maximum tokens to generate")
    stop: List[str] = Field(default_factory=lambda: list(STOP_SEQUENCES), description="Stop sequences")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional request metadata")

    @field_validator('stop')
    @classmethod
    def validate_stop(cls, v):
        if len(v) > 4:
            raise ValueError("At most 4 stop sequences are supported")
        return v


class ModelResponse(BaseModel):
    """Standardized completion response."""
    content: str = Field(..., description="Generated content")
    model: str = Field(..., description="Model used for generation")
    provider: str = Field(..., description="Model provider")
    usage: Optional[TokenUsage] = Field(None, description="Token usage information")
    finish_reason: Optional[str] = Field(None, description="Provider finish reason")
    request_id: str = Field(default_factory=lambda: str(uuid4()), description="Unique request identifier")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Response timestamp")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional response metadata")
