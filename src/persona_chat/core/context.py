"""
Context assembly for provider requests.

Messages are never stored; they are rebuilt for every request from the
conversation's turns and current persona instruction.
"""

import logging

from .conversation import Conversation
from .models import Message, Role

logger = logging.getLogger(__name__)


def replay_turns(conversation: Conversation, pseudo: str) -> list[Message]:
    """Replay recorded turns as alternating user/assistant messages."""
    messages: list[Message] = []
    for turn in conversation.turns:
        messages.append(Message(role=Role.USER, content=turn.prompt, speaker_label=pseudo))
        messages.append(Message(role=Role.ASSISTANT, content=turn.response))
    return messages


def build_messages(
    conversation: Conversation, prompt_text: str, pseudo: str
) -> list[Message]:
    """
    Build the ordered message sequence for the next completion.

    A conversation without history opens with its persona as the only system
    message. Once history exists, the persona is placed after the replayed
    turns so the current instruction takes priority over earlier context.

    Args:
        conversation: Conversation whose history is replayed
        prompt_text: New prompt, response cue included
        pseudo: Speaker label for replayed user messages

    Returns:
        Messages to send, ending with the new user prompt
    """
    messages = replay_turns(conversation, pseudo)

    # Without history this is the opening system seed; with history it
    # re-asserts the persona right before the new prompt.
    messages.append(Message(role=Role.SYSTEM, content=conversation.persona_instruction))
    messages.append(Message(role=Role.USER, content=prompt_text))

    logger.debug(
        f"Assembled {len(messages)} messages for conversation {conversation.id} "
        f"({conversation.turn_count} prior turns)"
    )
    return messages
