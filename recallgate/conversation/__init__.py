"""Conversation inputs for the activation engine."""

from recallgate.conversation.snapshot import (
    GENERATION_TYPES,
    ConversationSnapshot,
    LorebookSource,
    Message,
)

__all__ = ["ConversationSnapshot", "Message", "LorebookSource", "GENERATION_TYPES"]
