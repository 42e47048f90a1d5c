"""Conversation and credit storage."""

from deep_research.store.conversation_store import (
    InMemoryConversationStore,
    ConversationNotFoundError,
    ConversationAccessError,
    get_store,
    reset_store,
)

__all__ = [
    "InMemoryConversationStore",
    "ConversationNotFoundError",
    "ConversationAccessError",
    "get_store",
    "reset_store",
]
