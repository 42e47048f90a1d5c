"""
In-memory conversation store.

Holds conversations (owner plus saved surface states) and a per-user
credit ledger. Replace with Redis/DB in production; the API depends only
on the methods below.
"""

import logging
import threading
import uuid
from typing import Any, Dict, List, Optional

from deep_research.shared.contracts.research_output import SurfaceState, now_ms


logger = logging.getLogger(__name__)

DEFAULT_CREDITS = 20
RESEARCH_CREDIT_COST = 2
MAX_RESEARCH_SURFACES = 10


class ConversationNotFoundError(LookupError):
    """Raised when a conversation does not exist."""

    pass


class ConversationAccessError(PermissionError):
    """Raised when a user accesses a conversation they do not own."""

    pass


class InMemoryConversationStore:
    """Thread-safe in-memory store for conversations and credits."""

    def __init__(self, default_credits: int = DEFAULT_CREDITS):
        self._conversations: Dict[str, Dict[str, Any]] = {}
        self._credits: Dict[str, int] = {}
        self._default_credits = default_credits
        self._last_saved_at = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create_conversation(
        self,
        user_id: str,
        title: str = "New research",
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a conversation owned by `user_id` and return it."""
        conversation = {
            "id": conversation_id or str(uuid.uuid4()),
            "user_id": user_id,
            "title": title,
            "surface_states": {},
            "created_at": now_ms(),
            "updated_at": now_ms(),
        }
        with self._lock:
            self._conversations[conversation["id"]] = conversation
        return conversation

    def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        return self._conversations.get(conversation_id)

    def get_owned_conversation(self, conversation_id: str, user_id: str) -> Dict[str, Any]:
        """
        Fetch a conversation and check ownership.

        Raises:
            ConversationNotFoundError: If it does not exist
            ConversationAccessError: If it belongs to another user
        """
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        if conversation["user_id"] != user_id:
            raise ConversationAccessError(
                f"Conversation {conversation_id} does not belong to user {user_id}"
            )
        return conversation

    def update_conversation(self, conversation_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
            conversation.update(updates)
            conversation["updated_at"] = now_ms()
            return conversation

    def list_research_surfaces(self, conversation_id: str, user_id: str) -> List[Dict[str, Any]]:
        """Saved research surfaces of a conversation, oldest first."""
        conversation = self.get_owned_conversation(conversation_id, user_id)
        research = conversation["surface_states"].get("research")
        if research is None:
            return []
        if isinstance(research, dict):
            return [research]
        return list(research)

    def get_research_surface(
        self, conversation_id: str, user_id: str, surface_id: str
    ) -> Optional[Dict[str, Any]]:
        for surface in self.list_research_surfaces(conversation_id, user_id):
            if surface.get("id") == surface_id:
                return surface
        return None

    def replace_research_surface(
        self, conversation_id: str, user_id: str, surface: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Replace a saved surface (matched by id) in place."""
        with self._lock:
            surfaces = self.list_research_surfaces(conversation_id, user_id)
            surface = {**surface, "updated_at": now_ms()}
            replaced = [surface if s.get("id") == surface["id"] else s for s in surfaces]
            conversation = self.get_owned_conversation(conversation_id, user_id)
            self.update_conversation(
                conversation_id,
                {"surface_states": {**conversation["surface_states"], "research": replaced}},
            )
        return surface

    # ------------------------------------------------------------------
    # Credits
    # ------------------------------------------------------------------

    def get_user_credits(self, user_id: str) -> int:
        return self._credits.get(user_id, self._default_credits)

    def set_user_credits(self, user_id: str, credits: int) -> None:
        with self._lock:
            self._credits[user_id] = credits

    def update_credits(self, user_id: str, delta: int) -> int:
        """Apply a credit delta and return the new balance (never below zero)."""
        with self._lock:
            balance = max(0, self._credits.get(user_id, self._default_credits) + delta)
            self._credits[user_id] = balance
            return balance

    # ------------------------------------------------------------------
    # Research surfaces
    # ------------------------------------------------------------------

    def save_research_surface(
        self,
        conversation_id: str,
        user_id: str,
        surface_state: SurfaceState,
    ) -> str:
        """
        Save a finished research surface and charge for it.

        The surface gets id "research-{epoch_ms}" and is appended to the
        conversation's research list; only the last 10 are kept. A legacy
        single saved object is turned into a list alongside the new one.

        Args:
            conversation_id: Target conversation
            user_id: Requesting user (must own the conversation)
            surface_state: Finished surface

        Returns:
            The new surface id

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            ConversationAccessError: If the user does not own it
        """
        # Read, append and charge under one lock
        with self._lock:
            conversation = self.get_owned_conversation(conversation_id, user_id)
            existing_states = conversation["surface_states"]
            existing = existing_states.get("research")

            # Strictly increasing, so two saves in the same ms still get distinct ids
            saved_at = max(now_ms(), self._last_saved_at + 1)
            self._last_saved_at = saved_at
            surface_id = f"research-{saved_at}"
            enriched = surface_state.model_copy(update={"id": surface_id, "saved_at": saved_at})
            enriched_dict = enriched.model_dump()

            if isinstance(existing, list):
                updated = (existing + [enriched_dict])[-MAX_RESEARCH_SURFACES:]
            elif isinstance(existing, dict):
                updated = [existing, enriched_dict]
            else:
                updated = [enriched_dict]

            self.update_conversation(
                conversation_id,
                {"surface_states": {**existing_states, "research": updated}},
            )
            balance = self.update_credits(user_id, -RESEARCH_CREDIT_COST)
        logger.info(
            f"Saved research {surface_id} to conversation {conversation_id}, "
            f"deducted {RESEARCH_CREDIT_COST} credits from {user_id} (balance={balance})"
        )
        return surface_id


# Shared store instance (one per process)
_store: Optional[InMemoryConversationStore] = None


def get_store() -> InMemoryConversationStore:
    """Get or create the shared store instance."""
    global _store
    if _store is None:
        _store = InMemoryConversationStore()
    return _store


def reset_store() -> InMemoryConversationStore:
    """Replace the shared store with an empty one and return it."""
    global _store
    _store = InMemoryConversationStore()
    return _store
