"""Abstract conversation store interface and an in-memory implementation.

The hosted record database is an external collaborator; the chat client only
needs this contract to hand off finished conversations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, Dict, List
import threading
import uuid

from medchat.client.conversation import ChatMessage


@dataclass
class ConversationRecord:
    """A persisted conversation."""

    conversation_id: str
    patient_id: Optional[str]
    messages: List[ChatMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ConversationStore(ABC):
    """Abstract interface for conversation persistence."""

    @abstractmethod
    async def save_conversation(self, patient_id: Optional[str], messages: List[ChatMessage]) -> str:
        """Persist a conversation and return its new id."""
        pass

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        """Retrieve a conversation with its messages in chronological order."""
        pass

    @abstractmethod
    async def list_conversations(self, patient_id: Optional[str] = None) -> List[ConversationRecord]:
        """List conversations, newest first, optionally for one patient."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation and its messages."""
        pass


class InMemoryConversationStore(ConversationStore):
    """In-memory conversation store for tests and local runs.

    Note: Data will be lost on application restart.
    """

    def __init__(self) -> None:
        self._store: Dict[str, ConversationRecord] = {}
        self._lock = threading.Lock()

    async def save_conversation(self, patient_id: Optional[str], messages: List[ChatMessage]) -> str:
        if not messages:
            raise ValueError("Cannot save an empty conversation")

        conversation_id = str(uuid.uuid4())
        record = ConversationRecord(
            conversation_id=conversation_id,
            patient_id=patient_id,
            messages=[replace(m) for m in messages],
        )
        with self._lock:
            self._store[conversation_id] = record
        return conversation_id

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        with self._lock:
            record = self._store.get(conversation_id)
            if record is None:
                return None
            return replace(record, messages=[replace(m) for m in record.messages])

    async def list_conversations(self, patient_id: Optional[str] = None) -> List[ConversationRecord]:
        with self._lock:
            records = [
                r for r in self._store.values()
                if patient_id is None or r.patient_id == patient_id
            ]
        # Sort by created_at descending (most recent first)
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    async def delete_conversation(self, conversation_id: str) -> None:
        with self._lock:
            self._store.pop(conversation_id, None)
