"""In-memory conversation state for the chat client.

ConversationAccumulator owns the ordered message list and grows the open
assistant turn as deltas arrive. The open turn is tracked by an explicit
state machine instead of inspecting the last message:

    IDLE --apply_delta--> STREAMING(index) --complete_turn/abort_turn--> IDLE

Only the most recently appended message can be open, so at most one
assistant message grows at any time.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Callable, Literal, Optional
import logging

if TYPE_CHECKING:
    from medchat.client.history import ConversationStore

logger = logging.getLogger(__name__)

Role = Literal["user", "assistant"]


@dataclass
class ChatMessage:
    """One conversation turn.

    Attributes:
        role: "user" or "assistant"
        content: Message text; grows in place for the open assistant turn
        attachment: Optional image reference (data URL or uploaded file URL)
        incomplete: True if the assistant turn ended before the stream did
    """

    role: Role
    content: str
    attachment: Optional[str] = None
    incomplete: bool = False


class ConversationState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"


class EmptyTurnError(ValueError):
    """A user turn had neither text nor an attachment."""


DeltaSubscriber = Callable[[ChatMessage], None]


class ConversationAccumulator:
    """Ordered, chronological message list with one optional open turn."""

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []
        self._open_index: Optional[int] = None
        self._subscribers: list[DeltaSubscriber] = []

    @property
    def state(self) -> ConversationState:
        if self._open_index is None:
            return ConversationState.IDLE
        return ConversationState.STREAMING

    @property
    def messages(self) -> list[ChatMessage]:
        """Snapshot copies of the messages; the owned objects never leave."""
        return [replace(message) for message in self._messages]

    @property
    def current_message(self) -> Optional[ChatMessage]:
        """Snapshot of the open assistant message, or None when idle."""
        if self._open_index is None:
            return None
        return replace(self._messages[self._open_index])

    def __len__(self) -> int:
        return len(self._messages)

    def subscribe(self, callback: DeltaSubscriber) -> Callable[[], None]:
        """Call ``callback`` with the grown open message after every delta.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def append_user_turn(self, text: Optional[str], attachment: Optional[str] = None) -> ChatMessage:
        """Append a user message.

        An open assistant turn is completed first so the new user message
        never lands in the middle of a growing reply.

        Raises:
            EmptyTurnError: If both text and attachment are absent or blank
        """
        text = (text or "").strip()
        if not text and not attachment:
            raise EmptyTurnError("A user turn needs text or an attachment")

        if self._open_index is not None:
            self.complete_turn()

        message = ChatMessage(role="user", content=text, attachment=attachment)
        self._messages.append(message)
        return replace(message)

    def apply_delta(self, text: str) -> None:
        """Grow the open assistant turn by ``text``, opening one if idle.

        Each call strictly appends; content is never overwritten.
        """
        if self._open_index is None:
            self._messages.append(ChatMessage(role="assistant", content=text))
            self._open_index = len(self._messages) - 1
        else:
            self._messages[self._open_index].content += text

        if self._subscribers:
            snapshot = replace(self._messages[self._open_index])
            for callback in list(self._subscribers):
                callback(snapshot)

    def complete_turn(self) -> None:
        """Close the open assistant turn (STREAMING -> IDLE). No-op when idle."""
        self._open_index = None

    def abort_turn(self) -> None:
        """Close the open turn, keeping its partial content marked incomplete."""
        if self._open_index is not None:
            self._messages[self._open_index].incomplete = True
            logger.info(
                f"Assistant turn aborted after "
                f"{len(self._messages[self._open_index].content)} characters"
            )
        self._open_index = None

    def reset(self) -> None:
        """Clear all messages and return to IDLE."""
        self._messages.clear()
        self._open_index = None

    async def hand_off(self, store: "ConversationStore", patient_id: Optional[str] = None) -> Optional[str]:
        """Persist the conversation, then reset.

        An empty conversation is not persisted. If the store fails the
        messages are kept so the caller can retry.

        Returns:
            The stored conversation id, or None if there was nothing to save
        """
        if not self._messages:
            return None

        self.complete_turn()
        conversation_id = await store.save_conversation(patient_id, self.messages)
        logger.info(f"Conversation {conversation_id} saved ({len(self._messages)} messages)")
        self.reset()
        return conversation_id
