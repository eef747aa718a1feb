"""Client side of the medical chat stream.

The decoder turns relayed SSE bytes into text deltas, the accumulator grows
the conversation from them, and MedicalChatClient ties both to the relay.
"""

from medchat.client.chat_client import (
    ChatTransportError,
    MedicalChatClient,
    RelayClientError,
    build_relay_body,
)
from medchat.client.conversation import (
    ChatMessage,
    ConversationAccumulator,
    ConversationState,
    EmptyTurnError,
)
from medchat.client.decoder import (
    FrameKind,
    SSEDecoder,
    StreamFrame,
    StreamOutcome,
    decode_stream,
)
from medchat.client.history import (
    ConversationRecord,
    ConversationStore,
    InMemoryConversationStore,
)

__all__ = [
    "ChatTransportError",
    "MedicalChatClient",
    "RelayClientError",
    "build_relay_body",
    "ChatMessage",
    "ConversationAccumulator",
    "ConversationState",
    "EmptyTurnError",
    "FrameKind",
    "SSEDecoder",
    "StreamFrame",
    "StreamOutcome",
    "decode_stream",
    "ConversationRecord",
    "ConversationStore",
    "InMemoryConversationStore",
]
