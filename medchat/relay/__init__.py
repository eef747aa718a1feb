"""Gated streaming relay between chat clients and the model provider.

Public API:
- RelayService: The authenticate → authorize → validate → compose → dispatch pipeline
- ProviderClient, relay_body: Streaming provider call and verbatim body relay
- RelayError, ErrorKind: The closed error taxonomy
"""

from medchat.relay.errors import ErrorKind, RelayError
from medchat.relay.provider import ProviderClient, relay_body
from medchat.relay.service import RelayService

__all__ = [
    "ErrorKind",
    "RelayError",
    "ProviderClient",
    "relay_body",
    "RelayService",
]
