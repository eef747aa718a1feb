"""HTTP client for the medical chat relay.

Sends one question to the relay, decodes the SSE reply and grows the
conversation's assistant turn token by token.

Cancellation policy: if the task running ``ask`` is cancelled (the user
pressed stop), reading stops, the partial assistant message stays visible
marked ``incomplete``, and CancelledError is re-raised. A transport failure
or a truncated stream is handled the same way, except that a transport
failure raises ChatTransportError.
"""

from typing import Any, Optional
import asyncio
import logging

import httpx

from medchat.client.conversation import ConversationAccumulator
from medchat.client.decoder import StreamOutcome, decode_stream
from medchat.models import PatientInfo
from medchat.relay.prompts import DoctorPersona

logger = logging.getLogger(__name__)

GENERIC_CONNECTION_ERROR = "Connection error"


class RelayClientError(Exception):
    """The relay answered with a non-success status and an error envelope."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ChatTransportError(Exception):
    """The connection to the relay failed while sending or streaming."""


def build_relay_body(
    question: Optional[str],
    patient_info: Optional[PatientInfo] = None,
    persona: Optional[DoctorPersona] = None,
    image: Optional[str] = None,
) -> dict[str, Any]:
    """Build the JSON body the relay expects."""
    patient = patient_info or PatientInfo()
    body: dict[str, Any] = {"patientInfo": patient.model_dump(exclude_none=True)}
    if question:
        body["question"] = question
    if persona is not None:
        body["doctorType"] = persona.id
        body["doctorPrompt"] = persona.prompt
    if image:
        body["image"] = image
    return body


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return GENERIC_CONNECTION_ERROR
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return GENERIC_CONNECTION_ERROR


class MedicalChatClient:
    """Streaming client for ``POST /medical-chat``.

    Args:
        relay_url: Full URL of the relay endpoint
        credential: Caller's bearer credential (session access token)
        client: Optional httpx.AsyncClient to reuse; one is created (and
            closed by ``aclose``) when omitted
        timeout: Connect/read timeout in seconds for owned clients
    """

    def __init__(
        self,
        relay_url: str,
        credential: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ) -> None:
        if not credential:
            raise ValueError("A bearer credential is required; sign in first")
        self._relay_url = relay_url
        self._credential = credential
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "MedicalChatClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def ask(
        self,
        conversation: ConversationAccumulator,
        question: Optional[str],
        patient_info: Optional[PatientInfo] = None,
        persona: Optional[DoctorPersona] = None,
        image: Optional[str] = None,
    ) -> StreamOutcome:
        """Append the user turn, stream the reply into ``conversation``.

        Returns:
            StreamOutcome: DONE or EOF when the reply completed, TRUNCATED
            when the stream was cut mid-event (the turn is then incomplete)

        Raises:
            EmptyTurnError: Neither question nor image given (nothing is sent)
            RelayClientError: The relay rejected the request
            ChatTransportError: The connection failed
            asyncio.CancelledError: The caller cancelled; re-raised
        """
        conversation.append_user_turn(question, attachment=image)
        body = build_relay_body(question, patient_info, persona, image)
        outcome = StreamOutcome.EOF

        try:
            async with self._client.stream(
                "POST",
                self._relay_url,
                json=body,
                headers={"Authorization": f"Bearer {self._credential}"},
            ) as response:
                if response.status_code != 200:
                    await response.aread()
                    message = _error_message(response)
                    logger.warning(f"Relay rejected request: status={response.status_code} error={message}")
                    raise RelayClientError(response.status_code, message)

                async for frame in decode_stream(response.aiter_bytes()):
                    if frame.is_delta:
                        conversation.apply_delta(frame.text)
                    elif frame.outcome is not None:
                        outcome = frame.outcome

        except asyncio.CancelledError:
            logger.info("Chat stream cancelled by caller")
            conversation.abort_turn()
            raise
        except httpx.TransportError as e:
            logger.error(f"Chat stream transport failure: {type(e).__name__}: {e}")
            conversation.abort_turn()
            raise ChatTransportError(str(e) or type(e).__name__) from e

        if outcome == StreamOutcome.TRUNCATED:
            conversation.abort_turn()
        else:
            conversation.complete_turn()
        return outcome
