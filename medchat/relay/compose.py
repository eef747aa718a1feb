"""Provider request composition (pipeline stage 5).

Builds the OpenAI-compatible chat completions body:

    {
        "model": "...",
        "messages": [
            {"role": "system", "content": "<persona + disclaimer + patient block>"},
            {"role": "user", "content": "<question>" | [<text part>, <image part>]},
        ],
        "stream": true
    }

The user content is a bare string for text-only questions and a list of
typed parts when an image is attached.
"""

from typing import Any, Optional, Union

from medchat.models import PatientInfo, RelayRequest
from medchat.relay.prompts import (
    DEFAULT_PERSONA_PROMPT,
    DISCLAIMER,
    IMAGE_ATTACHED_NOTE,
    IMAGE_ONLY_QUESTION,
    NONE_REPORTED,
    NOT_SPECIFIED,
    PATIENT_CONTEXT_TEMPLATE,
    get_persona,
)

UserContent = Union[str, list[dict[str, Any]]]


def resolve_persona_prompt(doctor_prompt: Optional[str], doctor_type: Optional[str]) -> str:
    """Pick the persona system prompt.

    Precedence: explicit prompt, then the catalog prompt for ``doctor_type``,
    then the generic default.
    """
    if doctor_prompt and doctor_prompt.strip():
        return doctor_prompt.strip()
    persona = get_persona(doctor_type)
    if persona is not None:
        return persona.prompt
    return DEFAULT_PERSONA_PROMPT


def _field(value: Union[str, int, None], placeholder: str) -> str:
    if value is None:
        return placeholder
    text = str(value).strip()
    return text or placeholder


def render_patient_context(patient: PatientInfo) -> str:
    """Render every patient field, substituting placeholders for absent ones."""
    return PATIENT_CONTEXT_TEMPLATE.format(
        name=_field(patient.name, NOT_SPECIFIED),
        age=_field(patient.age, NOT_SPECIFIED),
        gender=_field(patient.gender, NOT_SPECIFIED),
        medications=_field(patient.medications, NONE_REPORTED),
        conditions=_field(patient.conditions, NONE_REPORTED),
        allergies=_field(patient.allergies, NONE_REPORTED),
    )


def build_system_prompt(request: RelayRequest) -> str:
    sections = [
        resolve_persona_prompt(request.doctor_prompt, request.doctor_type),
        DISCLAIMER,
        render_patient_context(request.patient_info),
    ]
    if request.has_image:
        sections.append(IMAGE_ATTACHED_NOTE)
    return "\n\n".join(sections)


def build_user_content(request: RelayRequest) -> UserContent:
    if not request.has_image:
        return request.question or ""

    text = request.question.strip() if request.has_question else IMAGE_ONLY_QUESTION
    return [
        {"type": "text", "text": text},
        {"type": "image_url", "image_url": {"url": request.image}},
    ]


def build_provider_payload(request: RelayRequest, model: str) -> dict[str, Any]:
    """Compose the streaming chat completions body for ``request``."""
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": build_system_prompt(request)},
            {"role": "user", "content": build_user_content(request)},
        ],
        "stream": True,
    }
