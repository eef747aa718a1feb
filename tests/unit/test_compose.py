"""Unit tests for provider request composition and the persona catalog."""

import pytest

from medchat.models import PatientInfo, RelayRequest
from medchat.relay.compose import (
    build_provider_payload,
    build_system_prompt,
    build_user_content,
    render_patient_context,
    resolve_persona_prompt,
)
from medchat.relay.prompts import (
    DEFAULT_PERSONA_PROMPT,
    DISCLAIMER,
    DOCTOR_PERSONAS,
    IMAGE_ATTACHED_NOTE,
    IMAGE_ONLY_QUESTION,
    NONE_REPORTED,
    NOT_SPECIFIED,
    get_persona,
)

IMAGE = "data:image/png;base64,iVBORw0KGgo="


def make_request(**fields) -> RelayRequest:
    return RelayRequest.model_validate(fields)


class TestPersonaResolution:
    def test_explicit_prompt_wins(self):
        prompt = resolve_persona_prompt("You are a sleep specialist.", "cardiologist")
        assert prompt == "You are a sleep specialist."

    def test_catalog_prompt_for_known_type(self):
        assert resolve_persona_prompt(None, "cardiologist") == get_persona("cardiologist").prompt

    @pytest.mark.parametrize("doctor_type", [None, "", "astrologer"])
    def test_default_for_missing_or_unknown_type(self, doctor_type):
        assert resolve_persona_prompt(None, doctor_type) == DEFAULT_PERSONA_PROMPT

    def test_blank_explicit_prompt_falls_through(self):
        assert resolve_persona_prompt("   ", None) == DEFAULT_PERSONA_PROMPT


class TestPersonaCatalog:
    def test_ids_are_unique(self):
        ids = [persona.id for persona in DOCTOR_PERSONAS]
        assert len(ids) == len(set(ids))

    def test_every_persona_is_complete(self):
        for persona in DOCTOR_PERSONAS:
            assert persona.name and persona.prompt and persona.icon

    def test_general_persona_exists(self):
        assert get_persona("general") is not None
        assert get_persona(None) is None


class TestPatientContext:
    def test_absent_fields_render_placeholders(self):
        block = render_patient_context(PatientInfo())

        assert block.count(NOT_SPECIFIED) == 3
        assert block.count(NONE_REPORTED) == 3
        for label in ("Name", "Age", "Gender", "medications", "conditions", "Allergies"):
            assert label in block

    def test_present_fields_are_rendered(self):
        block = render_patient_context(
            PatientInfo(name="Sam Lee", age=62, gender="male", allergies="Penicillin")
        )

        assert "Sam Lee" in block
        assert "62" in block
        assert "Penicillin" in block
        assert block.count(NONE_REPORTED) == 2

    def test_blank_field_counts_as_absent(self):
        block = render_patient_context(PatientInfo(name="   "))
        assert block.count(NOT_SPECIFIED) == 3


class TestSystemPrompt:
    def test_sections_in_order(self):
        prompt = build_system_prompt(make_request(question="q", doctorType="dermatologist"))

        persona_at = prompt.index(get_persona("dermatologist").prompt)
        disclaimer_at = prompt.index(DISCLAIMER)
        patient_at = prompt.index("Patient information")
        assert persona_at < disclaimer_at < patient_at
        assert IMAGE_ATTACHED_NOTE not in prompt

    def test_image_note_when_image_attached(self):
        prompt = build_system_prompt(make_request(image=IMAGE))
        assert prompt.endswith(IMAGE_ATTACHED_NOTE)


class TestUserContent:
    def test_text_only_is_a_bare_string(self):
        assert build_user_content(make_request(question="Why do I cough at night?")) == (
            "Why do I cough at night?"
        )

    def test_image_with_question_is_structured(self):
        content = build_user_content(make_request(question=" What is this? ", image=IMAGE))

        assert content == [
            {"type": "text", "text": "What is this?"},
            {"type": "image_url", "image_url": {"url": IMAGE}},
        ]

    def test_image_only_uses_fallback_text(self):
        content = build_user_content(make_request(image=IMAGE))
        assert content[0] == {"type": "text", "text": IMAGE_ONLY_QUESTION}


class TestProviderPayload:
    def test_payload_shape(self):
        payload = build_provider_payload(make_request(question="q"), "google/gemini-2.5-flash")

        assert payload["model"] == "google/gemini-2.5-flash"
        assert payload["stream"] is True
        assert [m["role"] for m in payload["messages"]] == ["system", "user"]
        assert payload["messages"][1]["content"] == "q"
