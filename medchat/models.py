"""Pydantic models for API requests and responses."""

from typing import Annotated, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator


# Payload bounds enforced before any provider call
QUESTION_MAX_LENGTH = 1000
NAME_MAX_LENGTH = 100
CLINICAL_FIELD_MAX_LENGTH = 500
AGE_MAX_VALUE = 150
AGE_TEXT_MAX_LENGTH = 20
GENDER_MAX_LENGTH = 50
DOCTOR_TYPE_MAX_LENGTH = 64
DOCTOR_PROMPT_MAX_LENGTH = 2000


class PatientInfo(BaseModel):
    """Patient fields rendered into the system instruction.

    Every field is optional; absent fields render a fixed placeholder in
    the prompt rather than being omitted.
    """

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, max_length=NAME_MAX_LENGTH)
    age: Optional[
        Union[
            Annotated[int, Field(ge=0, le=AGE_MAX_VALUE)],
            Annotated[str, Field(max_length=AGE_TEXT_MAX_LENGTH)],
        ]
    ] = None
    gender: Optional[str] = Field(default=None, max_length=GENDER_MAX_LENGTH)
    medications: Optional[str] = Field(default=None, max_length=CLINICAL_FIELD_MAX_LENGTH)
    conditions: Optional[str] = Field(default=None, max_length=CLINICAL_FIELD_MAX_LENGTH)
    allergies: Optional[str] = Field(default=None, max_length=CLINICAL_FIELD_MAX_LENGTH)


class RelayRequest(BaseModel):
    """Inbound body of the medical chat relay.

    Attributes:
        patient_info: Structured patient context (``patientInfo`` on the wire)
        question: Free-text question; optional when an image is attached
        doctor_type: Persona id from the doctor catalog (``doctorType``)
        doctor_prompt: Explicit persona system prompt (``doctorPrompt``)
        image: Inline image attachment as a ``data:image/...`` URL
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "patientInfo": {
                        "name": "Jane Doe",
                        "age": 54,
                        "gender": "female",
                        "medications": "Metformin 500mg",
                        "conditions": "Type 2 diabetes",
                        "allergies": "Penicillin",
                    },
                    "question": "Is it safe to add ibuprofen for knee pain?",
                    "doctorType": "orthopedic",
                }
            ]
        },
    )

    patient_info: PatientInfo = Field(default_factory=PatientInfo, alias="patientInfo")
    question: Optional[str] = Field(default=None, max_length=QUESTION_MAX_LENGTH)
    doctor_type: Optional[str] = Field(default=None, alias="doctorType", max_length=DOCTOR_TYPE_MAX_LENGTH)
    doctor_prompt: Optional[str] = Field(
        default=None, alias="doctorPrompt", max_length=DOCTOR_PROMPT_MAX_LENGTH
    )
    image: Optional[str] = None

    @property
    def has_question(self) -> bool:
        return bool(self.question and self.question.strip())

    @property
    def has_image(self) -> bool:
        return bool(self.image)

    @model_validator(mode="after")
    def require_question_or_image(self) -> "RelayRequest":
        """At least one of question text or image must be present."""
        if not self.has_question and not self.has_image:
            raise ValueError("Either a question or an image is required")
        return self


class ErrorResult(BaseModel):
    """A classified relay failure: taxonomy kind, caller-safe message, HTTP status."""

    kind: str
    message: str = Field(..., min_length=1)
    status_code: int


class ErrorEnvelope(BaseModel):
    """JSON body returned to callers for every relay failure."""

    error: str = Field(..., description="Human-readable error message")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"error": "Missing or malformed Authorization header"},
                {"error": "Rate limit exceeded, please try again later."},
            ]
        }
    }


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str = "0.1.0"
