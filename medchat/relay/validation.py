"""Payload validation for the relay (pipeline stage 4).

Bounds live on the pydantic models in medchat.models; this module runs them
against the raw JSON body and converts the first violation into an
InvalidInput error that names the offending field.
"""

from typing import Any
import base64
import binascii
import json
import re

from pydantic import ValidationError

from medchat.models import RelayRequest
from medchat.relay.errors import RelayError, invalid_input

# data:image/png;base64,iVBORw0...
DATA_URL_PATTERN = re.compile(r"^data:(image/[a-zA-Z0-9.+-]+);base64,(.+)$", re.DOTALL)


def decode_json_body(raw: bytes) -> Any:
    """Decode the raw request body; InvalidInput if it is not JSON."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise invalid_input("body", "must be valid JSON")


def parse_relay_request(payload: Any, max_image_bytes: int) -> RelayRequest:
    """Validate a decoded JSON body into a RelayRequest.

    Args:
        payload: Decoded JSON body
        max_image_bytes: Maximum decoded size of an inline image

    Returns:
        RelayRequest: The validated request

    Raises:
        RelayError: InvalidInput naming the first offending field
    """
    if not isinstance(payload, dict):
        raise invalid_input("body", "must be a JSON object")

    try:
        request = RelayRequest.model_validate(payload)
    except ValidationError as e:
        raise _to_invalid_input(e) from e

    if request.image is not None:
        validate_image_data_url(request.image, max_image_bytes)

    return request


def validate_image_data_url(image: str, max_image_bytes: int) -> None:
    """Check that ``image`` is a base64 image data URL within the size bound.

    Raises:
        RelayError: InvalidInput for the ``image`` field
    """
    match = DATA_URL_PATTERN.match(image)
    if match is None:
        raise invalid_input("image", "must be a base64 data URL of an image")

    encoded = match.group(2)
    # Cheap bound check before decoding anything
    if len(encoded) * 3 // 4 > max_image_bytes:
        raise invalid_input("image", f"must be at most {max_image_bytes} bytes")

    try:
        decoded = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise invalid_input("image", "is not valid base64")

    if len(decoded) > max_image_bytes:
        raise invalid_input("image", f"must be at most {max_image_bytes} bytes")


def _to_invalid_input(error: ValidationError) -> RelayError:
    first = error.errors()[0]
    loc = first.get("loc", ())

    if not loc:
        # Model-level check: neither question nor image supplied
        return invalid_input("question", "or image is required")

    # Union members add their type name to the location (patientInfo.age.int)
    depth = 2 if loc[0] == "patientInfo" else 1
    field = ".".join(str(part) for part in loc[:depth])

    error_type = first.get("type")
    ctx = first.get("ctx") or {}
    if error_type == "string_too_long":
        reason = f"must be at most {ctx.get('max_length')} characters"
    elif error_type in ("model_type", "model_attributes_type", "dict_type"):
        reason = "must be an object"
    elif error_type == "string_type":
        reason = "must be a string"
    else:
        reason = f"is invalid ({first.get('msg', 'validation failed')})"

    return invalid_input(field, reason)
