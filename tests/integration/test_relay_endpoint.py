"""Integration tests for the /medical-chat relay endpoint.

The real FastAPI app runs with its RelayService replaced (via
dependency_overrides) by one wired to counting fakes, so each test can
assert both the HTTP outcome and which collaborators were reached.

Test Coverage:
- Successful stream relayed verbatim as text/event-stream
- Stage failures: 401 (missing/malformed/invalid credential), 403, 500
  (identity or role store unavailable), 400 (payload), 429/402/500 (provider)
- Invalid payloads rejected before any collaborator call
- CORS preflight and CORS headers on every response
"""

import json
import logging

import httpx
import pytest
from fastapi.testclient import TestClient

from medchat.core.auth import AuthenticationFailed, ErrorCode
from medchat.dependencies import get_relay_service
from medchat.main import app
from medchat.relay import RelayService
from medchat.relay.errors import (
    AUTHORIZATION_UNAVAILABLE_MESSAGE,
    FORBIDDEN_MESSAGE,
    INVALID_SESSION_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
    PAYMENT_REQUIRED_MESSAGE,
    PROVIDER_ERROR_MESSAGE,
    RATE_LIMITED_MESSAGE,
)
from tests.fakes.fake_collaborators import (
    ADMIN_ID,
    FakeIdentityProvider,
    FakeRoleStore,
    RecordingProvider,
    sse_body,
)

pytestmark = pytest.mark.integration

ENDPOINT = "/medical-chat"
QUESTION_BODY = {
    "patientInfo": {"name": "Amal Haddad", "age": 58, "allergies": "Sulfa drugs"},
    "question": "Can I take ibuprofen with my blood pressure pills?",
    "doctorType": "cardiologist",
}


@pytest.fixture
def make_client(identity_provider, role_store, provider):
    """Build a TestClient whose relay uses the given (or default) fakes."""
    opened = []

    def factory(identity=None, roles=None, gateway=None) -> TestClient:
        service = RelayService(
            identity_provider=identity or identity_provider,
            role_store=roles or role_store,
            provider=(gateway or provider).build_client(),
            model="test/model",
            required_role="admin",
            max_image_bytes=1024,
        )
        app.dependency_overrides[get_relay_service] = lambda: service
        client = TestClient(app)
        client.__enter__()
        opened.append(client)
        return client

    yield factory

    for client in opened:
        client.__exit__(None, None, None)
    app.dependency_overrides.clear()


def assert_cors(response: httpx.Response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert "authorization" in response.headers["access-control-allow-headers"]


class TestSuccessfulRelay:
    def test_stream_is_relayed_verbatim(self, make_client, auth_header, provider):
        client = make_client()

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.content == sse_body(["Hel", "lo"])
        assert_cors(response)
        assert provider.call_count == 1

    def test_long_multibyte_stream_is_relayed_unchanged(self, make_client, auth_header):
        deltas = [f"Take {i} mg with water. Évitez l'alcool 🍷 " for i in range(40)]
        client = make_client(gateway=RecordingProvider.streaming(deltas))

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        assert response.status_code == 200
        assert response.content == sse_body(deltas)

    def test_provider_receives_composed_request(self, make_client, auth_header, provider):
        client = make_client()

        client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        payload = provider.last_payload
        system, user = payload["messages"]
        assert payload["model"] == "test/model"
        assert payload["stream"] is True
        assert "Amal Haddad" in system["content"]
        assert "Sulfa drugs" in system["content"]
        assert user["content"] == QUESTION_BODY["question"]

    def test_image_question_sends_structured_content(self, make_client, auth_header, provider):
        client = make_client()
        image = "data:image/png;base64,iVBORw0KGgo="

        response = client.post(ENDPOINT, json={"image": image}, headers=auth_header)

        assert response.status_code == 200
        user_content = provider.last_payload["messages"][1]["content"]
        assert [part["type"] for part in user_content] == ["text", "image_url"]
        assert user_content[1]["image_url"]["url"] == image


class TestAuthentication:
    def test_missing_header(self, make_client, identity_provider):
        client = make_client()

        response = client.post(ENDPOINT, json=QUESTION_BODY)

        assert response.status_code == 401
        assert response.json() == {"error": MISSING_CREDENTIAL_MESSAGE}
        assert identity_provider.call_count == 0
        assert_cors(response)

    @pytest.mark.parametrize("header", ["Token abc", "Bearer", "Bearer a b"])
    def test_malformed_header(self, make_client, identity_provider, header):
        client = make_client()

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers={"Authorization": header})

        assert response.status_code == 401
        assert response.json() == {"error": MISSING_CREDENTIAL_MESSAGE}
        assert identity_provider.call_count == 0

    def test_unknown_credential_has_distinct_message(self, make_client, provider):
        client = make_client()

        response = client.post(
            ENDPOINT, json=QUESTION_BODY, headers={"Authorization": "Bearer expired-token"}
        )

        assert response.status_code == 401
        assert response.json() == {"error": INVALID_SESSION_MESSAGE}
        assert INVALID_SESSION_MESSAGE != MISSING_CREDENTIAL_MESSAGE
        assert provider.call_count == 0

    def test_identity_service_unavailable(self, make_client, auth_header):
        identity = FakeIdentityProvider(
            {}, error=AuthenticationFailed(ErrorCode.IDENTITY_UNAVAILABLE, "timeout")
        )
        client = make_client(identity=identity)

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        assert response.status_code == 500
        assert response.json() == {"error": AUTHORIZATION_UNAVAILABLE_MESSAGE}


class TestAuthorization:
    def test_caller_without_role_is_forbidden(self, make_client, auth_header, provider):
        client = make_client(roles=FakeRoleStore({ADMIN_ID: frozenset({"viewer"})}))

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        assert response.status_code == 403
        assert response.json() == {"error": FORBIDDEN_MESSAGE}
        assert provider.call_count == 0

    def test_rejection_is_logged_with_its_kind(self, make_client, auth_header, caplog):
        client = make_client(roles=FakeRoleStore({ADMIN_ID: frozenset()}))

        with caplog.at_level(logging.WARNING, logger="medchat.main"):
            client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        assert "kind=Forbidden status=403" in caplog.text

    def test_role_store_failure(self, make_client, auth_header, provider):
        client = make_client(roles=FakeRoleStore({}, fail=True))

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        assert response.status_code == 500
        assert response.json() == {"error": AUTHORIZATION_UNAVAILABLE_MESSAGE}
        assert provider.call_count == 0


class TestValidation:
    @pytest.mark.parametrize(
        "body",
        [{}, {"patientInfo": {"name": "Amal"}}, {"question": "   "}],
    )
    def test_no_question_and_no_image_before_any_network_call(
        self, make_client, auth_header, identity_provider, role_store, provider, body
    ):
        client = make_client()

        response = client.post(ENDPOINT, json=body, headers=auth_header)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid input: question")
        assert identity_provider.call_count == 0
        assert role_store.call_count == 0
        assert provider.call_count == 0

    def test_question_too_long(self, make_client, auth_header, provider):
        client = make_client()

        response = client.post(ENDPOINT, json={"question": "x" * 1001}, headers=auth_header)

        assert response.status_code == 400
        assert "question" in response.json()["error"]
        assert provider.call_count == 0

    def test_patient_name_too_long(self, make_client, auth_header):
        client = make_client()
        body = {"question": "q", "patientInfo": {"name": "n" * 101}}

        response = client.post(ENDPOINT, json=body, headers=auth_header)

        assert response.status_code == 400
        assert "patientInfo.name" in response.json()["error"]

    def test_oversized_doctor_prompt_is_not_forwarded(self, make_client, auth_header, provider):
        client = make_client()
        body = {"question": "q", "doctorPrompt": "y" * 200_000}

        response = client.post(ENDPOINT, json=body, headers=auth_header)

        assert response.status_code == 400
        assert "doctorPrompt" in response.json()["error"]
        assert provider.call_count == 0

    def test_body_that_is_not_json(self, make_client, auth_header):
        client = make_client()

        response = client.post(
            ENDPOINT,
            content=b"question=hello",
            headers={**auth_header, "Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid input: body")


class TestProviderFailures:
    @pytest.mark.parametrize(
        "status, message",
        [
            (429, RATE_LIMITED_MESSAGE),
            (402, PAYMENT_REQUIRED_MESSAGE),
            (500, PROVIDER_ERROR_MESSAGE),
            (503, PROVIDER_ERROR_MESSAGE),
        ],
    )
    def test_provider_status_is_mapped(self, make_client, auth_header, status, message):
        gateway = RecordingProvider(
            status_code=status,
            body=json.dumps({"error": {"message": "quota for org-secret-123 exhausted"}}).encode(),
        )
        client = make_client(gateway=gateway)

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        expected_status = status if status in (429, 402) else 500
        assert response.status_code == expected_status
        assert response.json() == {"error": message}
        assert "org-secret-123" not in response.text
        assert_cors(response)

    def test_provider_timeout(self, make_client, auth_header):
        client = make_client(gateway=RecordingProvider(error=httpx.ReadTimeout))

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        assert response.status_code == 500
        assert response.json() == {"error": PROVIDER_ERROR_MESSAGE}

    def test_unexpected_exception_is_provider_error(self, make_client, auth_header):
        client = make_client(identity=FakeIdentityProvider({}, error=RuntimeError("bug")))

        response = client.post(ENDPOINT, json=QUESTION_BODY, headers=auth_header)

        assert response.status_code == 500
        assert response.json() == {"error": PROVIDER_ERROR_MESSAGE}


class TestAuxiliaryRoutes:
    def test_preflight_has_cors_headers_and_no_body(self, make_client):
        client = make_client()

        response = client.options(ENDPOINT)

        assert response.status_code == 200
        assert response.content == b""
        assert_cors(response)
        assert "POST" in response.headers["access-control-allow-methods"]

    def test_health(self, make_client):
        client = make_client()

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
