"""Pytest configuration and fixtures."""

# CRITICAL: Set required settings BEFORE any medchat imports
# medchat.config builds its Settings instance at import time
import os
os.environ.setdefault("PROVIDER_API_KEY", "test-provider-key")
os.environ.setdefault("AUTH_URL", "https://auth.test.local")

import logging

import pytest

from tests.fakes.fake_collaborators import (
    ADMIN_ID,
    TEST_CREDENTIAL,
    FakeIdentityProvider,
    FakeRoleStore,
    RecordingProvider,
)

logger = logging.getLogger(__name__)


# Pytest hook to show test duration after each test completes
@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Add test duration to terminal output after each test."""
    outcome = yield
    report = outcome.get_result()

    # Only show timing for test call phase (not setup/teardown)
    if report.when == "call":
        duration = getattr(report, "duration", 0)
        if duration > 0:
            report.sections.append(("Test Duration", f"{duration:.2f}s"))

    return report


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    """Identity collaborator that knows TEST_CREDENTIAL as the admin caller."""
    return FakeIdentityProvider({TEST_CREDENTIAL: ADMIN_ID})


@pytest.fixture
def role_store() -> FakeRoleStore:
    """Role store granting the admin caller the ``admin`` role."""
    return FakeRoleStore({ADMIN_ID: frozenset({"admin"})})


@pytest.fixture
def provider() -> RecordingProvider:
    """Provider gateway stub answering with a short SSE stream."""
    return RecordingProvider.streaming(["Hel", "lo"])


@pytest.fixture
def auth_header() -> dict:
    return {"Authorization": f"Bearer {TEST_CREDENTIAL}"}

