"""Pytest configuration and shared fixtures for all tests."""

import pytest


@pytest.fixture(autouse=True)
def disable_sentry_for_tests(monkeypatch):
    """Disable Sentry telemetry for all tests.

    This fixture runs automatically for every test so no events are sent
    during test runs. Tests that exercise Sentry initialization set
    TELEMETRY themselves.
    """
    monkeypatch.setenv("TELEMETRY", "false")
    monkeypatch.delenv("PUSHX_SENTRY_DSN", raising=False)
