"""Shared test fixtures for loopauth.

These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports. Fake collaborators live in
``tests/fakes.py``.
"""

from __future__ import annotations

import pytest

from fakes import FakeTokenExchange, SimulatedBrowser
from loopauth.models import AuthParameters
from loopauth.output import reset_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams per invocation.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Flow fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_params() -> AuthParameters:
    return AuthParameters(
        authority="https://login.example/tenant",
        resource="https://database.example",
        user_hint="alice@example.com",
        correlation_id="11111111-2222-3333-4444-555555555555",
    )


@pytest.fixture
def fake_exchange() -> FakeTokenExchange:
    return FakeTokenExchange()


@pytest.fixture
def simulated_browser() -> SimulatedBrowser:
    browser = SimulatedBrowser()
    yield browser
    browser.join()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
