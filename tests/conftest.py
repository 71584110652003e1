"""
Pytest configuration and fixtures.

Stubs the HTTP transport so tests run without Jira credentials.
"""

import json
import time
from typing import Any, Optional

import pytest

from jira_context.auth import OAuthStrategy, StaticTokenStrategy, StoredTokenState, TokenStore
from jira_context.jira import JiraService
from jira_context.transport import HttpResponse


def json_response(status: int, body: Optional[Any] = None, reason: str = "") -> HttpResponse:
    """HttpResponse with a JSON-encoded body (empty when body is None)."""
    text = json.dumps(body) if body is not None else ""
    return HttpResponse(status=status, reason=reason, text=text)


def adf(*paragraph_nodes: dict) -> dict:
    """ADF document with one paragraph holding the given inline nodes."""
    return {
        "type": "doc",
        "version": 1,
        "content": [{"type": "paragraph", "content": list(paragraph_nodes)}],
    }


def far_future_ms() -> int:
    return int(time.time() * 1000) + 3_600_000


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def make_response():
    """Factory for stubbed HTTP responses."""
    return json_response


@pytest.fixture
def make_adf():
    """Factory for single-paragraph ADF documents."""
    return adf


@pytest.fixture
def token_store(tmp_path):
    """Token store writing under a temporary directory."""
    return TokenStore(tmp_path / "auth" / "tokens.json")


@pytest.fixture
def valid_state():
    """Stored OAuth state with a live access token and cached cloud id."""
    return StoredTokenState(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=far_future_ms(),
        cloud_id="cloud-123",
        cloud_id_expires_at=far_future_ms(),
    )


@pytest.fixture
def oauth_strategy(token_store):
    """OAuth strategy backed by the temporary token store."""
    return OAuthStrategy(
        client_id="client-id",
        client_secret="client-secret",
        initial_refresh_token="bootstrap-refresh",
        token_store=token_store,
    )


@pytest.fixture
def static_strategy():
    """Basic-auth strategy for a test site."""
    return StaticTokenStrategy(
        email="agent@example.com",
        api_token="api-token",
        base_url="https://example.atlassian.net/",
    )


@pytest.fixture
def static_service(static_strategy):
    """JiraService using basic auth."""
    return JiraService(static_strategy, base_url="https://example.atlassian.net")
