"""Tests for the OAuth 2.0 strategy: bootstrap, rotation and cloud id discovery."""
import time
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from jira_context.auth.base import AuthKind
from jira_context.auth.oauth import (
    ACCESSIBLE_RESOURCES_ENDPOINT,
    TOKEN_ENDPOINT,
    OAuthStrategy,
)
from jira_context.auth.token_store import TokenStore
from jira_context.errors import (
    AuthRefreshError,
    ConfigurationError,
    JiraAPIError,
    TokenStorageError,
)


def token_payload(access="access-2", refresh="refresh-2", expires_in=3600):
    body = {"access_token": access, "refresh_token": refresh, "token_type": "Bearer"}
    if expires_in is not None:
        body["expires_in"] = expires_in
    return body


def now_ms():
    return int(time.time() * 1000)


class TestConstruction:
    """Tests for OAuthStrategy construction."""

    def test_requires_client_credentials(self, token_store):
        with pytest.raises(ConfigurationError):
            OAuthStrategy("", "secret", "refresh", token_store)
        with pytest.raises(ConfigurationError):
            OAuthStrategy("client", "", "refresh", token_store)

    def test_kind_and_refresh_capability(self, oauth_strategy):
        assert oauth_strategy.kind is AuthKind.OAUTH2
        assert oauth_strategy.supports_refresh is True


class TestAccessToken:
    """Tests for access token resolution."""

    @pytest.mark.asyncio
    async def test_bootstrap_without_stored_state(self, oauth_strategy, token_store, make_response):
        send = AsyncMock(return_value=make_response(200, token_payload()))
        with patch.object(oauth_strategy, "_send", send):
            headers = await oauth_strategy.get_auth_headers()

        assert headers["Authorization"] == "Bearer access-2"
        assert headers["Accept"] == "application/json"

        method, url = send.call_args.args
        assert (method, url) == ("POST", TOKEN_ENDPOINT)
        assert send.call_args.kwargs["json"] == {
            "grant_type": "refresh_token",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "refresh_token": "bootstrap-refresh",
        }

        stored = token_store.load()
        assert stored.access_token == "access-2"
        assert stored.refresh_token == "refresh-2"

    @pytest.mark.asyncio
    async def test_expiry_written_with_one_minute_margin(self, oauth_strategy, token_store, make_response):
        send = AsyncMock(return_value=make_response(200, token_payload(expires_in=3600)))
        before = now_ms()
        with patch.object(oauth_strategy, "_send", send):
            await oauth_strategy.get_auth_headers()
        after = now_ms()

        expires_at = token_store.load().expires_at
        assert before + 3_540_000 <= expires_at <= after + 3_540_000

    @pytest.mark.asyncio
    async def test_no_expiry_when_provider_omits_it(self, oauth_strategy, token_store, make_response):
        send = AsyncMock(return_value=make_response(200, token_payload(expires_in=None)))
        with patch.object(oauth_strategy, "_send", send):
            await oauth_strategy.get_auth_headers()
        assert token_store.load().expires_at is None

    @pytest.mark.asyncio
    async def test_valid_stored_token_reused(self, oauth_strategy, token_store, valid_state):
        token_store.save(valid_state)
        send = AsyncMock()
        with patch.object(oauth_strategy, "_send", send):
            headers = await oauth_strategy.get_auth_headers()

        assert headers["Authorization"] == "Bearer access-1"
        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_token_refreshed_with_stored_refresh_token(
        self, oauth_strategy, token_store, valid_state, make_response
    ):
        valid_state.expires_at = now_ms() - 1
        token_store.save(valid_state)
        send = AsyncMock(return_value=make_response(200, token_payload()))

        with patch.object(oauth_strategy, "_send", send):
            headers = await oauth_strategy.get_auth_headers()

        assert headers["Authorization"] == "Bearer access-2"
        assert send.call_args.kwargs["json"]["refresh_token"] == "refresh-1"
        stored = token_store.load()
        assert stored.refresh_token == "refresh-2"
        # Cached cloud id survives rotation
        assert stored.cloud_id == "cloud-123"

    @pytest.mark.asyncio
    async def test_unreadable_state_forces_bootstrap(self, oauth_strategy, token_store, make_response):
        token_store.path.parent.mkdir(parents=True)
        token_store.path.write_text("{broken")
        send = AsyncMock(return_value=make_response(200, token_payload()))

        with patch.object(oauth_strategy, "_send", send):
            await oauth_strategy.get_auth_headers()

        assert send.call_args.kwargs["json"]["refresh_token"] == "bootstrap-refresh"

    @pytest.mark.asyncio
    async def test_missing_bootstrap_token_is_fatal(self, token_store):
        strategy = OAuthStrategy("client-id", "client-secret", "", token_store)
        with pytest.raises(ConfigurationError, match="JIRA_REFRESH_TOKEN"):
            await strategy.get_auth_headers()


class TestRefresh:
    """Tests for token refresh failures and forced refresh."""

    @pytest.mark.asyncio
    async def test_forced_refresh_rotates_stored_pair(
        self, oauth_strategy, token_store, valid_state, make_response
    ):
        token_store.save(valid_state)
        send = AsyncMock(return_value=make_response(200, token_payload(access="fresh", refresh="next")))

        with patch.object(oauth_strategy, "_send", send):
            access = await oauth_strategy.refresh()

        assert access == "fresh"
        assert token_store.load().refresh_token == "next"

    @pytest.mark.asyncio
    async def test_forced_refresh_without_state(self, oauth_strategy):
        with pytest.raises(AuthRefreshError, match="No stored refresh token"):
            await oauth_strategy.refresh()

    @pytest.mark.asyncio
    async def test_provider_error_description_embedded(
        self, oauth_strategy, token_store, valid_state, make_response
    ):
        token_store.save(valid_state)
        send = AsyncMock(return_value=make_response(
            403, {"error": "invalid_grant", "error_description": "Unknown or invalid refresh token."}
        ))

        with patch.object(oauth_strategy, "_send", send):
            with pytest.raises(AuthRefreshError) as exc_info:
                await oauth_strategy.refresh()

        message = str(exc_info.value)
        assert message.startswith("OAuth token refresh failed")
        assert "Status: 403" in message
        assert "Unknown or invalid refresh token." in message
        assert exc_info.value.status_code == 403
        # Failed exchange leaves the stored pair untouched
        assert token_store.load() == valid_state

    @pytest.mark.asyncio
    async def test_provider_error_field_used_without_description(
        self, oauth_strategy, token_store, valid_state, make_response
    ):
        token_store.save(valid_state)
        send = AsyncMock(return_value=make_response(400, {"error": "invalid_client"}))

        with patch.object(oauth_strategy, "_send", send):
            with pytest.raises(AuthRefreshError, match="invalid_client"):
                await oauth_strategy.refresh()

    @pytest.mark.asyncio
    async def test_non_json_error_truncated(self, oauth_strategy, token_store, valid_state):
        from jira_context.transport import HttpResponse

        token_store.save(valid_state)
        send = AsyncMock(return_value=HttpResponse(status=502, reason="Bad Gateway", text="x" * 500))

        with patch.object(oauth_strategy, "_send", send):
            with pytest.raises(AuthRefreshError) as exc_info:
                await oauth_strategy.refresh()

        assert "x" * 200 in str(exc_info.value)
        assert "x" * 201 not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_incomplete_token_data(self, oauth_strategy, token_store, valid_state, make_response):
        token_store.save(valid_state)
        send = AsyncMock(return_value=make_response(200, {"access_token": "only-access"}))

        with patch.object(oauth_strategy, "_send", send):
            with pytest.raises(AuthRefreshError, match="Incomplete token data"):
                await oauth_strategy.refresh()

    @pytest.mark.asyncio
    async def test_transport_failure_wrapped(self, oauth_strategy, token_store, valid_state):
        token_store.save(valid_state)
        send = AsyncMock(side_effect=aiohttp.ClientConnectionError("connection refused"))

        with patch.object(oauth_strategy, "_send", send):
            with pytest.raises(AuthRefreshError, match="connection refused"):
                await oauth_strategy.refresh()

    @pytest.mark.asyncio
    async def test_write_failure_is_fatal(self, tmp_path, make_response):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        strategy = OAuthStrategy("client-id", "client-secret", "boot", TokenStore(blocker / "t.json"))
        send = AsyncMock(return_value=make_response(200, token_payload()))

        with patch.object(strategy, "_send", send):
            with pytest.raises(TokenStorageError):
                await strategy.get_auth_headers()


class TestServiceInstanceId:
    """Tests for cloud id discovery and caching."""

    @pytest.mark.asyncio
    async def test_cached_cloud_id_used(self, oauth_strategy, token_store, valid_state):
        token_store.save(valid_state)
        send = AsyncMock()

        with patch.object(oauth_strategy, "_send", send):
            assert await oauth_strategy.get_service_instance_id() == "cloud-123"
        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_cache_resolves_and_stores(
        self, oauth_strategy, token_store, valid_state, make_response
    ):
        valid_state.cloud_id_expires_at = now_ms() - 1
        token_store.save(valid_state)
        resources = [
            {"id": "confluence-id", "name": "wiki", "scopes": ["read:confluence-content.all"]},
            {"id": "jira-id", "name": "site", "scopes": ["read:jira-work", "write:jira-work"]},
        ]
        send = AsyncMock(return_value=make_response(200, resources))

        with patch.object(oauth_strategy, "_send", send):
            cloud_id = await oauth_strategy.get_service_instance_id()

        assert cloud_id == "jira-id"
        method, url = send.call_args.args
        assert (method, url) == ("GET", ACCESSIBLE_RESOURCES_ENDPOINT)
        assert send.call_args.kwargs["headers"]["Authorization"] == "Bearer access-1"

        stored = token_store.load()
        assert stored.cloud_id == "jira-id"
        assert stored.cloud_id_expires_at > now_ms() + 3_500_000

    @pytest.mark.asyncio
    async def test_no_jira_resource_is_configuration_error(
        self, oauth_strategy, token_store, valid_state, make_response
    ):
        valid_state.cloud_id = None
        token_store.save(valid_state)
        send = AsyncMock(return_value=make_response(200, [{"id": "x", "scopes": ["read:confluence"]}]))

        with patch.object(oauth_strategy, "_send", send):
            with pytest.raises(ConfigurationError, match="No JIRA resource"):
                await oauth_strategy.get_service_instance_id()

    @pytest.mark.asyncio
    async def test_malformed_discovery_body_is_api_error(
        self, oauth_strategy, token_store, valid_state
    ):
        from jira_context.transport import HttpResponse

        valid_state.cloud_id = None
        token_store.save(valid_state)
        send = AsyncMock(return_value=HttpResponse(status=200, reason="OK", text="[{broken"))

        with patch.object(oauth_strategy, "_send", send):
            with pytest.raises(JiraAPIError, match="Invalid accessible resources response"):
                await oauth_strategy.get_service_instance_id()

    @pytest.mark.asyncio
    async def test_resource_without_id_skipped(
        self, oauth_strategy, token_store, valid_state, make_response
    ):
        valid_state.cloud_id = None
        token_store.save(valid_state)
        resources = [
            {"name": "no-id", "scopes": ["read:jira-work"]},
            {"id": "jira-id", "scopes": ["read:jira-work"]},
        ]
        send = AsyncMock(return_value=make_response(200, resources))

        with patch.object(oauth_strategy, "_send", send):
            assert await oauth_strategy.get_service_instance_id() == "jira-id"

    @pytest.mark.asyncio
    async def test_discovery_failure_carries_status(
        self, oauth_strategy, token_store, valid_state, make_response
    ):
        valid_state.cloud_id = None
        token_store.save(valid_state)
        send = AsyncMock(return_value=make_response(401, {"message": "Unauthorized"}))

        with patch.object(oauth_strategy, "_send", send):
            with pytest.raises(JiraAPIError) as exc_info:
                await oauth_strategy.get_service_instance_id()

        assert exc_info.value.status_code == 401
