"""
OAuth 2.0 authentication strategy for Jira Cloud.

Uses filesystem-stored tokens with automatic refresh and rotation. Requests
are routed through the Atlassian API gateway using the site's cloud id.
"""

import asyncio
import json
import time
from typing import Any, Optional

import aiohttp
import structlog

from jira_context.auth.base import JSON_HEADERS, AuthKind, AuthStrategy
from jira_context.auth.token_store import StoredTokenState, TokenStore
from jira_context.errors import AuthRefreshError, ConfigurationError, JiraAPIError
from jira_context.transport import HttpResponse, send_request

logger = structlog.get_logger()

TOKEN_ENDPOINT = "https://auth.atlassian.com/oauth/token"
ACCESSIBLE_RESOURCES_ENDPOINT = "https://api.atlassian.com/oauth/token/accessible-resources"

EXPIRY_MARGIN_MS = 60 * 1000
CLOUD_ID_TTL_MS = 60 * 60 * 1000
PROVIDER_TEXT_LIMIT = 200


def _now_ms() -> int:
    return int(time.time() * 1000)


def _provider_error_text(response: HttpResponse) -> str:
    """error_description / error from a JSON body, else the truncated raw body."""
    text = response.text or ""
    stripped = text.strip()
    if stripped.startswith(("{", "[")):
        try:
            data = json.loads(stripped)
        except ValueError:
            return text[:PROVIDER_TEXT_LIMIT]
        if isinstance(data, dict):
            if data.get("error_description"):
                return str(data["error_description"])
            if data.get("error"):
                return str(data["error"])
        return ""
    return text[:PROVIDER_TEXT_LIMIT]


class OAuthStrategy(AuthStrategy):
    """Bearer authentication with rotating refresh tokens."""

    kind = AuthKind.OAUTH2

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        initial_refresh_token: str = "",
        token_store: Optional[TokenStore] = None,
    ):
        if not client_id or not client_secret:
            raise ConfigurationError(
                "JIRA_CLIENT_ID and JIRA_CLIENT_SECRET environment variables are required "
                "for OAuth 2.0 authentication"
            )
        self.client_id = client_id
        self._client_secret = client_secret
        self._initial_refresh_token = initial_refresh_token
        self.token_store = token_store or TokenStore()
        self._session: Optional[aiohttp.ClientSession] = None

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _send(self, method: str, url: str, **kwargs: Any) -> HttpResponse:
        session = await self._get_session()
        return await send_request(session, method, url, **kwargs)

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    # -------------------------------------------------------------------------
    # Token state
    # -------------------------------------------------------------------------

    async def _load(self) -> Optional[StoredTokenState]:
        return await asyncio.to_thread(self.token_store.load)

    async def _save(self, state: StoredTokenState) -> None:
        await asyncio.to_thread(self.token_store.save, state)

    @property
    def supports_refresh(self) -> bool:
        return True

    async def get_auth_headers(self) -> dict[str, str]:
        access_token = await self._get_valid_access_token()
        return {"Authorization": f"Bearer {access_token}", **JSON_HEADERS}

    async def _get_valid_access_token(self) -> str:
        """Stored token if still valid, otherwise refresh (or bootstrap)."""
        state = await self._load()

        if state is not None:
            if state.expires_at is not None and _now_ms() >= state.expires_at:
                logger.info("oauth_access_token_expired")
                return await self._refresh_and_store(state.refresh_token, state)
            return state.access_token

        if not self._initial_refresh_token:
            raise ConfigurationError(
                "JIRA_REFRESH_TOKEN environment variable is required to bootstrap "
                "OAuth 2.0 authentication when no stored tokens exist"
            )
        logger.info("oauth_bootstrap", token_path=str(self.token_store.path))
        return await self._refresh_and_store(self._initial_refresh_token, None)

    async def refresh(self) -> str:
        """Rotate tokens using the stored refresh token.

        Raises:
            AuthRefreshError: If there is no stored refresh token or the exchange fails.
            TokenStorageError: If the rotated tokens cannot be persisted.
        """
        state = await self._load()
        if state is None:
            raise AuthRefreshError("No stored refresh token available for token refresh")
        return await self._refresh_and_store(state.refresh_token, state)

    async def _refresh_and_store(
        self,
        refresh_token: str,
        previous: Optional[StoredTokenState],
    ) -> str:
        """Exchange a refresh token and persist the new pair before returning it."""
        payload = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "refresh_token": refresh_token,
        }

        try:
            response = await self._send("POST", TOKEN_ENDPOINT, json=payload, headers=JSON_HEADERS)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthRefreshError(f"token endpoint unreachable: {e}") from e

        if not response.ok:
            detail = _provider_error_text(response)
            message = f"Token refresh failed (Status: {response.status})"
            if detail:
                message += f": {detail}"
            logger.warning("oauth_refresh_failed", status=response.status)
            raise AuthRefreshError(message, status_code=response.status)

        try:
            token_data = response.json()
        except ValueError as e:
            raise AuthRefreshError("Invalid token data received from OAuth endpoint") from e

        if (
            not isinstance(token_data, dict)
            or not token_data.get("access_token")
            or not token_data.get("refresh_token")
        ):
            raise AuthRefreshError("Incomplete token data received from OAuth endpoint")

        expires_in = token_data.get("expires_in")
        expires_at = (
            _now_ms() + int(expires_in) * 1000 - EXPIRY_MARGIN_MS if expires_in else None
        )

        state = StoredTokenState(
            access_token=token_data["access_token"],
            refresh_token=token_data["refresh_token"],
            expires_at=expires_at,
        )
        if previous is not None and previous.cloud_id:
            state.cloud_id = previous.cloud_id
            state.cloud_id_expires_at = previous.cloud_id_expires_at

        # The old refresh token is dead now; this write must happen before use.
        await self._save(state)
        logger.info("oauth_tokens_rotated", expires_at=expires_at)
        return state.access_token

    # -------------------------------------------------------------------------
    # Cloud id
    # -------------------------------------------------------------------------

    async def get_service_instance_id(self) -> str:
        """Cloud id of the Jira site, cached in the token file for one hour."""
        state = await self._load()
        now = _now_ms()
        if (
            state is not None
            and state.cloud_id
            and state.cloud_id_expires_at
            and now < state.cloud_id_expires_at
        ):
            return state.cloud_id

        cloud_id = await self._fetch_cloud_id()

        # Reload: fetching may have rotated the tokens.
        state = await self._load()
        if state is not None:
            state.cloud_id = cloud_id
            state.cloud_id_expires_at = now + CLOUD_ID_TTL_MS
            await self._save(state)

        return cloud_id

    async def _fetch_cloud_id(self) -> str:
        access_token = await self._get_valid_access_token()
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}

        try:
            response = await self._send("GET", ACCESSIBLE_RESOURCES_ENDPOINT, headers=headers)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise JiraAPIError(0, f"Failed to fetch accessible resources: {e}") from e

        if not response.ok:
            raise JiraAPIError(
                response.status,
                f"Failed to fetch accessible resources: {response.text[:PROVIDER_TEXT_LIMIT]}",
            )

        try:
            resources = response.json()
        except ValueError as e:
            raise JiraAPIError(
                response.status,
                f"Invalid accessible resources response: {response.text[:PROVIDER_TEXT_LIMIT]}",
            ) from e

        for resource in resources if isinstance(resources, list) else []:
            if not isinstance(resource, dict) or not resource.get("id"):
                continue
            scopes = resource.get("scopes") or []
            if any("jira" in str(scope) for scope in scopes):
                logger.info("oauth_cloud_id_resolved", site=resource.get("name"))
                return str(resource["id"])

        raise ConfigurationError("No JIRA resource found in accessible resources")
