"""API token authentication: HTTP Basic with email and API token."""
import aiohttp

from jira_context.auth.base import JSON_HEADERS, AuthKind, AuthStrategy
from jira_context.errors import ConfigurationError


class StaticTokenStrategy(AuthStrategy):
    """Basic authentication against a fixed Jira base URL."""

    kind = AuthKind.STATIC_TOKEN

    def __init__(self, email: str, api_token: str, base_url: str):
        if not email or not api_token:
            raise ConfigurationError(
                "JIRA_USER_EMAIL and JIRA_API_TOKEN environment variables are required "
                "for API Token authentication"
            )
        if not base_url:
            raise ConfigurationError(
                "JIRA_BASE_URL environment variable is required for API Token authentication"
            )
        self.email = email
        self.base_url = base_url.rstrip("/")
        self._auth = aiohttp.BasicAuth(email, api_token)

    async def get_auth_headers(self) -> dict[str, str]:
        return {"Authorization": self._auth.encode(), **JSON_HEADERS}
