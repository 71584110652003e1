"""Authentication strategy interface for Jira API requests."""
from abc import ABC, abstractmethod
from enum import Enum


class AuthKind(str, Enum):
    """Supported authentication strategies."""

    STATIC_TOKEN = "API_TOKEN"
    OAUTH2 = "OAUTH_2.0"


JSON_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


class AuthStrategy(ABC):
    """Produces request headers for one authentication mode."""

    kind: AuthKind

    @abstractmethod
    async def get_auth_headers(self) -> dict[str, str]:
        """Headers carrying the credentials plus JSON content negotiation."""

    @property
    def supports_refresh(self) -> bool:
        """Whether a 401/403 can be recovered by refreshing credentials."""
        return False

    async def refresh(self) -> str:
        """Force a credential refresh and return the new access token."""
        raise NotImplementedError(f"{self.kind.value} credentials cannot be refreshed")

    async def get_service_instance_id(self) -> str:
        """Identifier of the hosted instance requests are routed to (OAuth2 only)."""
        raise NotImplementedError(f"{self.kind.value} has no service instance id")

    async def close(self) -> None:
        """Release network resources held by the strategy."""
