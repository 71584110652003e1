"""Factory for creating authentication strategies based on configuration."""
from typing import Optional

from jira_context.auth.base import AuthStrategy
from jira_context.auth.oauth import OAuthStrategy
from jira_context.auth.static_token import StaticTokenStrategy
from jira_context.auth.token_store import TokenStore
from jira_context.config.settings import ConnectionType, Settings, get_settings
from jira_context.errors import ConfigurationError


def create_auth_strategy(settings: Optional[Settings] = None) -> AuthStrategy:
    """Build the strategy selected by ``JIRA_CONNECTION_TYPE``.

    Raises:
        ConfigurationError: If the selected mode is missing credentials.
    """
    settings = settings or get_settings()
    connection_type = settings.jira_connection_type

    if connection_type == ConnectionType.API_TOKEN:
        return StaticTokenStrategy(
            email=settings.jira_user_email,
            api_token=settings.jira_api_token,
            base_url=settings.jira_base_url,
        )

    if connection_type == ConnectionType.OAUTH2:
        return OAuthStrategy(
            client_id=settings.jira_client_id,
            client_secret=settings.jira_client_secret,
            initial_refresh_token=settings.jira_refresh_token,
            token_store=TokenStore(settings.jira_token_storage_path or None),
        )

    raise ConfigurationError(
        f"Unsupported connection type: {connection_type}. Supported types: Api_Token, Oauth_2.0"
    )
