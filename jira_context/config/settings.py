"""
Application Settings - Pydantic-based configuration management.

Loads settings from environment variables with validation and type coercion.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConnectionType(str, Enum):
    """Authentication mode selector (JIRA_CONNECTION_TYPE)."""

    API_TOKEN = "Api_Token"
    OAUTH2 = "Oauth_2.0"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------
    jira_connection_type: ConnectionType = Field(
        default=ConnectionType.API_TOKEN,
        description="Authentication mode (Api_Token or Oauth_2.0)",
    )
    # Basic auth
    jira_base_url: str = Field(default="", description="Jira instance URL (API token mode)")
    jira_user_email: str = Field(default="", description="Jira user email (API token mode)")
    jira_api_token: str = Field(default="", description="Jira API token (API token mode)")
    # OAuth2 auth
    jira_client_id: str = Field(default="", description="Jira OAuth2 client ID")
    jira_client_secret: str = Field(default="", description="Jira OAuth2 client secret")
    jira_refresh_token: str = Field(
        default="", description="Initial OAuth2 refresh token used to bootstrap the token file"
    )
    jira_token_storage_path: str = Field(
        default="", description="OAuth2 token file (defaults to ~/.jira-context/tokens.json)"
    )

    # -------------------------------------------------------------------------
    # Issue shape
    # -------------------------------------------------------------------------
    jira_epic_link_field: str = Field(
        default="customfield_10014", description="Custom field holding the Epic Link"
    )
    jira_search_max_results: int = Field(default=50, ge=1, le=100, description="Search page size")
    jira_epic_children_max_results: int = Field(
        default=100, ge=1, le=1000, description="Maximum epic children returned"
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=False, description="Render logs as JSON lines")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Singleton Settings instance.
    """
    return Settings()
