"""Build a ready-to-use JiraService from settings."""
from typing import Optional

from jira_context.auth.factory import create_auth_strategy
from jira_context.config.settings import Settings, get_settings
from jira_context.jira.client import JiraService


def create_jira_service(settings: Optional[Settings] = None) -> JiraService:
    """Create the service for the configured connection type.

    Raises:
        ConfigurationError: If credentials for the selected mode are missing.
    """
    settings = settings or get_settings()
    return JiraService(
        auth=create_auth_strategy(settings),
        base_url=settings.jira_base_url,
        epic_link_field=settings.jira_epic_link_field,
        search_max_results=settings.jira_search_max_results,
        epic_children_max_results=settings.jira_epic_children_max_results,
    )
