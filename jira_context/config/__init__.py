"""Configuration module for the Jira access layer."""
from jira_context.config.settings import ConnectionType, Settings, get_settings

__all__ = ["ConnectionType", "Settings", "get_settings"]
