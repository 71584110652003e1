"""Authenticated Jira access layer returning compact, relationship-annotated issues."""

from jira_context.errors import (
    AuthRefreshError,
    ConfigurationError,
    IssueNotFoundError,
    JiraAPIError,
    JiraError,
    JiraNetworkError,
    TokenStorageError,
)
from jira_context.jira import CleanComment, CleanIssue, JiraService, RelatedIssue
from jira_context.logging_config import configure_logging
from jira_context.service import create_jira_service

__version__ = "0.3.0"

__all__ = [
    "AuthRefreshError",
    "CleanComment",
    "CleanIssue",
    "ConfigurationError",
    "IssueNotFoundError",
    "JiraAPIError",
    "JiraError",
    "JiraNetworkError",
    "JiraService",
    "RelatedIssue",
    "TokenStorageError",
    "configure_logging",
    "create_jira_service",
]
