"""Exception taxonomy for the Jira access layer."""
from typing import Any, Optional


class JiraError(Exception):
    """Base class for every error raised by jira_context."""


class ConfigurationError(JiraError):
    """Missing or invalid credentials/settings. Fatal, never retried."""


class AuthRefreshError(JiraError):
    """OAuth token refresh failed or no refresh token was available."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(f"OAuth token refresh failed: {message}")


class TokenStorageError(JiraError):
    """Rotated token state could not be persisted."""


class JiraAPIError(JiraError):
    """Exception for Jira API errors."""

    def __init__(
        self,
        status_code: int,
        message: str,
        response_body: Optional[Any] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        detail = f": {message}" if message else ""
        super().__init__(f"JIRA API Error{detail} (Status: {status_code})")


class IssueNotFoundError(JiraAPIError):
    """404 on an issue-scoped path."""

    def __init__(self, issue_id: str, response_body: Optional[Any] = None):
        super().__init__(404, f"Issue not found: {issue_id}", response_body)
        self.issue_id = issue_id
        # Plain message, without the generic API error framing
        self.args = (f"Issue not found: {issue_id}",)


class JiraNetworkError(JiraError):
    """No response was obtained from Jira."""

    def __init__(self, detail: str = ""):
        self.detail = detail
        suffix = f" ({detail})" if detail else ""
        super().__init__(f"JIRA API Error: Network Error{suffix}")
