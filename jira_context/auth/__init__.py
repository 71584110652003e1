"""Authentication strategies and OAuth token persistence."""
from jira_context.auth.base import AuthKind, AuthStrategy
from jira_context.auth.factory import create_auth_strategy
from jira_context.auth.oauth import OAuthStrategy
from jira_context.auth.static_token import StaticTokenStrategy
from jira_context.auth.token_store import StoredTokenState, TokenStore

__all__ = [
    "AuthKind",
    "AuthStrategy",
    "OAuthStrategy",
    "StaticTokenStrategy",
    "StoredTokenState",
    "TokenStore",
    "create_auth_strategy",
]
