"""
Token Store - filesystem persistence for rotating OAuth2 tokens.

Atlassian refresh tokens are single-use: every refresh returns a new one and
invalidates the old. The file written here is therefore the only copy of a
working credential and must be saved before a new access token is used.

Reads and writes are not locked. Two processes refreshing at once can
overwrite each other's rotation (last write wins).
"""

import json
import os
from pathlib import Path
from typing import Optional, Union

import structlog
from pydantic import BaseModel, Field, ValidationError

from jira_context.errors import TokenStorageError

logger = structlog.get_logger()

DEFAULT_TOKEN_PATH = Path.home() / ".jira-context" / "tokens.json"


class StoredTokenState(BaseModel):
    """Persisted OAuth2 state. Timestamps are epoch milliseconds."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    expires_at: Optional[int] = None
    cloud_id: Optional[str] = None
    cloud_id_expires_at: Optional[int] = None


class TokenStore:
    """Load/save ``StoredTokenState`` as a JSON file with owner-only permissions."""

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path).expanduser() if path else DEFAULT_TOKEN_PATH

    def load(self) -> Optional[StoredTokenState]:
        """Return the stored state, or None if it is missing or unusable. Never raises."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("token_store_read_failed", path=str(self.path), error=str(e))
            return None

        try:
            return StoredTokenState.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning("token_store_invalid", path=str(self.path), error=type(e).__name__)
            return None

    def save(self, state: StoredTokenState) -> None:
        """Write the state, creating the parent directory (0700) and file (0600).

        Raises:
            TokenStorageError: If the file cannot be written.
        """
        payload = json.dumps(state.model_dump(exclude_none=True), indent=2)
        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            # O_CREAT mode only applies to new files
            os.chmod(self.path, 0o600)
        except OSError as e:
            raise TokenStorageError(f"Failed to store tokens at {self.path}: {e}") from e

        logger.debug("token_store_saved", path=str(self.path))
