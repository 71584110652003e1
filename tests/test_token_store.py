"""Tests for TokenStore persistence."""
import json
import os
import stat

import pytest

from jira_context.auth.token_store import StoredTokenState, TokenStore
from jira_context.errors import TokenStorageError


class TestLoad:
    """Tests for TokenStore.load."""

    def test_missing_file_returns_none(self, token_store):
        assert token_store.load() is None

    def test_valid_file(self, token_store):
        token_store.path.parent.mkdir(parents=True)
        token_store.path.write_text(json.dumps({
            "access_token": "a",
            "refresh_token": "r",
            "expires_at": 123,
            "cloud_id": "c",
        }))

        state = token_store.load()

        assert state.access_token == "a"
        assert state.refresh_token == "r"
        assert state.expires_at == 123
        assert state.cloud_id == "c"
        assert state.cloud_id_expires_at is None

    @pytest.mark.parametrize("content", [
        "not json",
        "[]",
        json.dumps({"access_token": "a"}),
        json.dumps({"access_token": "", "refresh_token": "r"}),
        json.dumps({"access_token": "a", "refresh_token": ""}),
    ])
    def test_unusable_content_returns_none(self, token_store, content):
        token_store.path.parent.mkdir(parents=True)
        token_store.path.write_text(content)
        assert token_store.load() is None

    def test_undecodable_bytes_return_none(self, token_store):
        token_store.path.parent.mkdir(parents=True)
        token_store.path.write_bytes(b"\xff\xfe{bad")
        assert token_store.load() is None

    def test_directory_in_place_of_file_returns_none(self, token_store):
        token_store.path.mkdir(parents=True)
        assert token_store.load() is None


class TestSave:
    """Tests for TokenStore.save."""

    def test_creates_private_directory_and_file(self, token_store):
        token_store.save(StoredTokenState(access_token="a", refresh_token="r"))

        assert stat.S_IMODE(os.stat(token_store.path.parent).st_mode) == 0o700
        assert stat.S_IMODE(os.stat(token_store.path).st_mode) == 0o600

    def test_omits_unset_fields(self, token_store):
        token_store.save(StoredTokenState(access_token="a", refresh_token="r"))
        assert json.loads(token_store.path.read_text()) == {
            "access_token": "a",
            "refresh_token": "r",
        }

    def test_overwrite_round_trip(self, token_store, valid_state):
        token_store.save(StoredTokenState(access_token="old", refresh_token="old"))
        token_store.save(valid_state)
        assert token_store.load() == valid_state

    def test_existing_file_permissions_tightened(self, token_store):
        token_store.path.parent.mkdir(parents=True)
        token_store.path.write_text("{}")
        os.chmod(token_store.path, 0o644)

        token_store.save(StoredTokenState(access_token="a", refresh_token="r"))

        assert stat.S_IMODE(os.stat(token_store.path).st_mode) == 0o600

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = TokenStore(blocker / "tokens.json")

        with pytest.raises(TokenStorageError):
            store.save(StoredTokenState(access_token="a", refresh_token="r"))

    def test_default_path(self):
        assert TokenStore().path.name == "tokens.json"
        assert TokenStore().path.parent.name == ".jira-context"
