"""Tests for provisioning spec loading."""

from pathlib import Path

import pytest

from labseed.errors import SpecParseError
from labseed.naming import NamingMode
from labseed.specs import AccountSpec, load_spec_file, parse_spec

FULL_SPEC = """
users:
  - username: alice
    email: alice@example.com
    name: Alice Example
    password: s3cret-pass
    token:
      scope: [api, read_repository]
      expires_at: 2026-12-31
    groups:
      - name: Team Alpha
        path: team-alpha
        visibility: internal
        nameMode: name
        projects:
          - name: Service
            path: service
            description: Main service
          - name: Docs
            nameMode: prefix
    projects:
      - name: scratch
        visibility: public
  - username: bob
    nameMode: Name
"""


def write_spec(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "users.yaml"
    path.write_text(content)
    return path


class TestLoadSpecFile:
    """Tests for loading complete spec files."""

    def test_full_spec(self, tmp_path):
        spec = load_spec_file(write_spec(tmp_path, FULL_SPEC))

        assert len(spec.accounts) == 2
        alice = spec.accounts[0]
        assert alice.username == "alice"
        assert alice.email == "alice@example.com"
        assert alice.display_name == "Alice Example"
        assert alice.password == "s3cret-pass"
        assert alice.naming_mode is None

    def test_token(self, tmp_path):
        token = load_spec_file(write_spec(tmp_path, FULL_SPEC)).accounts[0].token

        assert token.scopes == ("api", "read_repository")
        # Unquoted YAML dates are decoded and reformatted
        assert token.expires_at == "2026-12-31"

    def test_groups_and_projects(self, tmp_path):
        alice = load_spec_file(write_spec(tmp_path, FULL_SPEC)).accounts[0]

        group = alice.groups[0]
        assert group.name == "Team Alpha"
        assert group.path == "team-alpha"
        assert group.visibility == "internal"
        assert group.naming_mode is NamingMode.NAME
        assert [p.name for p in group.projects] == ["Service", "Docs"]
        assert group.projects[0].description == "Main service"
        assert group.projects[0].naming_mode is None
        assert group.projects[1].naming_mode is NamingMode.PREFIX
        assert group.projects[1].declared_path == "Docs"

        assert alice.projects[0].name == "scratch"
        assert alice.projects[0].visibility == "public"

    def test_account_mode(self, tmp_path):
        bob = load_spec_file(write_spec(tmp_path, FULL_SPEC)).accounts[1]

        assert bob.naming_mode is NamingMode.NAME
        assert bob.token is None
        assert bob.groups == ()
        assert bob.projects == ()

    def test_missing_file(self, tmp_path):
        with pytest.raises(SpecParseError, match="not found"):
            load_spec_file(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(SpecParseError, match="Invalid YAML"):
            load_spec_file(write_spec(tmp_path, "users: [unclosed"))

    def test_empty_file(self, tmp_path):
        assert load_spec_file(write_spec(tmp_path, "")).accounts == ()


class TestParseSpecValidation:
    """Tests for malformed spec detection."""

    def test_top_level_must_be_mapping(self):
        with pytest.raises(SpecParseError, match="mapping"):
            parse_spec(["alice"])

    def test_users_must_be_list(self):
        with pytest.raises(SpecParseError, match="'users' must be a list"):
            parse_spec({"users": {"username": "alice"}})

    def test_username_required(self):
        with pytest.raises(SpecParseError, match="username"):
            parse_spec({"users": [{"email": "a@example.com"}]})

    def test_group_name_required(self):
        with pytest.raises(SpecParseError, match="name"):
            parse_spec({"users": [{"username": "alice", "groups": [{"path": "team"}]}]})

    def test_unknown_name_mode(self):
        with pytest.raises(SpecParseError, match="unknown nameMode"):
            parse_spec({"users": [{"username": "alice", "nameMode": "suffix"}]})

    def test_invalid_visibility(self):
        data = {"users": [{"username": "alice", "projects": [{"name": "p", "visibility": "secret"}]}]}
        with pytest.raises(SpecParseError, match="visibility 'secret'"):
            parse_spec(data)

    def test_token_scope_must_be_non_empty_list(self):
        with pytest.raises(SpecParseError, match="scope"):
            parse_spec({"users": [{"username": "alice", "token": {"scope": []}}]})

    def test_token_scope_entries_must_be_strings(self):
        with pytest.raises(SpecParseError, match="invalid scope"):
            parse_spec({"users": [{"username": "alice", "token": {"scope": ["api", ""]}}]})

    def test_token_expiry_format(self):
        data = {"users": [{"username": "alice", "token": {"scope": ["api"], "expires_at": "31/12/2026"}}]}
        with pytest.raises(SpecParseError, match="YYYY-MM-DD"):
            parse_spec(data)

    def test_token_expiry_optional(self):
        spec = parse_spec({"users": [{"username": "alice", "token": {"scope": ["api"]}}]})
        assert spec.accounts[0].token.expires_at is None

    def test_error_mentions_location(self):
        data = {"users": [{"username": "alice"}, {"username": "bob", "groups": [{"name": "g", "nameMode": "x"}]}]}
        with pytest.raises(SpecParseError, match=r"users\[1\]\.groups\[0\]"):
            parse_spec(data, source="users.yaml")


class TestAccountSpec:
    def test_bare_spec_uses_name_mode(self):
        spec = AccountSpec.bare("alice")
        assert spec.username == "alice"
        assert spec.naming_mode is NamingMode.NAME
        assert spec.groups == ()
        assert spec.projects == ()
