"""Tests for ghwatch.config."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from ghwatch.config import (
    DEFAULT_CHECK_INTERVAL,
    DEFAULT_STATE_PATH,
    DEFAULT_TARGETS_PATH,
    Config,
    is_valid_ref_name,
    load_targets,
    parse_repository,
    parse_target,
)
from ghwatch.errors import ConfigError
from ghwatch.models import OrganizationTarget, RepositoryTarget

ENV_KEYS = [
    "GITHUB_TOKEN",
    "GHWATCH_TARGETS_PATH",
    "GHWATCH_STATE_PATH",
    "NOTIFICATION_ENABLED",
    "NOTIFICATION_SOUND",
    "NOTIFICATION_TIMEOUT",
    "CHECK_INTERVAL",
    "LOG_LEVEL",
    "GHWATCH_ORG_REPO_CHECK_LIMIT",
    "GHWATCH_HTTP_TIMEOUT",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_SECURE",
    "GHWATCH_EMAIL_TO",
]


def _clean_env(**overrides: str) -> dict[str, str]:
    env = {k: v for k, v in os.environ.items() if k not in ENV_KEYS}
    env.update(overrides)
    return env


class TestConfigLoad:
    def test_defaults_when_env_empty(self):
        with patch.dict(os.environ, _clean_env(), clear=True):
            config = Config.load()
        assert config.github_token == ""
        assert config.targets_path == DEFAULT_TARGETS_PATH
        assert config.state_path == DEFAULT_STATE_PATH
        assert config.notification_enabled is True
        assert config.notification_sound is True
        assert config.check_interval == DEFAULT_CHECK_INTERVAL
        assert config.org_repo_check_limit == 10
        assert config.email_enabled is False

    def test_load_from_env(self):
        env = _clean_env(
            GITHUB_TOKEN="ghp_test123",
            GHWATCH_STATE_PATH="/tmp/state.json",
            NOTIFICATION_ENABLED="false",
            NOTIFICATION_SOUND="false",
            NOTIFICATION_TIMEOUT="5",
            CHECK_INTERVAL="15",
            LOG_LEVEL="debug",
            GHWATCH_ORG_REPO_CHECK_LIMIT="3",
            SMTP_HOST="smtp.example.com",
            GHWATCH_EMAIL_TO="me@example.com",
        )
        with patch.dict(os.environ, env, clear=True):
            config = Config.load()
        assert config.github_token == "ghp_test123"
        assert config.state_path == Path("/tmp/state.json")
        assert config.notification_enabled is False
        assert config.notification_sound is False
        assert config.notification_timeout == 5
        assert config.check_interval == 15
        assert config.log_level == "DEBUG"
        assert config.org_repo_check_limit == 3
        assert config.email_enabled is True

    def test_unparsable_int_uses_default(self):
        with patch.dict(os.environ, _clean_env(CHECK_INTERVAL="soon"), clear=True):
            config = Config.load()
        assert config.check_interval == DEFAULT_CHECK_INTERVAL


class TestConfigValidate:
    def test_missing_token(self):
        issues = Config().validate()
        assert len(issues) == 1
        assert "GitHub token" in issues[0]

    def test_valid(self):
        assert Config(github_token="ghp_xxx").validate() == []

    def test_non_positive_interval(self):
        issues = Config(github_token="ghp_xxx", check_interval=0).validate()
        assert any("interval" in i for i in issues)


    def test_email_without_sender(self):
        config = Config(github_token="ghp_xxx", smtp_host="smtp.example.com", email_to="me@example.com")
        issues = config.validate()
        assert issues == ["E-mail sender not set (EMAIL_FROM or SMTP_USER)"]

    def test_email_sender_from_smtp_user(self):
        config = Config(
            github_token="ghp_xxx",
            smtp_host="smtp.example.com",
            email_to="me@example.com",
            smtp_user="bot@example.com",
        )
        assert config.validate() == []


class TestParseRepository:
    def test_valid(self):
        assert parse_repository("acme/widget") == ("acme", "widget")

    @pytest.mark.parametrize("value", ["acme", "acme/widget/extra", "/widget", "acme/ widget", ""])
    def test_invalid(self, value):
        with pytest.raises(ConfigError):
            parse_repository(value)


class TestRefNames:
    @pytest.mark.parametrize("ref", ["main", "release/1.x", "feature-x", "v1.0"])
    def test_valid(self, ref):
        assert is_valid_ref_name(ref)

    @pytest.mark.parametrize("ref", ["", "-main", "a..b", "has space", "ends/", "x.lock", "a~1"])
    def test_invalid(self, ref):
        assert not is_valid_ref_name(ref)


class TestParseTarget:
    def test_repository_defaults(self):
        target = parse_target({"owner": "acme", "repo": "widget"})
        assert target == RepositoryTarget(owner="acme", repo="widget")

    def test_repository_shorthand(self):
        target = parse_target({"repository": "acme/widget", "branch": "develop"})
        assert target == RepositoryTarget(owner="acme", repo="widget", branch="develop")

    def test_repository_flags(self):
        target = parse_target(
            {"owner": "acme", "repo": "widget", "watchCommits": False, "watchReleases": True}
        )
        assert target.watch_commits is False
        assert target.watch_releases is True

    def test_organization(self):
        target = parse_target({"type": "organization", "org": "acme", "excludeForks": False})
        assert isinstance(target, OrganizationTarget)
        assert target.org == "acme"
        assert target.exclude_forks is False
        assert target.watch_new_repos is True

    def test_keys(self):
        assert parse_target({"owner": "acme", "repo": "widget"}).key == "acme/widget"
        assert parse_target({"type": "organization", "org": "acme"}).key == "org:acme"

    def test_empty_owner_rejected(self):
        with pytest.raises(ConfigError):
            parse_target({"owner": "", "repo": "widget"})

    def test_missing_org_rejected(self):
        with pytest.raises(ConfigError):
            parse_target({"type": "organization"})

    def test_bad_branch_rejected(self):
        with pytest.raises(ConfigError):
            parse_target({"owner": "acme", "repo": "widget", "branch": "bad branch"})

    def test_non_boolean_flag_rejected(self):
        with pytest.raises(ConfigError):
            parse_target({"owner": "acme", "repo": "widget", "watchCommits": "no"})


class TestLoadTargets:
    def test_loads_in_order(self, tmp_path: Path):
        path = tmp_path / "repos.json"
        path.write_text(
            json.dumps(
                [
                    {"type": "organization", "org": "acme"},
                    {"owner": "acme", "repo": "widget"},
                ]
            )
        )
        targets = load_targets(path)
        assert [t.key for t in targets] == ["org:acme", "acme/widget"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_targets(tmp_path / "missing.json")

    def test_empty_list(self, tmp_path: Path):
        path = tmp_path / "repos.json"
        path.write_text("[]")
        with pytest.raises(ConfigError, match="No repositories configured"):
            load_targets(path)

    def test_malformed_json(self, tmp_path: Path):
        path = tmp_path / "repos.json"
        path.write_text("[{")
        with pytest.raises(ConfigError):
            load_targets(path)
