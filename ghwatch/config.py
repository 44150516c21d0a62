"""Configuration loading for ghwatch.

Config sources (in priority order):
1. Explicit arguments passed to functions
2. Environment variables (GITHUB_TOKEN, CHECK_INTERVAL, etc.)
3. .env file in current directory

Targets to monitor live in a JSON file (config/repos.json by default):

    [
      {"owner": "acme", "repo": "widget", "branch": "develop", "watchReleases": false},
      {"repository": "acme/gadget"},
      {"type": "organization", "org": "acme", "excludeForks": false}
    ]
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from ghwatch.errors import ConfigError
from ghwatch.models import MonitorTarget, OrganizationTarget, RepositoryTarget

load_dotenv()

DEFAULT_TARGETS_PATH = Path("config/repos.json")
DEFAULT_STATE_PATH = Path("monitor-state.json")
DEFAULT_CHECK_INTERVAL = 30  # minutes
DEFAULT_NOTIFICATION_TIMEOUT = 10  # seconds
DEFAULT_ORG_REPO_CHECK_LIMIT = 10
DEFAULT_HTTP_TIMEOUT = 15  # seconds
DEFAULT_SMTP_PORT = 587

REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+/[A-Za-z0-9._-]+$")
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
_BAD_REF_CHARS = re.compile(r"[\s~^:?*\[\\\x00-\x1f\x7f]")


def _env_bool(name: str, default: bool = True) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in ("false", "0", "no", "off")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, ""))
    except ValueError:
        return default


@dataclass
class Config:
    github_token: str = ""
    targets_path: Path = DEFAULT_TARGETS_PATH
    state_path: Path = DEFAULT_STATE_PATH
    notification_enabled: bool = True
    notification_sound: bool = True
    notification_timeout: int = DEFAULT_NOTIFICATION_TIMEOUT
    check_interval: int = DEFAULT_CHECK_INTERVAL
    log_level: str = "INFO"
    org_repo_check_limit: int = DEFAULT_ORG_REPO_CHECK_LIMIT
    http_timeout: int = DEFAULT_HTTP_TIMEOUT
    smtp_host: str = ""
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_secure: bool = False  # True = implicit TLS (port 465), else STARTTLS
    email_from_name: str = "GitHub Monitor"
    email_from: str = ""
    email_to: str = ""

    @classmethod
    def load(cls) -> Config:
        return cls(
            github_token=os.getenv("GITHUB_TOKEN", ""),
            targets_path=Path(os.getenv("GHWATCH_TARGETS_PATH", str(DEFAULT_TARGETS_PATH))),
            state_path=Path(os.getenv("GHWATCH_STATE_PATH", str(DEFAULT_STATE_PATH))),
            notification_enabled=_env_bool("NOTIFICATION_ENABLED"),
            notification_sound=_env_bool("NOTIFICATION_SOUND"),
            notification_timeout=_env_int("NOTIFICATION_TIMEOUT", DEFAULT_NOTIFICATION_TIMEOUT),
            check_interval=_env_int("CHECK_INTERVAL", DEFAULT_CHECK_INTERVAL),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            org_repo_check_limit=_env_int(
                "GHWATCH_ORG_REPO_CHECK_LIMIT", DEFAULT_ORG_REPO_CHECK_LIMIT
            ),
            http_timeout=_env_int("GHWATCH_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            smtp_host=os.getenv("SMTP_HOST", ""),
            smtp_port=_env_int("SMTP_PORT", DEFAULT_SMTP_PORT),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_password=os.getenv("SMTP_PASS", ""),
            smtp_secure=_env_bool("SMTP_SECURE", default=False),
            email_from_name=os.getenv("EMAIL_FROM_NAME", "GitHub Monitor"),
            email_from=os.getenv("EMAIL_FROM", ""),
            email_to=os.getenv("GHWATCH_EMAIL_TO", ""),
        )

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.email_to)

    def validate(self) -> list[str]:
        """Return a list of missing config issues."""
        issues = []
        if not self.github_token:
            issues.append("GitHub token not set (GITHUB_TOKEN)")
        if self.check_interval <= 0:
            issues.append("Check interval must be a positive number of minutes (CHECK_INTERVAL)")
        if self.org_repo_check_limit < 0:
            issues.append(
                "Organization repository check limit cannot be negative "
                "(GHWATCH_ORG_REPO_CHECK_LIMIT)"
            )
        if self.email_enabled and not (self.email_from or self.smtp_user):
            issues.append("E-mail sender not set (EMAIL_FROM or SMTP_USER)")
        return issues


def parse_repository(value: str) -> tuple[str, str]:
    """Split an "owner/repo" string, rejecting anything else."""
    if not REPOSITORY_PATTERN.match(value or ""):
        raise ConfigError(f"Invalid repository format {value!r}. Expected: owner/repo")
    owner, repo = value.split("/")
    return owner, repo


def is_valid_ref_name(ref: str) -> bool:
    """Loose check of git's ref naming rules (see git-check-ref-format)."""
    if not ref or ref.startswith(("-", "/")) or ref.endswith(("/", ".", ".lock")):
        return False
    if ".." in ref or "//" in ref or "@{" in ref or ref == "@":
        return False
    return not _BAD_REF_CHARS.search(ref)


def _flag(entry: dict, key: str, index: int, default: bool = True) -> bool:
    value = entry.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"Target #{index + 1}: '{key}' must be true or false")
    return value


def _name(entry: dict, key: str, index: int) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not _NAME_PATTERN.match(value):
        raise ConfigError(f"Target #{index + 1}: '{key}' must be a non-empty GitHub name")
    return value


def _branch(entry: dict, index: int) -> str | None:
    branch = entry.get("branch")
    if branch is None or branch == "":
        return None
    if not isinstance(branch, str) or not is_valid_ref_name(branch):
        raise ConfigError(f"Target #{index + 1}: invalid branch name {branch!r}")
    return branch


def parse_target(entry: dict, index: int = 0) -> MonitorTarget:
    """Build a typed target from one entry of the targets file."""
    if not isinstance(entry, dict):
        raise ConfigError(f"Target #{index + 1} must be a JSON object")

    description = entry.get("description") or ""

    if entry.get("type") == "organization":
        return OrganizationTarget(
            org=_name(entry, "org", index),
            watch_new_repos=_flag(entry, "watchNewRepos", index),
            watch_commits=_flag(entry, "watchCommits", index),
            watch_releases=_flag(entry, "watchReleases", index),
            exclude_forks=_flag(entry, "excludeForks", index),
            branch=_branch(entry, index),
            description=description,
        )

    if "repository" in entry and "owner" not in entry:
        owner, repo = parse_repository(entry["repository"])
    else:
        owner, repo = _name(entry, "owner", index), _name(entry, "repo", index)

    return RepositoryTarget(
        owner=owner,
        repo=repo,
        branch=_branch(entry, index),
        watch_commits=_flag(entry, "watchCommits", index),
        watch_releases=_flag(entry, "watchReleases", index),
        description=description,
    )


def load_targets(path: Path) -> list[MonitorTarget]:
    """Load and validate the ordered list of targets to monitor."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"Repository configuration file ({path}) not found") from None
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load repositories from {path}: {e}") from e

    if not isinstance(raw, list) or not raw:
        raise ConfigError("No repositories configured or invalid format")

    return [parse_target(entry, i) for i, entry in enumerate(raw)]
