"""Shared test fixtures for ghwatch."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from ghwatch.models import (
    CommitInfo,
    NotificationResult,
    OrganizationInfo,
    OrganizationRepository,
    RateLimit,
    ReleaseInfo,
    RepositoryInfo,
)
from ghwatch.storage.state import StateStore

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_repo_info(full_name: str = "acme/widget", **kwargs) -> RepositoryInfo:
    owner, name = full_name.split("/")
    defaults = dict(
        id=100,
        name=name,
        full_name=full_name,
        description="A widget",
        stars=42,
        forks=7,
        language="Python",
        default_branch="main",
        url=f"https://github.com/{full_name}",
    )
    defaults.update(kwargs)
    return RepositoryInfo(**defaults)


def make_commit(sha: str = "bbb222", branch: str = "main", **kwargs) -> CommitInfo:
    defaults = dict(
        sha=sha,
        message="feat: add gear ratio option",
        author="Jane Doe",
        date="2024-06-15T10:00:00+00:00",
        url=f"https://github.com/acme/widget/commit/{sha}",
        branch=branch,
    )
    defaults.update(kwargs)
    return CommitInfo(**defaults)


def make_release(tag: str = "v1.1.0", **kwargs) -> ReleaseInfo:
    defaults = dict(
        tag=tag,
        name=f"Release {tag}",
        body="Bug fixes",
        author="jane",
        published_at="2024-06-14T09:00:00+00:00",
        url=f"https://github.com/acme/widget/releases/tag/{tag}",
    )
    defaults.update(kwargs)
    return ReleaseInfo(**defaults)


def make_org_info(login: str = "acme", **kwargs) -> OrganizationInfo:
    defaults = dict(
        login=login,
        name="Acme Corp",
        description="We make everything",
        url=f"https://github.com/{login}",
    )
    defaults.update(kwargs)
    return OrganizationInfo(**defaults)


def make_org_repo(repo_id: int, name: str | None = None, org: str = "acme", **kwargs) -> OrganizationRepository:
    name = name or f"repo{repo_id}"
    defaults = dict(
        id=repo_id,
        name=name,
        full_name=f"{org}/{name}",
        description=f"Repository {name}",
        language="Go",
        default_branch="main",
        created_at="2024-06-01T00:00:00+00:00",
        url=f"https://github.com/{org}/{name}",
    )
    defaults.update(kwargs)
    return OrganizationRepository(**defaults)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def facts() -> MagicMock:
    """Facts provider with one healthy repository and no org repositories."""
    provider = MagicMock()
    provider.get_repository_info.side_effect = lambda owner, repo: make_repo_info(f"{owner}/{repo}")
    provider.get_latest_commit.return_value = make_commit()
    provider.get_latest_release.return_value = make_release()
    provider.get_organization_info.return_value = make_org_info()
    provider.get_organization_repositories.return_value = []
    provider.get_rate_limit.return_value = RateLimit(limit=5000, remaining=4990, reset=1718452800)
    return provider


@pytest.fixture
def notifier() -> MagicMock:
    channel = MagicMock()
    channel.test_connection.return_value = True
    channel.send_commit_notification.return_value = NotificationResult.ok("sent")
    channel.send_release_notification.return_value = NotificationResult.ok("sent")
    channel.send_new_repository_notification.return_value = NotificationResult.ok("sent")
    channel.send_test_notification.return_value = NotificationResult.ok("sent")
    return channel


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    return tmp_path / "monitor-state.json"


@pytest.fixture
def store(state_path: Path) -> StateStore:
    return StateStore(state_path)
