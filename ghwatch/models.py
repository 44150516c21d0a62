"""Core data models for ghwatch."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Union

ORG_KEY_PREFIX = "org:"


def repository_key(owner: str, repo: str) -> str:
    return f"{owner}/{repo}"


def organization_key(org: str) -> str:
    return f"{ORG_KEY_PREFIX}{org}"


# --- Targets ---


@dataclass(frozen=True)
class RepositoryTarget:
    owner: str
    repo: str
    branch: str | None = None  # None = repository default branch
    watch_commits: bool = True
    watch_releases: bool = True
    description: str = ""

    @property
    def key(self) -> str:
        return repository_key(self.owner, self.repo)


@dataclass(frozen=True)
class OrganizationTarget:
    org: str
    watch_new_repos: bool = True
    watch_commits: bool = True
    watch_releases: bool = True
    exclude_forks: bool = True
    branch: str | None = None  # applied to member repositories
    description: str = ""

    @property
    def key(self) -> str:
        return organization_key(self.org)


MonitorTarget = Union[RepositoryTarget, OrganizationTarget]


# --- Persisted state ---


@dataclass
class RepositoryState:
    last_commit_sha: str | None = None
    last_release_tag: str | None = None
    last_check: datetime | None = None


@dataclass(frozen=True)
class KnownRepository:
    id: int  # GitHub repository id, immutable across renames
    name: str
    full_name: str  # "owner/repo"
    created_at: str = ""  # ISO format date


@dataclass
class OrganizationState:
    known_repositories: list[KnownRepository] = field(default_factory=list)
    last_check: datetime | None = None

    def known_ids(self) -> set[int]:
        return {known.id for known in self.known_repositories}


EntityState = Union[RepositoryState, OrganizationState]
State = dict[str, EntityState]


# --- Facts returned by the GitHub provider ---


@dataclass
class CommitInfo:
    sha: str
    message: str
    author: str
    date: str  # ISO format date
    url: str
    branch: str

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass
class ReleaseInfo:
    tag: str
    name: str
    body: str
    author: str
    published_at: str  # ISO format date
    url: str
    prerelease: bool = False
    draft: bool = False


@dataclass
class RepositoryInfo:
    id: int
    name: str
    full_name: str
    description: str
    stars: int
    forks: int
    language: str
    default_branch: str
    url: str
    updated_at: str = ""


@dataclass
class OrganizationInfo:
    login: str
    name: str
    description: str
    url: str
    id: int = 0
    public_repos: int = 0
    avatar_url: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.login


@dataclass
class OrganizationRepository:
    """A repository summary from an organization listing."""

    id: int
    name: str
    full_name: str
    description: str
    language: str
    default_branch: str
    created_at: str  # ISO format date
    url: str
    is_fork: bool = False
    is_private: bool = False
    stars: int = 0

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    def to_known(self) -> KnownRepository:
        return KnownRepository(
            id=self.id,
            name=self.name,
            full_name=self.full_name,
            created_at=self.created_at,
        )


@dataclass
class RateLimit:
    limit: int
    remaining: int
    reset: int  # epoch seconds


# --- Events ---


@dataclass
class CommitEvent:
    repo: RepositoryInfo
    commit: CommitInfo


@dataclass
class ReleaseEvent:
    repo: RepositoryInfo
    release: ReleaseInfo


@dataclass
class NewRepositoryEvent:
    organization: OrganizationInfo
    repository: OrganizationRepository


Event = Union[CommitEvent, ReleaseEvent, NewRepositoryEvent]


@dataclass
class NotificationResult:
    success: bool
    error: str | None = None
    message: str = ""

    @classmethod
    def ok(cls, message: str = "") -> NotificationResult:
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, error: str) -> NotificationResult:
        return cls(success=False, error=error)


# --- Per-target results ---


@dataclass
class RepositoryResult:
    repository: str  # "owner/repo"
    has_updates: bool = False
    events: list[Event] = field(default_factory=list)
    last_commit: str | None = None
    last_release: str | None = None
    last_check: datetime | None = None
    error: str | None = None


@dataclass
class OrganizationResult:
    organization: str
    new_repositories: list[str] = field(default_factory=list)  # full names
    total_known: int = 0
    repositories_checked: int = 0
    last_check: datetime | None = None
    error: str | None = None
    not_found: bool = False

    @property
    def has_new_repos(self) -> bool:
        return bool(self.new_repositories)
