"""Point-in-time facts about repositories and organizations.

Maps PyGithub objects onto ghwatch models and PyGithub/requests failures onto
the ghwatch error taxonomy, so the reconcilers never see a GithubException.
"""

from __future__ import annotations

from datetime import datetime

import requests
from github.GithubException import GithubException, UnknownObjectException
from github.Repository import Repository

from ghwatch.errors import BranchNotFoundError, FetchError, NotFoundError
from ghwatch.github.client import GitHubClient
from ghwatch.models import (
    CommitInfo,
    OrganizationInfo,
    OrganizationRepository,
    RateLimit,
    ReleaseInfo,
    RepositoryInfo,
)

# Listing commits on an empty repository answers 409, an unknown branch 404
_BRANCH_MISSING_STATUSES = (404, 409)


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def _describe(e: Exception) -> str:
    if isinstance(e, GithubException):
        message = e.data.get("message") if isinstance(e.data, dict) else None
        return f"{e.status} {message or e.data}".strip()
    return str(e)


class FactsProvider:
    """Reads the latest commit, release and listing facts from GitHub."""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    def _repo(self, owner: str, repo: str) -> Repository:
        return self._client.gh.get_repo(f"{owner}/{repo}", lazy=True)

    def get_latest_commit(self, owner: str, repo: str, branch: str) -> CommitInfo | None:
        """Return the head commit of ``branch``, or None if it has no commits."""
        try:
            page = self._repo(owner, repo).get_commits(sha=branch).get_page(0)
        except GithubException as e:
            if e.status in _BRANCH_MISSING_STATUSES:
                raise BranchNotFoundError(
                    f"Branch '{branch}' not found in {owner}/{repo}: {_describe(e)}",
                    status=e.status,
                ) from e
            raise FetchError(
                f"Failed to get latest commit for {owner}/{repo}: {_describe(e)}",
                status=e.status,
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"Failed to get latest commit for {owner}/{repo}: {e}") from e

        if not page:
            return None

        commit = page[0]
        git_author = commit.commit.author
        return CommitInfo(
            sha=commit.sha,
            message=commit.commit.message or "",
            author=git_author.name if git_author else "",
            date=_iso(git_author.date) if git_author else "",
            url=commit.html_url,
            branch=branch,
        )

    def get_latest_release(self, owner: str, repo: str) -> ReleaseInfo | None:
        """Return the latest published release, or None if there are none."""
        try:
            release = self._repo(owner, repo).get_latest_release()
        except UnknownObjectException:
            return None
        except GithubException as e:
            raise FetchError(
                f"Failed to get latest release for {owner}/{repo}: {_describe(e)}",
                status=e.status,
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"Failed to get latest release for {owner}/{repo}: {e}") from e

        return ReleaseInfo(
            tag=release.tag_name,
            name=release.title or "",
            body=release.body or "",
            author=release.author.login if release.author else "",
            published_at=_iso(release.published_at),
            url=release.html_url,
            prerelease=bool(release.prerelease),
            draft=bool(release.draft),
        )

    def get_repository_info(self, owner: str, repo: str) -> RepositoryInfo:
        try:
            data = self._client.gh.get_repo(f"{owner}/{repo}")
        except UnknownObjectException as e:
            raise NotFoundError(
                f"Repository '{owner}/{repo}' not found or not accessible", status=404
            ) from e
        except GithubException as e:
            raise FetchError(
                f"Failed to get repository info for {owner}/{repo}: {_describe(e)}",
                status=e.status,
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"Failed to get repository info for {owner}/{repo}: {e}") from e

        return RepositoryInfo(
            id=data.id,
            name=data.name,
            full_name=data.full_name,
            description=data.description or "",
            stars=data.stargazers_count or 0,
            forks=data.forks_count or 0,
            language=data.language or "",
            default_branch=data.default_branch or "main",
            url=data.html_url,
            updated_at=_iso(data.updated_at),
        )

    def get_organization_info(self, org: str) -> OrganizationInfo:
        try:
            data = self._client.gh.get_organization(org)
        except UnknownObjectException as e:
            raise NotFoundError(
                f"Organization '{org}' not found or not accessible", status=404
            ) from e
        except GithubException as e:
            raise FetchError(
                f"Failed to get organization info for {org}: {_describe(e)}",
                status=e.status,
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"Failed to get organization info for {org}: {e}") from e

        return OrganizationInfo(
            login=data.login,
            name=data.name or "",
            description=data.description or "",
            url=data.html_url,
            id=data.id,
            public_repos=data.public_repos or 0,
            avatar_url=data.avatar_url or "",
        )

    def get_organization_repositories(
        self, org: str, exclude_forks: bool = True
    ) -> list[OrganizationRepository]:
        """List every public repository of ``org``, newest first.

        PyGithub's PaginatedList walks all pages while we iterate.
        """
        results: list[OrganizationRepository] = []
        try:
            repos = self._client.gh.get_organization(org).get_repos(
                type="public", sort="created", direction="desc"
            )
            for repo in repos:
                if exclude_forks and repo.fork:
                    continue
                results.append(
                    OrganizationRepository(
                        id=repo.id,
                        name=repo.name,
                        full_name=repo.full_name,
                        description=repo.description or "",
                        language=repo.language or "",
                        default_branch=repo.default_branch or "main",
                        created_at=_iso(repo.created_at),
                        url=repo.html_url,
                        is_fork=bool(repo.fork),
                        is_private=bool(repo.private),
                        stars=repo.stargazers_count or 0,
                    )
                )
        except UnknownObjectException as e:
            raise NotFoundError(
                f"Organization '{org}' not found or not accessible", status=404
            ) from e
        except GithubException as e:
            raise FetchError(
                f"Failed to get repositories for organization {org}: {_describe(e)}",
                status=e.status,
            ) from e
        except requests.RequestException as e:
            raise FetchError(f"Failed to get repositories for organization {org}: {e}") from e

        return results

    def get_rate_limit(self) -> RateLimit:
        try:
            remaining, limit = self._client.gh.rate_limiting
            reset = self._client.gh.rate_limiting_resettime
        except (GithubException, requests.RequestException) as e:
            raise FetchError(f"Failed to get rate limit: {_describe(e)}") from e
        return RateLimit(limit=limit, remaining=remaining, reset=reset)
