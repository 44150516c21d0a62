"""Thin wrapper around PyGithub for authenticated GitHub API access."""

from __future__ import annotations

from github import Auth, Github

from ghwatch.errors import ConfigError


class GitHubClient:
    """Authenticated GitHub client shared by every monitored target.

    Usage:
        client = GitHubClient(token="ghp_...")
        repo = client.gh.get_repo("owner/repo")  # PyGithub Repository object
    """

    def __init__(self, token: str, timeout: int = 15) -> None:
        if not token:
            raise ConfigError("GitHub token is required")
        self._gh = Github(auth=Auth.Token(token), timeout=timeout)

    @property
    def gh(self) -> Github:
        return self._gh

    def close(self) -> None:
        self._gh.close()
