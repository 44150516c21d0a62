"""Exception types raised across ghwatch."""

from __future__ import annotations


class GHWatchError(Exception):
    """Base class for all ghwatch errors."""


class ConfigError(GHWatchError):
    """Configuration or target file is missing or invalid."""


class FetchError(GHWatchError):
    """A GitHub API call failed (network, auth, server error)."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NotFoundError(FetchError):
    """The requested GitHub entity does not exist or is not accessible."""


class BranchNotFoundError(FetchError):
    """The branch does not exist or the repository has no commits yet."""


class NotificationError(GHWatchError):
    """A notification channel could not deliver a message."""


class StorageError(GHWatchError):
    """The state file could not be written."""
