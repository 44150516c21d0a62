"""Change detection for a single repository.

A repository's first check only records the latest commit SHA and release tag
as a baseline. Later checks emit one event per pointer that moved, then
advance the pointer whether or not the notification went out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from ghwatch.errors import BranchNotFoundError
from ghwatch.github.facts import FactsProvider
from ghwatch.models import (
    CommitEvent,
    CommitInfo,
    Event,
    ReleaseEvent,
    RepositoryInfo,
    RepositoryResult,
    RepositoryState,
    RepositoryTarget,
)
from ghwatch.notify.base import Notifier, dispatch

logger = logging.getLogger(__name__)

FALLBACK_BRANCHES = {"main": "master"}
EMPTY_REPOSITORY_STATUS = 409


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcileOutcome:
    """Updated state and detected events for one repository check."""

    key: str
    state: RepositoryState
    info: RepositoryInfo
    events: list[Event] = field(default_factory=list)

    def to_result(self) -> RepositoryResult:
        return RepositoryResult(
            repository=self.key,
            has_updates=bool(self.events),
            events=list(self.events),
            last_commit=self.state.last_commit_sha,
            last_release=self.state.last_release_tag,
            last_check=self.state.last_check,
        )


class RepositoryReconciler:
    def __init__(
        self,
        facts: FactsProvider,
        notifier: Notifier,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._facts = facts
        self._notifier = notifier
        self._now = now

    def reconcile(
        self, target: RepositoryTarget, state: RepositoryState | None
    ) -> ReconcileOutcome:
        """Compare the repository's latest facts with ``state``.

        ``state`` is not modified; the returned outcome carries a new
        RepositoryState. Raises FetchError when GitHub can't be read.
        """
        key = target.key
        logger.info("Checking repository: %s", key)

        info = self._facts.get_repository_info(target.owner, target.repo)

        previous = state or RepositoryState()
        updated = RepositoryState(
            last_commit_sha=previous.last_commit_sha,
            last_release_tag=previous.last_release_tag,
            last_check=previous.last_check,
        )
        events: list[Event] = []

        if target.watch_commits:
            commit = self._latest_commit(target, target.branch or info.default_branch)
            if commit:
                if previous.last_commit_sha and previous.last_commit_sha != commit.sha:
                    logger.info("New commit found in %s: %s", key, commit.short_sha)
                    events.append(CommitEvent(repo=info, commit=commit))
                updated.last_commit_sha = commit.sha

        if target.watch_releases:
            release = self._facts.get_latest_release(target.owner, target.repo)
            if release:
                if previous.last_release_tag and previous.last_release_tag != release.tag:
                    logger.info("New release found in %s: %s", key, release.tag)
                    events.append(ReleaseEvent(repo=info, release=release))
                updated.last_release_tag = release.tag

        updated.last_check = self._now()

        for event in events:
            self._notify(key, event)

        if not events and updated.last_commit_sha:
            logger.debug("No new updates for %s", key)

        return ReconcileOutcome(key=key, state=updated, info=info, events=events)

    def _latest_commit(self, target: RepositoryTarget, branch: str) -> CommitInfo | None:
        try:
            return self._facts.get_latest_commit(target.owner, target.repo, branch)
        except BranchNotFoundError as e:
            fallback = FALLBACK_BRANCHES.get(branch)
            if fallback is None:
                return self._no_commits(target, e)
            logger.info(
                "Branch '%s' unavailable in %s, retrying with '%s'", branch, target.key, fallback
            )
            try:
                return self._facts.get_latest_commit(target.owner, target.repo, fallback)
            except BranchNotFoundError as fallback_error:
                return self._no_commits(target, fallback_error)

    def _no_commits(self, target: RepositoryTarget, error: BranchNotFoundError) -> None:
        if error.status == EMPTY_REPOSITORY_STATUS:
            logger.info("Repository %s has no commits yet", target.key)
            return None
        raise error

    def _notify(self, key: str, event: Event) -> None:
        kind = "commit" if isinstance(event, CommitEvent) else "release"
        result = dispatch(self._notifier, event)
        if result.success:
            logger.info("%s notification sent for %s", kind.capitalize(), key)
        else:
            logger.error("Failed to send %s notification for %s: %s", kind, key, result.error)
