"""Batch runner: one full pass over every configured target.

Targets are checked strictly one after another, repositories first, with a
fixed pause after each one so the whole batch stays inside GitHub's rate
limit. The runner owns the in-memory state map; reconcilers return new state
values which the runner stores under the target's key. State is written to
disk once, after the last target.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from ghwatch.errors import GHWatchError, NotFoundError, StorageError
from ghwatch.github.facts import FactsProvider
from ghwatch.models import (
    MonitorTarget,
    OrganizationResult,
    OrganizationState,
    OrganizationTarget,
    RateLimit,
    RepositoryResult,
    RepositoryState,
    RepositoryTarget,
    State,
)
from ghwatch.notify.base import Notifier
from ghwatch.reconcile.organization import (
    DEFAULT_MAX_REPOSITORIES,
    DEFAULT_REPOSITORY_DELAY,
    OrganizationReconciler,
)
from ghwatch.reconcile.repository import RepositoryReconciler, utcnow
from ghwatch.storage.state import StateStore

logger = logging.getLogger(__name__)

REPOSITORY_DELAY = 1.0  # seconds after each repository target
ORGANIZATION_DELAY = 2.0  # seconds after each organization target
RATE_LIMIT_WARNING_THRESHOLD = 100


@dataclass
class TargetError:
    target: str  # state key of the failed target
    message: str


@dataclass
class BatchSummary:
    started_at: datetime
    finished_at: datetime | None = None
    repository_results: list[RepositoryResult] = field(default_factory=list)
    organization_results: list[OrganizationResult] = field(default_factory=list)
    errors: list[TargetError] = field(default_factory=list)
    rate_limit: RateLimit | None = None
    save_error: str | None = None

    @property
    def repositories_checked(self) -> int:
        return len(self.repository_results)

    @property
    def organizations_checked(self) -> int:
        return len(self.organization_results)

    @property
    def repositories_updated(self) -> int:
        return sum(1 for r in self.repository_results if r.has_updates)

    @property
    def new_repositories(self) -> int:
        return sum(len(r.new_repositories) for r in self.organization_results)

    @property
    def organizations_with_new_repos(self) -> int:
        return sum(1 for r in self.organization_results if r.has_new_repos)

    @property
    def not_found(self) -> list[str]:
        return [r.organization for r in self.organization_results if r.not_found]

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "repositories_checked": self.repositories_checked,
            "organizations_checked": self.organizations_checked,
            "repositories_updated": self.repositories_updated,
            "new_repositories": self.new_repositories,
            "organizations_with_new_repos": self.organizations_with_new_repos,
            "errors": [{"target": e.target, "message": e.message} for e in self.errors],
            "not_found": self.not_found,
            "rate_limit": (
                {
                    "limit": self.rate_limit.limit,
                    "remaining": self.rate_limit.remaining,
                    "reset": self.rate_limit.reset,
                }
                if self.rate_limit
                else None
            ),
            "save_error": self.save_error,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def to_text(self) -> str:
        lines = [
            "Monitor check completed:",
            f"  - Individual repositories checked: {self.repositories_checked}",
            f"  - Organizations checked: {self.organizations_checked}",
            f"  - Repository updates found: {self.repositories_updated}",
        ]
        if self.organization_results:
            lines.append(
                f"  - New repositories found: {self.new_repositories} "
                f"(from {self.organizations_with_new_repos} organizations)"
            )
        if self.not_found:
            lines.append(f"  - Organizations not found: {', '.join(self.not_found)}")
        lines.append(f"  - Errors: {len(self.errors)}")
        for error in self.errors:
            lines.append(f"      {error.target}: {error.message}")
        if self.rate_limit:
            lines.append(
                f"  - API rate limit: {self.rate_limit.remaining}/{self.rate_limit.limit} remaining"
            )
        if self.save_error:
            lines.append(f"  - State not saved: {self.save_error}")
        return "\n".join(lines)


class BatchRunner:
    """Runs reconciliation over all targets and persists the resulting state."""

    def __init__(
        self,
        facts: FactsProvider,
        notifier: Notifier,
        store: StateStore,
        state: State | None = None,
        repository_delay: float = REPOSITORY_DELAY,
        organization_delay: float = ORGANIZATION_DELAY,
        max_repositories_per_org: int = DEFAULT_MAX_REPOSITORIES,
        org_repository_delay: float = DEFAULT_REPOSITORY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._facts = facts
        self._notifier = notifier
        self._store = store
        self.state: State = store.load() if state is None else state
        self.repository_delay = repository_delay
        self.organization_delay = organization_delay
        self._sleep = sleep
        self._now = now
        self._repositories = RepositoryReconciler(facts, notifier, now=now)
        self._organizations = OrganizationReconciler(
            facts,
            notifier,
            self._repositories,
            max_repositories=max_repositories_per_org,
            repository_delay=org_repository_delay,
            sleep=sleep,
            now=now,
        )

    def run_batch(self, targets: list[MonitorTarget]) -> BatchSummary:
        repositories = [t for t in targets if isinstance(t, RepositoryTarget)]
        organizations = [t for t in targets if isinstance(t, OrganizationTarget)]

        summary = BatchSummary(started_at=self._now())
        logger.info(
            "Starting monitor check of %d repositories and %d organizations",
            len(repositories),
            len(organizations),
        )

        total = len(repositories) + len(organizations)
        done = 0

        for target in repositories:
            summary.repository_results.append(self._check_repository(target, summary))
            done += 1
            if done < total:
                self._sleep(self.repository_delay)

        for target in organizations:
            summary.organization_results.append(self._check_organization(target, summary))
            done += 1
            if done < total:
                self._sleep(self.organization_delay)

        try:
            self._store.save(self.state)
        except StorageError as e:
            logger.error("Failed to save state: %s", e)
            summary.save_error = str(e)

        summary.rate_limit = self._rate_limit()
        summary.finished_at = self._now()
        logger.info(
            "Monitor check completed: %d updated repositories, %d new repositories, %d errors",
            summary.repositories_updated,
            summary.new_repositories,
            len(summary.errors),
        )
        return summary

    def _check_repository(
        self, target: RepositoryTarget, summary: BatchSummary
    ) -> RepositoryResult:
        key = target.key
        previous = self.state.get(key)
        if not isinstance(previous, RepositoryState):
            previous = None

        try:
            outcome = self._repositories.reconcile(target, previous)
        except Exception as e:
            return RepositoryResult(
                repository=key, error=self._record_error(key, e, summary), last_check=self._now()
            )

        self.state[key] = outcome.state
        return outcome.to_result()

    def _check_organization(
        self, target: OrganizationTarget, summary: BatchSummary
    ) -> OrganizationResult:
        key = target.key
        previous = self.state.get(key)
        if not isinstance(previous, OrganizationState):
            previous = None
        repository_states = {
            k: v for k, v in self.state.items() if isinstance(v, RepositoryState)
        }

        try:
            outcome = self._organizations.reconcile(target, previous, repository_states)
        except NotFoundError as e:
            logger.warning("Skipping organization %s: %s", target.org, e)
            return OrganizationResult(
                organization=target.org, not_found=True, last_check=self._now()
            )
        except Exception as e:
            return OrganizationResult(
                organization=target.org,
                error=self._record_error(key, e, summary),
                last_check=self._now(),
            )

        self.state[key] = outcome.state
        self.state.update(outcome.repository_states)
        result = outcome.to_result()
        result.organization = target.org
        return result

    def _record_error(self, key: str, error: Exception, summary: BatchSummary) -> str:
        if isinstance(error, GHWatchError):
            logger.error("Error checking %s: %s", key, error)
        else:
            logger.exception("Unexpected error checking %s", key)
        message = str(error) or type(error).__name__
        summary.errors.append(TargetError(target=key, message=message))
        return message

    def _rate_limit(self) -> RateLimit | None:
        try:
            rate_limit = self._facts.get_rate_limit()
        except Exception as e:
            logger.warning("Could not check rate limit: %s", e)
            return None

        if rate_limit.remaining < RATE_LIMIT_WARNING_THRESHOLD:
            reset_at = datetime.fromtimestamp(rate_limit.reset, tz=timezone.utc)
            logger.warning(
                "GitHub API rate limit is low (%d/%d). Resets at %s",
                rate_limit.remaining,
                rate_limit.limit,
                reset_at.isoformat(),
            )
        return rate_limit

    def test_connection(self) -> bool:
        try:
            return self._notifier.test_connection()
        except Exception as e:
            logger.warning("Notification service initialization failed: %s", e)
            return False

    def send_test_notification(self) -> bool:
        result = self._notifier.send_test_notification()
        if result.success:
            logger.info("Test notification sent successfully")
            return True
        logger.error("Failed to send test notification: %s", result.error)
        return False
