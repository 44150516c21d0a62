"""Change detection for an organization.

New repositories are tracked by their immutable GitHub id. The first check
of an organization absorbs its whole listing as the baseline without
notifying; afterwards every unseen id triggers one notification. Known ids
are never dropped, so a repository that vanishes and comes back is not
announced twice.

Commit/release watching for member repositories is bounded: only the first
``max_repositories`` known repositories (oldest known first) are checked per
run, to keep large organizations within the API rate limit.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from ghwatch.errors import GHWatchError
from ghwatch.github.facts import FactsProvider
from ghwatch.models import (
    Event,
    KnownRepository,
    NewRepositoryEvent,
    OrganizationInfo,
    OrganizationRepository,
    OrganizationResult,
    OrganizationState,
    OrganizationTarget,
    RepositoryState,
    RepositoryTarget,
)
from ghwatch.notify.base import Notifier, dispatch
from ghwatch.reconcile.repository import ReconcileOutcome, RepositoryReconciler, utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_REPOSITORIES = 10
DEFAULT_REPOSITORY_DELAY = 0.5  # seconds between member repository checks


@dataclass
class OrganizationOutcome:
    key: str
    state: OrganizationState
    organization: OrganizationInfo
    events: list[Event] = field(default_factory=list)
    repository_outcomes: list[ReconcileOutcome] = field(default_factory=list)

    @property
    def new_repositories(self) -> list[OrganizationRepository]:
        return [e.repository for e in self.events if isinstance(e, NewRepositoryEvent)]

    @property
    def repository_states(self) -> dict[str, RepositoryState]:
        return {outcome.key: outcome.state for outcome in self.repository_outcomes}

    def to_result(self) -> OrganizationResult:
        return OrganizationResult(
            organization=self.organization.login or self.key,
            new_repositories=[repo.full_name for repo in self.new_repositories],
            total_known=len(self.state.known_repositories),
            repositories_checked=len(self.repository_outcomes),
            last_check=self.state.last_check,
        )


class OrganizationReconciler:
    def __init__(
        self,
        facts: FactsProvider,
        notifier: Notifier,
        repository_reconciler: RepositoryReconciler,
        max_repositories: int = DEFAULT_MAX_REPOSITORIES,
        repository_delay: float = DEFAULT_REPOSITORY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self._facts = facts
        self._notifier = notifier
        self._repositories = repository_reconciler
        self.max_repositories = max_repositories
        self.repository_delay = repository_delay
        self._sleep = sleep
        self._now = now

    def reconcile(
        self,
        target: OrganizationTarget,
        state: OrganizationState | None,
        repository_states: Mapping[str, RepositoryState] | None = None,
    ) -> OrganizationOutcome:
        """Detect new repositories and check member repositories.

        Neither ``state`` nor ``repository_states`` is modified. Raises
        NotFoundError when the organization doesn't exist and FetchError
        when GitHub can't be read.
        """
        logger.info("Checking organization: %s", target.org)

        organization = self._facts.get_organization_info(target.org)
        listing = self._facts.get_organization_repositories(
            target.org, exclude_forks=target.exclude_forks
        )

        previous = state or OrganizationState()
        known = list(previous.known_repositories)
        known_ids = previous.known_ids()
        is_baseline = not known
        events: list[Event] = []

        for repo in listing:
            if repo.id in known_ids:
                continue
            if target.watch_new_repos and not is_baseline:
                logger.info("New repository found in %s: %s", target.org, repo.full_name)
                event = NewRepositoryEvent(organization=organization, repository=repo)
                events.append(event)
                self._notify(event)
            known.append(repo.to_known())
            known_ids.add(repo.id)

        if is_baseline and known:
            logger.info(
                "Recorded %d existing repositories of %s as baseline", len(known), target.org
            )

        outcomes: list[ReconcileOutcome] = []
        if target.watch_commits or target.watch_releases:
            outcomes = self._check_members(target, known, listing, repository_states or {})

        updated = OrganizationState(known_repositories=known, last_check=self._now())

        if not events and not is_baseline:
            logger.debug("No new repositories for organization %s", target.org)

        return OrganizationOutcome(
            key=target.key,
            state=updated,
            organization=organization,
            events=events,
            repository_outcomes=outcomes,
        )

    def _check_members(
        self,
        target: OrganizationTarget,
        known: list[KnownRepository],
        listing: list[OrganizationRepository],
        repository_states: Mapping[str, RepositoryState],
    ) -> list[ReconcileOutcome]:
        live = {repo.id: repo for repo in listing}
        outcomes: list[ReconcileOutcome] = []
        checked = 0

        for known_repo in known[: self.max_repositories]:
            repo = live.get(known_repo.id)
            if repo is None:
                logger.debug(
                    "Skipping %s, no longer listed in %s", known_repo.full_name, target.org
                )
                continue

            if checked:
                self._sleep(self.repository_delay)
            checked += 1

            member = RepositoryTarget(
                owner=repo.owner,
                repo=repo.name,
                branch=target.branch,
                watch_commits=target.watch_commits,
                watch_releases=target.watch_releases,
            )
            try:
                outcomes.append(
                    self._repositories.reconcile(member, repository_states.get(member.key))
                )
            except GHWatchError as e:
                logger.warning(
                    "Failed to check repository %s in organization %s: %s",
                    repo.full_name,
                    target.org,
                    e,
                )
            except Exception:
                logger.exception(
                    "Unexpected error checking repository %s in organization %s",
                    repo.full_name,
                    target.org,
                )

        return outcomes

    def _notify(self, event: NewRepositoryEvent) -> None:
        name = event.repository.full_name
        result = dispatch(self._notifier, event)
        if result.success:
            logger.info("New repository notification sent for %s", name)
        else:
            logger.error(
                "Failed to send new repository notification for %s: %s", name, result.error
            )
