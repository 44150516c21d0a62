"""Notification channel interface and helpers shared by every channel.

A notifier never raises: delivery problems come back as a failed
NotificationResult so a broken channel can't abort a monitor check.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from ghwatch.models import (
    CommitEvent,
    CommitInfo,
    Event,
    NewRepositoryEvent,
    NotificationResult,
    OrganizationInfo,
    OrganizationRepository,
    ReleaseEvent,
    ReleaseInfo,
    RepositoryInfo,
)

if TYPE_CHECKING:
    from ghwatch.config import Config

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def test_connection(self) -> bool: ...

    def send_commit_notification(
        self, repo: RepositoryInfo, commit: CommitInfo
    ) -> NotificationResult: ...

    def send_release_notification(
        self, repo: RepositoryInfo, release: ReleaseInfo
    ) -> NotificationResult: ...

    def send_new_repository_notification(
        self, organization: OrganizationInfo, repository: OrganizationRepository
    ) -> NotificationResult: ...

    def send_test_notification(self) -> NotificationResult: ...


def truncate(text: str, length: int = 100, suffix: str = "...") -> str:
    """Shorten ``text`` to at most ``length`` characters including the suffix."""
    if not text or len(text) <= length:
        return text or ""
    return text[: length - len(suffix)] + suffix


def commit_title(repo: RepositoryInfo) -> str:
    return f"New Commit - {repo.full_name}"


def commit_body(commit: CommitInfo) -> str:
    return f"{truncate(commit.message, 100)}\n\nBy: {commit.author}\nSHA: {commit.short_sha}"


def release_title(repo: RepositoryInfo) -> str:
    return f"New Release - {repo.full_name}"


def release_body(release: ReleaseInfo) -> str:
    body = f"New release: {release.tag}"
    if release.name and release.name != release.tag:
        body += f" ({release.name})"
    body += f"\n\nBy: {release.author}"
    if release.prerelease:
        body += "\nPre-release"
    return body


def new_repository_title(organization: OrganizationInfo) -> str:
    return f"New Repository - {organization.display_name}"


def new_repository_body(repository: OrganizationRepository) -> str:
    body = f"New repository: {repository.name}"
    if repository.description:
        body += f"\n\n{truncate(repository.description, 80)}"
    body += f"\n\nLanguage: {repository.language or 'Not specified'}"
    if repository.created_at:
        body += f"\nCreated: {repository.created_at[:10]}"
    return body


def dispatch(notifier: Notifier, event: Event) -> NotificationResult:
    """Send the notification matching ``event``'s kind."""
    try:
        if isinstance(event, CommitEvent):
            return notifier.send_commit_notification(event.repo, event.commit)
        if isinstance(event, ReleaseEvent):
            return notifier.send_release_notification(event.repo, event.release)
        if isinstance(event, NewRepositoryEvent):
            return notifier.send_new_repository_notification(
                event.organization, event.repository
            )
    except Exception as e:
        logger.exception("Notifier raised while sending %s", type(event).__name__)
        return NotificationResult.failed(str(e))
    return NotificationResult.failed(f"Unsupported event type: {type(event).__name__}")


class FanoutNotifier:
    """Delivers every notification to several channels.

    Succeeds when at least one channel delivered; errors from the others are
    joined into the result.
    """

    def __init__(self, notifiers: list[Notifier]) -> None:
        self._notifiers = list(notifiers)

    def _send_all(self, send) -> NotificationResult:
        if not self._notifiers:
            return NotificationResult.failed("No notification channels configured")

        errors: list[str] = []
        delivered = 0
        for notifier in self._notifiers:
            try:
                result = send(notifier)
            except Exception as e:
                logger.exception("Notifier %s raised", type(notifier).__name__)
                result = NotificationResult.failed(str(e))
            if result.success:
                delivered += 1
            elif result.error:
                errors.append(f"{type(notifier).__name__}: {result.error}")

        if delivered:
            return NotificationResult(
                success=True,
                error="; ".join(errors) or None,
                message=f"Delivered via {delivered} of {len(self._notifiers)} channel(s)",
            )
        return NotificationResult.failed("; ".join(errors) or "All channels failed")

    def test_connection(self) -> bool:
        connected = False
        for notifier in self._notifiers:
            try:
                connected = notifier.test_connection() or connected
            except Exception as e:
                logger.warning("%s connection test failed: %s", type(notifier).__name__, e)
        return connected

    def send_commit_notification(
        self, repo: RepositoryInfo, commit: CommitInfo
    ) -> NotificationResult:
        return self._send_all(lambda n: n.send_commit_notification(repo, commit))

    def send_release_notification(
        self, repo: RepositoryInfo, release: ReleaseInfo
    ) -> NotificationResult:
        return self._send_all(lambda n: n.send_release_notification(repo, release))

    def send_new_repository_notification(
        self, organization: OrganizationInfo, repository: OrganizationRepository
    ) -> NotificationResult:
        return self._send_all(
            lambda n: n.send_new_repository_notification(organization, repository)
        )

    def send_test_notification(self) -> NotificationResult:
        return self._send_all(lambda n: n.send_test_notification())


def build_notifier(config: Config) -> Notifier:
    """Create the notification channels enabled by ``config``."""
    from ghwatch.notify.desktop import DesktopNotifier
    from ghwatch.notify.mailer import EmailNotifier

    desktop = DesktopNotifier(
        enabled=config.notification_enabled,
        sound=config.notification_sound,
        timeout=config.notification_timeout,
    )
    if not config.email_enabled:
        return desktop

    email = EmailNotifier(
        host=config.smtp_host,
        port=config.smtp_port,
        user=config.smtp_user,
        password=config.smtp_password,
        use_ssl=config.smtp_secure,
        from_name=config.email_from_name,
        from_email=config.email_from or config.smtp_user,
        to=config.email_to,
    )
    return FanoutNotifier([desktop, email])
