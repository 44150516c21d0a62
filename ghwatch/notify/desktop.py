"""Desktop notifications via the platform's notification command.

Linux uses ``notify-send`` (libnotify), macOS uses ``osascript``. Other
platforms report every send as failed.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from datetime import datetime
from pathlib import Path

from ghwatch.errors import NotificationError
from ghwatch.models import (
    CommitInfo,
    NotificationResult,
    OrganizationInfo,
    OrganizationRepository,
    ReleaseInfo,
    RepositoryInfo,
)
from ghwatch.notify.base import (
    commit_body,
    commit_title,
    new_repository_body,
    new_repository_title,
    release_body,
    release_title,
)

APP_NAME = "ghwatch"
MACOS_SOUND = "Glass"
COMMAND_TIMEOUT = 10  # seconds


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class DesktopNotifier:
    """Pops up a desktop notification for every detected change."""

    def __init__(
        self,
        enabled: bool = True,
        sound: bool = True,
        timeout: int = 10,
        icon: Path | None = None,
        platform: str | None = None,
    ) -> None:
        self.enabled = enabled
        self.sound = sound
        self.timeout = timeout  # seconds before the popup closes
        self.icon = icon
        self.platform = platform or sys.platform

    def _command_name(self) -> str | None:
        if self.platform.startswith("linux"):
            return "notify-send"
        if self.platform == "darwin":
            return "osascript"
        return None

    def _build_command(self, title: str, message: str) -> list[str]:
        if self.platform == "darwin":
            script = f"display notification {_applescript_quote(message)} with title {_applescript_quote(title)}"
            if self.sound:
                script += f" sound name {_applescript_quote(MACOS_SOUND)}"
            return ["osascript", "-e", script]

        command = [
            "notify-send",
            f"--app-name={APP_NAME}",
            f"--expire-time={self.timeout * 1000}",
        ]
        if self.icon and self.icon.exists():
            command.append(f"--icon={self.icon}")
        if self.sound:
            command.append("--hint=string:sound-name:message-new-instant")
        command += [title, message]
        return command

    def _run(self, command: list[str]) -> None:
        """Run the notification command, raising NotificationError on failure."""
        name = command[0]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT,
            )
        except FileNotFoundError as e:
            raise NotificationError(f"{name} is not installed") from e
        except (subprocess.TimeoutExpired, OSError) as e:
            raise NotificationError(str(e)) from e

        if result.returncode != 0:
            raise NotificationError(
                result.stderr.strip() or f"{name} exited with {result.returncode}"
            )

    def _notify(self, title: str, message: str, success_message: str) -> NotificationResult:
        if not self.enabled:
            return NotificationResult.failed("Desktop notifications disabled")

        if self._command_name() is None:
            return NotificationResult.failed(
                f"Desktop notifications are not supported on {self.platform}"
            )

        try:
            self._run(self._build_command(title, message))
        except NotificationError as e:
            return NotificationResult.failed(str(e))
        return NotificationResult.ok(success_message)

    def test_connection(self) -> bool:
        if not self.enabled:
            return False
        command = self._command_name()
        return command is not None and shutil.which(command) is not None

    def send_commit_notification(
        self, repo: RepositoryInfo, commit: CommitInfo
    ) -> NotificationResult:
        return self._notify(
            commit_title(repo), commit_body(commit), "Desktop notification sent"
        )

    def send_release_notification(
        self, repo: RepositoryInfo, release: ReleaseInfo
    ) -> NotificationResult:
        return self._notify(
            release_title(repo), release_body(release), "Desktop notification sent"
        )

    def send_new_repository_notification(
        self, organization: OrganizationInfo, repository: OrganizationRepository
    ) -> NotificationResult:
        return self._notify(
            new_repository_title(organization),
            new_repository_body(repository),
            "New repository notification sent",
        )

    def send_test_notification(self) -> NotificationResult:
        sent_at = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return self._notify(
            "GitHub Monitor Test",
            f"Test notification sent at {sent_at}\n\n"
            "If you see this, desktop notifications are working!",
            "Test desktop notification sent",
        )
