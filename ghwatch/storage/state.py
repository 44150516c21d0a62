"""JSON file persistence for the monitor state.

The file maps a target key to its last-observed facts:

    {
      "acme/widget": {"lastCommitSha": "...", "lastReleaseTag": "v1.2", "lastCheck": "..."},
      "org:acme": {"knownRepositories": [{"id": 1, "name": "...", ...}], "lastCheck": "..."}
    }

Field names are camelCase so state files written by earlier monitor versions
keep loading.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path

from ghwatch.errors import StorageError
from ghwatch.models import (
    ORG_KEY_PREFIX,
    EntityState,
    KnownRepository,
    OrganizationState,
    RepositoryState,
    State,
)

logger = logging.getLogger(__name__)


def _parse_timestamp(value: object) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        # fromisoformat rejects a trailing "Z" before 3.11
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


def state_to_dict(state: State) -> dict:
    data: dict = {}
    for key, entry in state.items():
        if isinstance(entry, OrganizationState):
            data[key] = {
                "knownRepositories": [
                    {
                        "id": known.id,
                        "name": known.name,
                        "fullName": known.full_name,
                        "createdAt": known.created_at,
                    }
                    for known in entry.known_repositories
                ],
                "lastCheck": entry.last_check.isoformat() if entry.last_check else None,
            }
        else:
            data[key] = {
                "lastCommitSha": entry.last_commit_sha,
                "lastReleaseTag": entry.last_release_tag,
                "lastCheck": entry.last_check.isoformat() if entry.last_check else None,
            }
    return data


def _entry_from_dict(key: str, raw: dict) -> EntityState:
    if key.startswith(ORG_KEY_PREFIX):
        known = [
            KnownRepository(
                id=int(item["id"]),
                name=item.get("name") or "",
                full_name=item.get("fullName") or "",
                created_at=item.get("createdAt") or "",
            )
            for item in raw.get("knownRepositories") or []
        ]
        return OrganizationState(
            known_repositories=known,
            last_check=_parse_timestamp(raw.get("lastCheck")),
        )
    return RepositoryState(
        last_commit_sha=_optional_str(raw.get("lastCommitSha")),
        last_release_tag=_optional_str(raw.get("lastReleaseTag")),
        last_check=_parse_timestamp(raw.get("lastCheck")),
    )


def state_from_dict(data: dict) -> State:
    """Build typed state, dropping entries that don't have the expected shape."""
    state: State = {}
    for key, raw in data.items():
        if not isinstance(raw, dict):
            logger.warning("Ignoring malformed state entry for %s", key)
            continue
        try:
            state[key] = _entry_from_dict(key, raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed state entry for %s: %s", key, e)
    return state


class StateStore:
    """Loads and saves the whole state map as one JSON document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> State:
        """Read persisted state. Missing or unreadable files yield empty state."""
        if not self.path.exists():
            logger.info("No previous state found, starting fresh")
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("State file %s is unreadable, starting fresh: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("State file %s has an unexpected format, starting fresh", self.path)
            return {}

        state = state_from_dict(data)
        logger.info("Previous monitor state loaded (%d entries)", len(state))
        return state

    def save(self, state: State) -> None:
        """Atomically replace the state file with ``state``."""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(state_to_dict(state), indent=2) + "\n", encoding="utf-8"
            )
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Failed to save state to {self.path}: {e}") from e
        logger.info("Monitor state saved to %s", self.path)
