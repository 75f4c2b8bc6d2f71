# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Persistence of resolved input revisions in ``pinenv.lock``."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ManifestError
from .models import Snapshot

LOCK_FILENAME: Final[str] = "pinenv.lock"


class LockEntry(BaseModel):
    """Resolved revision of one input."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    locator: str
    revision: str
    digest: str


class LockFile(BaseModel):
    """Lock document mapping input names to their resolved revisions."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: Literal[1] = 1
    inputs: dict[str, LockEntry] = Field(default_factory=dict)

    @classmethod
    def from_snapshots(cls, snapshots: Mapping[str, Snapshot]) -> LockFile:
        return cls(
            inputs={
                name: LockEntry(locator=snapshot.locator, revision=snapshot.revision, digest=snapshot.digest)
                for name, snapshot in sorted(snapshots.items())
            },
        )

    def pinned_revision(self, name: str, locator: str) -> str | None:
        """Return the locked revision of ``name`` when its locator is unchanged."""

        entry = self.inputs.get(name)
        if entry is None or entry.locator != locator:
            return None
        return entry.revision


def load_lock(path: Path) -> LockFile | None:
    """Load the lock file at ``path``; return ``None`` when it does not exist.

    Raises:
        ManifestError: If the lock file is unreadable or malformed.
    """

    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return LockFile.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ManifestError(f"Corrupt lock file {path}: {exc}") from exc


def save_lock(path: Path, lock: LockFile) -> None:
    """Persist ``lock`` into ``path`` as indented JSON."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(lock.model_dump(mode="json"), indent=2, sort_keys=True) + "\n", encoding="utf-8")


__all__ = ["LOCK_FILENAME", "LockEntry", "LockFile", "load_lock", "save_lock"]
