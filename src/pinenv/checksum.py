# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Content-addressing helpers for snapshots and descriptors."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Final

IGNORED_NAMES: Final[frozenset[str]] = frozenset({".git", ".pinenv-complete", "__pycache__"})


def iter_tree_files(root: Path) -> Iterable[Path]:
    """Yield regular files below ``root`` in a stable order, skipping VCS metadata."""

    for path in sorted(root.rglob("*")):
        if any(part in IGNORED_NAMES for part in path.relative_to(root).parts):
            continue
        if path.is_file():
            yield path


def compute_tree_digest(root: Path) -> str:
    """Return a deterministic sha256 for the file tree below ``root``."""
    hasher = hashlib.sha256()
    for path in iter_tree_files(root):
        relative_path = path.relative_to(root).as_posix().encode("utf-8")
        hasher.update(relative_path)
        hasher.update(b"\0")
        hasher.update(path.read_bytes())
    return hasher.hexdigest()


def canonical_json(payload: Mapping[str, object]) -> str:
    """Serialise ``payload`` with sorted keys and no insignificant whitespace."""

    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_payload_digest(payload: Mapping[str, object]) -> str:
    """Return the sha256 of the canonical JSON form of ``payload``."""

    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


__all__ = ["canonical_json", "compute_payload_digest", "compute_tree_digest", "iter_tree_files"]
