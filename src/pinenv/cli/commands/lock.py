# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Implementation of the `pinenv lock` command."""

from __future__ import annotations

from typing import Annotated

import typer

from ...errors import PinenvError
from ...lockfile import LockFile, save_lock
from ...logging import info, ok
from ..shared import (
    DEFAULT_MANIFEST,
    EMOJI_OPTION,
    JOBS_OPTION,
    MANIFEST_OPTION,
    VERBOSE_OPTION,
    exit_for,
    load_project,
)

UPDATE_OPTION = Annotated[
    bool,
    typer.Option("--update", help="Ignore the existing lock and re-resolve unpinned inputs."),
]


def lock_command(
    manifest: MANIFEST_OPTION = DEFAULT_MANIFEST,
    update: UPDATE_OPTION = False,
    jobs: JOBS_OPTION = None,
    emoji: EMOJI_OPTION = True,
    verbose: VERBOSE_OPTION = False,
) -> None:
    """Resolve every input and record its revision in pinenv.lock."""

    project = load_project(manifest, jobs=jobs, use_emoji=emoji, verbose=verbose, use_lock=not update)
    try:
        snapshots = project.driver.registry.resolve_all(jobs=project.driver.jobs)
    except PinenvError as exc:
        raise exit_for(exc, use_emoji=emoji) from exc
    for name, snapshot in snapshots.items():
        info(f"{name}: {snapshot.revision}", use_emoji=emoji)
    save_lock(project.lock_path, LockFile.from_snapshots(snapshots))
    ok(f"Wrote {project.lock_path}", use_emoji=emoji)


__all__ = ["lock_command"]
