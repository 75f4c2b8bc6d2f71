# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared utilities for CLI commands (options, loading, error mapping)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Final

import typer

from ..driver import MultiPlatformDriver, lock_path_for
from ..errors import ManifestError, PinenvError
from ..lockfile import load_lock
from ..logging import configure_verbose_logging, fail
from ..manifest import DEFAULT_SHELL, Manifest, load_manifest
from ..settings import Settings

EXIT_OK: Final[int] = 0
EXIT_FAILURE: Final[int] = 1
EXIT_MANIFEST: Final[int] = 2

MANIFEST_OPTION = Annotated[
    Path,
    typer.Option("--manifest", "-m", help="Manifest file or directory containing pinenv.toml."),
]
SHELL_OPTION = Annotated[
    str,
    typer.Option("--shell", "-s", help="Shell definition to evaluate."),
]
SYSTEM_OPTION = Annotated[
    list[str] | None,
    typer.Option("--system", help="Platform to evaluate; repeat for several. Defaults to all systems."),
]
JOBS_OPTION = Annotated[
    int | None,
    typer.Option("--jobs", "-j", min=1, help="Worker threads for fetching and evaluation."),
]
EMOJI_OPTION = Annotated[
    bool,
    typer.Option("--emoji/--no-emoji", help="Toggle emoji in CLI output."),
]
VERBOSE_OPTION = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Stream debug logging to stderr."),
]

DEFAULT_MANIFEST: Final[Path] = Path(".")
DEFAULT_SHELL_NAME: Final[str] = DEFAULT_SHELL


@dataclass(slots=True)
class LoadedProject:
    """Manifest and driver prepared for a CLI command."""

    manifest: Manifest
    driver: MultiPlatformDriver
    lock_path: Path


def exit_for(exc: PinenvError, *, use_emoji: bool) -> typer.Exit:
    """Report ``exc`` and return the ``typer.Exit`` matching its kind."""

    fail(str(exc), use_emoji=use_emoji)
    return typer.Exit(code=EXIT_MANIFEST if isinstance(exc, ManifestError) else EXIT_FAILURE)


def load_project(
    manifest_path: Path,
    *,
    jobs: int | None,
    use_emoji: bool,
    verbose: bool,
    use_lock: bool = True,
) -> LoadedProject:
    """Load the manifest, its lock file and settings into a driver.

    Raises:
        typer.Exit: With status 2 when the manifest, lock or settings are invalid.
    """

    if verbose:
        configure_verbose_logging()
    try:
        manifest = load_manifest(manifest_path)
        lock_path = lock_path_for(manifest)
        lock = load_lock(lock_path) if use_lock else None
        settings = Settings.from_env(jobs=jobs)
        driver = MultiPlatformDriver.from_manifest(manifest, settings=settings, lock=lock)
    except PinenvError as exc:
        raise exit_for(exc, use_emoji=use_emoji) from exc
    return LoadedProject(manifest=manifest, driver=driver, lock_path=lock_path)


__all__ = [
    "DEFAULT_MANIFEST",
    "DEFAULT_SHELL_NAME",
    "EMOJI_OPTION",
    "EXIT_FAILURE",
    "EXIT_MANIFEST",
    "EXIT_OK",
    "JOBS_OPTION",
    "LoadedProject",
    "MANIFEST_OPTION",
    "SHELL_OPTION",
    "SYSTEM_OPTION",
    "VERBOSE_OPTION",
    "exit_for",
    "load_project",
]
