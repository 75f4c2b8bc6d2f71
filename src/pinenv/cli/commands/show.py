# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Implementation of the `pinenv show` and `pinenv check` commands."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from rich import box
from rich.table import Table

from ...console import detect_tty, get_console_manager
from ...driver import BuildReport
from ...errors import PinenvError
from ...logging import fail, ok
from ..shared import (
    DEFAULT_MANIFEST,
    DEFAULT_SHELL_NAME,
    EMOJI_OPTION,
    EXIT_FAILURE,
    JOBS_OPTION,
    MANIFEST_OPTION,
    SHELL_OPTION,
    SYSTEM_OPTION,
    VERBOSE_OPTION,
    exit_for,
    load_project,
)

JSON_OPTION = Annotated[bool, typer.Option("--json", help="Emit descriptors as JSON.")]


def _build(
    manifest: MANIFEST_OPTION,
    shell: SHELL_OPTION,
    system: SYSTEM_OPTION,
    jobs: JOBS_OPTION,
    emoji: bool,
    verbose: bool,
) -> BuildReport:
    project = load_project(manifest, jobs=jobs, use_emoji=emoji, verbose=verbose)
    try:
        spec = project.manifest.shell(shell)
    except PinenvError as exc:
        raise exit_for(exc, use_emoji=emoji) from exc
    return project.driver.build_shell(spec, name=shell, platforms=system or None)


def build_descriptor_table(report: BuildReport) -> Table:
    """Return a rich table summarising ``report`` per platform."""

    table = Table(box=box.SIMPLE, expand=False)
    table.add_column("Platform", style="bold")
    table.add_column("Packages", overflow="fold")
    table.add_column("Digest")
    for platform in report.platforms:
        descriptor = report.descriptors.get(platform)
        if descriptor is None:
            table.add_row(platform, "[red]failed[/red]", "-")
            continue
        packages = ", ".join(
            f"{ref.name}@{ref.version}" if ref.version else ref.name for ref in descriptor.packages
        )
        table.add_row(platform, packages or "-", descriptor.digest()[:12])
    return table


def report_payload(report: BuildReport, *, shell: str) -> dict[str, object]:
    return {
        "shell": shell,
        "descriptors": {platform: descriptor.to_payload() for platform, descriptor in report.descriptors.items()},
        "errors": {platform: str(error) for platform, error in report.errors.items()},
    }


def _report_errors(report: BuildReport, *, use_emoji: bool) -> None:
    for platform, error in report.errors.items():
        fail(f"{platform}: {error}", use_emoji=use_emoji)


def show_command(
    manifest: MANIFEST_OPTION = DEFAULT_MANIFEST,
    shell: SHELL_OPTION = DEFAULT_SHELL_NAME,
    system: SYSTEM_OPTION = None,
    json_output: JSON_OPTION = False,
    jobs: JOBS_OPTION = None,
    emoji: EMOJI_OPTION = True,
    verbose: VERBOSE_OPTION = False,
) -> None:
    """Print the environment descriptor of a shell for every platform."""

    report = _build(manifest, shell, system, jobs, emoji, verbose)
    if json_output:
        typer.echo(json.dumps(report_payload(report, shell=shell), indent=2, sort_keys=True))
    else:
        console = get_console_manager().get(color=detect_tty(), emoji=emoji)
        console.print(build_descriptor_table(report))
        _report_errors(report, use_emoji=emoji)
    if not report.ok:
        raise typer.Exit(code=EXIT_FAILURE)


def check_command(
    manifest: MANIFEST_OPTION = DEFAULT_MANIFEST,
    shell: SHELL_OPTION = DEFAULT_SHELL_NAME,
    system: SYSTEM_OPTION = None,
    jobs: JOBS_OPTION = None,
    emoji: EMOJI_OPTION = True,
    verbose: VERBOSE_OPTION = False,
) -> None:
    """Verify that a shell resolves on every platform."""

    report = _build(manifest, shell, system, jobs, emoji, verbose)
    for platform, descriptor in report.descriptors.items():
        ok(f"{platform}: {len(descriptor.packages)} packages", use_emoji=emoji)
    _report_errors(report, use_emoji=emoji)
    if not report.ok:
        raise typer.Exit(code=EXIT_FAILURE)


__all__ = ["build_descriptor_table", "check_command", "report_payload", "show_command"]
