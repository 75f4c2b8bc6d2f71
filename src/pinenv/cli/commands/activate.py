# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Implementation of the `pinenv activate` command."""

from __future__ import annotations

import shlex
from typing import Final

import typer

from ...errors import PinenvError
from ...models import EnvironmentDescriptor
from ..shared import (
    DEFAULT_MANIFEST,
    DEFAULT_SHELL_NAME,
    EMOJI_OPTION,
    MANIFEST_OPTION,
    SHELL_OPTION,
    VERBOSE_OPTION,
    exit_for,
    load_project,
)

_DOUBLE_QUOTE_ESCAPES: Final[dict[int, str]] = str.maketrans({"\\": "\\\\", '"': '\\"', "`": "\\`"})


def _shell_value(value: str) -> str:
    if shlex.quote(value) == value:
        return value
    return f'"{value.translate(_DOUBLE_QUOTE_ESCAPES)}"'


def render_activation_script(descriptor: EnvironmentDescriptor) -> str:
    """Return a POSIX shell script activating ``descriptor``.

    Environment values are double-quoted so ``$VAR`` references expand when
    the script is evaluated.
    """

    lines = [f"# pinenv shell '{descriptor.shell}' for {descriptor.platform}"]
    activation = descriptor.activation
    if activation.path:
        entries = ":".join(shlex.quote(entry) for entry in activation.path)
        lines.append(f'export PATH={entries}:"$PATH"')
    lines.extend(f"export {key}={_shell_value(value)}" for key, value in sorted(activation.env.items()))
    if activation.shell_hook:
        lines.append(activation.shell_hook)
    return "\n".join(lines)


def activate_command(
    manifest: MANIFEST_OPTION = DEFAULT_MANIFEST,
    shell: SHELL_OPTION = DEFAULT_SHELL_NAME,
    emoji: EMOJI_OPTION = True,
    verbose: VERBOSE_OPTION = False,
) -> None:
    """Print an activation script for the host platform, e.g. eval "$(pinenv activate)"."""

    project = load_project(manifest, jobs=None, use_emoji=emoji, verbose=verbose)
    try:
        descriptor = project.driver.build_current(project.manifest.shell(shell), name=shell)
    except PinenvError as exc:
        raise exit_for(exc, use_emoji=emoji) from exc
    typer.echo(render_activation_script(descriptor))


__all__ = ["activate_command", "render_activation_script"]
