# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""CLI command registry."""

from __future__ import annotations

import typer

from .activate import activate_command
from .lock import lock_command
from .show import check_command, show_command

__all__ = ["register_commands"]


def register_commands(app: typer.Typer) -> None:
    """Register the built-in commands on ``app``.

    Args:
        app: Typer application receiving command registrations.
    """

    app.command(name="show")(show_command)
    app.command(name="check")(check_command)
    app.command(name="lock")(lock_command)
    app.command(name="activate")(activate_command)
