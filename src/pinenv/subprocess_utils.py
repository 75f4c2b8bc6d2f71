# SPDX-License-Identifier: MIT
"""Safe wrappers around ``subprocess`` execution."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Mapping, Sequence


class SubprocessExecutionError(RuntimeError):
    """Raised when a subprocess exits with a non-zero status or times out."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int | None,
        stderr: str | None,
    ) -> None:
        status = "timed out" if returncode is None else f"exited with status {returncode}"
        super().__init__(f"Command '{command[0]}' {status}. stderr: {(stderr or '').strip() or '<none>'}")
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr


def _normalize_args(args: Sequence[str]) -> list[str]:
    if not args:
        msg = "subprocess command requires at least one argument"
        raise ValueError(msg)

    head, *rest = args
    head_path = Path(head)
    if head_path.is_absolute():
        return [str(head_path), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        msg = f"Executable '{head}' was not found on PATH"
        raise FileNotFoundError(msg)
    return [resolved, *rest]


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Execute *args* capturing text output and raising on failure.

    Raises:
        FileNotFoundError: If the executable is not on ``PATH``.
        SubprocessExecutionError: If the command fails or exceeds ``timeout``.
    """

    normalized = _normalize_args(args)
    try:
        return subprocess.run(
            normalized,
            cwd=str(cwd) if cwd is not None else None,
            env=dict(env) if env is not None else None,
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as exc:
        raise SubprocessExecutionError(normalized, exc.returncode, exc.stderr) from exc
    except subprocess.TimeoutExpired as exc:
        stderr = exc.stderr.decode(errors="ignore") if isinstance(exc.stderr, bytes) else exc.stderr
        raise SubprocessExecutionError(normalized, None, stderr) from exc


__all__ = ["SubprocessExecutionError", "run_command"]
