# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Platform identifiers and host platform detection."""

from __future__ import annotations

import platform
import sys
from collections.abc import Iterable
from typing import Final, TypeAlias

from .errors import UnsupportedPlatformError

PlatformId: TypeAlias = str

DEFAULT_SYSTEMS: Final[tuple[PlatformId, ...]] = (
    "aarch64-darwin",
    "aarch64-linux",
    "x86_64-darwin",
    "x86_64-linux",
)

_MACHINE_ALIASES: Final[dict[str, str]] = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "armv8l": "aarch64",
    "i386": "i686",
    "i586": "i686",
}

_OS_ALIASES: Final[dict[str, str]] = {
    "darwin": "darwin",
    "linux": "linux",
    "win32": "windows",
    "cygwin": "windows",
    "freebsd": "freebsd",
}


def split_platform(platform_id: PlatformId) -> tuple[str, str]:
    """Return the ``(arch, os)`` pair encoded in ``platform_id``.

    Args:
        platform_id: Identifier of the form ``<arch>-<os>``.

    Returns:
        tuple[str, str]: Architecture and operating system components.

    Raises:
        UnsupportedPlatformError: If the identifier is not an ``arch-os`` pair.
    """

    arch, sep, os_name = platform_id.partition("-")
    if not sep or not arch or not os_name:
        raise UnsupportedPlatformError(platform_id)
    return arch, os_name


def current_platform() -> PlatformId:
    """Return the platform identifier of the running interpreter."""

    machine = platform.machine().lower() or "unknown"
    arch = _MACHINE_ALIASES.get(machine, machine)
    os_key = next((key for key in _OS_ALIASES if sys.platform.startswith(key)), sys.platform)
    return f"{arch}-{_OS_ALIASES.get(os_key, os_key)}"


def ensure_supported(platform_id: PlatformId, supported: Iterable[PlatformId]) -> PlatformId:
    """Return ``platform_id`` when it belongs to ``supported``.

    Raises:
        UnsupportedPlatformError: If ``platform_id`` is not supported.
    """

    known = frozenset(supported)
    if platform_id not in known:
        raise UnsupportedPlatformError(platform_id, known)
    return platform_id


__all__ = [
    "DEFAULT_SYSTEMS",
    "PlatformId",
    "current_platform",
    "ensure_supported",
    "split_platform",
]
