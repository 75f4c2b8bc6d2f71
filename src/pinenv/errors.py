# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Exceptions raised while resolving environments."""

from __future__ import annotations

from collections.abc import Iterable, Sequence


class PinenvError(RuntimeError):
    """Base class for every resolution and evaluation failure."""


class ManifestError(PinenvError):
    """Raised when a manifest, lock file or settings override is invalid."""


class DuplicateNameError(PinenvError):
    """Raised when an input name is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Input '{name}' is already registered")
        self.name = name


class UnresolvableInputError(PinenvError):
    """Raised when an input cannot be realised as a snapshot."""

    def __init__(self, name: str, locator: str, reason: str) -> None:
        """Initialise the error with the offending input metadata.

        Args:
            name: Registered name of the input.
            locator: Locator the input points at.
            reason: Human-readable explanation of the failure.
        """

        super().__init__(f"Cannot resolve input '{name}' ({locator}): {reason}")
        self.name = name
        self.locator = locator
        self.reason = reason


class UnsupportedPlatformError(PinenvError):
    """Raised when a platform outside the supported set is requested."""

    def __init__(self, platform: str, supported: Iterable[str] = ()) -> None:
        self.platform = platform
        self.supported = tuple(sorted(supported))
        detail = f" (supported: {', '.join(self.supported)})" if self.supported else ""
        super().__init__(f"Unsupported platform '{platform}'{detail}")


class UnknownPackageError(PinenvError):
    """Raised when requested packages are absent from a package set."""

    def __init__(self, names: str | Sequence[str], platform: str | None = None) -> None:
        """Initialise the error with every missing package name.

        Args:
            names: Missing package name or names in request order.
            platform: Platform whose package set was searched.
        """

        self.names = (names,) if isinstance(names, str) else tuple(names)
        self.name = self.names[0]
        self.platform = platform
        where = f" for platform '{platform}'" if platform else ""
        super().__init__(f"Unknown package(s){where}: {', '.join(self.names)}")


__all__ = [
    "DuplicateNameError",
    "ManifestError",
    "PinenvError",
    "UnknownPackageError",
    "UnresolvableInputError",
    "UnsupportedPlatformError",
]
