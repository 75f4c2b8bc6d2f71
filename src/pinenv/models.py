# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Immutable records flowing between the resolver components."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .checksum import compute_payload_digest
from .platforms import PlatformId


class InputRef(BaseModel):
    """Named reference to an external package source."""

    model_config = ConfigDict(frozen=True)

    name: str
    locator: str
    pinned_revision: str | None = None

    @property
    def cache_key(self) -> tuple[str, str, str | None]:
        """Return the identity used to memoise snapshots."""

        return self.name, self.locator, self.pinned_revision


class Snapshot(BaseModel):
    """Content-addressed realisation of an :class:`InputRef`."""

    model_config = ConfigDict(frozen=True)

    name: str
    locator: str
    revision: str
    digest: str
    path: Path


class PackageVariant(BaseModel):
    """Per-platform field overrides of a package definition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str | None = None
    bin_dirs: tuple[str, ...] | None = None
    env: dict[str, str] = Field(default_factory=dict)
    shell_hook: str | None = None


class PackageRef(BaseModel):
    """Package selected for an environment on one platform."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str | None = None
    bin_dirs: tuple[str, ...] = ()


class PackageDefinition(BaseModel):
    """Buildable package definition as declared by a package set or overlay."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    version: str | None = None
    bin_dirs: tuple[str, ...] = ()
    env: dict[str, str] = Field(default_factory=dict)
    shell_hook: str = ""
    platforms: tuple[PlatformId, ...] = ()
    variants: dict[PlatformId, PackageVariant] = Field(default_factory=dict)

    def supports(self, platform: PlatformId) -> bool:
        """Return ``True`` when the package is available on ``platform``."""

        return not self.platforms or platform in self.platforms

    def for_platform(self, platform: PlatformId) -> PackageDefinition | None:
        """Return the definition specialised for ``platform``.

        Args:
            platform: Target platform identifier.

        Returns:
            PackageDefinition | None: Specialised definition or ``None`` when
            the package is unavailable on ``platform``.
        """

        if not self.supports(platform):
            return None
        variant = self.variants.get(platform)
        if variant is None:
            return self
        update: dict[str, object] = {"env": {**self.env, **variant.env}}
        if variant.version is not None:
            update["version"] = variant.version
        if variant.bin_dirs is not None:
            update["bin_dirs"] = variant.bin_dirs
        if variant.shell_hook is not None:
            update["shell_hook"] = variant.shell_hook
        return self.model_copy(update=update)


class ActivationMetadata(BaseModel):
    """Shell activation data derived from resolved packages."""

    model_config = ConfigDict(frozen=True)

    path: tuple[str, ...] = ()
    env: dict[str, str] = Field(default_factory=dict)
    shell_hook: str = ""


class EnvironmentDescriptor(BaseModel):
    """Resolved, ordered package list plus activation metadata for one platform."""

    model_config = ConfigDict(frozen=True)

    platform: PlatformId
    shell: str = "default"
    packages: tuple[PackageRef, ...] = ()
    activation: ActivationMetadata = Field(default_factory=ActivationMetadata)

    @property
    def package_names(self) -> tuple[str, ...]:
        return tuple(package.name for package in self.packages)

    def to_payload(self) -> dict[str, object]:
        """Return a JSON-compatible representation of the descriptor."""

        return self.model_dump(mode="json")

    def digest(self) -> str:
        """Return the sha256 of the canonical JSON form of the descriptor."""

        return compute_payload_digest(self.to_payload())


__all__ = [
    "ActivationMetadata",
    "EnvironmentDescriptor",
    "InputRef",
    "PackageDefinition",
    "PackageRef",
    "PackageVariant",
    "Snapshot",
]
