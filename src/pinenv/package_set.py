# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Platform-specific package sets and their per-platform instantiation."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Callable, Iterable, Iterator, Mapping
from functools import partial
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final

from pydantic import ValidationError

from .cache import OnceCache
from .checksum import compute_payload_digest
from .errors import ManifestError
from .models import PackageDefinition, Snapshot
from .platforms import PlatformId, ensure_supported

LOGGER = logging.getLogger(__name__)

PACKAGES_FILENAME: Final[str] = "packages.toml"
PACKAGES_KEY: Final[str] = "packages"
BIN_DIRS_KEY: Final[str] = "bin_dirs"
VARIANTS_KEY: Final[str] = "variants"

PackageChanges = Mapping[str, Any]


class PackageSet(Mapping[str, PackageDefinition]):
    """Read-only mapping from package name to definition for one platform.

    Sets are never mutated: :meth:`with_changes` returns a new set. Values
    supplied by overlays are stored as given and only checked when an
    environment looks them up.
    """

    def __init__(self, platform: PlatformId, packages: Mapping[str, Any] | None = None) -> None:
        self._platform = platform
        self._packages: Mapping[str, Any] = MappingProxyType(dict(packages or {}))

    @property
    def platform(self) -> PlatformId:
        return self._platform

    def with_changes(self, changes: PackageChanges) -> PackageSet:
        """Return a new set with ``changes`` applied.

        A ``None`` value removes the package, a :class:`PackageDefinition` is
        specialised for this set's platform (and dropped when unavailable
        there), and any other value is carried over unchanged.
        """

        packages = dict(self._packages)
        for name, value in changes.items():
            if value is None:
                packages.pop(name, None)
                continue
            if isinstance(value, PackageDefinition):
                specialised = value.for_platform(self._platform)
                if specialised is None:
                    packages.pop(name, None)
                    continue
                value = specialised
            packages[name] = value
        return PackageSet(self._platform, packages)

    def fingerprint(self) -> str:
        """Return a digest of the set content used to compare compositions."""

        payload = {
            name: value.model_dump(mode="json") if isinstance(value, PackageDefinition) else repr(value)
            for name, value in self._packages.items()
        }
        return compute_payload_digest({"platform": self._platform, "packages": payload})

    def __getitem__(self, name: str) -> PackageDefinition:
        return self._packages[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def __repr__(self) -> str:
        return f"PackageSet(platform={self._platform!r}, packages={len(self)})"


def _anchor_bin_dirs(entry: Mapping[str, Any], base_dir: Path) -> dict[str, Any]:
    anchored = dict(entry)
    dirs = anchored.get(BIN_DIRS_KEY)
    if isinstance(dirs, list):
        anchored[BIN_DIRS_KEY] = [
            str(base_dir / item) if isinstance(item, str) and not Path(item).is_absolute() else item for item in dirs
        ]
    variants = anchored.get(VARIANTS_KEY)
    if isinstance(variants, Mapping):
        anchored[VARIANTS_KEY] = {
            platform: _anchor_bin_dirs(variant, base_dir) if isinstance(variant, Mapping) else variant
            for platform, variant in variants.items()
        }
    return anchored


def parse_package_table(
    raw: object,
    *,
    source: str,
    base_dir: Path | None = None,
) -> dict[str, PackageDefinition]:
    """Validate a ``[packages]`` table into package definitions.

    Args:
        raw: Parsed TOML value of the ``packages`` table.
        source: Description of the document used in error messages.
        base_dir: Directory that relative ``bin_dirs`` entries are anchored at.

    Returns:
        dict[str, PackageDefinition]: Definitions keyed by package name.

    Raises:
        ManifestError: If the table or any definition is malformed.
    """

    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ManifestError(f"{source}: '{PACKAGES_KEY}' must be a table")
    definitions: dict[str, PackageDefinition] = {}
    for name, value in raw.items():
        if not isinstance(value, Mapping):
            raise ManifestError(f"{source}: package '{name}' must be a table")
        if base_dir is not None:
            value = _anchor_bin_dirs(value, base_dir)
        try:
            definitions[name] = PackageDefinition.model_validate({**value, "name": name})
        except ValidationError as exc:
            raise ManifestError(f"{source}: invalid package '{name}': {exc}") from exc
    return definitions


def read_toml_document(path: Path) -> dict[str, Any]:
    """Return the parsed TOML document at ``path``.

    Raises:
        ManifestError: If the file is not valid TOML.
    """

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(f"{path}: invalid TOML: {exc}") from exc


def base_package_set(snapshot: Snapshot, platform: PlatformId) -> PackageSet:
    """Return the base package set a snapshot declares for ``platform``.

    Raises:
        ManifestError: If the snapshot has no readable package declaration.
    """

    path = snapshot.path / PACKAGES_FILENAME
    if not path.is_file():
        raise ManifestError(f"Input '{snapshot.name}' does not provide {PACKAGES_FILENAME}")
    document = read_toml_document(path)
    definitions = parse_package_table(document.get(PACKAGES_KEY), source=str(path), base_dir=snapshot.path)
    return PackageSet(platform).with_changes(definitions)


class PackageSetResolver:
    """Instantiate and cache one package set per supported platform."""

    def __init__(self, supported: Iterable[PlatformId]) -> None:
        self._supported = tuple(supported)
        self._sets: OnceCache[PlatformId, PackageSet] = OnceCache()

    @property
    def supported(self) -> tuple[PlatformId, ...]:
        return self._supported

    def instantiate(self, platform: PlatformId, factory: Callable[[PlatformId], PackageSet]) -> PackageSet:
        """Return the package set for ``platform`` building it once with ``factory``.

        Raises:
            UnsupportedPlatformError: If ``platform`` is not supported.
        """

        ensure_supported(platform, self._supported)
        return self._sets.get_or_create(platform, partial(self._build, platform, factory))

    @staticmethod
    def _build(platform: PlatformId, factory: Callable[[PlatformId], PackageSet]) -> PackageSet:
        package_set = factory(platform)
        LOGGER.debug("instantiated %d packages for %s", len(package_set), platform)
        return package_set


__all__ = [
    "PACKAGES_FILENAME",
    "PackageSet",
    "PackageSetResolver",
    "base_package_set",
    "parse_package_table",
    "read_toml_document",
]
