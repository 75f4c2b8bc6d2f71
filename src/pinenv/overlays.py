# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Overlay composition over base package sets.

An overlay is any callable taking ``(previous, base)`` and returning a mapping
of package changes: definitions add or override entries and ``None`` removes
them. :func:`compose` folds overlays left to right so each one observes the
cumulative result of the overlays before it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Final, TypeAlias

from .errors import ManifestError
from .models import PackageDefinition, Snapshot
from .package_set import PackageChanges, PackageSet, parse_package_table, read_toml_document

LOGGER = logging.getLogger(__name__)

OVERLAY_FILENAME: Final[str] = "overlay.toml"
REMOVE_KEY: Final[str] = "remove"

Overlay: TypeAlias = Callable[[PackageSet, PackageSet], PackageChanges]


@dataclass(frozen=True, slots=True)
class PackageOverlay:
    """Declarative overlay adding, overriding or removing named packages."""

    name: str
    packages: Mapping[str, PackageDefinition] = field(default_factory=dict)
    removals: tuple[str, ...] = ()

    def __call__(self, previous: PackageSet, base: PackageSet) -> PackageChanges:
        del previous, base
        changes: dict[str, PackageDefinition | None] = dict.fromkeys(self.removals)
        changes.update(self.packages)
        return changes


def compose(base: PackageSet, overlays: Sequence[Overlay]) -> PackageSet:
    """Apply ``overlays`` to ``base`` strictly in order.

    Args:
        base: Package set the overlays start from.
        overlays: Overlays applied left to right.

    Returns:
        PackageSet: The derived package set; ``base`` is left untouched.
    """

    result = base
    for overlay in overlays:
        result = result.with_changes(overlay(result, base))
    return result


def package_overlay(
    name: str,
    definitions: Mapping[str, PackageDefinition],
    removals: Iterable[str] = (),
) -> PackageOverlay:
    return PackageOverlay(name=name, packages=dict(definitions), removals=tuple(removals))


def load_input_overlay(snapshot: Snapshot) -> PackageOverlay:
    """Return the overlay an input snapshot ships in ``overlay.toml``.

    Raises:
        ManifestError: If the overlay document is malformed.
    """

    path = snapshot.path / OVERLAY_FILENAME
    if not path.is_file():
        LOGGER.warning("input %s has no %s; it contributes no packages", snapshot.name, OVERLAY_FILENAME)
        return PackageOverlay(name=snapshot.name)
    document = read_toml_document(path)
    removals = document.get(REMOVE_KEY, [])
    if not isinstance(removals, list) or not all(isinstance(item, str) for item in removals):
        raise ManifestError(f"{path}: '{REMOVE_KEY}' must be a list of package names")
    return package_overlay(
        snapshot.name,
        parse_package_table(document.get("packages"), source=str(path), base_dir=snapshot.path),
        removals,
    )


__all__ = [
    "OVERLAY_FILENAME",
    "Overlay",
    "PackageOverlay",
    "compose",
    "load_input_overlay",
    "package_overlay",
]
