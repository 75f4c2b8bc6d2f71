# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Manifest models and the TOML loader."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ManifestError, UnsupportedPlatformError
from .models import PackageDefinition
from .overlays import PackageOverlay, package_overlay
from .package_set import parse_package_table, read_toml_document
from .platforms import DEFAULT_SYSTEMS, PlatformId, split_platform

MANIFEST_FILENAME: Final[str] = "pinenv.toml"
DEFAULT_BASE_INPUT: Final[str] = "nixpkgs"
DEFAULT_SHELL: Final[str] = "default"
INPUTS_KEY: Final[str] = "inputs"

_ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([^}]+)\}")


class InputSpec(BaseModel):
    """Locator and optional pinned revision of a named input."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    rev: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_locator(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"url": value}
        return value


class OverlaySpec(BaseModel):
    """Overlay reference: either an input shipping ``overlay.toml`` or inline packages."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    input: str | None = None
    packages: dict[str, dict[str, Any]] = Field(default_factory=dict)
    remove: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_kind(self) -> OverlaySpec:
        if self.input is not None and (self.packages or self.remove):
            raise ValueError("an overlay references either an input or inline packages, not both")
        if self.input is None and self.name is None:
            raise ValueError("inline overlays require a name")
        return self

    @property
    def label(self) -> str:
        return self.name or self.input or "overlay"

    def inline_overlay(self, base_dir: Path | None = None) -> PackageOverlay:
        """Return the declarative overlay for an inline overlay entry.

        Relative ``bin_dirs`` are anchored at ``base_dir``, the manifest directory.
        """

        definitions: dict[str, PackageDefinition] = parse_package_table(
            self.packages,
            source=f"overlay '{self.label}'",
            base_dir=base_dir,
        )
        return package_overlay(self.label, definitions, self.remove)


class ShellSpec(BaseModel):
    """Packages and activation extras requested by one shell definition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    packages: tuple[str, ...] = ()
    env: dict[str, str] = Field(default_factory=dict)
    shell_hook: str = ""


class Manifest(BaseModel):
    """Validated manifest document."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    description: str = ""
    base: str | None = None
    systems: tuple[PlatformId, ...] = DEFAULT_SYSTEMS
    inputs: dict[str, InputSpec] = Field(default_factory=dict)
    overlays: tuple[OverlaySpec, ...] = ()
    shells: dict[str, ShellSpec] = Field(default_factory=dict)
    root: Path | None = None

    @field_validator("systems")
    @classmethod
    def _check_systems(cls, value: tuple[PlatformId, ...]) -> tuple[PlatformId, ...]:
        for system in value:
            try:
                split_platform(system)
            except UnsupportedPlatformError as exc:
                raise ValueError(f"'{system}' is not an <arch>-<os> platform identifier") from exc
        return tuple(dict.fromkeys(value))

    @model_validator(mode="after")
    def _check_references(self) -> Manifest:
        if not self.inputs:
            raise ValueError("the manifest declares no inputs")
        if self.base is not None and self.base not in self.inputs:
            raise ValueError(f"base input '{self.base}' is not declared in [inputs]")
        for overlay in self.overlays:
            if overlay.input is not None and overlay.input not in self.inputs:
                raise ValueError(f"overlay input '{overlay.input}' is not declared in [inputs]")
        return self

    @property
    def base_input(self) -> str:
        """Return the input providing the base package set."""

        if self.base is not None:
            return self.base
        if DEFAULT_BASE_INPUT in self.inputs:
            return DEFAULT_BASE_INPUT
        return next(iter(self.inputs))

    def shell(self, name: str = DEFAULT_SHELL) -> ShellSpec:
        """Return the shell definition called ``name``.

        Raises:
            ManifestError: If the manifest has no such shell.
        """

        try:
            return self.shells[name]
        except KeyError as exc:
            known = ", ".join(sorted(self.shells)) or "<none>"
            raise ManifestError(f"Unknown shell '{name}' (declared: {known})") from exc


def _expand_env_value(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(lambda match: env.get(match.group(1), match.group(0)), value)
    if isinstance(value, Mapping):
        return {key: _expand_env_value(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_value(item, env) for item in value]
    return value


def parse_manifest(
    document: Mapping[str, Any],
    *,
    root: Path | None = None,
    env: Mapping[str, str] | None = None,
    source: str = "manifest",
) -> Manifest:
    """Validate a parsed manifest document.

    Only input locators expand ``${VAR}`` references from ``env``; shell
    ``env`` and ``shell_hook`` text is left for the activating shell.

    Raises:
        ManifestError: If the document does not describe a valid manifest.
    """

    expanded = dict(document)
    if INPUTS_KEY in expanded:
        expanded[INPUTS_KEY] = _expand_env_value(expanded[INPUTS_KEY], os.environ if env is None else env)
    try:
        return Manifest.model_validate({**expanded, "root": root})
    except ValidationError as exc:
        raise ManifestError(f"{source}: {exc}") from exc


def load_manifest(path: Path, *, env: Mapping[str, str] | None = None) -> Manifest:
    """Load and validate the manifest at ``path``.

    Args:
        path: Manifest file, or a directory containing ``pinenv.toml``.
        env: Mapping used to expand ``${VAR}`` references in input locators.

    Returns:
        Manifest: Validated manifest whose ``root`` is the manifest directory.

    Raises:
        ManifestError: If the file is missing or invalid.
    """

    manifest_path = path / MANIFEST_FILENAME if path.is_dir() else path
    if not manifest_path.is_file():
        raise ManifestError(f"Manifest not found: {manifest_path}")
    document = read_toml_document(manifest_path)
    return parse_manifest(
        document,
        root=manifest_path.resolve().parent,
        env=env,
        source=str(manifest_path),
    )


__all__ = [
    "DEFAULT_SHELL",
    "InputSpec",
    "MANIFEST_FILENAME",
    "Manifest",
    "OverlaySpec",
    "ShellSpec",
    "load_manifest",
    "parse_manifest",
]
