# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Evaluate package requests into environment descriptors."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .errors import ManifestError, UnknownPackageError
from .models import ActivationMetadata, EnvironmentDescriptor, PackageDefinition, PackageRef
from .package_set import PackageSet


def _unique(names: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


def _lookup(package_set: PackageSet, names: tuple[str, ...]) -> list[PackageDefinition]:
    missing = [name for name in names if name not in package_set]
    if missing:
        raise UnknownPackageError(missing, package_set.platform)
    definitions: list[PackageDefinition] = []
    for name in names:
        definition = package_set[name]
        if not isinstance(definition, PackageDefinition):
            raise ManifestError(
                f"Package '{name}' on {package_set.platform} is not a package definition: {definition!r}",
            )
        definitions.append(definition)
    return definitions


def build_activation(
    definitions: Iterable[PackageDefinition],
    *,
    env: Mapping[str, str] | None = None,
    shell_hook: str = "",
) -> ActivationMetadata:
    """Derive activation metadata from resolved packages in request order.

    PATH entries keep the first occurrence, later packages override earlier
    environment values, and the shell's own ``env``/``shell_hook`` come last.
    """

    path: dict[str, None] = {}
    merged_env: dict[str, str] = {}
    hooks: list[str] = []
    for definition in definitions:
        path.update(dict.fromkeys(definition.bin_dirs))
        merged_env.update(definition.env)
        if definition.shell_hook.strip():
            hooks.append(definition.shell_hook.strip())
    merged_env.update(env or {})
    if shell_hook.strip():
        hooks.append(shell_hook.strip())
    return ActivationMetadata(path=tuple(path), env=merged_env, shell_hook="\n".join(hooks))


def evaluate(
    package_set: PackageSet,
    requested: Iterable[str],
    *,
    shell: str = "default",
    env: Mapping[str, str] | None = None,
    shell_hook: str = "",
) -> EnvironmentDescriptor:
    """Resolve ``requested`` package names against ``package_set``.

    Args:
        package_set: Package set instantiated for the target platform.
        requested: Package names in declaration order; repeats collapse.
        shell: Name of the shell definition being evaluated.
        env: Extra variables declared by the shell definition.
        shell_hook: Shell hook declared by the shell definition.

    Returns:
        EnvironmentDescriptor: Descriptor listing exactly the requested packages.

    Raises:
        UnknownPackageError: If any requested name is absent; no partial
            descriptor is produced.
    """

    names = _unique(requested)
    definitions = _lookup(package_set, names)
    packages = tuple(
        PackageRef(name=name, version=definition.version, bin_dirs=definition.bin_dirs)
        for name, definition in zip(names, definitions, strict=True)
    )
    return EnvironmentDescriptor(
        platform=package_set.platform,
        shell=shell,
        packages=packages,
        activation=build_activation(definitions, env=env, shell_hook=shell_hook),
    )


__all__ = ["build_activation", "evaluate"]
