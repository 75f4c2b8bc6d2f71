# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Multi-platform driver evaluating a shell on every supported platform.

Each platform is evaluated independently. A resolution error on one platform
is recorded in the :class:`BuildReport` and does not prevent descriptors from
being produced for the others; callers that need all-or-nothing semantics use
:meth:`BuildReport.raise_for_errors`. Only the input registry and its
snapshots are shared between platform evaluations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

from .cache import OnceCache
from .errors import PinenvError
from .evaluator import evaluate
from .inputs import InputRegistry, SnapshotFetcher, default_fetchers
from .lockfile import LOCK_FILENAME, LockFile
from .manifest import DEFAULT_SHELL, Manifest, ShellSpec
from .models import EnvironmentDescriptor
from .overlays import Overlay, PackageOverlay, compose, load_input_overlay
from .package_set import PackageSet, PackageSetResolver, base_package_set
from .platforms import PlatformId, current_platform
from .settings import Settings

LOGGER = logging.getLogger(__name__)

OverlaySource = Overlay | str


@dataclass(slots=True)
class BuildReport:
    """Outcome of a multi-platform build keyed by platform identifier."""

    platforms: tuple[PlatformId, ...]
    descriptors: dict[PlatformId, EnvironmentDescriptor] = field(default_factory=dict)
    errors: dict[PlatformId, PinenvError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise the first recorded error in platform order."""

        for platform in self.platforms:
            if platform in self.errors:
                raise self.errors[platform]


class MultiPlatformDriver:
    """Wire the registry, overlays and package-set resolver for one manifest."""

    def __init__(
        self,
        registry: InputRegistry,
        resolver: PackageSetResolver,
        *,
        base_input: str,
        overlays: Sequence[OverlaySource] = (),
        jobs: int = 1,
    ) -> None:
        """Initialise the driver.

        Args:
            registry: Registry holding every input of the manifest.
            resolver: Resolver caching one package set per platform.
            base_input: Name of the input whose ``packages.toml`` is the base set.
            overlays: Overlays in application order; strings name inputs that
                ship an ``overlay.toml``.
            jobs: Worker threads used for per-platform evaluation.
        """

        self.registry = registry
        self.resolver = resolver
        self._base_input = base_input
        self._overlay_sources = tuple(overlays)
        self._input_overlays: OnceCache[str, PackageOverlay] = OnceCache()
        self._jobs = jobs

    @classmethod
    def from_manifest(
        cls,
        manifest: Manifest,
        *,
        settings: Settings | None = None,
        lock: LockFile | None = None,
        fetchers: Sequence[SnapshotFetcher] | None = None,
    ) -> MultiPlatformDriver:
        """Build a driver for ``manifest`` applying ``lock`` pins to unpinned inputs."""

        settings = settings or Settings.from_env()
        registry = InputRegistry(fetchers or default_fetchers(settings, manifest.root))
        for name, spec in manifest.inputs.items():
            pinned = spec.rev
            if pinned is None and lock is not None:
                pinned = lock.pinned_revision(name, spec.url)
            registry.register(name, spec.url, pinned)
        overlays: list[OverlaySource] = [
            spec.input if spec.input is not None else spec.inline_overlay(manifest.root) for spec in manifest.overlays
        ]
        return cls(
            registry,
            PackageSetResolver(manifest.systems),
            base_input=manifest.base_input,
            overlays=overlays,
            jobs=settings.jobs,
        )

    @property
    def supported(self) -> tuple[PlatformId, ...]:
        return self.resolver.supported

    @property
    def jobs(self) -> int:
        return self._jobs

    def package_set(self, platform: PlatformId) -> PackageSet:
        """Return the composed package set for ``platform``.

        Raises:
            UnsupportedPlatformError: If ``platform`` is not supported.
            UnresolvableInputError: If an input snapshot cannot be resolved.
        """

        return self.resolver.instantiate(platform, self._compose)

    def evaluate(
        self,
        platform: PlatformId,
        requested: Iterable[str],
        *,
        shell: str = DEFAULT_SHELL,
        env: Mapping[str, str] | None = None,
        shell_hook: str = "",
    ) -> EnvironmentDescriptor:
        return evaluate(
            self.package_set(platform),
            requested,
            shell=shell,
            env=env,
            shell_hook=shell_hook,
        )

    def build_all(
        self,
        platforms: Iterable[PlatformId] | None,
        requested: Iterable[str],
        *,
        shell: str = DEFAULT_SHELL,
        env: Mapping[str, str] | None = None,
        shell_hook: str = "",
    ) -> BuildReport:
        """Evaluate ``requested`` on every platform in isolation.

        Args:
            platforms: Platforms to evaluate, all supported platforms when ``None``.
            requested: Package names in declaration order.
            shell: Shell name recorded in the descriptors.
            env: Extra activation variables of the shell.
            shell_hook: Shell hook of the shell.

        Returns:
            BuildReport: Descriptors and errors keyed by platform.
        """

        targets = tuple(dict.fromkeys(self.supported if platforms is None else platforms))
        names = tuple(requested)
        task = partial(self._evaluate_isolated, requested=names, shell=shell, env=env, shell_hook=shell_hook)
        if self._jobs > 1 and len(targets) > 1:
            with ThreadPoolExecutor(max_workers=self._jobs) as executor:
                outcomes = list(executor.map(task, targets))
        else:
            outcomes = [task(platform) for platform in targets]
        report = BuildReport(platforms=targets)
        for platform, outcome in zip(targets, outcomes, strict=True):
            if isinstance(outcome, PinenvError):
                report.errors[platform] = outcome
            else:
                report.descriptors[platform] = outcome
        return report

    def build_shell(
        self,
        shell: ShellSpec,
        *,
        name: str = DEFAULT_SHELL,
        platforms: Iterable[PlatformId] | None = None,
    ) -> BuildReport:
        return self.build_all(platforms, shell.packages, shell=name, env=shell.env, shell_hook=shell.shell_hook)

    def build_current(self, shell: ShellSpec, *, name: str = DEFAULT_SHELL) -> EnvironmentDescriptor:
        """Evaluate ``shell`` for the host platform only, raising on failure."""

        return self.evaluate(
            current_platform(),
            shell.packages,
            shell=name,
            env=shell.env,
            shell_hook=shell.shell_hook,
        )

    def _evaluate_isolated(
        self,
        platform: PlatformId,
        *,
        requested: tuple[str, ...],
        shell: str,
        env: Mapping[str, str] | None,
        shell_hook: str,
    ) -> EnvironmentDescriptor | PinenvError:
        try:
            return self.evaluate(platform, requested, shell=shell, env=env, shell_hook=shell_hook)
        except PinenvError as exc:
            LOGGER.debug("platform %s failed: %s", platform, exc)
            return exc

    def _compose(self, platform: PlatformId) -> PackageSet:
        base = base_package_set(self.registry.resolve_name(self._base_input), platform)
        return compose(base, [self._overlay(source) for source in self._overlay_sources])

    def _overlay(self, source: OverlaySource) -> Overlay:
        if isinstance(source, str):
            return self._input_overlays.get_or_create(
                source,
                partial(self._load_input_overlay, source),
            )
        return source

    def _load_input_overlay(self, name: str) -> PackageOverlay:
        return load_input_overlay(self.registry.resolve_name(name))


def lock_path_for(manifest: Manifest, fallback: Path | None = None) -> Path:
    """Return the lock file location next to ``manifest``."""

    root = manifest.root or fallback or Path.cwd()
    return root / LOCK_FILENAME


__all__ = ["BuildReport", "MultiPlatformDriver", "OverlaySource", "lock_path_for"]
