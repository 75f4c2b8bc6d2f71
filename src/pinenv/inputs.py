# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Input registry resolving named sources to content-addressed snapshots."""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
import tempfile
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Final, Protocol
from urllib.parse import parse_qs, urlsplit, urlunsplit

from .cache import OnceCache
from .checksum import compute_tree_digest
from .errors import DuplicateNameError, ManifestError, UnresolvableInputError
from .models import InputRef, Snapshot
from .settings import Settings
from .subprocess_utils import SubprocessExecutionError, run_command

LOGGER = logging.getLogger(__name__)

MIN_REVISION_PREFIX: Final[int] = 7
_SCHEME_RE: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")
_COMPLETE_MARKER: Final[str] = ".pinenv-complete"

CommandRunner = Callable[..., object]


class SnapshotFetcher(Protocol):
    """Realise input references of the locator schemes it supports."""

    def supports(self, locator: str) -> bool:
        """Return ``True`` when the fetcher understands ``locator``."""
        ...

    def fetch(self, ref: InputRef) -> Snapshot:
        """Return the snapshot for ``ref`` or raise :class:`UnresolvableInputError`."""
        ...


class PathFetcher:
    """Resolve ``path:``/``file://`` locators and bare directories."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir or Path.cwd()

    def supports(self, locator: str) -> bool:
        if locator.startswith(("path:", "file://")):
            return True
        return not _SCHEME_RE.match(locator)

    def fetch(self, ref: InputRef) -> Snapshot:
        directory = self._directory_for(ref.locator)
        if not directory.is_dir():
            raise UnresolvableInputError(ref.name, ref.locator, f"directory {directory} does not exist")
        digest = compute_tree_digest(directory)
        pinned = ref.pinned_revision
        if pinned is not None and (len(pinned) < MIN_REVISION_PREFIX or not digest.startswith(pinned.lower())):
            raise UnresolvableInputError(
                ref.name,
                ref.locator,
                f"revision '{pinned}' does not exist (content is {digest[:12]})",
            )
        return Snapshot(name=ref.name, locator=ref.locator, revision=digest, digest=digest, path=directory)

    def _directory_for(self, locator: str) -> Path:
        if locator.startswith("file://"):
            raw = urlsplit(locator).path
        elif locator.startswith("path:"):
            raw = locator.removeprefix("path:")
        else:
            raw = locator
        path = Path(raw).expanduser()
        return (path if path.is_absolute() else self._base_dir / path).resolve()


def parse_git_locator(locator: str) -> tuple[str, str | None]:
    """Return the ``(url, ref)`` pair encoded in a git locator.

    Supported forms are ``github:<owner>/<repo>[/<ref>]`` and
    ``git+<url>[?ref=<ref>]``.

    Raises:
        ValueError: If ``locator`` is not a git locator.
    """

    if locator.startswith("github:"):
        owner, _, rest = locator.removeprefix("github:").partition("/")
        repo, _, ref = rest.partition("/")
        if not owner or not repo:
            raise ValueError(f"malformed github locator '{locator}'")
        return f"https://github.com/{owner}/{repo}.git", ref or None
    if locator.startswith("git+"):
        parts = urlsplit(locator.removeprefix("git+"))
        refs = parse_qs(parts.query).get("ref")
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
        return url, refs[0] if refs else None
    raise ValueError(f"'{locator}' is not a git locator")


class GitFetcher:
    """Resolve ``github:`` and ``git+`` locators into checkouts in the store."""

    def __init__(
        self,
        store_dir: Path,
        *,
        timeout: float | None = None,
        runner: CommandRunner = run_command,
    ) -> None:
        self._store_dir = store_dir
        self._timeout = timeout
        self._run = runner
        self._checkouts: OnceCache[Path, tuple[Path, str]] = OnceCache()

    def supports(self, locator: str) -> bool:
        return locator.startswith(("github:", "git+"))

    def fetch(self, ref: InputRef) -> Snapshot:
        try:
            url, branch = parse_git_locator(ref.locator)
        except ValueError as exc:
            raise UnresolvableInputError(ref.name, ref.locator, str(exc)) from exc
        try:
            revision = ref.pinned_revision or self._ls_remote(ref, url, branch)
            checkout, revision = self._checkout(url, revision)
        except (SubprocessExecutionError, OSError) as exc:
            raise UnresolvableInputError(ref.name, ref.locator, str(exc)) from exc
        LOGGER.debug("input %s checked out at %s", ref.name, revision)
        return Snapshot(
            name=ref.name,
            locator=ref.locator,
            revision=revision,
            digest=compute_tree_digest(checkout),
            path=checkout,
        )

    def _git(self, *args: str, cwd: Path | None = None) -> str:
        completed = self._run(["git", *args], cwd=cwd, timeout=self._timeout)
        return str(getattr(completed, "stdout", "") or "")

    def _ls_remote(self, ref: InputRef, url: str, branch: str | None) -> str:
        output = self._git("ls-remote", url, branch or "HEAD")
        for line in output.splitlines():
            sha, _, _ = line.partition("\t")
            if sha.strip():
                return sha.strip()
        raise UnresolvableInputError(ref.name, ref.locator, f"ref '{branch or 'HEAD'}' not found")

    def _checkout(self, url: str, revision: str) -> tuple[Path, str]:
        url_key = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        target = self._store_dir / f"{url_key}-{revision}"
        return self._checkouts.get_or_create(target, partial(self._materialise, url, revision, target))

    def _materialise(self, url: str, revision: str, target: Path) -> tuple[Path, str]:
        marker = target / _COMPLETE_MARKER
        if marker.is_file():
            return target, marker.read_text(encoding="utf-8").strip()
        self._store_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f"{target.name}.", suffix=".partial", dir=self._store_dir))
        try:
            self._git("init", "-q", cwd=staging)
            self._git("fetch", "-q", "--depth", "1", url, revision, cwd=staging)
            self._git("checkout", "-q", "--detach", "FETCH_HEAD", cwd=staging)
            full_revision = self._git("rev-parse", "HEAD", cwd=staging).strip() or revision
            (staging / _COMPLETE_MARKER).write_text(full_revision, encoding="utf-8")
            if marker.is_file():
                return target, marker.read_text(encoding="utf-8").strip()
            shutil.rmtree(target, ignore_errors=True)
            staging.rename(target)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        return target, full_revision


def default_fetchers(settings: Settings, base_dir: Path | None = None) -> list[SnapshotFetcher]:
    """Return the built-in fetchers in lookup order."""

    return [
        GitFetcher(settings.store_dir, timeout=settings.fetch_timeout),
        PathFetcher(base_dir),
    ]


class InputRegistry:
    """Own the named inputs of a manifest and memoise their snapshots.

    Snapshots are keyed by ``(name, locator, pinned_revision)``; the first
    resolution of a key performs the fetch and every later call, from any
    thread, receives the identical :class:`Snapshot` object.
    """

    def __init__(self, fetchers: Sequence[SnapshotFetcher] | None = None) -> None:
        self._fetchers: tuple[SnapshotFetcher, ...] = tuple(fetchers or (PathFetcher(),))
        self._refs: dict[str, InputRef] = {}
        self._snapshots: OnceCache[tuple[str, str, str | None], Snapshot] = OnceCache()

    def register(self, name: str, locator: str, pinned_revision: str | None = None) -> InputRef:
        """Register a named input.

        Raises:
            DuplicateNameError: If ``name`` is already registered.
        """

        if name in self._refs:
            raise DuplicateNameError(name)
        ref = InputRef(name=name, locator=locator, pinned_revision=pinned_revision)
        self._refs[name] = ref
        return ref

    def get(self, name: str) -> InputRef:
        try:
            return self._refs[name]
        except KeyError as exc:
            raise ManifestError(f"Unknown input '{name}'") from exc

    @property
    def refs(self) -> tuple[InputRef, ...]:
        return tuple(self._refs.values())

    def resolve(self, ref: InputRef) -> Snapshot:
        """Return the memoised snapshot for ``ref``.

        Raises:
            UnresolvableInputError: If no fetcher can realise ``ref``.
        """

        return self._snapshots.get_or_create(ref.cache_key, partial(self._fetch, ref))

    def resolve_name(self, name: str) -> Snapshot:
        return self.resolve(self.get(name))

    def resolve_all(self, *, jobs: int = 1) -> dict[str, Snapshot]:
        """Resolve every registered input, in parallel when ``jobs`` > 1.

        Returns:
            dict[str, Snapshot]: Snapshots keyed by input name in registration order.
        """

        refs = self.refs
        if jobs <= 1 or len(refs) <= 1:
            snapshots = {ref.name: self.resolve(ref) for ref in refs}
        else:
            with ThreadPoolExecutor(max_workers=jobs) as executor:
                futures = {ref.name: executor.submit(self.resolve, ref) for ref in refs}
                snapshots = {name: future.result() for name, future in futures.items()}
        LOGGER.debug("resolved %d inputs (%s)", len(snapshots), self._snapshots.cache_metadata())
        return snapshots

    def _fetch(self, ref: InputRef) -> Snapshot:
        fetcher = next((candidate for candidate in self._fetchers if candidate.supports(ref.locator)), None)
        if fetcher is None:
            raise UnresolvableInputError(ref.name, ref.locator, "no fetcher supports this locator")
        LOGGER.debug("resolving input %s from %s", ref.name, ref.locator)
        return fetcher.fetch(ref)

    def __contains__(self, name: object) -> bool:
        return name in self._refs

    def __iter__(self) -> Iterator[InputRef]:
        return iter(self.refs)

    def __len__(self) -> int:
        return len(self._refs)


__all__ = [
    "GitFetcher",
    "InputRegistry",
    "PathFetcher",
    "SnapshotFetcher",
    "default_fetchers",
    "parse_git_locator",
]
