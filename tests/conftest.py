# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import textwrap
import threading
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

from pinenv.checksum import compute_tree_digest
from pinenv.errors import UnresolvableInputError
from pinenv.models import InputRef, Snapshot

NIXPKGS_PACKAGES = """
[packages.rust-toolchain]
version = "1.82.0"
bin_dirs = ["/store/rust/bin"]

[packages.rust-analyzer]
version = "2024-10-07"
bin_dirs = ["/store/rust-analyzer/bin"]

[packages.ra-multiplex]
version = "0.2.5"
bin_dirs = ["/store/ra-multiplex/bin"]
platforms = ["x86_64-linux", "aarch64-linux"]

[packages.openssl]
version = "3.3.2"
bin_dirs = ["/store/openssl/bin"]
env = { OPENSSL_DIR = "/store/openssl" }

[packages.openssl.variants.aarch64-darwin]
version = "3.3.1"
env = { OPENSSL_NO_VENDOR = "1" }
"""

RUST_OVERLAY = """
[packages."rust-bin.beta.latest.default"]
version = "1.83.0-beta.3"
bin_dirs = ["/store/rust-beta/bin"]
env = { RUST_SRC_PATH = "/store/rust-beta/lib/rustlib/src" }
shell_hook = "rustc --version"
"""


class StaticFetcher:
    """Fetcher for ``fake:<name>`` locators backed by local directories."""

    def __init__(self, trees: Mapping[str, Path], revisions: Mapping[str, str] | None = None) -> None:
        self._trees = dict(trees)
        self._revisions = dict(revisions or {})
        self._lock = threading.Lock()
        self.calls: list[str] = []

    def supports(self, locator: str) -> bool:
        return locator.startswith("fake:")

    def fetch(self, ref: InputRef) -> Snapshot:
        with self._lock:
            self.calls.append(ref.name)
        key = ref.locator.removeprefix("fake:")
        if key not in self._trees:
            raise UnresolvableInputError(ref.name, ref.locator, "unreachable")
        revision = self._revisions.get(key, "main")
        if ref.pinned_revision is not None and ref.pinned_revision != revision:
            raise UnresolvableInputError(ref.name, ref.locator, f"revision '{ref.pinned_revision}' does not exist")
        tree = self._trees[key]
        return Snapshot(
            name=ref.name,
            locator=ref.locator,
            revision=revision,
            digest=compute_tree_digest(tree),
            path=tree,
        )


def write_tree(root: Path, files: Mapping[str, str]) -> Path:
    """Write ``files`` below ``root`` and return ``root``."""

    root.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(textwrap.dedent(content), encoding="utf-8")
    return root


@pytest.fixture
def nixpkgs_dir(tmp_path: Path) -> Path:
    return write_tree(tmp_path / "nixpkgs", {"packages.toml": NIXPKGS_PACKAGES})


@pytest.fixture
def rust_overlay_dir(tmp_path: Path) -> Path:
    return write_tree(tmp_path / "rust-overlay", {"overlay.toml": RUST_OVERLAY})


@pytest.fixture
def static_fetcher(nixpkgs_dir: Path, rust_overlay_dir: Path) -> StaticFetcher:
    return StaticFetcher(
        {"nixpkgs": nixpkgs_dir, "rust-overlay": rust_overlay_dir},
        revisions={"nixpkgs": "abc123", "rust-overlay": "def456"},
    )


@pytest.fixture
def write_manifest(tmp_path: Path) -> Callable[[str], Path]:
    """Return a helper writing ``pinenv.toml`` into a project directory."""

    def _write(content: str) -> Path:
        project = tmp_path / "project"
        project.mkdir(exist_ok=True)
        path = project / "pinenv.toml"
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write
