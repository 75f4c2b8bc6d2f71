# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for package sets, overlay composition and per-platform instantiation."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from pinenv.errors import ManifestError, UnsupportedPlatformError
from pinenv.models import PackageDefinition, PackageVariant, Snapshot
from pinenv.overlays import PackageOverlay, compose, load_input_overlay, package_overlay
from pinenv.package_set import PackageSet, PackageSetResolver, base_package_set, parse_package_table


def _snapshot(name: str, path: Path) -> Snapshot:
    return Snapshot(name=name, locator=f"path:{path}", revision="r", digest="d", path=path)


def _definition(name: str, version: str = "1.0", **kwargs) -> PackageDefinition:
    return PackageDefinition(name=name, version=version, **kwargs)


def test_base_package_set_filters_and_specialises_per_platform(nixpkgs_dir: Path) -> None:
    snapshot = _snapshot("nixpkgs", nixpkgs_dir)

    linux = base_package_set(snapshot, "x86_64-linux")
    darwin = base_package_set(snapshot, "aarch64-darwin")

    assert "ra-multiplex" in linux
    assert "ra-multiplex" not in darwin
    assert linux["openssl"].version == "3.3.2"
    assert darwin["openssl"].version == "3.3.1"
    assert darwin["openssl"].env == {"OPENSSL_DIR": "/store/openssl", "OPENSSL_NO_VENDOR": "1"}
    assert darwin.platform == "aarch64-darwin"


def test_base_package_set_requires_package_declaration(tmp_path: Path) -> None:
    with pytest.raises(ManifestError, match="packages.toml"):
        base_package_set(_snapshot("empty", tmp_path), "x86_64-linux")


def test_parse_package_table_reports_invalid_definitions() -> None:
    with pytest.raises(ManifestError, match="invalid package 'foo'"):
        parse_package_table({"foo": {"version": "1", "colour": "red"}}, source="test")
    with pytest.raises(ManifestError, match="must be a table"):
        parse_package_table({"foo": "1.0"}, source="test")


def test_compose_applies_overlays_in_order_without_mutating_base() -> None:
    base = PackageSet("x86_64-linux").with_changes({"hello": _definition("hello")})
    add_foo = package_overlay("add-foo", {"foo": _definition("foo", "1.0")})
    bump_foo = package_overlay("bump-foo", {"foo": _definition("foo", "2.0")})

    result = compose(base, [add_foo, bump_foo])

    assert result["foo"].version == "2.0"
    assert "foo" not in base
    assert list(result) == ["hello", "foo"]


def test_overlays_observe_previous_and_base_sets() -> None:
    base = PackageSet("x86_64-linux").with_changes({"hello": _definition("hello", "1.0")})
    seen: list[tuple[str | None, str | None]] = []

    def override_hello(previous: PackageSet, original: PackageSet):
        seen.append((previous["hello"].version, original["hello"].version))
        return {"hello": previous["hello"].model_copy(update={"version": "2.0"})}

    result = compose(base, [override_hello, override_hello])

    assert seen == [("1.0", "1.0"), ("2.0", "1.0")]
    assert result["hello"].version == "2.0"


def test_overlays_can_remove_packages() -> None:
    base = PackageSet("x86_64-linux").with_changes({"hello": _definition("hello"), "foo": _definition("foo")})

    result = compose(base, [PackageOverlay(name="drop", removals=("hello",))])

    assert list(result) == ["foo"]


def test_compose_is_deterministic(nixpkgs_dir: Path, rust_overlay_dir: Path) -> None:
    overlay = load_input_overlay(_snapshot("rust-overlay", rust_overlay_dir))

    first = compose(base_package_set(_snapshot("nixpkgs", nixpkgs_dir), "x86_64-linux"), [overlay])
    second = compose(base_package_set(_snapshot("nixpkgs", nixpkgs_dir), "x86_64-linux"), [overlay])

    assert first is not second
    assert first.fingerprint() == second.fingerprint()
    assert dict(first) == dict(second)


def test_overlay_definitions_are_specialised_for_the_platform() -> None:
    base = PackageSet("x86_64-darwin")
    overlay = package_overlay(
        "tools",
        {
            "linux-only": _definition("linux-only", platforms=("x86_64-linux",)),
            "tuned": _definition("tuned", variants={"x86_64-darwin": PackageVariant(version="9.9")}),
        },
    )

    result = compose(base, [overlay])

    assert "linux-only" not in result
    assert result["tuned"].version == "9.9"


def test_input_overlay_without_document_contributes_nothing(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    overlay = load_input_overlay(_snapshot("empty", tmp_path))

    assert overlay(PackageSet("x86_64-linux"), PackageSet("x86_64-linux")) == {}
    assert "overlay.toml" in caplog.text


def test_input_overlay_reads_removals(tmp_path: Path) -> None:
    (tmp_path / "overlay.toml").write_text('remove = ["openssl"]\n', encoding="utf-8")

    overlay = load_input_overlay(_snapshot("slim", tmp_path))

    assert overlay.removals == ("openssl",)


def test_resolver_rejects_unsupported_platforms() -> None:
    resolver = PackageSetResolver(["x86_64-linux"])

    with pytest.raises(UnsupportedPlatformError) as excinfo:
        resolver.instantiate("riscv64-windows", PackageSet)

    assert excinfo.value.platform == "riscv64-windows"
    assert excinfo.value.supported == ("x86_64-linux",)


def test_resolver_caches_one_set_per_platform() -> None:
    calls: list[str] = []
    lock = threading.Lock()

    def factory(platform: str) -> PackageSet:
        with lock:
            calls.append(platform)
        return PackageSet(platform)

    resolver = PackageSetResolver(["x86_64-linux", "aarch64-darwin"])
    results: list[PackageSet] = []
    threads = [threading.Thread(target=lambda: results.append(resolver.instantiate("x86_64-linux", factory))) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    darwin = resolver.instantiate("aarch64-darwin", factory)

    assert sorted(calls) == ["aarch64-darwin", "x86_64-linux"]
    assert all(result is results[0] for result in results)
    assert darwin.platform == "aarch64-darwin"


def test_relative_bin_dirs_are_anchored_at_the_snapshot(tmp_path: Path) -> None:
    root = tmp_path / "vendor"
    root.mkdir()
    (root / "packages.toml").write_text(
        '[packages.rust-analyzer]\nbin_dirs = ["rust-analyzer/bin", "/opt/shared/bin"]\n'
        '[packages.rust-analyzer.variants.aarch64-darwin]\nbin_dirs = ["rust-analyzer/darwin/bin"]\n'
        "[packages.ra-multiplex]\n"
        'version = "0.2.5"\n',
        encoding="utf-8",
    )
    (root / "overlay.toml").write_text('[packages.ra-multiplex]\nbin_dirs = ["ra-multiplex/bin"]\n', encoding="utf-8")
    snapshot = _snapshot("vendor", root)

    linux = base_package_set(snapshot, "x86_64-linux")
    darwin = base_package_set(snapshot, "aarch64-darwin")
    overlaid = compose(linux, [load_input_overlay(snapshot)])

    assert linux["rust-analyzer"].bin_dirs == (str(root / "rust-analyzer" / "bin"), "/opt/shared/bin")
    assert darwin["rust-analyzer"].bin_dirs == (str(root / "rust-analyzer" / "darwin" / "bin"),)
    assert linux["ra-multiplex"].bin_dirs == ()
    assert overlaid["ra-multiplex"].bin_dirs == (str(root / "ra-multiplex" / "bin"),)
