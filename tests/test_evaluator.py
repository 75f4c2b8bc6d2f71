# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for environment descriptor evaluation."""

from __future__ import annotations

import pytest

from pinenv.errors import ManifestError, UnknownPackageError
from pinenv.evaluator import evaluate
from pinenv.models import PackageDefinition
from pinenv.package_set import PackageSet


@pytest.fixture
def package_set() -> PackageSet:
    return PackageSet("x86_64-linux").with_changes(
        {
            "rust-toolchain": PackageDefinition(
                name="rust-toolchain",
                version="1.82.0",
                bin_dirs=("/store/rust/bin", "/store/shared/bin"),
                env={"RUSTUP_TOOLCHAIN": "stable", "CARGO_HOME": "/cache/cargo"},
                shell_hook="echo rust",
            ),
            "foo": PackageDefinition(
                name="foo",
                version="1.0",
                bin_dirs=("/store/foo/bin", "/store/shared/bin"),
                env={"CARGO_HOME": "/cache/foo"},
            ),
            "bar-tools": PackageDefinition(name="bar-tools"),
        },
    )


def test_evaluate_preserves_request_order(package_set: PackageSet) -> None:
    descriptor = evaluate(package_set, ["foo", "rust-toolchain"])

    assert descriptor.platform == "x86_64-linux"
    assert descriptor.package_names == ("foo", "rust-toolchain")
    assert descriptor.packages[0].version == "1.0"


def test_evaluate_collapses_repeated_requests(package_set: PackageSet) -> None:
    descriptor = evaluate(package_set, ["foo", "rust-toolchain", "foo"])

    assert descriptor.package_names == ("foo", "rust-toolchain")


def test_activation_metadata_is_derived_from_packages(package_set: PackageSet) -> None:
    descriptor = evaluate(
        package_set,
        ["rust-toolchain", "foo"],
        shell="dev",
        env={"RUSTUP_TOOLCHAIN": "beta"},
        shell_hook="echo ready",
    )

    activation = descriptor.activation
    assert activation.path == ("/store/rust/bin", "/store/shared/bin", "/store/foo/bin")
    assert activation.env == {"RUSTUP_TOOLCHAIN": "beta", "CARGO_HOME": "/cache/foo"}
    assert activation.shell_hook == "echo rust\necho ready"
    assert descriptor.shell == "dev"


def test_unknown_packages_fail_without_partial_result(package_set: PackageSet) -> None:
    with pytest.raises(UnknownPackageError) as excinfo:
        evaluate(package_set, ["rust-toolchain", "bar", "baz"])

    assert excinfo.value.name == "bar"
    assert excinfo.value.names == ("bar", "baz")
    assert excinfo.value.platform == "x86_64-linux"
    assert "bar, baz" in str(excinfo.value)


def test_evaluate_does_not_mutate_package_set(package_set: PackageSet) -> None:
    before = package_set.fingerprint()

    evaluate(package_set, ["foo"], env={"EXTRA": "1"})

    assert package_set.fingerprint() == before
    assert "EXTRA" not in package_set["foo"].env


def test_malformed_overlay_values_are_reported_on_use(package_set: PackageSet) -> None:
    broken = package_set.with_changes({"weird": "not-a-package"})

    assert evaluate(broken, ["foo"]).package_names == ("foo",)
    with pytest.raises(ManifestError, match="weird"):
        evaluate(broken, ["weird"])


def test_repeated_evaluation_is_byte_identical(package_set: PackageSet) -> None:
    first = evaluate(package_set, ["rust-toolchain", "foo"])
    second = evaluate(package_set, ["rust-toolchain", "foo"])

    assert first.to_payload() == second.to_payload()
    assert first.digest() == second.digest()


def test_empty_request_yields_empty_environment(package_set: PackageSet) -> None:
    descriptor = evaluate(package_set, [])

    assert descriptor.packages == ()
    assert descriptor.activation.path == ()


def test_packages_without_bin_dirs_add_no_path_entries() -> None:
    package_set = PackageSet("x86_64-linux").with_changes(
        {
            "rust-analyzer": PackageDefinition(name="rust-analyzer", version="2024-10-07"),
            "ra-multiplex": PackageDefinition(name="ra-multiplex", version="0.2.5"),
        },
    )

    descriptor = evaluate(package_set, ["rust-analyzer", "ra-multiplex"])

    assert descriptor.package_names == ("rust-analyzer", "ra-multiplex")
    assert [package.bin_dirs for package in descriptor.packages] == [(), ()]
    assert descriptor.activation.path == ()
