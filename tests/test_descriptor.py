"""Tests for descriptor validation and rendering."""

import dataclasses
from pathlib import Path

import pytest

from pkgstage.builder import BuildTool
from pkgstage.descriptor import DESCRIPTOR_2048A, describe, render_pkgbuild
from pkgstage.utils import ValidationError


@pytest.fixture
def cargo():
    return BuildTool(command=["cargo", "build", "--release"], artifact=Path("target/release/2048a"))


class TestDescriptor:
    def test_shipped_descriptor_is_valid(self):
        assert DESCRIPTOR_2048A.validate() is DESCRIPTOR_2048A

    def test_shipped_metadata(self):
        assert DESCRIPTOR_2048A.full_version == "0.1.0-1"
        assert DESCRIPTOR_2048A.install_path == "usr/bin/2048a"
        assert DESCRIPTOR_2048A.depends == ()
        assert DESCRIPTOR_2048A.makedepends == ("cargo",)
        assert DESCRIPTOR_2048A.provides == ()
        assert DESCRIPTOR_2048A.conflicts == ()

    def test_is_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DESCRIPTOR_2048A.version = "0.2.0"

    @pytest.mark.parametrize(
        "changes",
        [
            {"name": ""},
            {"name": "-2048a"},
            {"name": "Game2048"},
            {"version": "0.1.0-beta"},
            {"version": "1:0.1.0"},
            {"version": ""},
            {"release": 0},
            {"release": True},
            {"arch": ()},
            {"arch": ("sparc",)},
            {"arch": ("any", "x86_64")},
            {"makedepends": ("cargo >= 1.70",)},
            {"conflicts": ("",)},
        ],
    )
    def test_rejects_invalid_metadata(self, changes):
        with pytest.raises(ValidationError):
            dataclasses.replace(DESCRIPTOR_2048A, **changes).validate()

    def test_accepts_versioned_dependencies(self):
        descriptor = dataclasses.replace(
            DESCRIPTOR_2048A, makedepends=("cargo>=1.70",), provides=("2048=0.1.0",)
        )
        assert descriptor.validate() is descriptor


class TestDescribe:
    def test_summary_lines(self):
        lines = describe(DESCRIPTOR_2048A)

        assert "Package: 2048a" in lines
        assert "Version: 0.1.0-1" in lines
        assert "Architecture: x86_64 i686" in lines
        assert "Dependencies: none" in lines
        assert "Build dependencies: cargo" in lines


class TestRenderPkgbuild:
    def test_metadata_fields(self, cargo):
        text = render_pkgbuild(DESCRIPTOR_2048A, cargo)

        assert "pkgname='2048a'" in text
        assert "pkgver='0.1.0'" in text
        assert "pkgrel=1" in text
        assert "arch=('x86_64' 'i686')" in text
        assert "license=('MIT')" in text
        assert "depends=()" in text
        assert "makedepends=('cargo')" in text
        assert "conflicts=()" in text

    def test_build_and_package_functions(self, cargo):
        text = render_pkgbuild(DESCRIPTOR_2048A, cargo)

        assert "build() {\n    cargo build --release\n}" in text
        assert 'install -Dm755 target/release/2048a "$pkgdir/usr/bin/2048a"' in text

    def test_quotes_single_quotes(self, cargo):
        descriptor = dataclasses.replace(DESCRIPTOR_2048A, description="Bob's 2048")
        text = render_pkgbuild(descriptor, cargo)

        assert "pkgdesc='Bob'\\''s 2048'" in text

    def test_refuses_invalid_descriptor(self, cargo):
        with pytest.raises(ValidationError):
            render_pkgbuild(dataclasses.replace(DESCRIPTOR_2048A, release=0), cargo)
