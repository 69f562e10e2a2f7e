#!/usr/bin/env python3
"""Package descriptor metadata and its PKGBUILD rendering."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .utils import (
    ValidationError,
    format_dependency_list,
    is_valid_package_name,
    is_valid_pkgver,
    split_dependency,
)

if TYPE_CHECKING:
    from .builder import BuildTool

SUPPORTED_ARCHITECTURES = ("any", "x86_64", "i686", "aarch64", "armv7h")


@dataclass(frozen=True)
class PackageDescriptor:
    """Static metadata consumed by the package manager."""

    name: str
    version: str
    release: int
    description: str
    arch: tuple[str, ...]
    url: str
    license: tuple[str, ...]
    depends: tuple[str, ...] = ()
    makedepends: tuple[str, ...] = ()
    provides: tuple[str, ...] = ()
    conflicts: tuple[str, ...] = ()

    @property
    def full_version(self) -> str:
        return f"{self.version}-{self.release}"

    @property
    def install_path(self) -> str:
        """Path of the executable inside the staging tree."""
        return f"usr/bin/{self.name}"

    def validate(self) -> "PackageDescriptor":
        """Check the metadata against Arch packaging rules and return self."""
        if not is_valid_package_name(self.name):
            raise ValidationError(f"Invalid package name: {self.name!r}")

        if not is_valid_pkgver(self.version):
            raise ValidationError(f"Invalid package version: {self.version!r}")

        if isinstance(self.release, bool) or not isinstance(self.release, int) or self.release < 1:
            raise ValidationError(f"Release must be a positive integer, got {self.release!r}")

        if not self.arch:
            raise ValidationError("At least one architecture is required")
        unknown = [item for item in self.arch if item not in SUPPORTED_ARCHITECTURES]
        if unknown:
            raise ValidationError(f"Unsupported architecture(s): {', '.join(unknown)}")
        if "any" in self.arch and len(self.arch) > 1:
            raise ValidationError("'any' cannot be combined with other architectures")

        for field_name in ("depends", "makedepends", "provides", "conflicts"):
            for entry in getattr(self, field_name):
                split_dependency(entry)

        return self


DESCRIPTOR_2048A = PackageDescriptor(
    name="2048a",
    version="0.1.0",
    release=1,
    description="2048 game for the terminal",
    arch=("x86_64", "i686"),
    url="https://rosettacode.org/wiki/2048",
    license=("MIT",),
    depends=(),
    makedepends=("cargo",),
    provides=(),
    conflicts=(),
)


def _quoted(value: str) -> str:
    escaped = value.replace("'", "'\\''")
    return f"'{escaped}'"


def _array(values: tuple[str, ...]) -> str:
    return "(" + " ".join(_quoted(value) for value in values) + ")"


def describe(descriptor: PackageDescriptor) -> list[str]:
    """Summarize a descriptor as `Label: value` lines."""
    return [
        f"Package: {descriptor.name}",
        f"Version: {descriptor.full_version}",
        f"Description: {descriptor.description}",
        f"Architecture: {' '.join(descriptor.arch)}",
        f"URL: {descriptor.url}",
        f"License: {' '.join(descriptor.license)}",
        f"Dependencies: {format_dependency_list(descriptor.depends)}",
        f"Build dependencies: {format_dependency_list(descriptor.makedepends)}",
        f"Provides: {format_dependency_list(descriptor.provides)}",
        f"Conflicts: {format_dependency_list(descriptor.conflicts)}",
    ]


def render_pkgbuild(descriptor: PackageDescriptor, tool: "BuildTool") -> str:
    """Create a makepkg PKGBUILD equivalent to the build and package steps."""
    descriptor.validate()

    build_cmd = " ".join(shlex.quote(part) for part in tool.command)
    artifact = shlex.quote(str(tool.artifact))

    return f"""# Maintainer: pkgstage
pkgname={_quoted(descriptor.name)}
pkgver={_quoted(descriptor.version)}
pkgrel={descriptor.release}
pkgdesc={_quoted(descriptor.description)}
arch={_array(descriptor.arch)}
url={_quoted(descriptor.url)}
license={_array(descriptor.license)}
depends={_array(descriptor.depends)}
makedepends={_array(descriptor.makedepends)}
provides={_array(descriptor.provides)}
conflicts={_array(descriptor.conflicts)}

build() {{
    {build_cmd}
}}

package() {{
    install -Dm755 {artifact} "$pkgdir/{descriptor.install_path}"
}}
"""
