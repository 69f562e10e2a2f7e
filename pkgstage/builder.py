#!/usr/bin/env python3
"""Build the upstream program and stage its executable for packaging."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .descriptor import PackageDescriptor
from .utils import (
    BuildError,
    CommandExecutionError,
    MissingArtifactError,
    StagingError,
    command_exists,
    run_command,
)

STAGED_MODE = 0o755


@dataclass
class BuildTool:
    """External build tool contract: argv to run and the path it produces."""

    command: list[str]
    artifact: Path
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class StageResult:
    """Outcome of placing the executable into the staging tree."""

    source: Path
    destination: Path
    size: int
    mode: int


def cargo_tool(binary: str, env: Optional[Mapping[str, str]] = None) -> BuildTool:
    """Describe a `cargo build --release` run and where cargo leaves the binary.

    Honors CARGO_TARGET_DIR the same way cargo does.
    """
    env = os.environ if env is None else env
    target_dir = env.get("CARGO_TARGET_DIR")
    base = Path(target_dir) if target_dir else Path("target")
    return BuildTool(command=["cargo", "build", "--release"], artifact=base / "release" / binary)


class PackageBuilder:
    """Run the two packaging steps for one descriptor: build, then package."""

    def __init__(
        self,
        descriptor: PackageDescriptor,
        tool: BuildTool,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.descriptor = descriptor.validate()
        self.tool = tool
        self.logger = logger or logging.getLogger("pkgstage.builder")

    def artifact_path(self, srcdir: Path) -> Path:
        """Resolve the build tool's output path against the source checkout."""
        artifact = Path(self.tool.artifact).expanduser()
        if artifact.is_absolute():
            return artifact
        return srcdir.expanduser().resolve() / artifact

    def destination_path(self, pkgdir: Path) -> Path:
        return pkgdir.expanduser().absolute() / self.descriptor.install_path

    def build(self, srcdir: Path, log_callback=None) -> Path:
        """Compile the upstream sources in release mode.

        Returns the path where the executable is expected; its existence is
        checked by `package`.
        """
        srcdir = srcdir.expanduser().resolve()
        if not srcdir.is_dir():
            raise BuildError(f"Source directory does not exist: {srcdir}")

        if not self.tool.command:
            raise BuildError("No build command configured")

        binary = self.tool.command[0]
        if not command_exists(binary, cwd=srcdir):
            raise BuildError(f"Build tool not found: {binary}")

        self.logger.info("Building %s %s in %s", self.descriptor.name, self.descriptor.full_version, srcdir)
        if log_callback:
            log_callback(f"Running: {' '.join(self.tool.command)}")

        try:
            run_command(
                self.tool.command,
                self.logger,
                cwd=srcdir,
                env=self.tool.env,
                log_callback=log_callback,
                label="build",
            )
        except CommandExecutionError as exc:
            raise BuildError(f"Build of {self.descriptor.name} failed: {exc}") from exc
        except OSError as exc:
            raise BuildError(f"Unable to run build tool {binary}: {exc}") from exc

        return self.artifact_path(srcdir)

    def package(self, srcdir: Path, pkgdir: Path, log_callback=None) -> StageResult:
        """Copy the built executable to `<pkgdir>/usr/bin/<name>` with mode 755."""
        source = self.artifact_path(srcdir)
        if not source.is_file():
            raise MissingArtifactError(
                f"Build output not found at {source}; did the build step run?"
            )

        destination = self.destination_path(pkgdir)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StagingError(f"Unable to create {destination.parent}: {exc}") from exc

        self._install_atomically(source, destination)

        try:
            staged = destination.stat()
        except OSError as exc:
            raise StagingError(f"Unable to inspect staged file {destination}: {exc}") from exc

        self.logger.info("Staged %s -> %s (%d bytes)", source, destination, staged.st_size)
        if log_callback:
            log_callback(f"Installed /{self.descriptor.install_path}")

        return StageResult(
            source=source,
            destination=destination,
            size=staged.st_size,
            mode=stat.S_IMODE(staged.st_mode),
        )

    def run(self, srcdir: Path, pkgdir: Path, log_callback=None) -> StageResult:
        """Build, then package. Packaging never starts if the build fails."""
        self.build(srcdir, log_callback)
        return self.package(srcdir, pkgdir, log_callback)

    def _install_atomically(self, source: Path, destination: Path) -> None:
        """Write to a sibling temp file, then rename it over the destination.

        The temp file is removed on any interruption, including KeyboardInterrupt.
        """
        temp_path: Optional[Path] = None
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{destination.name}.",
                suffix=".tmp",
                dir=str(destination.parent),
            )
            temp_path = Path(temp_name)
            with os.fdopen(fd, "wb") as output, source.open("rb") as src:
                shutil.copyfileobj(src, output)
                output.flush()
                os.fsync(output.fileno())
            # mkstemp creates 0600 files; chmod is not subject to umask.
            os.chmod(temp_path, STAGED_MODE)
            os.replace(temp_path, destination)
            temp_path = None
        except OSError as exc:
            raise StagingError(f"Unable to stage {source} at {destination}: {exc}") from exc
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
