#!/usr/bin/env python3
"""Utility helpers for pkgstage."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional

LogCallback = Optional[Callable[[str], None]]
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ANSI_ESCAPE_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~]|[\(\)][0-9A-Za-z])")
PACKAGE_NAME_RE = re.compile(r"^[a-z0-9@_+][a-z0-9@._+-]*$")
DEPENDENCY_RE = re.compile(r"^(?P<name>[^<>=\s]+)(?:(?P<op><=|>=|<|>|=)(?P<version>\S+))?$")


class PkgStageError(Exception):
    """Base exception for all pkgstage errors."""


class ValidationError(PkgStageError):
    """Raised when descriptor metadata or user input is invalid."""


class CommandExecutionError(PkgStageError):
    """Raised when a subprocess returns a non-zero exit status."""


class BuildError(PkgStageError):
    """Raised when the build toolchain is missing or compilation fails."""


class MissingArtifactError(PkgStageError):
    """Raised when the build did not leave the expected executable behind."""


class StagingError(PkgStageError):
    """Raised when the artifact cannot be placed into the staging tree."""


def setup_logging(name: str = "pkgstage", level: int = logging.INFO) -> logging.Logger:
    """Return a logger with a single stderr handler attached.

    Calling it again reuses the handler but applies the new level, so a
    later `--verbose` still takes effect.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


def command_exists(binary: str, cwd: Optional[Path] = None) -> bool:
    """Return True if `binary` can be executed.

    Bare names are looked up in PATH. Relative paths such as `./build.sh`
    are resolved against `cwd`, where the command will actually run.
    """
    candidate = Path(binary).expanduser()
    if os.sep in binary and not candidate.is_absolute() and cwd is not None:
        candidate = Path(cwd) / candidate
        return candidate.is_file() and os.access(candidate, os.X_OK)
    return shutil.which(str(candidate)) is not None


def is_valid_package_name(name: str) -> bool:
    """Check a name against Arch `pkgname` rules."""
    return bool(name) and PACKAGE_NAME_RE.match(name) is not None


def is_valid_pkgver(version: str) -> bool:
    """Check a version against Arch `pkgver` rules.

    Arch `pkgver` must not contain hyphens, colons, slashes, or whitespace.
    """
    if not version:
        return False
    return re.search(r"[-:/\s]", version) is None


def split_dependency(entry: str) -> tuple[str, str, str]:
    """Split `name>=1.2` into (name, operator, version).

    Raises ValidationError when the entry is not a well-formed dependency.
    """
    match = DEPENDENCY_RE.match(entry.strip())
    if match is None or not is_valid_package_name(match.group("name")):
        raise ValidationError(f"Malformed dependency entry: {entry!r}")
    return match.group("name"), match.group("op") or "", match.group("version") or ""


def strip_ansi_escapes(text: str) -> str:
    """Remove ANSI terminal escape codes from a log line."""
    return ANSI_ESCAPE_RE.sub("", text)


def run_command(
    cmd: list[str],
    logger: logging.Logger,
    cwd: Optional[Path] = None,
    env: Optional[dict[str, str]] = None,
    log_callback: LogCallback = None,
    check: bool = True,
    label: str = "",
) -> tuple[int, list[str]]:
    """Run a command, streaming merged stdout/stderr to the logger.

    Returns the exit status and the ANSI-stripped output lines. The child is
    killed if the caller is interrupted while it runs.
    """
    tag = f"[{label}] " if label else ""
    logger.debug("%sRunning command: %s", tag, " ".join(cmd))

    output_lines: list[str] = []
    with subprocess.Popen(
        cmd,
        cwd=str(cwd) if cwd else None,
        env={**os.environ, **(env or {})},
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        bufsize=1,
    ) as process:
        try:
            for line in process.stdout:
                stripped = strip_ansi_escapes(line.rstrip("\n")).strip()
                output_lines.append(stripped)
                if not stripped:
                    continue
                logger.info("%s%s", tag, stripped)
                if log_callback:
                    log_callback(stripped)
        except BaseException:
            process.kill()
            raise
        returncode = process.wait()

    if check and returncode != 0:
        raise CommandExecutionError(
            f"{tag}Command failed with exit code {returncode}: {' '.join(cmd)}\n"
            + "\n".join(output_lines)
        )

    return returncode, output_lines


def format_dependency_list(items: Iterable[str]) -> str:
    """Format dependency names for readable display."""
    items = list(items)
    return ", ".join(sorted(set(items))) if items else "none"
