#!/usr/bin/env python3
"""Entry point for pkgstage."""

from __future__ import annotations

import argparse
import logging
import os
import shlex
from pathlib import Path
from typing import Optional

from .builder import BuildTool, PackageBuilder, cargo_tool
from .descriptor import DESCRIPTOR_2048A, describe, render_pkgbuild
from .utils import PkgStageError, ValidationError, setup_logging


def _resolve_tool(args: argparse.Namespace) -> BuildTool:
    tool = cargo_tool(DESCRIPTOR_2048A.name)
    if args.build_command:
        command = shlex.split(args.build_command)
        if not command:
            raise ValidationError("--build-command must not be empty")
        tool.command = command
    if args.artifact:
        tool.artifact = Path(args.artifact)
    return tool


def _resolve_dir(value: Optional[str], env_name: str, fallback: Optional[Path] = None) -> Path:
    raw = value or os.environ.get(env_name)
    if raw:
        return Path(raw).expanduser()
    if fallback is not None:
        return fallback
    raise ValidationError(f"--{env_name} is required when ${env_name} is not set")


def run_phase(args: argparse.Namespace) -> int:
    """Run the build and/or package phase selected on the command line."""
    logger = setup_logging("pkgstage.cli", logging.DEBUG if args.verbose else logging.INFO)
    stages = {"build", "package"} if args.command == "all" else {args.command}
    phase = args.command

    try:
        builder = PackageBuilder(DESCRIPTOR_2048A, _resolve_tool(args), logger)
        srcdir = _resolve_dir(args.srcdir, "srcdir", fallback=Path.cwd())
        # Resolved before the build step runs.
        pkgdir = _resolve_dir(args.pkgdir, "pkgdir") if "package" in stages else None

        if "build" in stages:
            phase = "build"
            artifact = builder.build(srcdir, log_callback=lambda line: print(line))
            print(f"Build finished: {artifact}")

        if pkgdir is not None:
            phase = "package"
            result = builder.package(srcdir, pkgdir, log_callback=lambda line: print(line))
            print(f"Staged: {result.destination} ({result.size} bytes, mode {result.mode:o})")

    except PkgStageError as exc:
        logger.error("%s failed: %s", phase, exc)
        print(f"Error: {phase} failed: {exc}")
        return 2

    return 0


def run_info() -> int:
    for line in describe(DESCRIPTOR_2048A):
        print(line)
    return 0


def run_pkgbuild(args: argparse.Namespace) -> int:
    """Render the descriptor as a PKGBUILD to stdout or a file."""
    try:
        text = render_pkgbuild(DESCRIPTOR_2048A, _resolve_tool(args))
    except PkgStageError as exc:
        print(f"Error: {exc}")
        return 2

    if args.output:
        Path(args.output).expanduser().write_text(text, encoding="utf-8")
        print(f"Wrote {args.output}")
    else:
        print(text, end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build command-line parser."""
    parser = argparse.ArgumentParser(
        prog="pkgstage",
        description=f"Build {DESCRIPTOR_2048A.name} and stage it for packaging.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    tool_options = argparse.ArgumentParser(add_help=False)
    tool_options.add_argument("--build-command", help="Override the release build command")
    tool_options.add_argument("--artifact", help="Override the build output path")

    dir_options = argparse.ArgumentParser(add_help=False)
    dir_options.add_argument("--srcdir", help="Source checkout (default: $srcdir or cwd)")

    pkgdir_options = argparse.ArgumentParser(add_help=False)
    pkgdir_options.add_argument("--pkgdir", help="Staging root (default: $pkgdir)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser(
        "build", parents=[tool_options, dir_options], help="Compile in release mode"
    )
    subparsers.add_parser(
        "package",
        parents=[tool_options, dir_options, pkgdir_options],
        help="Copy the executable into the staging tree",
    )
    subparsers.add_parser(
        "all",
        parents=[tool_options, dir_options, pkgdir_options],
        help="Build, then package",
    )
    subparsers.add_parser("info", help="Show package metadata")
    pkgbuild = subparsers.add_parser("pkgbuild", parents=[tool_options], help="Render a PKGBUILD")
    pkgbuild.add_argument("-o", "--output", help="Write to a file instead of stdout")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Program entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "info":
        return run_info()
    if args.command == "pkgbuild":
        return run_pkgbuild(args)
    return run_phase(args)


if __name__ == "__main__":
    raise SystemExit(main())
