"""Shared fixtures: a stand-in release build tool and scratch directories."""

import logging
import sys
from pathlib import Path

import pytest

from pkgstage.builder import BuildTool

STAND_IN_TOOL = '''\
import sys
from pathlib import Path

mode = sys.argv[1]
if "--release" not in sys.argv[2:]:
    print("stand-in tool expects --release")
    sys.exit(64)
if mode == "fail":
    print("error: could not compile `2048a`")
    sys.exit(101)
if mode == "ok":
    output = Path("target/release/2048a")
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(b"BINARY")
print("Finished release target(s)")
'''


@pytest.fixture
def stand_in_script(tmp_path):
    script = tmp_path / "fake_cargo.py"
    script.write_text(STAND_IN_TOOL, encoding="utf-8")
    return script


@pytest.fixture
def make_tool(stand_in_script):
    """Return a factory for stand-in tools: mode is 'ok', 'fail' or 'silent'."""

    def factory(mode="ok"):
        return BuildTool(
            command=[sys.executable, str(stand_in_script), mode, "--release"],
            artifact=Path("target/release/2048a"),
        )

    return factory


@pytest.fixture
def srcdir(tmp_path):
    path = tmp_path / "src"
    path.mkdir()
    return path


@pytest.fixture
def pkgdir(tmp_path):
    return tmp_path / "pkg"


@pytest.fixture(autouse=True)
def reset_cli_logger():
    yield
    logger = logging.getLogger("pkgstage.cli")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
