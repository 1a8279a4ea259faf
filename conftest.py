"""Shared pytest fixtures for RoboUI."""

import json
import stat
import sys
import textwrap

import pytest

from robo_ui.config import Config
from robo_ui.presets import PresetStore
from robo_ui.runner import Invocation

FAKE_REPORT = """\
------------------------------------------------------------------------------

               Total    Copied   Skipped  Mismatch    FAILED    Extras
    Dirs :        10         3         7         0         0         2
   Files :       120        47        73         0         0         0
   Bytes :   123.45 m    67.89 m         0         0         0         0
   Times :   0:00:12   0:00:03                       0:00:00   0:00:09

   Ended : Monday, 19 October 2026 10:15:00
"""

FAKE_ROBOCOPY = '''\
import sys
import time

src, dst = sys.argv[1], sys.argv[2]
print("-" * 78)
print("   ROBOCOPY     ::     Robust File Copy for Windows")
print("-" * 78)
print(f"  Source : {src}")
print(f"    Dest : {dst}")
print(f" Options : {' '.join(sys.argv[3:])}", flush=True)
if src.endswith("slow"):
    print("waiting", flush=True)
    time.sleep(60)
if src.endswith("broken"):
    print("ERROR 5 (0x00000005) Accessing Source Directory", file=sys.stderr, flush=True)
    sys.exit(16)
print(REPORT, flush=True)
sys.exit(1)
'''


@pytest.fixture(autouse=True)
def isolated_home(tmp_path_factory, monkeypatch):
    """Keep config dirs, logs and Documents out of the real home directory."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.setenv("APPDATA", str(home / "AppData"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    return home


@pytest.fixture
def python_invocation():
    """Build an Invocation that runs *script* with the current interpreter."""

    def make(script: str, *args: str) -> Invocation:
        return Invocation(sys.executable, ("-c", textwrap.dedent(script), *args))

    return make


@pytest.fixture
def fake_robocopy(tmp_path):
    """An executable stand-in for robocopy.

    Prints a banner and the report table and exits 1 ("Files copied").
    A source ending in ``slow`` blocks for a minute; one ending in
    ``broken`` writes to stderr and exits 16.
    """
    if sys.platform == "win32":
        pytest.skip("fake robocopy relies on a shebang script")
    script = tmp_path / "robocopy"
    body = FAKE_ROBOCOPY.replace("print(REPORT", f"print({FAKE_REPORT!r}")
    script.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def config(tmp_path, fake_robocopy):
    """A Config in tmp_path that runs the fake robocopy."""
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "robocopy_path": str(fake_robocopy),
                "presets_path": str(tmp_path / "jobs.json"),
                "flush_interval_ms": 20,
                "cancel_join_timeout_seconds": 2,
            }
        ),
        encoding="utf-8",
    )
    return Config(path)


@pytest.fixture
def store(tmp_path):
    return PresetStore(tmp_path / "jobs.json")
