"""
Cross-platform utilities for RoboUI.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.

robocopy itself only exists on Windows, but presets, parsing and the
supervisor run anywhere (useful for tests and for driving robocopy
replacements on other systems).
"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Any

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\RoboUI``
    - macOS   : ``~/Library/Application Support/RoboUI``
    - Linux   : ``$XDG_CONFIG_HOME/RoboUI`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / "RoboUI"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the application log file (inside the config directory)."""
    return get_config_dir() / "roboui.log"


def get_presets_path() -> Path:
    """Return the default path of the saved job presets."""
    return get_config_dir() / "jobs.json"


def get_default_robocopy_log_path() -> Path:
    """Return a sensible default for robocopy's own ``/LOG`` file.

    Lives in ``Documents/RoboUI Logs``; the folder is created if needed.
    """
    log_dir = Path.home() / "Documents" / "RoboUI Logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "robocopy-log.txt"


# ---- process spawning ---------------------------------------------------


def no_window_popen_kwargs() -> dict[str, Any]:
    """Extra ``Popen`` keyword arguments that keep child consoles hidden.

    On Windows a console program started from a GUI would otherwise flash
    its own window; elsewhere there is nothing to suppress.
    """
    if IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NO_WINDOW}  # type: ignore[attr-defined]
    return {}
