"""Configuration management for RoboUI.

Stores and retrieves application settings from a JSON config file
in the platform-appropriate application data directory.  Job presets
live in their own file (see :mod:`robo_ui.presets`).
"""

import json
import logging
from pathlib import Path
from typing import Any

from robo_ui.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from robo_ui.platform_utils import (
    get_log_path as _platform_log_path,
)
from robo_ui.platform_utils import (
    get_presets_path as _platform_presets_path,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "robocopy_path": "robocopy",  # robocopy.exe lives in System32, normally on PATH
    "output_encoding": "",  # blank = locale default
    "presets_path": "",  # blank = jobs.json in the config directory
    # ---- output display ----
    "flush_interval_ms": 200,  # how often queued lines are handed to the display
    "max_lines_per_flush": 200,  # batch size per flush
    # ---- cancellation ----
    "cancel_join_timeout_seconds": 5,  # bound on waiting for readers after cancel
    # ---- logging ----
    "log_level": "INFO",
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


class Config:
    """Application settings backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                if not isinstance(stored, dict):
                    raise ValueError("top-level JSON value is not an object")
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (ValueError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    # ---- accessors ----

    @property
    def robocopy_path(self) -> str:
        """Return the robocopy executable (name on PATH or full path)."""
        return self._data.get("robocopy_path") or "robocopy"

    @robocopy_path.setter
    def robocopy_path(self, value: str) -> None:
        """Set the robocopy executable; blank restores the default."""
        self._data["robocopy_path"] = value.strip() or "robocopy"

    @property
    def output_encoding(self) -> str | None:
        """Return the encoding used to decode robocopy output (None = locale)."""
        return self._data.get("output_encoding") or None

    @output_encoding.setter
    def output_encoding(self, value: str) -> None:
        self._data["output_encoding"] = value.strip()

    @property
    def presets_path(self) -> Path:
        """Return the path of the job presets file."""
        custom = self._data.get("presets_path") or ""
        return Path(custom) if custom else _platform_presets_path()

    @presets_path.setter
    def presets_path(self, value: str) -> None:
        self._data["presets_path"] = value.strip()

    # ---- output display ----

    @property
    def flush_interval_ms(self) -> int:
        """Return the display flush interval in milliseconds."""
        return max(10, int(self._data.get("flush_interval_ms", 200)))

    @flush_interval_ms.setter
    def flush_interval_ms(self, value: int) -> None:
        """Set the display flush interval (minimum 10 ms)."""
        self._data["flush_interval_ms"] = max(10, int(value))

    @property
    def max_lines_per_flush(self) -> int:
        """Return the maximum number of lines handed to the display per flush."""
        return max(1, int(self._data.get("max_lines_per_flush", 200)))

    @max_lines_per_flush.setter
    def max_lines_per_flush(self, value: int) -> None:
        """Set the flush batch size (minimum 1)."""
        self._data["max_lines_per_flush"] = max(1, int(value))

    # ---- cancellation ----

    @property
    def cancel_join_timeout(self) -> float:
        """Return seconds to wait for output readers after a cancel."""
        return float(self._data.get("cancel_join_timeout_seconds", 5))

    @cancel_join_timeout.setter
    def cancel_join_timeout(self, value: float) -> None:
        self._data["cancel_join_timeout_seconds"] = max(0.0, float(value))

    # ---- logging ----

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        """Set the logging level name."""
        self._data["log_level"] = value

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        """Set the number of rotated log backups to keep."""
        self._data["log_backup_count"] = max(0, int(value))
