"""Saved job presets for RoboUI.

A preset captures everything needed to rebuild a robocopy command line:
source, destination and the option switches.  Presets are stored together
as an indented JSON list; saving always rewrites the whole collection.
"""

import json
import logging
import threading
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 1
DEFAULT_WAIT_SECONDS = 1
DEFAULT_THREADS = 8


@dataclass
class JobPreset:
    """A named robocopy job."""
    name: str = "New Job"
    source: str = ""
    destination: str = ""
    # ---- mode switches ----
    copy_subdirs: bool = True  # /E
    mirror: bool = False  # /MIR, wins over /E
    dry_run: bool = False  # /L
    # ---- retry / threads ----
    retries: int = DEFAULT_RETRIES  # /R:n
    wait_seconds: int = DEFAULT_WAIT_SECONDS  # /W:n
    threads: int = DEFAULT_THREADS  # /MT:n
    # ---- output ----
    no_progress: bool = True  # /NP
    tee: bool = True  # /TEE
    log_to_file: bool = False
    log_path: str = ""
    append_log: bool = False  # /LOG+: instead of /LOG:
    last_run: datetime | None = None

    @property
    def display_name(self) -> str:
        """Name plus last-run stamp, as shown in preset lists."""
        if self.last_run is None:
            return self.name
        return f"{self.name}  (Last: {self.last_run:%Y-%m-%d %H:%M})"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_run"] = self.last_run.isoformat() if self.last_run else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobPreset":
        """Build a preset from stored JSON, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        last_run = values.get("last_run")
        if isinstance(last_run, str):
            try:
                values["last_run"] = datetime.fromisoformat(last_run)
            except ValueError:
                logger.warning("Ignoring bad last_run %r for preset %r", last_run, data.get("name"))
                values["last_run"] = None
        elif last_run is not None:
            values["last_run"] = None
        return cls(**values)


class PresetStore:
    """Load/save job presets from a JSON file.

    Parameters
    ----------
    path : Path
        The JSON file.  A missing file simply means "no presets yet".
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> list[JobPreset]:
        """Return all presets sorted by name (empty if the file is absent)."""
        with self._lock:
            return self._load()

    def save(self, presets: list[JobPreset]) -> None:
        """Overwrite the stored collection with *presets*."""
        with self._lock:
            self._save(presets)

    # ---- convenience ----

    def get(self, name: str) -> JobPreset | None:
        """Return the preset called *name* (case-insensitive), if any."""
        key = name.casefold()
        for preset in self.load():
            if preset.name.casefold() == key:
                return preset
        return None

    def upsert(self, preset: JobPreset) -> None:
        """Add *preset*, replacing any preset with the same name."""
        with self._lock:
            presets = self._load()
            key = preset.name.casefold()
            for idx, existing in enumerate(presets):
                if existing.name.casefold() == key:
                    presets[idx] = preset
                    break
            else:
                presets.append(preset)
            self._save(presets)
        logger.info("Saved job preset %r", preset.name)

    def delete(self, name: str) -> bool:
        """Remove the preset called *name*; return False if there was none."""
        key = name.casefold()
        with self._lock:
            presets = self._load()
            kept = [p for p in presets if p.name.casefold() != key]
            if len(kept) == len(presets):
                return False
            self._save(kept)
        logger.info("Deleted job preset %r", name)
        return True

    def touch_last_run(self, name: str, when: datetime | None = None) -> bool:
        """Record *when* (default: now) as the last run of preset *name*."""
        key = name.casefold()
        with self._lock:
            presets = self._load()
            for preset in presets:
                if preset.name.casefold() == key:
                    preset.last_run = when or datetime.now().astimezone()
                    self._save(presets)
                    return True
        return False

    # ---- internals (caller holds the lock) ----

    def _load(self) -> list[JobPreset]:
        if not self._path.exists():
            return []
        try:
            with open(self._path, encoding="utf-8") as fh:
                stored = json.load(fh)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Could not read job presets (%s); starting empty.", exc)
            return []
        if not isinstance(stored, list):
            logger.warning("Job presets file %s is not a list; starting empty.", self._path)
            return []
        presets = []
        for item in stored:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed preset entry: %r", item)
                continue
            try:
                presets.append(JobPreset.from_dict(item))
            except TypeError as exc:
                logger.warning("Skipping malformed preset entry (%s)", exc)
        return sorted(presets, key=lambda p: p.name.casefold())

    def _save(self, presets: list[JobPreset]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as fh:
            json.dump([p.to_dict() for p in presets], fh, indent=2)
