"""
Progress summary parsing for RoboUI.

robocopy ends each run (and each job with /TEE) with a fixed-column
report table::

                   Total    Copied   Skipped  Mismatch    FAILED    Extras
        Dirs :        10         3         0         0         0         2
       Files :       120        47        73         0         0         0
       Bytes :   123.45 m    67.89 m         0         0         0         0
       Times :   0:00:12   0:00:03                       0:00:00   0:00:09

``ProgressSummarizer.observe`` picks those rows out of the output stream
and keeps a running ``ProgressSummary``.  Every other line is ignored,
including reports in a different (e.g. localised) layout.
"""

import logging
import threading
from dataclasses import dataclass, field, replace

logger = logging.getLogger(__name__)

DIRS_LABEL = "Dirs :"
FILES_LABEL = "Files :"
BYTES_LABEL = "Bytes :"
TIMES_LABEL = "Times :"

_UNIT_MULTIPLIERS = {
    "k": 1024,
    "m": 1024 ** 2,
    "g": 1024 ** 3,
    "t": 1024 ** 4,
}


def parse_byte_size(text: str) -> int:
    """
    Convert a robocopy byte token such as ``"913.12 m"`` to a byte count.

    Unknown or missing units count as plain bytes; unparsable numbers give 0.
    """
    text = text.strip().lower()
    number = ""
    for ch in text:
        if ch.isdigit() or ch == ".":
            number += ch
        else:
            break
    unit = next((ch for ch in text if ch.isalpha()), "b")
    try:
        value = float(number) if number else 0.0
    except ValueError:
        value = 0.0
    return int(value * _UNIT_MULTIPLIERS.get(unit, 1))


@dataclass(frozen=True)
class CountRow:
    """Dirs or Files row: total, copied, failed."""
    total: int
    copied: int
    failed: int

    def describe(self) -> str:
        return f"Copied {self.copied} / {self.total}   Failed {self.failed}"


@dataclass(frozen=True)
class ByteRow:
    """Bytes row, kept as display strings (values carry unit suffixes)."""
    total: str
    copied: str

    @property
    def total_bytes(self) -> int:
        return parse_byte_size(self.total)

    @property
    def copied_bytes(self) -> int:
        return parse_byte_size(self.copied)

    def describe(self) -> str:
        return f"Copied {self.copied} / {self.total}"


@dataclass
class ProgressSummary:
    """Running summary of one robocopy run.  Fields stay None until seen."""
    dirs: CountRow | None = None
    files: CountRow | None = None
    bytes: ByteRow | None = None
    elapsed: str | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def update(self, **changes) -> None:
        with self._lock:
            for name, value in changes.items():
                setattr(self, name, value)

    def snapshot(self) -> "ProgressSummary":
        """Return a consistent copy safe to read while the run continues."""
        with self._lock:
            return replace(self, _lock=threading.Lock())

    def byte_fraction(self) -> float | None:
        """Copied / total bytes in [0, 1], or None when unknown."""
        row = self.bytes
        if row is None or row.total_bytes <= 0:
            return None
        return min(1.0, row.copied_bytes / row.total_bytes)

    def describe_lines(self) -> list[str]:
        placeholder = "-"
        return [
            f"Dirs:  {self.dirs.describe() if self.dirs else placeholder}",
            f"Files: {self.files.describe() if self.files else placeholder}",
            f"Bytes: {self.bytes.describe() if self.bytes else placeholder}",
            f"Time:  {self.elapsed or placeholder}",
        ]


class ProgressSummarizer:
    """Feeds robocopy output lines into a :class:`ProgressSummary`.

    Safe to call ``observe`` from several reader threads at once.
    """

    def __init__(self, summary: ProgressSummary | None = None):
        self.summary = summary if summary is not None else ProgressSummary()

    def observe(self, line: str) -> bool:
        """Update the summary from *line*; return True if a field changed."""
        text = line.strip()

        if text.startswith(DIRS_LABEL):
            row = _parse_count_row(text)
            if row is not None:
                self.summary.update(dirs=row)
                return True
        elif text.startswith(FILES_LABEL):
            row = _parse_count_row(text)
            if row is not None:
                self.summary.update(files=row)
                return True
        elif text.startswith(BYTES_LABEL):
            byte_row = _parse_byte_row(text)
            if byte_row is not None:
                self.summary.update(bytes=byte_row)
                return True
        elif text.startswith(TIMES_LABEL):
            # tokens[0]="Times", tokens[1]=":", tokens[2]=<total-time>
            tokens = text.split()
            self.summary.update(elapsed=tokens[2] if len(tokens) >= 3 else "-")
            return True
        return False


def _parse_count_row(text: str) -> CountRow | None:
    tokens = text.split()
    if len(tokens) < 8:
        logger.debug("Short summary row ignored: %r", text)
        return None
    try:
        return CountRow(
            total=int(tokens[2]),
            copied=int(tokens[3]),
            failed=int(tokens[6]),
        )
    except ValueError:
        logger.debug("Non-numeric summary row ignored: %r", text)
        return None


def _parse_byte_row(text: str) -> ByteRow | None:
    tokens = text.split()
    if len(tokens) < 6:
        logger.debug("Short bytes row ignored: %r", text)
        return None
    return ByteRow(
        total=f"{tokens[2]} {tokens[3]}",
        copied=f"{tokens[4]} {tokens[5]}",
    )
