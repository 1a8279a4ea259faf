"""
robocopy command-line construction for RoboUI.

robocopy stays in control of the copy; this module only turns a
:class:`JobPreset` into its arguments.  Two switches are always added:

* ``/NFL /NDL`` — no per-file / per-directory name lines.  Keeps the output
  down to the report table the summary parser understands (and is a big
  speed gain for long runs).
* ``/FFT`` — 2-second file-time granularity, so copies between NTFS and
  FAT/exFAT/network shares are not flagged as mismatched.
"""

import logging

from robo_ui.presets import (
    DEFAULT_RETRIES,
    DEFAULT_THREADS,
    DEFAULT_WAIT_SECONDS,
    JobPreset,
)
from robo_ui.runner import Invocation

logger = logging.getLogger(__name__)

MIN_THREADS = 1
MAX_THREADS = 128  # some robocopy builds allow more; 128 is a sane cap

ALWAYS_ON_SWITCHES = ("/NFL", "/NDL")
TIME_TOLERANCE_SWITCH = "/FFT"


class JobError(ValueError):
    """The preset cannot be turned into a robocopy run."""


def _int_or_default(value: object, fallback: int) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return fallback


def validate(preset: JobPreset) -> None:
    """Raise :class:`JobError` unless both folders are set."""
    if not preset.source.strip() or not preset.destination.strip():
        raise JobError("Please choose both Source and Destination folders.")


def build_arguments(preset: JobPreset) -> list[str]:
    """Return the robocopy arguments for *preset* (without the executable)."""
    args = [preset.source.strip(), preset.destination.strip()]

    # Mode switches
    if preset.mirror:
        args.append("/MIR")
    elif preset.copy_subdirs:
        args.append("/E")

    if preset.dry_run:
        args.append("/L")

    # Retry behaviour
    retries = max(0, _int_or_default(preset.retries, DEFAULT_RETRIES))
    wait = max(0, _int_or_default(preset.wait_seconds, DEFAULT_WAIT_SECONDS))
    args += [f"/R:{retries}", f"/W:{wait}"]

    threads = _int_or_default(preset.threads, DEFAULT_THREADS)
    threads = min(MAX_THREADS, max(MIN_THREADS, threads))
    args.append(f"/MT:{threads}")

    # Output behaviour
    if preset.no_progress:
        args.append("/NP")
    args.extend(ALWAYS_ON_SWITCHES)
    if preset.tee:
        args.append("/TEE")
    args.append(TIME_TOLERANCE_SWITCH)

    if preset.log_to_file:
        path = preset.log_path.strip()
        if path:
            switch = "/LOG+:" if preset.append_log else "/LOG:"
            args.append(f"{switch}{path}")
        else:
            logger.warning("Log to file is on but no log path is set; not logging.")

    return args


def build_invocation(preset: JobPreset, executable: str = "robocopy") -> Invocation:
    """Validate *preset* and return the :class:`Invocation` that runs it."""
    validate(preset)
    return Invocation(executable=executable, arguments=tuple(build_arguments(preset)))
