"""
Console front-end for RoboUI.

Runs saved (or ad-hoc) robocopy jobs in the foreground with live output
and a progress summary, and manages the saved job presets:

    python -m robo_ui list
    python -m robo_ui save "Nightly" --source D:\\Media --dest \\\\nas\\media --mirror
    python -m robo_ui show "Nightly"          Print the command line
    python -m robo_ui run "Nightly"           Run it (Ctrl-C cancels)
    python -m robo_ui run --source A --dest B Run without saving
    python -m robo_ui delete "Nightly"

Exit status: 0 robocopy reported OK, 1 robocopy reported a problem,
2 the job could not be started, 130 canceled.
"""

import argparse
import logging
import logging.handlers
import signal
import sys
from pathlib import Path

from robo_ui import __app_name__, __version__
from robo_ui.commands import JobError, build_invocation
from robo_ui.config import Config, get_log_path
from robo_ui.output import LineDrainer
from robo_ui.platform_utils import get_default_robocopy_log_path
from robo_ui.presets import JobPreset, PresetStore
from robo_ui.session import (
    STATUS_CANCELED,
    STATUS_COMPLETED,
    JobSession,
    RunOutcome,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_PROBLEM = 1
EXIT_NOT_STARTED = 2
EXIT_CANCELED = 130

_logging_ready = False


def _setup_logging(cfg: Config, verbose: bool = False) -> None:
    """Configure rotating file log and stderr handler."""
    global _logging_ready
    if _logging_ready:
        return
    _logging_ready = True

    level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    # Rotating file handler
    try:
        fh = logging.handlers.RotatingFileHandler(
            str(get_log_path()),
            maxBytes=cfg.max_log_size_mb * 1024 * 1024,
            backupCount=cfg.log_backup_count,
            encoding="utf-8",
        )
    except OSError as exc:
        print(f"WARNING: cannot write log file: {exc}", file=sys.stderr)
    else:
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)

    # Stderr handler; keep it quiet unless asked so robocopy output stays readable
    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level if verbose else logging.WARNING)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)


# ======================================================================
# Argument parsing
# ======================================================================


def _add_job_options(parser: argparse.ArgumentParser) -> None:
    """Options that override (or define) a job preset."""
    bool_opt = argparse.BooleanOptionalAction
    parser.add_argument("--source", help="Source folder")
    parser.add_argument("--dest", dest="destination", help="Destination folder")
    parser.add_argument("--subdirs", dest="copy_subdirs", action=bool_opt, default=None,
                        help="Copy subdirectories including empty ones (/E)")
    parser.add_argument("--mirror", action=bool_opt, default=None,
                        help="Mirror the source; deletes extras in the destination (/MIR)")
    parser.add_argument("--dry-run", action=bool_opt, default=None,
                        help="List only, copy nothing (/L)")
    parser.add_argument("--retries", type=int, help="Retries on failed copies (/R:n)")
    parser.add_argument("--wait", dest="wait_seconds", type=int,
                        help="Seconds between retries (/W:n)")
    parser.add_argument("--threads", type=int, help="Copy threads, 1-128 (/MT:n)")
    parser.add_argument("--np", dest="no_progress", action=bool_opt, default=None,
                        help="Suppress percentage progress (/NP)")
    parser.add_argument("--tee", action=bool_opt, default=None,
                        help="Echo to console when logging to a file (/TEE)")
    parser.add_argument("--log", dest="log_path", nargs="?", const="", default=None,
                        metavar="PATH", help="Also write robocopy's own log file (/LOG)")
    parser.add_argument("--no-log", dest="log_to_file", action="store_false", default=None,
                        help="Do not write a robocopy log file")
    parser.add_argument("--append-log", action=bool_opt, default=None,
                        help="Append to the log file instead of overwriting (/LOG+)")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="robo-ui",
        description=f"{__app_name__} — configure, run and watch robocopy jobs.",
    )
    parser.add_argument("--version", action="version", version=f"{__app_name__} {__version__}")
    parser.add_argument("--config", type=Path, help="Use this config.json instead of the default")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to stderr as well")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a saved job or an ad-hoc job")
    run.add_argument("name", nargs="?", help="Saved job to run")
    run.add_argument("-y", "--yes", action="store_true",
                     help="Do not ask before mirroring (/MIR can delete files)")
    _add_job_options(run)

    save = sub.add_parser("save", help="Create or update a saved job")
    save.add_argument("name")
    _add_job_options(save)

    show = sub.add_parser("show", help="Print the robocopy command line of a saved job")
    show.add_argument("name")

    sub.add_parser("list", help="List saved jobs")

    delete = sub.add_parser("delete", help="Delete a saved job")
    delete.add_argument("name")
    return parser


def _apply_overrides(preset: JobPreset, args: argparse.Namespace) -> JobPreset:
    """Copy every job option given on the command line onto *preset*."""
    for attr in (
        "source", "destination", "copy_subdirs", "mirror", "dry_run",
        "retries", "wait_seconds", "threads", "no_progress", "tee", "append_log",
    ):
        value = getattr(args, attr, None)
        if value is not None:
            setattr(preset, attr, value)

    if getattr(args, "log_path", None) is not None:
        preset.log_to_file = True
        if args.log_path:
            preset.log_path = args.log_path
    if getattr(args, "log_to_file", None) is False:
        preset.log_to_file = False

    if preset.log_to_file and not preset.log_path.strip():
        preset.log_path = str(get_default_robocopy_log_path())
    return preset


# ======================================================================
# Commands
# ======================================================================


def _print_lines(lines: list[str]) -> None:
    sys.stdout.write("\n".join(lines) + "\n")
    sys.stdout.flush()


def _confirm_mirror() -> bool:
    print("Mirror (/MIR) can delete files in the destination that are not in the source.")
    try:
        answer = input("Proceed? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def _exit_status(outcome: RunOutcome) -> int:
    if outcome.status == STATUS_CANCELED:
        return EXIT_CANCELED
    if outcome.status != STATUS_COMPLETED:
        return EXIT_NOT_STARTED
    return EXIT_OK if outcome.ok else EXIT_PROBLEM


def _cmd_run(args: argparse.Namespace, cfg: Config, store: PresetStore) -> int:
    saved = store.get(args.name) if args.name else None
    if args.name and saved is None:
        print(f"No saved job named {args.name!r}.", file=sys.stderr)
        return EXIT_NOT_STARTED
    preset = _apply_overrides(saved or JobPreset(name="(ad hoc)"), args)

    if preset.mirror and not args.yes and not _confirm_mirror():
        print("Not started.")
        return EXIT_NOT_STARTED

    logger.info("Running job %r from the console", preset.name)
    session = JobSession(cfg, store=store if saved else None)
    drainer = LineDrainer(session.buffer, _print_lines, cfg.flush_interval_ms / 1000)
    try:
        session.start(preset)
    except JobError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_NOT_STARTED

    def _handler(sig, frame):
        print("Canceling\u2026", file=sys.stderr)
        session.cancel()

    drainer.start()
    previous = signal.signal(signal.SIGINT, _handler)
    try:
        # Short waits keep Ctrl-C responsive on Windows
        outcome = session.wait(timeout=0.5)
        while outcome is None:
            outcome = session.wait(timeout=0.5)
    finally:
        signal.signal(signal.SIGINT, previous)
        drainer.stop()

    print()
    for line in session.summary.snapshot().describe_lines():
        print(line)
    return _exit_status(outcome)


def _cmd_save(args: argparse.Namespace, store: PresetStore) -> int:
    preset = store.get(args.name) or JobPreset(name=args.name)
    preset.name = args.name
    store.upsert(_apply_overrides(preset, args))
    print(f"Job saved: {args.name}")
    return EXIT_OK


def _cmd_show(args: argparse.Namespace, cfg: Config, store: PresetStore) -> int:
    preset = store.get(args.name)
    if preset is None:
        print(f"No saved job named {args.name!r}.", file=sys.stderr)
        return EXIT_NOT_STARTED
    try:
        print(build_invocation(preset, cfg.robocopy_path).command_line)
    except JobError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_NOT_STARTED
    return EXIT_OK


def _cmd_list(store: PresetStore) -> int:
    presets = store.load()
    if not presets:
        print("No saved jobs.")
    for preset in presets:
        print(preset.display_name)
    return EXIT_OK


def _cmd_delete(args: argparse.Namespace, store: PresetStore) -> int:
    if store.delete(args.name):
        print(f"Deleted job: {args.name}")
        return EXIT_OK
    print(f"No saved job named {args.name!r}.", file=sys.stderr)
    return EXIT_NOT_STARTED


def main(argv: list[str] | None = None) -> int:
    """Entry point for the console front-end; returns the exit status."""
    args = _build_parser().parse_args(argv)
    cfg = Config(args.config) if args.config else Config()
    _setup_logging(cfg, args.verbose)
    store = PresetStore(cfg.presets_path)

    if args.command == "run":
        return _cmd_run(args, cfg, store)
    if args.command == "save":
        return _cmd_save(args, store)
    if args.command == "show":
        return _cmd_show(args, cfg, store)
    if args.command == "delete":
        return _cmd_delete(args, store)
    return _cmd_list(store)
