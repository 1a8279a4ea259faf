"""
Process supervisor for RoboUI.

Starts one robocopy process, streams its stdout and stderr on two
background threads while the calling thread waits for exit, and supports
forced cancellation of the whole process tree.  Also decodes robocopy's
bitfield exit code into a human-readable verdict.

A runner owns at most one live process; create a new runner per run.
"""

import contextlib
import logging
import subprocess
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import IO

import psutil

from robo_ui.platform_utils import no_window_popen_kwargs

logger = logging.getLogger(__name__)

ERR_PREFIX = "[ERR] "

SEVERITY_OK = "OK"
SEVERITY_PROBLEM = "Problem"
SEVERITY_UNKNOWN = "Unknown"

NO_CHANGES = "No changes / no errors"

# robocopy exit codes are bitfields; bits above 4 are undefined and ignored.
_EXIT_FLAGS: tuple[tuple[int, str], ...] = (
    (1, "Files copied"),
    (2, "Extra files/dirs detected"),
    (4, "Mismatched files/dirs detected"),
    (8, "Some files could not be copied (errors)"),
    (16, "Serious error"),
)


class LaunchError(Exception):
    """The copy tool could not be started (missing, not permitted, spawn failed)."""


class Channel(Enum):
    """Output channel a line was read from."""
    STDOUT = "stdout"
    STDERR = "stderr"


class ReadError(Exception):
    """Reading one of the output channels failed mid-run."""

    def __init__(self, channel: Channel, cause: BaseException):
        super().__init__(f"Reading {channel.value} failed: {cause}")
        self.channel = channel
        self.cause = cause


@dataclass(frozen=True)
class Invocation:
    """An external command to run: executable, arguments, working directory."""
    executable: str
    arguments: tuple[str, ...] = ()
    working_dir: str | None = None

    def __post_init__(self) -> None:
        # Accept any sequence but keep the stored value immutable
        object.__setattr__(self, "arguments", tuple(self.arguments))

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.arguments]

    @property
    def command_line(self) -> str:
        """The invocation rendered as a single Windows-style command line."""
        return subprocess.list2cmdline(self.argv)


@dataclass(frozen=True)
class OutputLine:
    """A single line of tool output and the channel it came from."""
    text: str
    channel: Channel = Channel.STDOUT

    def __str__(self) -> str:
        if self.channel is Channel.STDERR:
            return ERR_PREFIX + self.text
        return self.text


@dataclass(frozen=True)
class ExitVerdict:
    """Decoded robocopy exit code."""
    code: int
    severity: str
    flags: tuple[str, ...]

    @property
    def ok(self) -> bool:
        return self.severity == SEVERITY_OK

    def __str__(self) -> str:
        if not self.flags:
            return self.severity
        return f"{self.severity}: {', '.join(self.flags)}"


def describe_exit_code(code: int) -> ExitVerdict:
    """
    Translate a robocopy exit code into a verdict.

    Codes 0-7 are OK, anything with bit 3 (copy errors) or bit 4 (serious
    error) set is a Problem, negative codes (e.g. a killed process on POSIX)
    are Unknown.
    """
    if code < 0:
        return ExitVerdict(code, SEVERITY_UNKNOWN, ())

    flags = [text for bit, text in _EXIT_FLAGS if code & bit]
    if not flags:
        flags.append(NO_CHANGES)

    severity = SEVERITY_OK if code <= 7 else SEVERITY_PROBLEM
    return ExitVerdict(code, severity, tuple(flags))


@dataclass
class RunResult:
    """Terminal result of one supervised run."""
    exit_code: int | None
    canceled: bool = False
    read_errors: tuple[ReadError, ...] = ()
    started: float = 0.0
    finished: float = 0.0

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0

    @property
    def verdict(self) -> ExitVerdict | None:
        """The decoded exit code; None for canceled runs."""
        if self.canceled or self.exit_code is None:
            return None
        return describe_exit_code(self.exit_code)

    @property
    def ok(self) -> bool:
        verdict = self.verdict
        return verdict is not None and verdict.ok

    def describe(self) -> str:
        if self.canceled:
            return "Canceled"
        return f"{self.exit_code} ({self.verdict})"


LineCallback = Callable[[OutputLine], None]


class RobocopyRunner:
    """
    Supervises a single robocopy invocation.

    Parameters
    ----------
    encoding : str, optional
        Text encoding of the tool's output.  None uses the locale default.
    join_timeout : float
        Seconds to wait for the process and its output readers once a
        cancel has been requested.  A process that survives the kill, and
        readers still blocked after that, are abandoned (the readers are
        daemon threads).
    """

    def __init__(self, encoding: str | None = None, join_timeout: float = 5.0):
        self._encoding = encoding
        self._join_timeout = join_timeout
        self._proc: subprocess.Popen | None = None
        self._lock = threading.Lock()
        self._cancel = threading.Event()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, invocation: Invocation) -> subprocess.Popen:
        """Spawn *invocation* with both output streams piped (no shell)."""
        with self._lock:
            if self._proc is not None and self._proc.poll() is None:
                raise RuntimeError("This runner already supervises a live process.")
            try:
                proc = subprocess.Popen(
                    invocation.argv,
                    cwd=invocation.working_dir,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    encoding=self._encoding,
                    errors="replace",
                    bufsize=1,
                    **no_window_popen_kwargs(),
                )
            except (OSError, subprocess.SubprocessError) as exc:
                logger.error("Could not start %s: %s", invocation.executable, exc)
                raise LaunchError(
                    f"Could not start {invocation.executable!r}: {exc}"
                ) from exc
            self._proc = proc
            cancel_pending = self._cancel.is_set()

        logger.info("Started pid %d: %s", proc.pid, invocation.command_line)
        if cancel_pending:
            # cancel() ran before there was anything to kill
            self._kill_tree(proc)
        return proc

    def stream(self, proc: subprocess.Popen, on_line: LineCallback) -> list[ReadError]:
        """Read both channels of *proc* until EOF or cancel, then join the readers."""
        threads, errors = self._start_readers(proc, on_line)
        self._join_readers(threads)
        return errors

    def wait(self, proc: subprocess.Popen) -> int:
        """Block until *proc* exits and return its raw exit code."""
        return proc.wait()

    def cancel(self) -> None:
        """Request cancellation and kill the process and all its descendants.

        Safe to call any number of times, from any thread, before, during
        or after the run.
        """
        self._cancel.set()
        with self._lock:
            proc = self._proc
        if proc is not None:
            self._kill_tree(proc)

    def run(self, invocation: Invocation, on_line: LineCallback) -> RunResult:
        """
        Run *invocation* to completion, forwarding every output line to *on_line*.

        *on_line* is called from two reader threads and must be thread-safe.
        Returns the process's real exit code; read failures are reported on
        ``RunResult.read_errors`` and never replace it.
        """
        started = time.time()
        proc = self.start(invocation)
        threads, errors = self._start_readers(proc, on_line)
        try:
            exit_code = self._wait_after_cancel(proc)
        except BaseException:
            self.cancel()
            raise
        finally:
            self._join_readers(threads)
            if not any(t.is_alive() for t in threads):
                self._close_pipes(proc)

        result = RunResult(
            exit_code=exit_code,
            canceled=self._cancel.is_set(),
            read_errors=tuple(errors),
            started=started,
            finished=time.time(),
        )
        if result.canceled:
            logger.info("Run canceled (pid %d, exit code %s).", proc.pid, exit_code)
        else:
            logger.info(
                "Run finished in %.1fs: exit code %s", result.duration, result.describe()
            )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start_readers(
        self, proc: subprocess.Popen, on_line: LineCallback
    ) -> tuple[list[threading.Thread], list[ReadError]]:
        errors: list[ReadError] = []
        threads = [
            threading.Thread(
                target=self._pump,
                args=(stream, channel, on_line, errors),
                daemon=True,
                name=f"Robocopy-{channel.value}",
            )
            for stream, channel in (
                (proc.stdout, Channel.STDOUT),
                (proc.stderr, Channel.STDERR),
            )
        ]
        for thread in threads:
            thread.start()
        return threads, errors

    def _pump(
        self,
        stream: IO[str] | None,
        channel: Channel,
        on_line: LineCallback,
        errors: list[ReadError],
    ) -> None:
        if stream is None:
            return
        try:
            while not self._cancel.is_set():
                raw = stream.readline()
                if not raw:
                    break  # EOF
                line = OutputLine(raw.rstrip("\r\n"), channel)
                try:
                    on_line(line)
                except Exception:
                    logger.exception("Error in output line callback")
        except (OSError, ValueError) as exc:
            err = ReadError(channel, exc)
            errors.append(err)
            logger.warning("%s", err)

    def _wait_after_cancel(self, proc: subprocess.Popen) -> int | None:
        """Wait for exit; once canceled, give up after the join timeout.

        Returns None when the process outlived a cancel (the kill was refused).
        """
        deadline: float | None = None
        while True:
            with contextlib.suppress(subprocess.TimeoutExpired):
                return proc.wait(timeout=0.1)
            if not self._cancel.is_set():
                continue
            if deadline is None:
                deadline = time.monotonic() + self._join_timeout
            elif time.monotonic() >= deadline:
                logger.warning(
                    "Process %d still running %.1fs after cancel; abandoning it.",
                    proc.pid, self._join_timeout,
                )
                return None

    def _join_readers(self, threads: list[threading.Thread]) -> None:
        deadline: float | None = None
        for thread in threads:
            while thread.is_alive():
                if not self._cancel.is_set():
                    thread.join(timeout=0.1)
                    continue
                if deadline is None:
                    deadline = time.monotonic() + self._join_timeout
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(
                        "Reader %s still blocked after cancel; abandoning it.",
                        thread.name,
                    )
                    break
                thread.join(timeout=min(remaining, 0.1))

    @staticmethod
    def _close_pipes(proc: subprocess.Popen) -> None:
        for stream in (proc.stdout, proc.stderr):
            if stream is not None:
                with contextlib.suppress(OSError, ValueError):
                    stream.close()

    @staticmethod
    def _kill_tree(proc: subprocess.Popen) -> None:
        """Best-effort kill of *proc* and every descendant; never raises."""
        if proc.poll() is not None:
            return
        try:
            root = psutil.Process(proc.pid)
            victims = [root, *root.children(recursive=True)]
        except psutil.Error:
            logger.debug("Process %d already gone.", proc.pid)
            return

        for victim in victims:
            with contextlib.suppress(psutil.Error, OSError):
                victim.kill()
        logger.info("Killed process tree of pid %d (%d processes).", proc.pid, len(victims))
