"""
Job session for RoboUI.

Ties one robocopy run together: validates the preset, builds the command
line, runs the supervisor on a background thread, feeds every output line
to the progress summarizer and the display buffer, and reports a terminal
outcome (completed, canceled or failed) when the run ends.

UI-agnostic; the console front-end and any desktop shell drive it the
same way: ``start`` / ``cancel`` / ``wait`` plus a drained ``LineBuffer``.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from robo_ui.commands import build_invocation
from robo_ui.config import Config
from robo_ui.output import LineBuffer
from robo_ui.presets import JobPreset, PresetStore
from robo_ui.runner import (
    Invocation,
    LaunchError,
    OutputLine,
    RobocopyRunner,
    RunResult,
)
from robo_ui.summary import ProgressSummarizer, ProgressSummary

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_CANCELED = "canceled"
STATUS_FAILED = "failed"


class SessionBusy(RuntimeError):
    """A run was requested while another is still active."""


@dataclass
class RunOutcome:
    """How a session run ended."""
    status: str
    result: RunResult | None = None
    error: str = ""

    @property
    def canceled(self) -> bool:
        return self.status == STATUS_CANCELED

    @property
    def ok(self) -> bool:
        return self.status == STATUS_COMPLETED and self.result is not None and self.result.ok


class JobSession:
    """
    Runs robocopy jobs one at a time.

    Parameters
    ----------
    config : Config
        Application settings (robocopy path, encoding, batching, timeouts).
    store : PresetStore, optional
        When given, a completed run stamps the preset's last-run time.
    on_finished : callable, optional
        Called from the worker thread with the :class:`RunOutcome`.
    """

    def __init__(
        self,
        config: Config,
        store: PresetStore | None = None,
        on_finished: Callable[[RunOutcome], None] | None = None,
    ):
        self.config = config
        self._store = store
        self._on_finished = on_finished
        self.buffer = LineBuffer(config.max_lines_per_flush)
        self.summary = ProgressSummary()
        self.last_command_line = ""
        self._runner: RobocopyRunner | None = None
        self._outcome: RunOutcome | None = None
        self._done = threading.Event()
        self._done.set()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return not self._done.is_set()

    @property
    def outcome(self) -> RunOutcome | None:
        """Outcome of the most recent run, once it has finished."""
        with self._lock:
            return self._outcome

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self, preset: JobPreset) -> Invocation:
        """Start *preset* in the background and return the invocation used.

        Raises ``JobError`` for an incomplete preset and ``SessionBusy`` while
        a previous run is still going.
        """
        with self._lock:
            if self.running:
                raise SessionBusy("A robocopy job is already running.")
            invocation = build_invocation(preset, self.config.robocopy_path)
            summary = ProgressSummary()
            runner = RobocopyRunner(
                encoding=self.config.output_encoding,
                join_timeout=self.config.cancel_join_timeout,
            )
            self.summary = summary
            self._runner = runner
            self._outcome = None
            self.last_command_line = invocation.command_line
            self._done.clear()

        summarizer = ProgressSummarizer(summary)
        self._emit(f"Started: {datetime.now():%Y-%m-%d %H:%M:%S}")
        self._emit("")
        self._emit(invocation.command_line)
        self._emit("")

        logger.info("Starting job %r", preset.name)
        threading.Thread(
            target=self._run,
            args=(preset, invocation, runner, summarizer),
            daemon=True,
            name=f"Job-{preset.name}",
        ).start()
        return invocation

    def cancel(self) -> None:
        """Cancel the active run, if any.  Idempotent."""
        with self._lock:
            runner = self._runner if self.running else None
        if runner is not None:
            logger.info("Canceling job…")
            runner.cancel()

    def wait(self, timeout: float | None = None) -> RunOutcome | None:
        """Block until the current run ends; None if *timeout* expires first."""
        if not self._done.wait(timeout):
            return None
        return self.outcome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _emit(self, line: object) -> None:
        self.buffer.accept(line)

    def _run(
        self,
        preset: JobPreset,
        invocation: Invocation,
        runner: RobocopyRunner,
        summarizer: ProgressSummarizer,
    ) -> None:
        def on_line(line: OutputLine) -> None:
            summarizer.observe(str(line))
            self._emit(line)

        outcome = RunOutcome(STATUS_FAILED, error="run did not finish")
        try:
            result = runner.run(invocation, on_line)
        except LaunchError as exc:
            outcome = RunOutcome(STATUS_FAILED, error=str(exc))
            self._emit("")
            self._emit("ERROR:")
            self._emit(str(exc))
        except Exception as exc:
            logger.exception("Unexpected error running job %r", preset.name)
            outcome = RunOutcome(STATUS_FAILED, error=str(exc))
            self._emit("")
            self._emit("ERROR:")
            self._emit(repr(exc))
        else:
            for err in result.read_errors:
                self._emit(f"Output read error: {err}")
            if result.canceled:
                outcome = RunOutcome(STATUS_CANCELED, result=result)
                self._emit("")
                self._emit("Canceled.")
            else:
                outcome = RunOutcome(STATUS_COMPLETED, result=result)
                self._record_last_run(preset)
                self._emit("")
                self._emit(f"Finished: {datetime.now():%Y-%m-%d %H:%M:%S}")
                self._emit(f"Robocopy exit code: {result.describe()}")
        finally:
            with self._lock:
                self._outcome = outcome
                self._done.set()
            logger.info("Job %r ended: %s", preset.name, outcome.status)
            if self._on_finished:
                try:
                    self._on_finished(outcome)
                except Exception:
                    logger.exception("Error in on_finished callback")

    def _record_last_run(self, preset: JobPreset) -> None:
        if self._store is None:
            return
        try:
            if self._store.touch_last_run(preset.name):
                logger.debug("Recorded last run of %r", preset.name)
        except OSError as exc:
            logger.error("Could not record last run of %r: %s", preset.name, exc)
