"""Tests for the job session (runs the fake robocopy from conftest)."""

import time

import pytest

from robo_ui.commands import JobError
from robo_ui.presets import JobPreset
from robo_ui.session import (
    STATUS_CANCELED,
    STATUS_COMPLETED,
    STATUS_FAILED,
    JobSession,
    SessionBusy,
)
from robo_ui.summary import ByteRow, CountRow


def _drain_all(session):
    return session.buffer.drain(limit=100_000)


def _wait_for_line(session, text, timeout=10.0):
    seen = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        seen += session.buffer.drain()
        if text in seen:
            return seen
        time.sleep(0.02)
    raise AssertionError(f"{text!r} never appeared in {seen!r}")


def test_completed_run_updates_summary_and_last_run(config, store, tmp_path):
    preset = JobPreset(name="Nightly", source=str(tmp_path / "src"), destination=str(tmp_path / "dst"))
    store.upsert(preset)
    finished = []
    session = JobSession(config, store=store, on_finished=finished.append)

    invocation = session.start(preset)
    outcome = session.wait(timeout=30)

    assert outcome is not None
    assert outcome.status == STATUS_COMPLETED
    assert outcome.ok
    assert outcome.result.exit_code == 1
    assert finished == [outcome]
    assert not session.running

    summary = session.summary.snapshot()
    assert summary.dirs == CountRow(10, 3, 0)
    assert summary.files == CountRow(120, 47, 0)
    assert summary.bytes == ByteRow("123.45 m", "67.89 m")
    assert summary.elapsed == "0:00:12"

    lines = _drain_all(session)
    assert lines[0].startswith("Started: ")
    assert lines[2] == invocation.command_line == session.last_command_line
    assert "Robocopy exit code: 1 (OK: Files copied)" in lines
    assert store.get("Nightly").last_run is not None


def test_problem_exit_and_tagged_stderr(config, tmp_path):
    session = JobSession(config)
    session.start(JobPreset(source=str(tmp_path / "broken"), destination=str(tmp_path / "dst")))
    outcome = session.wait(timeout=30)

    assert outcome.status == STATUS_COMPLETED
    assert not outcome.ok
    assert outcome.result.exit_code == 16
    lines = _drain_all(session)
    assert "[ERR] ERROR 5 (0x00000005) Accessing Source Directory" in lines
    assert any(ln.startswith("Robocopy exit code: 16 (Problem: Serious error)") for ln in lines)


def test_cancel_reports_canceled_outcome(config, store, tmp_path):
    preset = JobPreset(name="Slow", source=str(tmp_path / "slow"), destination=str(tmp_path / "dst"))
    store.upsert(preset)
    session = JobSession(config, store=store)
    session.start(preset)
    _wait_for_line(session, "waiting")

    session.cancel()
    session.cancel()
    outcome = session.wait(timeout=20)

    assert outcome is not None
    assert outcome.status == STATUS_CANCELED
    assert outcome.canceled
    assert not outcome.ok
    assert "Canceled." in _drain_all(session)
    assert store.get("Slow").last_run is None


def test_launch_failure(config, tmp_path):
    config.robocopy_path = str(tmp_path / "missing" / "robocopy")
    session = JobSession(config)
    session.start(JobPreset(source="A", destination="B"))
    outcome = session.wait(timeout=10)

    assert outcome.status == STATUS_FAILED
    assert outcome.result is None
    assert "missing" in outcome.error
    assert "ERROR:" in _drain_all(session)


def test_incomplete_preset_is_rejected(config):
    session = JobSession(config)
    with pytest.raises(JobError):
        session.start(JobPreset(source="", destination="B"))
    assert not session.running


def test_one_run_at_a_time(config, tmp_path):
    session = JobSession(config)
    session.start(JobPreset(source=str(tmp_path / "slow"), destination="dst"))
    try:
        with pytest.raises(SessionBusy):
            session.start(JobPreset(source="A", destination="B"))
    finally:
        session.cancel()
    assert session.wait(timeout=20).canceled

    # the session is reusable once the previous run has ended
    session.start(JobPreset(source=str(tmp_path / "src"), destination="dst"))
    assert session.wait(timeout=30).status == STATUS_COMPLETED


def test_cancel_without_run_is_harmless(config):
    session = JobSession(config)
    session.cancel()
    assert session.wait(timeout=0) is None
