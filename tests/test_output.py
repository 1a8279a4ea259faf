"""Tests for the output line buffer and drainer."""

import threading

from robo_ui.output import LineBuffer, LineDrainer
from robo_ui.runner import Channel, OutputLine


def test_drain_is_bounded_and_ordered():
    buffer = LineBuffer(max_lines_per_drain=3)
    for i in range(7):
        buffer.accept(f"line {i}")
    assert buffer.drain() == ["line 0", "line 1", "line 2"]
    assert buffer.drain(limit=10) == ["line 3", "line 4", "line 5", "line 6"]
    assert buffer.drain() == []


def test_accepts_output_lines():
    buffer = LineBuffer()
    buffer.accept(OutputLine("denied", Channel.STDERR))
    assert buffer.drain() == ["[ERR] denied"]


def test_concurrent_producers_keep_per_producer_order():
    buffer = LineBuffer()

    def produce(tag):
        for i in range(500):
            buffer.accept(f"{tag} {i}")

    threads = [threading.Thread(target=produce, args=(tag,)) for tag in ("out", "err")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    lines = buffer.drain(limit=10_000)
    assert len(lines) == 1000
    for tag in ("out", "err"):
        assert [ln for ln in lines if ln.startswith(tag)] == [f"{tag} {i}" for i in range(500)]


def test_drainer_delivers_everything_in_batches():
    buffer = LineBuffer(max_lines_per_drain=50)
    batches = []
    drainer = LineDrainer(buffer, batches.append, interval=0.01)
    drainer.start()
    for i in range(420):
        buffer.accept(i)
    drainer.stop()

    assert all(len(b) <= 50 for b in batches)
    assert [line for b in batches for line in b] == [str(i) for i in range(420)]


def test_sink_errors_do_not_stop_the_drainer():
    buffer = LineBuffer(max_lines_per_drain=1)
    delivered = []

    def sink(batch):
        if batch == ["boom"]:
            raise RuntimeError("display gone")
        delivered.extend(batch)

    drainer = LineDrainer(buffer, sink, interval=0.01)
    drainer.start()
    for line in ("a", "boom", "b"):
        buffer.accept(line)
    drainer.stop()
    assert delivered == ["a", "b"]
