"""Tests for poll loop module."""

import errno
import os
import pytest
import threading
import time
from pathlib import Path

from src.tracker.exceptions import ScanError
from src.tracker.models import ChangeKind, FileMeta
from src.tracker.poll_loop import LoopState, PollLoop
from src.tracker.snapshot import SnapshotBuilder


def write_file(path: Path, size: int, mtime: float = 1_700_000_000.0) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    os.utime(path, (mtime, mtime))
    return path


def wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class Recorder:
    """Collects loop callbacks."""

    def __init__(self):
        self.cycles = []
        self.errors = []
        self.lock = threading.Lock()

    def on_cycle(self, loop, snapshot, batch):
        with self.lock:
            self.cycles.append((snapshot, batch))

    def on_error(self, loop, error):
        with self.lock:
            self.errors.append(error)


class FailingBuilder(SnapshotBuilder):
    """Builder whose scans fail after a number of successes."""

    def __init__(self, fail_after: int = 0):
        super().__init__()
        self.calls = 0
        self.fail_after = fail_after

    def build(self, root):
        self.calls += 1
        if self.calls > self.fail_after:
            raise ScanError(f"Cannot read directory {root}: Permission denied", root)
        return super().build(root)


class SlowBuilder(SnapshotBuilder):
    """Builder that records scan overlap."""

    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self._lock = threading.Lock()

    def build(self, root):
        with self._lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
        return super().build(root)


def make_loop(root, recorder, builder=None, interval=60.0, initial=None):
    builder = builder or SnapshotBuilder()
    return PollLoop(
        root.resolve(),
        initial if initial is not None else builder.build(root),
        interval,
        builder,
        recorder.on_cycle,
        recorder.on_error,
    )


class TestRunOnce:
    """Tests for a single synchronous cycle."""

    def test_no_changes(self, tmp_path):
        write_file(tmp_path / "a.txt", 10)
        recorder = Recorder()
        loop = make_loop(tmp_path, recorder)

        assert loop.run_once() is None
        assert len(recorder.cycles) == 1
        assert recorder.cycles[0][1] is None
        assert loop.cycles == 1

    def test_concrete_scenario(self, tmp_path):
        t0 = 1_700_000_000.0
        write_file(tmp_path / "a.txt", 10, mtime=t0)
        write_file(tmp_path / "b.txt", 20, mtime=t0)
        recorder = Recorder()
        loop = make_loop(tmp_path, recorder)

        write_file(tmp_path / "b.txt", 25, mtime=t0)
        (tmp_path / "a.txt").unlink()
        write_file(tmp_path / "c.txt", 5, mtime=t0 + 1)

        batch = loop.run_once()

        assert batch.root == tmp_path.resolve()
        assert batch.added == ["c.txt"]
        assert batch.removed == ["a.txt"]
        assert batch.modified == ["b.txt"]
        assert [r.path for r in batch.records] == ["a.txt", "b.txt", "c.txt"]
        assert recorder.cycles[0][1] is batch

    def test_snapshot_replaced_every_cycle(self, tmp_path):
        write_file(tmp_path / "a.txt", 1)
        recorder = Recorder()
        loop = make_loop(tmp_path, recorder)

        write_file(tmp_path / "b.txt", 1)
        first = loop.run_once()
        second = loop.run_once()

        assert first.added == ["b.txt"]
        assert second is None
        assert set(recorder.cycles[1][0]) == {"a.txt", "b.txt"}

    def test_diff_against_initial_snapshot(self, tmp_path):
        write_file(tmp_path / "a.txt", 1)
        recorder = Recorder()
        loop = make_loop(tmp_path, recorder, initial={"a.txt": FileMeta(0.0, 1)})

        batch = loop.run_once()

        assert [(r.path, r.kind) for r in batch] == [("a.txt", ChangeKind.MODIFIED)]

    def test_scan_error_propagates(self, tmp_path):
        recorder = Recorder()
        loop = make_loop(tmp_path, recorder, builder=FailingBuilder(), initial={})

        with pytest.raises(ScanError):
            loop.run_once()
        assert recorder.cycles == []


class TestPollLoopThread:
    """Tests for the background thread lifecycle."""

    def test_initial_state(self, tmp_path):
        loop = make_loop(tmp_path, Recorder())
        assert loop.state == LoopState.STOPPED
        assert loop.is_alive is False
        assert loop.join() is True

    def test_start_enters_monitoring(self, tmp_path):
        loop = make_loop(tmp_path, Recorder())

        loop.start()

        assert wait_for(lambda: loop.state == LoopState.MONITORING)
        assert loop.is_alive

        loop.cancel()
        assert loop.join(timeout=2)
        assert loop.state == LoopState.STOPPED

    def test_start_twice_raises(self, tmp_path):
        loop = make_loop(tmp_path, Recorder())
        loop.start()
        try:
            with pytest.raises(RuntimeError):
                loop.start()
        finally:
            loop.cancel()
            loop.join(timeout=2)

    def test_cancel_interrupts_interval_wait(self, tmp_path):
        loop = make_loop(tmp_path, Recorder(), interval=60.0)
        loop.start()

        started = time.time()
        loop.cancel()
        assert loop.join(timeout=2)

        assert time.time() - started < 2
        assert loop.cycles == 0

    def test_cancel_before_thread_runs(self, tmp_path):
        loop = make_loop(tmp_path, Recorder())
        loop.cancel()
        loop.start()

        assert loop.join(timeout=2)
        assert loop.state == LoopState.STOPPED
        assert loop.cycles == 0

    def test_runs_cycles_at_interval(self, tmp_path):
        recorder = Recorder()
        loop = make_loop(tmp_path, recorder, interval=0.02)
        loop.start()

        write_file(tmp_path / "new.txt", 3)

        assert wait_for(lambda: any(b is not None for _, b in recorder.cycles))
        loop.cancel()
        loop.join(timeout=2)

        batches = [b for _, b in recorder.cycles if b is not None]
        assert batches[0].added == ["new.txt"]

    def test_scan_failure_is_fail_stop(self, tmp_path):
        recorder = Recorder()
        builder = FailingBuilder(fail_after=1)
        loop = make_loop(tmp_path, recorder, builder=builder, interval=0.01)
        loop.start()

        assert loop.join(timeout=3)
        assert loop.state == LoopState.ERROR
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], ScanError)

        # No retries after the failure.
        calls = builder.calls
        time.sleep(0.1)
        assert builder.calls == calls

    def test_root_removed_is_fail_stop(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        recorder = Recorder()
        loop = make_loop(root, recorder, interval=0.01)
        loop.start()

        root.rmdir()

        assert loop.join(timeout=3)
        assert loop.state == LoopState.ERROR
        assert len(recorder.errors) == 1

    def test_cycles_never_overlap(self, tmp_path):
        recorder = Recorder()
        builder = SlowBuilder(delay=0.05)
        loop = make_loop(tmp_path, recorder, builder=builder, interval=0.001, initial={})
        loop.start()

        assert wait_for(lambda: builder.calls >= 4)
        loop.cancel()
        loop.join(timeout=2)

        assert builder.max_active == 1

    def test_cancel_lets_scan_in_progress_finish(self, tmp_path):
        recorder = Recorder()
        builder = SlowBuilder(delay=0.2)
        loop = make_loop(tmp_path, recorder, builder=builder, interval=0.001, initial={})
        loop.start()

        assert wait_for(lambda: builder.active == 1)
        loop.cancel()
        assert loop.state == LoopState.STOPPING
        assert loop.join(timeout=2)

        assert builder.active == 0
        assert len(recorder.cycles) == builder.calls
        assert loop.state == LoopState.STOPPED

    def test_unexpected_error_is_fail_stop(self, tmp_path):
        recorder = Recorder()

        class BrokenBuilder(SnapshotBuilder):
            def build(self, root):
                raise OSError(errno.EIO, "Input/output error")

        loop = make_loop(tmp_path, recorder, builder=BrokenBuilder(), interval=0.01, initial={})
        loop.start()

        assert loop.join(timeout=3)
        assert loop.state == LoopState.ERROR
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], OSError)
        assert recorder.cycles == []
