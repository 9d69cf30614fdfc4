"""Interval-driven scan-and-diff loop."""

import logging
import threading
import uuid
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .diff import diff_snapshots
from .exceptions import PathError, ScanError
from .models import ChangeBatch, Snapshot
from .snapshot import SnapshotBuilder

logger = logging.getLogger(__name__)


class LoopState(Enum):
    """Lifecycle of a poll loop."""
    STOPPED = "stopped"
    STARTING = "starting"
    MONITORING = "monitoring"
    STOPPING = "stopping"
    ERROR = "error"


# (loop, new_snapshot, batch or None) -> None
CycleCallback = Callable[["PollLoop", Snapshot, Optional[ChangeBatch]], None]
ErrorCallback = Callable[["PollLoop", Exception], None]


class PollLoop:
    """
    A single cancellable background thread running scan-and-diff cycles.

    The loop object is the ownership token for one monitoring session:
    whoever holds it cancels it with cancel() and waits with join(). Cycles
    run serially on the worker thread, so a slow scan delays the next cycle
    instead of overlapping with it. Cancellation is observed while waiting
    for the next cycle, never in the middle of a scan.

    Any failure during a cycle is fail-stop: the error callback runs, the
    loop enters ERROR and the thread exits.
    """

    def __init__(
        self,
        root: Path,
        initial_snapshot: Snapshot,
        interval: float,
        builder: SnapshotBuilder,
        on_cycle: CycleCallback,
        on_error: ErrorCallback,
    ):
        """
        Initialize the loop.

        Args:
            root: Resolved root folder to scan
            initial_snapshot: Snapshot the first cycle is compared against
            interval: Seconds between the end of one cycle and the next scan
            builder: Snapshot builder used for every scan
            on_cycle: Called after every successful cycle
            on_error: Called once when a scan fails
        """
        self.root = root
        self.interval = interval
        self.loop_id = uuid.uuid4().hex[:12]
        self._builder = builder
        self._on_cycle = on_cycle
        self._on_error = on_error
        self._last_snapshot = initial_snapshot
        self._state = LoopState.STOPPED
        self._state_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0

    @property
    def state(self) -> LoopState:
        with self._state_lock:
            return self._state

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def start(self) -> None:
        """
        Launch the worker thread. Returns immediately.

        Raises:
            RuntimeError: If the loop was already started
        """
        with self._state_lock:
            if self._thread is not None:
                raise RuntimeError(f"Loop {self.loop_id} was already started")
            self._state = LoopState.STARTING
            self._thread = threading.Thread(
                target=self._run,
                name=f"PollLoop-{self.loop_id}",
                daemon=True,
            )
        self._thread.start()

    def cancel(self) -> None:
        """Ask the loop to stop after the current cycle, if any."""
        with self._state_lock:
            if self._state in (LoopState.STARTING, LoopState.MONITORING):
                self._state = LoopState.STOPPING
        self._cancel_event.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the worker thread to exit.

        Returns:
            True if the thread has exited (or never started)
        """
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def run_once(self) -> Optional[ChangeBatch]:
        """
        Run one scan-and-diff cycle on the calling thread.

        Returns:
            The change batch, or None if nothing changed

        Raises:
            PathError: If the root is gone or no longer a directory
            ScanError: If the tree cannot be read
        """
        current = self._builder.build(self.root)
        records = diff_snapshots(self._last_snapshot, current)
        self._last_snapshot = current
        self.cycles += 1

        batch = None
        if records:
            batch = ChangeBatch(root=self.root, records=tuple(records))
            logger.info(f"Detected {len(records)} change(s) in {self.root}")
            for record in records:
                logger.debug(f"  {record}")

        self._on_cycle(self, current, batch)
        return batch

    def _fail(self, error: Exception) -> None:
        """Move to ERROR and report the failure, unless the loop is stopping."""
        with self._state_lock:
            stopping = self._state == LoopState.STOPPING
            if not stopping:
                self._state = LoopState.ERROR

        if stopping:
            logger.warning(f"Scan of {self.root} failed while stopping: {error}")
            return
        if isinstance(error, (PathError, ScanError)):
            logger.error(f"Failed to scan {self.root}: {error}")
        else:
            logger.exception(f"Unexpected error scanning {self.root}: {error}")
        self._on_error(self, error)

    def _run(self) -> None:
        """Worker thread body."""
        with self._state_lock:
            if self._state == LoopState.STARTING:
                self._state = LoopState.MONITORING
        logger.info(f"Monitoring {self.root} every {self.interval}s (loop {self.loop_id})")

        try:
            while not self._cancel_event.wait(timeout=self.interval):
                try:
                    self.run_once()
                except Exception as e:
                    self._fail(e)
                    return
        finally:
            with self._state_lock:
                if self._state != LoopState.ERROR:
                    self._state = LoopState.STOPPED
            logger.info(f"Loop {self.loop_id} for {self.root} exited")
