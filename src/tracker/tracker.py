"""Command surface of the file tracker."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .config import TrackerConfig
from .events import EventBus, Subscription
from .exceptions import PathError, PersistenceError
from .history import HistoryBuffer
from .models import ChangeBatch, EventType, PersistedState, Snapshot, TrackerEvent
from .poll_loop import LoopState, PollLoop
from .snapshot import SnapshotBuilder, validate_root
from .state_store import StateStore

logger = logging.getLogger(__name__)


@dataclass
class TrackerState:
    """What is being watched and whether monitoring is active."""
    root: Optional[Path] = None
    active: bool = False
    last_snapshot: Optional[Snapshot] = None


@dataclass(frozen=True)
class SessionInfo:
    """Point-in-time view of the tracker's poll loop."""
    loop_id: str
    root: Path
    state: LoopState
    alive: bool
    cycles: int


class FileTracker:
    """
    Main orchestrator for change tracking of one root folder.

    Coordinates the snapshot builder, the poll loop, the history buffer,
    the event bus and the persisted state. start() and stop() serialize on
    a command lock; the tracker fields sit behind a separate lock that is
    never held during a scan, so status() and history() never wait for one.

    The poll loop never leaves the tracker; callers see it through
    session() only, so every transition goes through start() and stop().
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        store: Optional[StateStore] = None,
        bus: Optional[EventBus] = None,
        history: Optional[HistoryBuffer] = None,
        builder: Optional[SnapshotBuilder] = None,
    ):
        """
        Initialize the tracker and read the persisted state once.

        Args:
            config: Tracker configuration
            store: Persisted state store (defaults to config.db_path)
            bus: Event bus to publish to
            history: History buffer for change batches
            builder: Snapshot builder used for every scan
        """
        self.config = config or TrackerConfig()
        self._store = store or StateStore(self.config.db_path)
        self._bus = bus or EventBus(self.config.event_queue_size)
        self._history = history or HistoryBuffer(self.config.history_capacity)
        self._builder = builder or SnapshotBuilder(self.config)

        self._state = TrackerState()
        self._loop: Optional[PollLoop] = None
        self._command_lock = threading.RLock()
        self._state_lock = threading.Lock()

        self._persisted = self._store.load()
        if self._persisted:
            logger.info(
                f"Loaded persisted state: root={self._persisted.root_target}, "
                f"active={self._persisted.active}"
            )

    # --- Commands ---

    def start(self, root: Path) -> str:
        """
        Start tracking a root folder, replacing any active loop.

        The initial snapshot is taken before returning; the first diff
        happens one interval later on the loop thread.

        Args:
            root: Path to the root folder

        Returns:
            Identifier of the new monitoring session

        Raises:
            RootNotFoundError: If the root does not exist
            RootNotADirectoryError: If the root is not a directory
            ScanError: If the initial snapshot cannot be taken
            PersistenceError: If the state could not be saved; tracking
                has started regardless
        """
        with self._command_lock:
            root = validate_root(root)
            logger.info(f"Starting tracker for directory: {root}")

            snapshot = self._builder.build(root)

            if self._loop is not None:
                self._halt_loop(self._loop)

            loop = PollLoop(
                root,
                snapshot,
                self.config.poll_interval_seconds,
                self._builder,
                self._handle_cycle,
                self._handle_error,
            )
            with self._state_lock:
                self._state = TrackerState(root=root, active=True, last_snapshot=snapshot)
                self._loop = loop

            persist_error = self._persist(root, active=True)

            self._bus.publish(TrackerEvent(EventType.STARTED, root=root))
            loop.start()

            if persist_error is not None:
                raise persist_error
            return loop.loop_id

    def stop(self) -> None:
        """
        Stop tracking and persist the inactive state.

        Waits for the loop to finish its current cycle. Calling stop()
        when nothing is tracked only records the inactive state.

        Raises:
            PersistenceError: If the state could not be saved; tracking
                has stopped regardless
        """
        with self._command_lock:
            loop = self._loop
            if loop is not None:
                self._halt_loop(loop)

            with self._state_lock:
                root = self._state.root
                self._state.active = False
                self._state.last_snapshot = None
                if root is None and self._persisted is not None:
                    root = self._persisted.root_target

            if root is None:
                return

            persist_error = self._persist(root, active=False)
            if persist_error is not None:
                raise persist_error

    def status(self) -> bool:
        """Whether monitoring is currently active."""
        with self._state_lock:
            return self._state.active

    def get_persisted_state(self) -> Optional[PersistedState]:
        """
        Get the last state successfully written to durable storage.

        Returns:
            The persisted state, or None if there is none
        """
        with self._state_lock:
            return self._persisted

    def resume(self) -> Optional[str]:
        """
        Restart tracking of the persisted root after a process restart.

        Only resumes when the persisted state was active and
        config.resume_on_startup is set; otherwise the persisted root is
        left for the host to pre-fill.

        Returns:
            Identifier of the running session, or None if nothing was resumed

        Raises:
            PersistenceError: If the resumed state could not be saved
        """
        with self._command_lock:
            persisted = self.get_persisted_state()
            if persisted is None or not persisted.active:
                return None
            if not self.config.resume_on_startup:
                logger.info(f"Not resuming {persisted.root_target}: resume on startup is disabled")
                return None
            if self.status():
                return self._loop.loop_id

            try:
                return self.start(persisted.root_target)
            except PathError as e:
                logger.warning(f"Cannot resume tracking of {persisted.root_target}: {e}")
                self._bus.publish(TrackerEvent(
                    EventType.ERROR,
                    root=persisted.root_target,
                    message=f"Cannot resume tracking: {e}",
                ))
                persist_error = self._persist(persisted.root_target, active=False)
                if persist_error is not None:
                    raise persist_error
                return None

    def close(self) -> None:
        """
        Halt the loop without touching the persisted state.

        Used at process exit so that an active state can be resumed.
        """
        with self._command_lock:
            loop = self._loop
            if loop is not None:
                self._halt_loop(loop)
            with self._state_lock:
                self._state.active = False
                self._state.last_snapshot = None

    # --- Read-only views ---

    @property
    def root(self) -> Optional[Path]:
        """The root folder of the current or last session."""
        with self._state_lock:
            return self._state.root

    def session(self) -> Optional[SessionInfo]:
        """
        Describe the current poll loop.

        Returns:
            A snapshot of the loop's identity and state, or None once
            stop() or close() has run
        """
        with self._state_lock:
            loop = self._loop
        if loop is None:
            return None
        return SessionInfo(
            loop_id=loop.loop_id,
            root=loop.root,
            state=loop.state,
            alive=loop.is_alive,
            cycles=loop.cycles,
        )

    def last_snapshot(self) -> Optional[Snapshot]:
        """Copy of the most recently observed snapshot."""
        with self._state_lock:
            if self._state.last_snapshot is None:
                return None
            return dict(self._state.last_snapshot)

    def history(self) -> Tuple[ChangeBatch, ...]:
        """Retained change batches, oldest first."""
        return self._history.snapshot_view()

    def subscribe(self, maxsize: Optional[int] = None) -> Subscription:
        """Subscribe to started, stopped, changes and error events."""
        return self._bus.subscribe(maxsize)

    # --- Internals ---

    def _halt_loop(self, loop: PollLoop) -> None:
        """Cancel a loop, wait for it and announce the stop."""
        logger.info(f"Stopping loop {loop.loop_id} for {loop.root}")
        loop.cancel()
        loop.join()

        with self._state_lock:
            if self._loop is loop:
                self._loop = None

        if loop.state != LoopState.ERROR:
            self._bus.publish(TrackerEvent(EventType.STOPPED, root=loop.root))

    def _persist(self, root: Path, active: bool) -> Optional[PersistenceError]:
        """Save the state, returning the error instead of raising it."""
        state = PersistedState(root_target=root, active=active)
        try:
            self._store.save(state)
        except PersistenceError as e:
            logger.error(f"Failed to save state: {e}")
            return e

        with self._state_lock:
            self._persisted = state
        return None

    def _handle_cycle(self, loop: PollLoop, snapshot: Snapshot, batch: Optional[ChangeBatch]) -> None:
        """Runs on the loop thread after every successful cycle."""
        with self._state_lock:
            if loop is not self._loop:
                return
            self._state.last_snapshot = snapshot
            if batch is not None:
                self._history.push(batch)

        if batch is not None:
            self._bus.publish(TrackerEvent(EventType.CHANGES, root=loop.root, batch=batch))

    def _handle_error(self, loop: PollLoop, error: Exception) -> None:
        """Runs on the loop thread when a scan fails; the loop then exits."""
        with self._state_lock:
            if loop is not self._loop:
                return
            self._state.active = False
            self._state.last_snapshot = None

        self._bus.publish(TrackerEvent(
            EventType.ERROR,
            root=loop.root,
            message=f"Failed to scan {loop.root}: {error}",
        ))
        self._persist(loop.root, active=False)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
