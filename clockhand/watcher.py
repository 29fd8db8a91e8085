"""
File system watcher and the watch-and-notify loop.

Design:
    - **Event-Driven**: Uses `watchdog` to react to file system events in every
      project root (recursively). The observer thread only enqueues paths; all
      decisions happen on the loop's thread, one event at a time.
    - **Debouncing**: A single :class:`ChangeDebouncer` window is shared by all
      projects. At most one timer check runs per interval, whichever project
      the triggering edit belongs to.
    - **Failure Isolation**: Harvest and notification failures are logged and
      the loop keeps running; the next edit after the window retries naturally.

Loop States:
    - ``Idle``: waiting for the next queued path.
    - ``Debounced``: the path arrived inside the cooldown window and is dropped.
    - ``Checking``: the path is resolved to a project, the timer is queried and
      a notification dispatched. Runs to completion before the next path.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Callable, Dict, Optional

from watchdog.events import (
    EVENT_TYPE_CLOSED_NO_WRITE,
    EVENT_TYPE_OPENED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from clockhand.client import TimerStatus, TimerStatusOracle
from clockhand.errors import NotificationDeliveryFailed, RemoteQueryFailed, WatchSubscriptionLost
from clockhand.notifier import NotificationDispatcher
from clockhand.projects import ProjectRegistry

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["ChangeDebouncer", "ProjectEventHandler", "WatchLoop"]

# Access events that do not change file contents.
IGNORED_EVENT_TYPES = frozenset({EVENT_TYPE_OPENED, EVENT_TYPE_CLOSED_NO_WRITE})

POLL_INTERVAL = 0.5


class ChangeDebouncer:
    """Shared cooldown window for timer checks.

    Attributes:
        interval (float): Minimum seconds between two accepted triggers.
        last_fired (Optional[float]): Monotonic time of the last accepted trigger,
            None until the first one.
    """

    __slots__ = ("interval", "last_fired", "accepted", "dropped")

    def __init__(self, interval: float = 60.0) -> None:
        self.interval = interval
        self.last_fired: Optional[float] = None
        self.accepted = 0
        self.dropped = 0

    def accept(self, now: float) -> bool:
        """Return True and restart the window if more than ``interval`` has elapsed.

        Returns False without touching the window otherwise. The first call
        always returns True.
        """
        if self.last_fired is None or now - self.last_fired > self.interval:
            self.last_fired = now
            self.accepted += 1
            return True
        self.dropped += 1
        return False

    def __repr__(self) -> str:
        return f"<ChangeDebouncer interval={self.interval} last_fired={self.last_fired}>"


class ProjectEventHandler(FileSystemEventHandler):
    """Forward changed paths from the observer thread to the watch loop."""

    def __init__(self, events: "queue.Queue[str]") -> None:
        super().__init__()
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in IGNORED_EVENT_TYPES:
            return
        # Moves report the new location.
        path = getattr(event, "dest_path", "") or event.src_path
        if isinstance(path, bytes):
            path = path.decode("utf-8", "surrogateescape")
        self.events.put(path)


class WatchLoop:
    """Watch every project root and remind the user to run the right timer.

    Args:
        registry (ProjectRegistry): Projects to watch.
        oracle (TimerStatusOracle): Timer status source.
        dispatcher (NotificationDispatcher): Notification sink.
        debouncer (ChangeDebouncer): Shared cooldown window.
        observer_factory (Callable[[], Any]): Builds the watchdog observer.
        clock (Callable[[], float]): Monotonic clock used for debouncing.
    """

    def __init__(
        self,
        registry: ProjectRegistry,
        oracle: TimerStatusOracle,
        dispatcher: NotificationDispatcher,
        debouncer: ChangeDebouncer,
        observer_factory: Callable[[], Any] = Observer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.oracle = oracle
        self.dispatcher = dispatcher
        self.debouncer = debouncer
        self.clock = clock
        self.events: "queue.Queue[str]" = queue.Queue()
        self.handler = ProjectEventHandler(self.events)
        self._observer_factory = observer_factory
        self._observer: Optional[Any] = None
        self._stopping = False
        self.start_time = clock()

        # Metrics
        self.events_seen = 0
        self.unmatched_events = 0
        self.checks = 0
        self.notifications_sent = 0
        self.failures = 0

    def start(self) -> None:
        """Subscribe to every project root, then start the observer.

        Raises:
            WatchSubscriptionLost: If a root is missing or the observer cannot
                schedule a watch or start.
        """
        observer = self._observer_factory()
        try:
            for root in self.registry.roots:
                if not root.is_dir():
                    raise WatchSubscriptionLost(f"Project root is not a directory: {root}")
                observer.schedule(self.handler, str(root), recursive=True)
                logger.info(f"Watching {root}")
            observer.start()
        except (OSError, RuntimeError) as e:
            raise WatchSubscriptionLost(
                f"Could not start file system watch: {e} (Check inotify limits?)"
            ) from e
        self._observer = observer
        logger.info(f"Observer started ({type(observer).__name__})")

    def stop(self) -> None:
        """Stop the observer thread. Safe to call more than once."""
        self._stopping = True
        observer = self._observer
        self._observer = None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join(timeout=5.0)
            if observer.is_alive():
                logger.warning("Observer thread did not terminate within timeout.")
        except RuntimeError as e:
            logger.error(f"Error stopping observer: {e}")
        logger.info("Watcher stopped.")

    def handle_path(self, path: str) -> Optional[TimerStatus]:
        """Run one loop iteration for a changed path.

        Returns:
            Optional[TimerStatus]: The evaluated status, or None if the path was
            debounced, belongs to no project, or the check failed.
        """
        self.events_seen += 1
        now = self.clock()
        if not self.debouncer.accept(now):
            if logger.isEnabledFor(logging.DEBUG):
                elapsed = now - (self.debouncer.last_fired or now)
                logger.debug(
                    f"changed: {path}, {elapsed:.1f}s since last check; interval hasn't passed"
                )
            return None

        project = self.registry.resolve(path)
        if project is None:
            self.unmatched_events += 1
            logger.debug(f"changed: {path} is not in any project, ignoring")
            return None

        logger.debug(f"changed: {path} in {project.name}, checking timer")
        self.checks += 1
        try:
            status = self.oracle.check(project)
        except RemoteQueryFailed as e:
            self.failures += 1
            logger.warning(f"Timer check for {project.name} failed: {e}")
            return None

        try:
            if self.dispatcher.dispatch(status, project):
                self.notifications_sent += 1
        except NotificationDeliveryFailed as e:
            self.failures += 1
            logger.warning(f"Notification for {project.name} failed: {e}")
        return status

    def run(self, stop_event: threading.Event) -> None:
        """Consume changed paths until ``stop_event`` is set.

        The stop event is checked between iterations; a check in progress is
        never interrupted.

        Raises:
            WatchSubscriptionLost: If the observer thread dies while running.
        """
        if self._observer is None:
            self.start()

        while not stop_event.is_set():
            try:
                path = self.events.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                self._check_observer()
                continue
            self.handle_path(path)

    def _check_observer(self) -> None:
        if self._stopping:
            return
        observer = self._observer
        if observer is None or not observer.is_alive():
            logger.critical("Watchdog observer found dead.")
            raise WatchSubscriptionLost("File system watch subscription was lost")

    def get_statistics(self) -> Dict[str, Any]:
        """Return counters describing the loop's activity."""
        return {
            "events_seen": self.events_seen,
            "debounced_events": self.debouncer.dropped,
            "unmatched_events": self.unmatched_events,
            "checks": self.checks,
            "notifications_sent": self.notifications_sent,
            "failures": self.failures,
            "uptime": self.clock() - self.start_time,
        }

    def __repr__(self) -> str:
        alive = self._observer is not None and self._observer.is_alive()
        return f"<WatchLoop projects={len(self.registry)} alive={alive}>"
