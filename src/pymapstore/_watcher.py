"""Internal filesystem watch runtime built on watchdog."""

from __future__ import annotations

import logging
import os
import queue
import sys
import threading
from collections.abc import Callable
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch
from watchdog.observers.polling import PollingObserver

from pymapstore.state.events import SourceEvent, SourceEventKind

_KIND_BY_EVENT_TYPE: dict[str, SourceEventKind] = {
    "created": SourceEventKind.CREATED,
    "modified": SourceEventKind.MODIFIED,
    "closed": SourceEventKind.MODIFIED,
    "moved": SourceEventKind.MOVED,
    "deleted": SourceEventKind.DELETED,
}

# Backends that report close-after-write reload on "closed" only. The
# "created" and "modified" events an in-place rewrite sends before that
# describe a file that is still being written.
_DEFERRED_UNTIL_CLOSE = frozenset({"created", "modified"})

_STOP = object()


def reports_close_after_write(observer: BaseObserver) -> bool:
    """Whether *observer* emits ``closed`` events (inotify on Linux)."""
    return sys.platform.startswith("linux") and not isinstance(observer, PollingObserver)


def to_source_event(event: FileSystemEvent, *, close_aware: bool = False) -> SourceEvent | None:
    """Normalize a watchdog event; ``None`` for events the store never needs.

    With *close_aware*, writes are only reported once the writer closes the
    file, so a half-written source is never read.
    """
    if event.is_directory:
        return None
    if close_aware and event.event_type in _DEFERRED_UNTIL_CLOSE:
        return None
    kind = _KIND_BY_EVENT_TYPE.get(event.event_type)
    if kind is None:
        return None
    src_path = os.fsdecode(event.src_path)
    if not src_path:
        return None
    dest_raw = getattr(event, "dest_path", "")
    dest_path = os.fsdecode(dest_raw) if dest_raw else None
    return SourceEvent(kind=kind, path=src_path, dest_path=dest_path)


class _QueueingHandler(FileSystemEventHandler):
    """Runs on the observer thread; only normalizes and enqueues."""

    def __init__(self, events: queue.Queue[Any], *, close_aware: bool) -> None:
        super().__init__()
        self._events = events
        self._close_aware = close_aware

    def on_any_event(self, event: FileSystemEvent) -> None:
        source_event = to_source_event(event, close_aware=self._close_aware)
        if source_event is not None:
            self._events.put(source_event)


class SourceWatcher:
    """Watches one directory and feeds events to a single worker thread.

    The observer thread enqueues normalized :class:`SourceEvent` objects.
    The worker pulls them one at a time and calls ``on_event`` to
    completion before taking the next, so notifications for the same path
    are never handled out of order.
    """

    def __init__(
        self,
        *,
        on_event: Callable[[SourceEvent], Any],
        use_polling: bool = False,
        poll_interval: float = 1.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._on_event = on_event
        self._use_polling = use_polling
        self._poll_interval = poll_interval
        self._logger = logger or logging.getLogger(__name__)
        self._events: queue.Queue[Any] = queue.Queue()
        self._observer: BaseObserver | None = None
        self._watch: ObservedWatch | None = None
        self._worker: threading.Thread | None = None
        self._running = False
        self._close_aware = False

    @property
    def is_running(self) -> bool:
        """Whether the observer and worker are active."""
        return self._running

    @property
    def directory(self) -> str | None:
        """Directory currently registered with the observer."""
        if self._watch is None:
            return None
        return self._watch.path

    @property
    def close_aware(self) -> bool:
        """Whether writes are reported on close rather than on every chunk."""
        return self._close_aware

    def _new_observer(self) -> BaseObserver:
        if self._use_polling:
            return PollingObserver(timeout=self._poll_interval)
        return Observer()

    def _new_handler(self) -> _QueueingHandler:
        return _QueueingHandler(self._events, close_aware=self._close_aware)

    def start(self, directory: str) -> None:
        """Schedule *directory* and start the observer and worker threads."""
        self.stop()
        self._logger.debug("Watcher start requested dir=%s polling=%s", directory, self._use_polling)

        self._events = queue.Queue()
        observer = self._new_observer()
        self._close_aware = reports_close_after_write(observer)
        self._watch = observer.schedule(self._new_handler(), directory, recursive=False)
        observer.start()

        worker = threading.Thread(target=self._run, name="pymapstore-watch-worker", daemon=True)
        worker.start()

        self._observer = observer
        self._worker = worker
        self._running = True
        self._logger.debug("Watcher started dir=%s", directory)

    def reschedule(self, directory: str) -> None:
        """Move the watch to *directory*, keeping the same worker."""
        observer = self._observer
        if observer is None:
            raise RuntimeError("Watcher is not running")
        if self._watch is not None:
            if self._watch.path == directory:
                return
            observer.unschedule(self._watch)
        self._watch = observer.schedule(self._new_handler(), directory, recursive=False)
        self._logger.debug("Watcher rescheduled dir=%s", directory)

    def _run(self) -> None:
        events = self._events
        while True:
            item = events.get()
            try:
                if item is _STOP:
                    return
                self._on_event(item)
            except Exception:
                self._logger.exception("Unhandled error while processing %s", item)
            finally:
                events.task_done()

    def stop(self) -> None:
        """Stop the observer, then the worker; safe to call repeatedly."""
        observer = self._observer
        worker = self._worker
        self._observer = None
        self._worker = None
        self._watch = None
        was_running = self._running
        self._running = False

        if observer is not None:
            try:
                observer.stop()
            finally:
                observer.join()
                self._logger.debug("Watcher observer stopped")
        if worker is not None:
            self._events.put(_STOP)
            worker.join()
            self._logger.debug("Watcher worker stopped")
        if was_running:
            self._logger.debug("Watcher shut down")
