"""Hot-reloadable mapping store.

:class:`MappingStore` is the single entry point for both reload origins:
filesystem notifications delivered by :class:`pymapstore._watcher.SourceWatcher`
and explicit pushes from callers. Both funnel through one lock that guards
table replacement and source retargeting, so reloads never interleave.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from pymapstore._watcher import SourceWatcher
from pymapstore.codec import RecordSource, decode_records
from pymapstore.config import StoreConfig
from pymapstore.exceptions import (
    InvalidFormatError,
    MappingStoreError,
    PushDisabledError,
    SourceIOError,
    StoreConstructionError,
)
from pymapstore.state.events import Directive, ReloadOutcome, SourceEvent, SourceMode, StoreState
from pymapstore.state.table import MappingTable
from pymapstore.state.tracker import SourceTracker

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StoreStatus(BaseModel):
    """Point-in-time view of the store's bookkeeping."""

    model_config = ConfigDict(frozen=True)

    state: StoreState
    mode: SourceMode
    location: str | None
    entries: int
    last_outcome: ReloadOutcome | None = None
    last_loaded_at: datetime | None = None
    reloads_applied: int = 0
    reloads_rejected: int = 0


class MappingStore:
    """Concurrency-safe key/value store kept in sync with a CSV source.

    Usage::

        with MappingStore(StoreConfig(source_path="mapping.csv")) as store:
            holder, found = store.lookup("ABC123")

    Without a ``source_path`` the store runs push-only and changes only
    through :meth:`push_update`.
    """

    def __init__(self, config: StoreConfig | None = None) -> None:
        self._config = config or StoreConfig()
        self._table = MappingTable()
        self._tracker = SourceTracker(self._config.source_path)
        self._reload_lock = threading.Lock()
        self._watcher: SourceWatcher | None = None
        self._started = False
        self._state = StoreState.UNINITIALIZED
        self._last_outcome: ReloadOutcome | None = None
        self._last_loaded_at: datetime | None = None
        self._reloads_applied = 0
        self._reloads_rejected = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> MappingStore:
        return self.start()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def start(self) -> MappingStore:
        """Begin watching the source and perform the mandatory first load.

        Raises
        ------
        StoreConstructionError
            The source could not be read or decoded, or the watch could not
            be registered. The store is left in the ``FAILED`` state.
        """
        if self._state == StoreState.FAILED:
            raise StoreConstructionError("Store failed to start; create a new instance")
        if self._started:
            return self

        if self._tracker.mode == SourceMode.PUSH_ONLY:
            if self._config.seed:
                with self._reload_lock:
                    self._install(self._config.seed.items(), origin="seed")
            _logger.info("No mapping file provided, using explicit updates.")
            self._started = True
            return self

        location = self._tracker.location
        watch_dir = self._tracker.watch_dir
        assert watch_dir is not None  # noqa: S101
        watcher = SourceWatcher(
            on_event=self.handle_event,
            use_polling=self._config.use_polling,
            poll_interval=self._config.poll_interval,
        )
        # Watch before the first read so a write racing the load is queued.
        try:
            watcher.start(watch_dir)
        except OSError as exc:
            watcher.stop()
            self._state = StoreState.FAILED
            raise StoreConstructionError(f"Could not watch {watch_dir}: {exc}") from exc
        self._watcher = watcher

        try:
            self.reload()
        except (InvalidFormatError, SourceIOError) as exc:
            self._state = StoreState.FAILED
            self._watcher = None
            watcher.stop()
            raise StoreConstructionError(f"Initial load of {location} failed: {exc}") from exc

        self._started = True
        _logger.info("Watching mapping file %s", location)
        return self

    def close(self) -> None:
        """Release the filesystem watch; later calls are no-ops."""
        watcher = self._watcher
        self._watcher = None
        self._started = False
        if watcher is not None:
            watcher.stop()
            _logger.debug("Mapping store closed")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def lookup(self, key: str) -> tuple[str, bool]:
        """Return ``(value, True)``, or ``("", False)`` when *key* is unknown."""
        return self._table.lookup(key)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._table.get(key, default)

    def snapshot(self) -> Mapping[str, str]:
        return self._table.snapshot()

    def __contains__(self, key: object) -> bool:
        return key in self._table

    def __len__(self) -> int:
        return len(self._table)

    # ------------------------------------------------------------------
    # Reloads
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def mode(self) -> SourceMode:
        return self._tracker.mode

    @property
    def location(self) -> str | None:
        return self._tracker.location

    def reload(self, source: RecordSource | None = None) -> int:
        """Replace the whole table, serialized against every other reload.

        With *source*, decode and apply it. Without, re-read the tracked
        file from scratch. Returns the number of entries installed.

        Raises
        ------
        InvalidFormatError, SourceIOError
            The update was rejected; the previous table is still served.
        """
        with self._reload_lock:
            return self._reload_locked(source)

    def push_update(self, source: RecordSource) -> None:
        """Replace the table with pushed CSV contents (push-only mode).

        Raises
        ------
        PushDisabledError
            A source file is being watched; it is the only source of truth.
        InvalidFormatError, SourceIOError
            The payload was rejected; the previous table is still served.
        """
        if self._tracker.mode != SourceMode.PUSH_ONLY:
            raise PushDisabledError(f"Store is tracking {self._tracker.location}; explicit updates are disabled")
        self.reload(source)

    def handle_event(self, event: SourceEvent) -> Directive:
        """Process one source lifecycle notification to completion.

        Reload failures are logged and the last-known-good table is kept.
        """
        with self._reload_lock:
            if self._state == StoreState.FAILED:
                _logger.debug("Store failed to start, dropping %s event for %s", event.kind, event.path)
                return Directive.IGNORE
            directive = self._tracker.directive_for(event)
            if directive == Directive.IGNORE:
                _logger.debug("Ignoring %s event for %s", event.kind, event.path)
                return directive

            if directive == Directive.HOLD:
                _logger.warning("Mapping file %s was removed. Continuing to use old data.", event.path)
                return directive

            if directive == Directive.RETARGET:
                assert event.dest_path is not None  # noqa: S101
                if self._tracker.retarget(event.dest_path) and self._watcher is not None:
                    watch_dir = self._tracker.watch_dir
                    assert watch_dir is not None  # noqa: S101
                    self._watcher.reschedule(watch_dir)

            try:
                self._reload_locked(None)
            except (InvalidFormatError, SourceIOError) as exc:
                _logger.warning("Reload of %s failed, keeping previous data: %s", self._tracker.location, exc)
            return directive

    def status(self) -> StoreStatus:
        return StoreStatus(
            state=self._state,
            mode=self._tracker.mode,
            location=self._tracker.location,
            entries=len(self._table),
            last_outcome=self._last_outcome,
            last_loaded_at=self._last_loaded_at,
            reloads_applied=self._reloads_applied,
            reloads_rejected=self._reloads_rejected,
        )

    # ------------------------------------------------------------------
    # Internal helpers (caller holds _reload_lock)
    # ------------------------------------------------------------------

    def _reload_locked(self, source: RecordSource | None) -> int:
        if self._state == StoreState.FAILED:
            raise MappingStoreError("Store failed to start and cannot be reloaded")

        if source is not None:
            origin = "push"
            pairs = self._decode(source, location=None)
        else:
            location = self._tracker.location
            if location is None:
                _logger.debug("No mapping file to reload from")
                return len(self._table)
            origin = location
            try:
                with open(location, "rb") as fp:
                    pairs = self._decode(fp, location=location)
            except OSError as exc:
                self._reject(ReloadOutcome.REJECTED_IO_ERROR)
                raise SourceIOError(f"Cannot read mapping file {location}: {exc}", location=location) from exc

        return self._install(pairs, origin=origin)

    def _decode(self, source: RecordSource, *, location: str | None) -> list[tuple[str, str]]:
        try:
            return decode_records(source)
        except InvalidFormatError:
            self._reject(ReloadOutcome.REJECTED_INVALID_FORMAT)
            raise
        except SourceIOError as exc:
            self._reject(ReloadOutcome.REJECTED_IO_ERROR)
            if exc.location is None and location is not None:
                exc.location = location
            raise

    def _install(self, pairs: Iterable[tuple[str, str]], *, origin: str) -> int:
        count = self._table.replace(pairs)
        self._state = StoreState.READY
        self._last_outcome = ReloadOutcome.APPLIED
        self._last_loaded_at = _utcnow()
        self._reloads_applied += 1
        _logger.info("Store updated from %s (%d entries)", origin, count)
        return count

    def _reject(self, outcome: ReloadOutcome) -> None:
        self._last_outcome = outcome
        self._reloads_rejected += 1
