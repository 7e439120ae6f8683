"""Tracks where the mapping source currently lives."""

from __future__ import annotations

import logging
import os

from pymapstore.state.events import Directive, SourceEvent, SourceMode
from pymapstore.state.policy import resolve_directive

_logger = logging.getLogger(__name__)


class SourceTracker:
    """Current source location plus the rules for reacting to its lifecycle.

    The tracker itself is not synchronized. :class:`pymapstore.store.MappingStore`
    only mutates it while holding its reload lock.
    """

    def __init__(self, location: str | None) -> None:
        if location:
            self._location: str | None = os.path.abspath(location)
            self._mode = SourceMode.WATCHED
        else:
            self._location = None
            self._mode = SourceMode.PUSH_ONLY

    @property
    def location(self) -> str | None:
        return self._location

    @property
    def mode(self) -> SourceMode:
        return self._mode

    @property
    def watch_dir(self) -> str | None:
        """Directory the watcher must be scheduled on to see the source."""
        if self._location is None:
            return None
        return os.path.dirname(self._location)

    def directive_for(self, event: SourceEvent) -> Directive:
        return resolve_directive(event, self._location)

    def retarget(self, new_location: str) -> bool:
        """Point the tracker at *new_location*.

        Returns ``True`` when the containing directory changed, meaning the
        watcher has to be re-scheduled to keep seeing the source.
        """
        if self._mode != SourceMode.WATCHED:
            raise RuntimeError("Cannot retarget a push-only source")
        if not new_location:
            raise ValueError("new_location must be non-empty")

        old_dir = self.watch_dir
        self._location = os.path.abspath(new_location)
        _logger.info("Mapping source renamed, now tracking %s", self._location)
        return self.watch_dir != old_dir
