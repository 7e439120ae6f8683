"""Deterministic event-to-directive policy.

This module contains *no* I/O. It only decides, given the currently tracked
location, what a single source event means for the store.
"""

from __future__ import annotations

import os

from pymapstore.state.events import Directive, SourceEvent, SourceEventKind


def same_path(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return False
    return os.path.normpath(a) == os.path.normpath(b)


def resolve_directive(event: SourceEvent, location: str | None) -> Directive:
    """Map *event* onto a directive for the tracked *location*.

    Policy:
    - created/modified at the tracked path: reload in place.
    - tracked path moved away: retarget to the new name, then reload.
    - another file moved onto the tracked path (atomic replace): reload.
    - tracked path deleted: hold the last-known-good table.
    - everything else, including the old name after a retarget: ignore.
    """
    if location is None:
        return Directive.IGNORE

    if event.kind == SourceEventKind.MOVED:
        if same_path(event.path, location) and event.dest_path:
            return Directive.RETARGET
        if same_path(event.dest_path, location):
            return Directive.RELOAD
        return Directive.IGNORE

    if not same_path(event.path, location):
        return Directive.IGNORE

    if event.kind == SourceEventKind.DELETED:
        return Directive.HOLD
    return Directive.RELOAD
