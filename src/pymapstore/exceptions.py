"""Custom exception hierarchy for pymapstore."""

from __future__ import annotations


class MappingStoreError(Exception):
    """Base exception for all pymapstore errors."""


class ConfigError(MappingStoreError):
    """Invalid or missing configuration."""


class InvalidFormatError(MappingStoreError):
    """A record did not decode into exactly two fields.

    The whole pending update is discarded; nothing from the offending
    payload is applied.
    """

    def __init__(self, message: str, *, line: int | None = None) -> None:
        self.line = line
        super().__init__(message)


class SourceIOError(MappingStoreError):
    """The source could not be read in full (missing file, broken stream)."""

    def __init__(self, message: str, *, location: str | None = None) -> None:
        self.location = location
        super().__init__(message)


class StoreConstructionError(MappingStoreError):
    """The mandatory first reload failed; the store cannot start.

    The underlying :class:`InvalidFormatError` or :class:`SourceIOError`
    is attached as ``__cause__``.
    """


class PushDisabledError(MappingStoreError):
    """Explicit pushes are only accepted when no source file is watched."""


class SlackApiError(MappingStoreError):
    """Slack Web API call failed (network or non-2xx status)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
