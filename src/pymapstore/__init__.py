"""pymapstore - Hot-reloadable key/value lookup store with a slash-command front end."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymapstore")
except PackageNotFoundError:
    __version__ = "0+local"
from pymapstore.codec import decode_records, encode_records
from pymapstore.config import BotConfig, StoreConfig
from pymapstore.exceptions import (
    ConfigError,
    InvalidFormatError,
    MappingStoreError,
    PushDisabledError,
    SlackApiError,
    SourceIOError,
    StoreConstructionError,
)
from pymapstore.state.events import (
    Directive,
    ReloadOutcome,
    SourceEvent,
    SourceEventKind,
    SourceMode,
    StoreState,
)
from pymapstore.state.table import MappingTable
from pymapstore.state.tracker import SourceTracker
from pymapstore.store import MappingStore, StoreStatus

__all__ = [
    "__version__",
    "BotConfig",
    "ConfigError",
    "Directive",
    "InvalidFormatError",
    "MappingStore",
    "MappingStoreError",
    "MappingTable",
    "PushDisabledError",
    "ReloadOutcome",
    "SlackApiError",
    "SourceEvent",
    "SourceEventKind",
    "SourceIOError",
    "SourceMode",
    "SourceTracker",
    "StoreConfig",
    "StoreConstructionError",
    "StoreState",
    "StoreStatus",
    "decode_records",
    "encode_records",
]
