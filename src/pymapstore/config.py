"""Store and service configuration for pymapstore."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from pymapstore.exceptions import ConfigError
from pymapstore.state.events import SourceMode


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Mapping store configuration.

    Parameters
    ----------
    source_path : str or None
        Path of the CSV mapping file to load and watch. ``None`` (or an
        empty string) selects push-only mode: nothing is watched and the
        table only changes through :meth:`MappingStore.push_update`.
    seed : Mapping[str, str] or None
        Initial entries for push-only mode. Ignored when ``source_path``
        is set.
    use_polling : bool
        Use the stat-polling observer instead of the native OS notification
        backend. Useful on network filesystems and some container bind
        mounts where inotify events are not delivered.
    poll_interval : float
        Seconds between directory scans when ``use_polling`` is enabled.
    """

    source_path: str | None = None
    seed: Mapping[str, str] | None = None
    use_polling: bool = False
    poll_interval: float = 1.0

    def __post_init__(self) -> None:
        if self.source_path == "":
            object.__setattr__(self, "source_path", None)
        if self.poll_interval <= 0:
            raise ConfigError("poll_interval must be positive")

    @property
    def mode(self) -> SourceMode:
        """Watched when a source file is configured, push-only otherwise."""
        if self.source_path:
            return SourceMode.WATCHED
        return SourceMode.PUSH_ONLY

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreConfig:
        """Create store configuration from ``MAPSTORE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        path_env = env.get("MAPSTORE_MAPPING_FILE")
        if path_env is not None:
            config_kwargs["source_path"] = path_env

        if "use_polling" not in overrides:
            config_kwargs["use_polling"] = _env_bool(env.get("MAPSTORE_USE_POLLING"), False)

        interval_env = env.get("MAPSTORE_POLL_INTERVAL")
        if interval_env is not None and "poll_interval" not in overrides:
            try:
                config_kwargs["poll_interval"] = float(interval_env)
            except ValueError as exc:
                raise ConfigError(f"MAPSTORE_POLL_INTERVAL is not a number: {interval_env!r}") from exc

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class BotConfig:
    """Slash-command service configuration.

    Parameters
    ----------
    token : str
        Verification token Slack sends with every slash command.
    channel : str
        The only channel (name, without ``#``) the command may be used in.
    enable_dm : bool
        Also send a direct message to the holder of the blocking car.
    api_token : str or None
        Slack Web API token, required when ``enable_dm`` is set.
    host : str
        Interface the HTTP server binds to.
    port : int
        Port the HTTP server listens on.
    store : StoreConfig
        Mapping store configuration.
    """

    token: str
    channel: str
    enable_dm: bool = False
    api_token: str | None = None
    host: str = "0.0.0.0"
    port: int = 8080
    store: StoreConfig = dataclasses.field(default_factory=StoreConfig)

    def validate(self) -> None:
        """Raise :class:`ConfigError` for unusable settings."""
        if not self.token:
            raise ConfigError("Please specify a token using --token")
        if not self.channel:
            raise ConfigError("Please specify a channel using --channel")
        if self.enable_dm and not self.api_token:
            raise ConfigError(
                "You have to specify an API token using --api-token if you want to send direct messages."
            )
        if not 0 < self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}")

    @classmethod
    def from_env(cls, **overrides: Any) -> BotConfig:
        """Create service configuration from environment variables.

        Reads ``MAPSTORE_TOKEN``, ``MAPSTORE_CHANNEL``, ``MAPSTORE_API_TOKEN``,
        ``MAPSTORE_DM``, ``MAPSTORE_HOST`` and ``MAPSTORE_PORT``; the nested
        store section comes from :meth:`StoreConfig.from_env` unless a
        ``store`` override is given. Explicit keyword arguments win.
        """
        env = os.environ

        store_overrides = overrides.pop("store", None)
        if isinstance(store_overrides, StoreConfig):
            store = store_overrides
        elif isinstance(store_overrides, dict):
            store = StoreConfig.from_env(**store_overrides)
        else:
            store = StoreConfig.from_env()

        _ENV_CONFIG_MAP = {
            "MAPSTORE_TOKEN": "token",
            "MAPSTORE_CHANNEL": "channel",
            "MAPSTORE_API_TOKEN": "api_token",
            "MAPSTORE_HOST": "host",
        }
        config_kwargs: dict[str, Any] = {"store": store, "token": "", "channel": ""}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        if "enable_dm" not in overrides:
            config_kwargs["enable_dm"] = _env_bool(env.get("MAPSTORE_DM"), False)

        port_env = env.get("MAPSTORE_PORT")
        if port_env is not None and "port" not in overrides:
            try:
                config_kwargs["port"] = int(port_env)
            except ValueError as exc:
                raise ConfigError(f"MAPSTORE_PORT is not an integer: {port_env!r}") from exc

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
