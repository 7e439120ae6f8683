"""aiohttp application: slash-command lookups and CSV pushes."""

from __future__ import annotations

import asyncio
import hmac
import logging
from collections.abc import AsyncIterator

import aiohttp
from aiohttp import web

from pymapstore._redact import redact_form
from pymapstore.config import BotConfig
from pymapstore.exceptions import InvalidFormatError, MappingStoreError, SlackApiError
from pymapstore.slack import (
    ChannelResponse,
    Messenger,
    SlackMessenger,
    SlashCommand,
    blocking_message,
    direct_message,
)
from pymapstore.state.events import SourceMode
from pymapstore.store import MappingStore

_logger = logging.getLogger(__name__)

#: Upper bound for pushed CSV bodies.
MAX_PUSH_BYTES = 32 * 1024 * 1024

_DM_TIMEOUT = aiohttp.ClientTimeout(total=10)


class MappingService:
    """Request handlers bound to one store and configuration."""

    def __init__(
        self,
        store: MappingStore,
        config: BotConfig,
        *,
        messenger: Messenger | None = None,
    ) -> None:
        self._store = store
        self._config = config
        self._messenger = messenger

    async def slack_session_ctx(self, _app: web.Application) -> AsyncIterator[None]:
        """Own the Slack HTTP session for the lifetime of the application."""
        assert self._config.api_token is not None  # noqa: S101
        async with aiohttp.ClientSession(timeout=_DM_TIMEOUT) as session:
            self._messenger = SlackMessenger(self._config.api_token, session)
            yield
            self._messenger = None

    async def handle_command(self, request: web.Request) -> web.StreamResponse:
        try:
            form = await request.post()
        except ValueError as exc:
            _logger.warning("Failed to parse slash command: %s", exc)
            return web.Response(status=400, text="Failed to parse request")
        _logger.debug("Slash command %s", redact_form(form))

        command = SlashCommand.from_form(form)
        if not hmac.compare_digest(command.token.encode(), self._config.token.encode()):
            _logger.warning("Rejected slash command with invalid token from %s", request.remote)
            return web.Response(status=401, text="Invalid token")

        if command.channel_name != self._config.channel:
            return web.Response(text=f"This command is only supported in #{self._config.channel}")

        plate = command.plate()
        if not plate:
            return web.Response(text="Please specify a plate number.")

        holder, found = self._store.lookup(plate)
        if not found:
            return web.Response(text=f"Holder for plate {plate} not found")

        user = command.user_name
        reply = ChannelResponse(text=blocking_message(holder, user))
        if self._config.enable_dm and self._messenger is not None:
            try:
                await self._messenger.send_dm(holder, direct_message(user))
            except SlackApiError as exc:
                _logger.warning("Failed to DM %s: %s", holder, exc)
        return web.json_response(reply.model_dump())

    async def handle_push(self, request: web.Request) -> web.StreamResponse:
        try:
            body = await request.read()
        except (aiohttp.ClientError, ConnectionError) as exc:
            _logger.warning("Failed to read mapping push: %s", exc)
            return web.Response(status=500, text="Server error")

        try:
            await asyncio.to_thread(self._store.push_update, body)
        except InvalidFormatError as exc:
            _logger.warning("Rejected mapping push: %s", exc)
            return web.Response(status=400, text="Invalid CSV")
        except MappingStoreError as exc:
            _logger.error("Mapping push failed: %s", exc)
            return web.Response(status=500, text="Server error")
        return web.Response()


def create_app(
    store: MappingStore,
    config: BotConfig,
    *,
    messenger: Messenger | None = None,
) -> web.Application:
    """Build the web application around an already started *store*.

    ``POST /mapping/`` is only routed when the store runs push-only. When
    DMs are enabled and no *messenger* is given, a :class:`SlackMessenger`
    with its own HTTP session is created on startup.
    """
    service = MappingService(store, config, messenger=messenger)
    app = web.Application(client_max_size=MAX_PUSH_BYTES)
    app.router.add_post("/", service.handle_command)
    if store.mode == SourceMode.PUSH_ONLY:
        app.router.add_post("/mapping/", service.handle_push)
    if config.enable_dm and messenger is None:
        app.cleanup_ctx.append(service.slack_session_ctx)
    return app
