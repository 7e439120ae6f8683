from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer
from multidict import MultiDict

from pymapstore.app import create_app
from pymapstore.config import BotConfig, StoreConfig
from pymapstore.exceptions import SlackApiError, SourceIOError
from pymapstore.slack import SlackMessenger, SlashCommand, extract_plate
from pymapstore.store import MappingStore

TOKEN = "verification-token"


@dataclass
class FakeMessenger:
    sent: list[tuple[str, str]] = field(default_factory=list)
    fail: bool = False

    async def send_dm(self, user: str, text: str) -> None:
        if self.fail:
            raise SlackApiError("slack is down", status_code=503)
        self.sent.append((user, text))


def _config(**overrides: Any) -> BotConfig:
    values: dict[str, Any] = {"token": TOKEN, "channel": "parking"}
    values.update(overrides)
    return BotConfig(**values)


def _command(**overrides: str) -> dict[str, str]:
    form = {
        "token": TOKEN,
        "channel_name": "parking",
        "user_name": "dave",
        "text": "ABC-123",
    }
    form.update(overrides)
    return form


def _push_only_store(**seed: str) -> MappingStore:
    return MappingStore(StoreConfig(seed=seed or None)).start()


@pytest.mark.asyncio
async def test_lookup_posts_in_channel() -> None:
    store = _push_only_store(ABC123="alice")
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post("/", data=_command())
        assert resp.status == 200
        body = await resp.json()

    assert body == {
        "response_type": "in_channel",
        "text": "<@alice>: Your :car: is blocking <@dave>! Please move it.",
    }


@pytest.mark.asyncio
async def test_unknown_plate_is_reported_inline() -> None:
    store = _push_only_store(ABC123="alice")
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post("/", data=_command(text="ZZZ 000"))
        assert resp.status == 200
        assert await resp.text() == "Holder for plate ZZZ000 not found"


@pytest.mark.asyncio
async def test_missing_plate_and_wrong_channel() -> None:
    store = _push_only_store(ABC123="alice")
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post("/", data=_command(text="  --  "))
        assert await resp.text() == "Please specify a plate number."

        resp = await client.post("/", data=_command(channel_name="random"))
        assert await resp.text() == "This command is only supported in #parking"


@pytest.mark.asyncio
async def test_invalid_token_is_rejected() -> None:
    store = _push_only_store(ABC123="alice")
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post("/", data=_command(token="nope"))
        assert resp.status == 401


@pytest.mark.asyncio
async def test_non_post_is_not_allowed() -> None:
    store = _push_only_store()
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.get("/")
        assert resp.status == 405
        resp = await client.get("/mapping/")
        assert resp.status == 405


@pytest.mark.asyncio
async def test_dm_sent_to_holder_when_enabled() -> None:
    store = _push_only_store(ABC123="alice")
    messenger = FakeMessenger()
    app = create_app(store, _config(enable_dm=True, api_token="xoxb"), messenger=messenger)
    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/", data=_command())
        assert resp.status == 200

    assert messenger.sent == [("alice", "Your :car: is blocking <@dave>! Please move it.")]


@pytest.mark.asyncio
async def test_dm_failure_does_not_fail_command() -> None:
    store = _push_only_store(ABC123="alice")
    messenger = FakeMessenger(fail=True)
    app = create_app(store, _config(enable_dm=True, api_token="xoxb"), messenger=messenger)
    async with TestClient(TestServer(app)) as client:
        resp = await client.post("/", data=_command())
        assert resp.status == 200
        assert (await resp.json())["response_type"] == "in_channel"


@pytest.mark.asyncio
async def test_no_dm_when_disabled() -> None:
    store = _push_only_store(ABC123="alice")
    messenger = FakeMessenger()
    app = create_app(store, _config(), messenger=messenger)
    async with TestClient(TestServer(app)) as client:
        await client.post("/", data=_command())

    assert messenger.sent == []


@pytest.mark.asyncio
async def test_push_then_lookup() -> None:
    store = _push_only_store()
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post("/mapping/", data=b"ABC123,alice\n")
        assert resp.status == 200

        resp = await client.post("/", data=_command())
        assert (await resp.json())["text"].startswith("<@alice>")


@pytest.mark.asyncio
async def test_invalid_push_is_client_error_and_keeps_table() -> None:
    store = _push_only_store(ABC123="alice")
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post("/mapping/", data=b"ABC123,bob,extra\n")
        assert resp.status == 400
        assert await resp.text() == "Invalid CSV"

    assert store.lookup("ABC123") == ("alice", True)


@pytest.mark.asyncio
async def test_failed_push_read_is_server_error(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _push_only_store(ABC123="alice")

    def unreadable(_source: object) -> None:
        raise SourceIOError("connection reset by peer")

    monkeypatch.setattr(store, "push_update", unreadable)
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post("/mapping/", data=b"ABC123,bob\n")
        assert resp.status == 500
        assert await resp.text() == "Server error"

    assert store.lookup("ABC123") == ("alice", True)


@pytest.mark.asyncio
async def test_unparseable_command_form_is_client_error() -> None:
    store = _push_only_store(ABC123="alice")
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post(
            "/",
            data=b"token=\xff\xfe&text=ABC123",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert resp.status == 400
        assert await resp.text() == "Failed to parse request"


@pytest.mark.asyncio
async def test_push_route_absent_when_watching(mapping_file: Path) -> None:
    store = MappingStore(StoreConfig(source_path=str(mapping_file)))
    store.reload()
    async with TestClient(TestServer(create_app(store, _config()))) as client:
        resp = await client.post("/mapping/", data=b"ABC123,mallory\n")
        assert resp.status == 404

    assert store.lookup("ABC123") == ("alice", True)


@pytest.mark.asyncio
async def test_slack_messenger_posts_form() -> None:
    received: list[dict[str, str]] = []

    async def post_message(request: web.Request) -> web.Response:
        received.append(dict(await request.post()))  # type: ignore[arg-type]
        return web.json_response({"ok": True})

    fake_slack = web.Application()
    fake_slack.router.add_post("/api/chat.postMessage", post_message)

    async with TestServer(fake_slack) as server, aiohttp.ClientSession() as session:
        messenger = SlackMessenger("xoxb-1", session, url=str(server.make_url("/api/chat.postMessage")))
        await messenger.send_dm("alice", "hello")

    assert received == [{"token": "xoxb-1", "channel": "@alice", "text": "hello"}]


@pytest.mark.asyncio
async def test_slack_messenger_raises_on_error_status() -> None:
    async def post_message(_request: web.Request) -> web.Response:
        return web.Response(status=500)

    fake_slack = web.Application()
    fake_slack.router.add_post("/api/chat.postMessage", post_message)

    async with TestServer(fake_slack) as server, aiohttp.ClientSession() as session:
        messenger = SlackMessenger("xoxb-1", session, url=str(server.make_url("/api/chat.postMessage")))
        with pytest.raises(SlackApiError) as excinfo:
            await messenger.send_dm("alice", "hello")

    assert excinfo.value.status_code == 500


def test_extract_plate_strips_non_alphanumerics() -> None:
    assert extract_plate("  ab-12 c! ") == "ab12c"


def test_slash_command_repeated_text_means_no_plate() -> None:
    form = MultiDict([("token", TOKEN), ("text", "ABC123"), ("text", "XYZ789")])
    command = SlashCommand.from_form(form)
    assert command.plate() == ""
    assert command.token == TOKEN
