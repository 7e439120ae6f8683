"""Slack slash-command payloads, responses and direct messages."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Literal, Protocol

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from pymapstore._redact import redact_form
from pymapstore.exceptions import SlackApiError

_logger = logging.getLogger(__name__)

POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"

_PLATE_STRIP = re.compile(r"[^a-zA-Z0-9]")


class SlashCommand(BaseModel):
    """The subset of a slash-command form body the service reads.

    Slack sends many more fields; they are kept in ``model_extra``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    token: str = ""
    channel_name: str = ""
    user_name: str = ""
    text: str | None = None

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> SlashCommand:
        """Build from a multi-dict form; repeated fields keep the first value.

        ``text`` becomes ``None`` when it is repeated, as an ambiguous
        plate is treated the same as a missing one.
        """
        getall = getattr(form, "getall", None)
        values: dict[str, Any] = {}
        for key in set(form.keys()):
            items = list(getall(key)) if getall is not None else [form[key]]
            if key == "text" and len(items) != 1:
                values[key] = None
                continue
            values[key] = str(items[0]) if items else ""
        return cls.model_validate(values)

    def plate(self) -> str:
        """Plate number from ``text``: trimmed, alphanumerics only."""
        if self.text is None:
            return ""
        return extract_plate(self.text)


class ChannelResponse(BaseModel):
    """JSON reply that Slack posts visibly into the channel."""

    model_config = ConfigDict(frozen=True)

    response_type: Literal["in_channel", "ephemeral"] = "in_channel"
    text: str = Field(...)


def extract_plate(text: str) -> str:
    return _PLATE_STRIP.sub("", text.strip())


def blocking_message(holder: str, user: str) -> str:
    return f"<@{holder}>: Your :car: is blocking <@{user}>! Please move it."


def direct_message(user: str) -> str:
    return f"Your :car: is blocking <@{user}>! Please move it."


class Messenger(Protocol):
    """Sends a direct message to a Slack user.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`SlackMessenger`) concrete.
    """

    async def send_dm(self, user: str, text: str) -> None:
        ...


class SlackMessenger:
    """Direct messages through the Slack Web API ``chat.postMessage``."""

    def __init__(
        self,
        api_token: str,
        http_session: aiohttp.ClientSession,
        *,
        url: str = POST_MESSAGE_URL,
    ) -> None:
        self._api_token = api_token
        self._http = http_session
        self._url = url

    async def send_dm(self, user: str, text: str) -> None:
        form = {
            "token": self._api_token,
            "channel": f"@{user}",
            "text": text,
        }
        _logger.debug("DM request %s", redact_form(form))
        try:
            async with self._http.post(self._url, data=form) as response:
                await response.read()
                if response.status >= 300:
                    raise SlackApiError(
                        f"Unexpected response code received during DM-sending: {response.status}",
                        status_code=response.status,
                    )
        except aiohttp.ClientError as exc:
            raise SlackApiError(f"DM-sending failed: {exc}") from exc
