"""Helpers for safe debug logging of form payloads.

Slash-command bodies carry the verification token, and outgoing DM forms
carry the Slack Web API token. Both pass through :func:`redact_form` before
they are written to DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "token",
        "api_token",
        "response_url",
        "trigger_id",
    }
)


def _shorten(value: str, max_string: int) -> str:
    if len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value


def redact_form(form: Mapping[str, Any], *, max_string: int = 256) -> dict[str, Any]:
    """Return a loggable copy of a (multi-)dict form body.

    Repeated fields become lists. Secret fields are replaced by
    ``<redacted>`` and long values are truncated.
    """
    getall = getattr(form, "getall", None)
    redacted: dict[str, Any] = {}
    for key in dict.fromkeys(form.keys()):
        name = str(key)
        if name.lower() in _SENSITIVE_FIELDS:
            redacted[name] = "<redacted>"
            continue
        values = list(getall(key)) if getall is not None else [form[key]]
        shown = [_shorten(str(v), max_string) for v in values]
        redacted[name] = shown[0] if len(shown) == 1 else shown
    return redacted
