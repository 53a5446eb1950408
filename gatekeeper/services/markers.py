"""Client-held markers: the only memory of a client between requests.

Markers are untrusted hints. Each stores a day key rather than a flag, so
comparing it with the current day is the whole expiry mechanism.
"""
from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from typing import Mapping

from fastapi import Response

from gatekeeper.config import Settings

USED_TODAY_COOKIE = "used_today"
VISITED_DATE_COOKIE = "visited_date"
SESSION_COOKIE = "session_id"
SESSION_HEADER = "X-Session-Id"

TOKEN_BYTES = 16
_TOKEN_RE = re.compile(r"^[0-9a-f]{%d}$" % (TOKEN_BYTES * 2))


@dataclass(frozen=True)
class ClientIdentity:
    has_used_today: bool
    is_first_visit_today: bool
    session_token: str | None


def mint_session_token() -> str:
    """Return a fresh 128-bit token as 32 lowercase hex characters."""
    return secrets.token_hex(TOKEN_BYTES)


def clean_token(value: str | None) -> str | None:
    if value and _TOKEN_RE.match(value):
        return value
    return None


def resolve_identity(cookies: Mapping[str, str], today: str) -> ClientIdentity:
    return ClientIdentity(
        has_used_today=cookies.get(USED_TODAY_COOKIE) == today,
        is_first_visit_today=cookies.get(VISITED_DATE_COOKIE) != today,
        session_token=clean_token(cookies.get(SESSION_COOKIE)),
    )


def session_token_from(cookies: Mapping[str, str], headers: Mapping[str, str]) -> str | None:
    """Token for heartbeat/leave: cookie first, then the ``X-Session-Id`` header."""
    return clean_token(cookies.get(SESSION_COOKIE)) or clean_token(
        headers.get(SESSION_HEADER)
    )


class MarkerWriter:
    def __init__(self, settings: Settings):
        self.max_age = settings.marker_max_age_s
        self.secure = settings.cookie_secure

    def _set(self, response: Response, name: str, value: str) -> None:
        response.set_cookie(
            name,
            value,
            max_age=self.max_age,
            httponly=False,
            samesite="lax",
            secure=self.secure,
        )

    def mark_visited(self, response: Response, today: str) -> None:
        self._set(response, VISITED_DATE_COOKIE, today)

    def mark_used(self, response: Response, today: str) -> None:
        self._set(response, USED_TODAY_COOKIE, today)

    def set_session_token(self, response: Response, token: str) -> None:
        self._set(response, SESSION_COOKIE, token)
