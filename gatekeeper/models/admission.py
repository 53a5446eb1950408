"""Terminal outcomes of a single admission pass."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RejectReason(str, Enum):
    ONCE_PER_DAY = "ONCE_PER_DAY"
    CONCURRENCY_LIMIT = "CONCURRENCY_LIMIT"
    DAILY_LIMIT = "DAILY_LIMIT"
    SERVER_ERROR = "SERVER_ERROR"


REJECT_MESSAGES = {
    RejectReason.ONCE_PER_DAY: "You have already used the service today. Please come back tomorrow.",
    RejectReason.CONCURRENCY_LIMIT: "Too many people are connected right now. Please try again shortly.",
    RejectReason.DAILY_LIMIT: "Today's visitor limit has been reached. Please come back tomorrow.",
    RejectReason.SERVER_ERROR: "A server error occurred. Please try again shortly.",
}


@dataclass(frozen=True)
class Admitted:
    """Client may start a session.

    ``total`` and ``concurrent_users`` are ``None`` when the store was
    unavailable and the decision failed open.
    """

    day: str
    session_token: str
    total: int | None
    concurrent_users: int | None
    token_minted: bool = False
    first_visit: bool = False
    degraded: bool = False

    allowed = True


@dataclass(frozen=True)
class Rejected:
    day: str
    reason: RejectReason
    total: int | None = None
    concurrent_users: int | None = None
    # Set when the daily counter was incremented before rejection, so the
    # client must still be marked as visited today.
    first_visit: bool = False

    allowed = False

    @property
    def message(self) -> str:
        return REJECT_MESSAGES[self.reason]


AdmissionOutcome = Admitted | Rejected
