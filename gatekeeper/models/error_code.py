from enum import Enum


class ErrorCode(str, Enum):
    """Codes carried by ``ErrorResponse`` bodies."""

    BAD_REQUEST = "BAD_REQUEST"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
