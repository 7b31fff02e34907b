"""
Errors raised by the catalog API client and the message extraction used to
surface them in the admin UI.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

UNKNOWN_ERROR = "An unknown error occurred"
UNEXPECTED_ERROR = "An unexpected error occurred"


@dataclass(frozen=True)
class ErrorResponse:
    """Decoded error response from the catalog API."""

    status_code: int | None
    data: Mapping[str, Any] | None


class ServiceRequestError(Exception):
    """Raised when a catalog API call fails in transport or is rejected by the server."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        data: Mapping[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.data = data
        self.response = ErrorResponse(status_code=status_code, data=data)


def get_error_message(error: object) -> str:
    """
    Extract a human-readable message from anything a run can fail with.

    Shapes are tried in order:
    1. transport error carrying a response payload: ``data["message"]``,
       then ``data["error"]``
    2. generic error with a top-level message
    3. a constant fallback
    """
    if error is None or (not error and not isinstance(error, Mapping)):
        return UNKNOWN_ERROR

    payload = _response_payload(error)
    if payload is not None:
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str):
                return value

    message = _top_level_message(error)
    if message:
        return message

    return UNEXPECTED_ERROR


def _response_payload(error: object) -> Mapping[str, Any] | None:
    """Decode the ``response.data`` mapping of a transport-shaped error, if any."""
    if isinstance(error, ServiceRequestError):
        return error.data

    if isinstance(error, httpx.HTTPStatusError):
        return response_json(error.response)

    if isinstance(error, Mapping):
        response = error.get("response")
    else:
        response = getattr(error, "response", None)

    if isinstance(response, Mapping):
        data = response.get("data")
    else:
        data = getattr(response, "data", None)

    return data if isinstance(data, Mapping) else None


def _top_level_message(error: object) -> str | None:
    if isinstance(error, Mapping):
        message = error.get("message")
        return message if isinstance(message, str) else None

    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message

    if isinstance(error, BaseException):
        return str(error) or None

    return None


def response_json(response: httpx.Response) -> Mapping[str, Any] | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, Mapping) else None
