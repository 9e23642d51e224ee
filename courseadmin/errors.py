"""
Error taxonomy for talking to the course API.

Every failure that crosses the transport boundary is one of:

    NetworkError  no response at all (connection refused, DNS, timeout)
    HttpError     the server answered with a 4xx/5xx status
    DecodeError   the server answered 2xx but the body is unusable

All three derive from ApiError so callers can catch the family at once.
Coercion problems inside the projector are not errors: they fall back to
documented defaults and are only logged.
"""

from __future__ import annotations

from typing import Any


UNPROCESSABLE_ENTITY = 422


class ApiError(Exception):
    """Base class for failures raised by the transport client."""


class NetworkError(ApiError):
    """The request never produced a response."""


class HttpError(ApiError):
    """
    Non-2xx response. `body` holds the parsed JSON body when the server sent
    one, otherwise the raw text (possibly empty).
    """

    def __init__(self, status: int, body: Any = None, message: str | None = None) -> None:
        self.status = status
        self.body = body
        super().__init__(message or f"HTTP {status}")

    @property
    def is_validation_error(self) -> bool:
        return self.status == UNPROCESSABLE_ENTITY

    def validation_errors(self) -> dict[str, list[str]]:
        """
        Field -> messages mapping from a 422 body ({"errors": {...}}).

        Returns an empty dict for any other status or an unexpected shape.
        Message lists are forwarded in server order.
        """
        if not self.is_validation_error or not isinstance(self.body, dict):
            return {}
        errors = self.body.get("errors")
        if not isinstance(errors, dict):
            return {}

        out: dict[str, list[str]] = {}
        for field, messages in errors.items():
            if isinstance(messages, list):
                out[str(field)] = [str(m) for m in messages]
            elif messages is not None:
                out[str(field)] = [str(messages)]
        return out


class DecodeError(ApiError):
    """The response body is malformed or does not match the expected schema."""
