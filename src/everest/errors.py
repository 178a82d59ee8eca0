"""Everest exception hierarchy.

Shared across Router, RoutingContext, message objects and the ASGI adapter
so every module raises and catches the same types.
"""

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from everest.http.response import Response

logger = logging.getLogger("everest.errors")


class EverestError(Exception):
    """Base for all everest-specific errors."""


class ConfigurationError(EverestError):
    """Raised when the routing setup is invalid.

    Signals a programming mistake (a middleware returning the wrong shape,
    a context without routes, a handler returning an unsupported value),
    never a condition caused by the client.
    """


@dataclass(eq=False)
class HttpException(EverestError):
    """An error that maps directly to an HTTP status code.

    Raised by the router (404 when nothing matches), by handlers, or by
    middleware. Unknown status codes fall back to 500.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if self.status not in HTTPStatus._value2member_map_:
            logger.warning("Unknown HTTP status code %r, using 500 instead", self.status)
            self.status = 500

    @property
    def message(self) -> str:
        """The reason phrase for ``status``."""
        return HTTPStatus(self.status).phrase

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return f"{self.status}: {self.message}"

    def to_response(self) -> "Response":
        """Render this error as a plain-text response."""
        from everest.http.response import Response

        return Response(
            body=self.detail or self.message,
            status=self.status,
            headers={"Content-Type": "text/plain; charset=utf-8", **dict(self.headers)},
        )


class NotFound(HttpException):  # noqa: N818
    """404: no context or route matched the request."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)
