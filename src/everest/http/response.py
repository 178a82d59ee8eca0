"""HTTP responses with a chainable .with_*() transformation API.

Each transformation returns a new Response, or the same instance when
nothing changes. ``JsonResponse`` and ``RedirectResponse`` derive their
body and headers from a payload (``data`` / ``target``).
"""

from __future__ import annotations

import html
import json as json_module
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from http import HTTPStatus
from typing import Any

from everest.http.cookies import Cookie
from everest.http.headers import Headers
from everest.http.message import MessageMixin, validate_protocol_version
from everest.http.uri import Uri


def validate_status(status: int) -> int:
    if isinstance(status, bool) or status not in HTTPStatus._value2member_map_:
        msg = f"The HTTP status code {status!r} is unknown."
        raise ValueError(msg)
    return int(status)


@dataclass(frozen=True, slots=True)
class Response(MessageMixin):
    """An HTTP response built through immutable transformations.

    Construct with a body, then chain ``.with_*()`` calls to set
    status, headers, and cookies::

        Response("Created", status=201).with_header("Location", "/items/1")
    """

    body: str | bytes = ""
    status: int = 200
    headers: Headers = field(default_factory=Headers)
    protocol_version: str = "1.1"
    reason_phrase: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.body, (str, bytes)):
            msg = f"Response body must be str or bytes, got {type(self.body).__name__}"
            raise TypeError(msg)
        object.__setattr__(self, "status", validate_status(self.status))
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(self.headers))
        object.__setattr__(self, "protocol_version", validate_protocol_version(self.protocol_version))

    # -- Chainable transformations --

    def with_status(self, status: int, reason_phrase: str | None = None) -> Response:
        status = validate_status(status)
        if status == self.status and reason_phrase == self.reason_phrase:
            return self
        return replace(self, status=status, reason_phrase=reason_phrase)

    def with_body(self, body: str | bytes) -> Response:
        if body == self.body:
            return self
        return replace(self, body=body)

    def with_cookie(self, cookie: Cookie) -> Response:
        """Return a Response with an additional ``Set-Cookie`` header."""
        return self.with_cookies([cookie])

    def with_cookies(self, cookies: Iterable[Cookie]) -> Response:
        return self.with_added_header("Set-Cookie", [cookie.to_header_line() for cookie in cookies])

    # -- Body helpers --

    @property
    def reason(self) -> str:
        """The custom reason phrase, or the standard one for ``status``."""
        return self.reason_phrase or HTTPStatus(self.status).phrase

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def body_bytes(self) -> bytes:
        """Body as bytes."""
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return self.body

    @property
    def text(self) -> str:
        """Body as string."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8")
        return self.body

    def __str__(self) -> str:
        lines = [f"HTTP/{self.protocol_version} {self.status} {self.reason}"]
        lines.extend(f"{name}: {', '.join(values)}" for name, values in self.headers.to_dict().items())
        return ("\r\n".join(lines) + "\r\n\r\n" + self.text).strip()


@dataclass(frozen=True, slots=True)
class JsonResponse(Response):
    """A response whose body is *data* serialised as JSON.

    Raises ``ValueError`` when *data* is not JSON-serialisable.
    """

    data: Any = None

    def __post_init__(self) -> None:
        if not self.body:
            try:
                body = json_module.dumps(self.data)
            except (TypeError, ValueError) as exc:
                msg = f"Response data is not JSON serialisable: {exc}"
                raise ValueError(msg) from exc
            object.__setattr__(self, "body", body)
        Response.__post_init__(self)
        object.__setattr__(self, "headers", self.headers.with_header("Content-Type", "application/json"))

    def with_data(self, data: Any) -> JsonResponse:
        if data == self.data:
            return self
        return replace(self, data=data, body="")


def _redirect_body(target: Uri) -> str:
    url = html.escape(str(target), quote=True)
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "    <head>\n"
        '        <meta charset="UTF-8" />\n'
        f'        <meta http-equiv="refresh" content="0; url={url}" />\n'
        "    </head>\n"
        "    <body>\n"
        f'        <p>Redirecting to <a href="{url}">{url}</a>.</p>\n'
        "    </body>\n"
        "</html>"
    )


@dataclass(frozen=True, slots=True)
class RedirectResponse(Response):
    """A redirect to *target* (302 by default).

    Sets the ``Location`` header and a small HTML body that refreshes
    to the target for clients that ignore the header.
    """

    status: int = 302
    target: Uri = field(default_factory=Uri)

    def __post_init__(self) -> None:
        object.__setattr__(self, "target", Uri.from_value(self.target))
        if not self.body:
            object.__setattr__(self, "body", _redirect_body(self.target))
        Response.__post_init__(self)
        object.__setattr__(self, "headers", self.headers.with_header("Location", str(self.target)))

    def with_target(self, target: Uri | str) -> RedirectResponse:
        target = Uri.from_value(target)
        if target == self.target:
            return self
        return replace(self, target=target, body="")
