"""Header, body and protocol accessors shared by Request and Response."""

from dataclasses import replace
from typing import Any, Self

from everest.http.headers import HeaderValue, Headers

PROTOCOL_VERSIONS = ("1.0", "1.1", "2.0", "3.0")


def validate_protocol_version(version: str) -> str:
    """Normalise ``"2"`` to ``"2.0"``; raise ``ValueError`` for unknown versions."""
    version = str(version).removeprefix("HTTP/")
    if "." not in version:
        version = f"{version}.0"
    if version not in PROTOCOL_VERSIONS:
        msg = f"Invalid HTTP protocol version {version!r}. Use one of {', '.join(PROTOCOL_VERSIONS)}."
        raise ValueError(msg)
    return version


def coerce_body(body: Any) -> bytes:
    if body is None:
        return b""
    if isinstance(body, bytes):
        return body
    if isinstance(body, (bytearray, memoryview)):
        return bytes(body)
    if isinstance(body, str):
        return body.encode("utf-8")
    msg = f"Message body must be str or bytes, got {type(body).__name__}"
    raise TypeError(msg)


class MessageMixin:
    """Chainable header and protocol transformations for frozen dataclasses.

    Subclasses are dataclasses with ``headers``, ``body`` and
    ``protocol_version`` fields.
    """

    __slots__ = ()

    headers: Headers
    body: Any
    protocol_version: str

    def has_header(self, name: str) -> bool:
        return name in self.headers

    def get_header(self, name: str) -> list[str]:
        """All values of a header; empty when missing."""
        return self.headers.get_list(name)

    def get_header_line(self, name: str) -> str:
        """All values of a header joined with ``", "``."""
        return self.headers.get_line(name)

    def with_header(self, name: str, value: HeaderValue) -> Self:
        """Return a message where *name* holds exactly *value*."""
        headers = self.headers.with_header(name, value)
        if headers is self.headers:
            return self
        return replace(self, headers=headers)  # type: ignore[type-var]

    def with_added_header(self, name: str, value: HeaderValue) -> Self:
        headers = self.headers.with_added(name, value)
        if headers is self.headers:
            return self
        return replace(self, headers=headers)  # type: ignore[type-var]

    def without_header(self, name: str) -> Self:
        headers = self.headers.without(name)
        if headers is self.headers:
            return self
        return replace(self, headers=headers)  # type: ignore[type-var]

    def with_protocol_version(self, version: str) -> Self:
        version = validate_protocol_version(version)
        if version == self.protocol_version:
            return self
        return replace(self, protocol_version=version)  # type: ignore[type-var]
