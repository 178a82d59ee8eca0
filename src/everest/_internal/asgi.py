"""Typed ASGI definitions.

Raw ASGI aliases plus a typed view of the HTTP scope for internal use.
Users interact with ServerRequest, not this.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from dataclasses import dataclass
from typing import Any, TypeAlias
from urllib.parse import quote

Scope: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send: TypeAlias = Callable[[MutableMapping[str, Any]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class HTTPScope:
    """Typed HTTP scope parsed from a raw ASGI scope dict."""

    method: str
    scheme: str
    http_version: str
    path: str
    raw_path: bytes
    query_string: bytes
    root_path: str
    headers: tuple[tuple[bytes, bytes], ...]
    server: tuple[str, int] | None
    client: tuple[str, int] | None

    @classmethod
    def from_scope(cls, scope: Scope) -> "HTTPScope":
        """Parse raw ASGI scope into typed object."""
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope.get("method", "GET"),
            scheme=scope.get("scheme", "http"),
            http_version=scope.get("http_version", "1.1"),
            path=scope.get("path", "/"),
            raw_path=scope.get("raw_path") or b"",
            query_string=scope.get("query_string", b""),
            root_path=scope.get("root_path", ""),
            headers=tuple(scope.get("headers", ())),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
        )

    @property
    def target_path(self) -> str:
        """The still percent-encoded request path.

        Uses ``raw_path`` when the server provides it, so encoded slashes
        survive until route parameters are decoded.
        """
        if self.raw_path:
            return self.raw_path.decode("latin-1").split("?", 1)[0]
        return quote(self.path, safe="/:@!$&'()*+,;=")
