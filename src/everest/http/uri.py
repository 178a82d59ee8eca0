"""Immutable URI value object.

The path is stored as a tuple of (still percent-encoded) segments and the
query as a dict, so routing and parameter access never re-parse strings.
Every ``with_*()`` call returns a new Uri, or the same instance when the
value does not change.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit

SCHEME_PORTS: dict[str, int] = {
    "ftp": 21,
    "http": 80,
    "pop": 110,
    "imap": 143,
    "ldap": 389,
    "https": 443,
}

_IP_ADDRESS = re.compile(r"^((25[0-5]|2[0-4][0-9]|1[0-9]{2}|[1-9]?[0-9])\.){3}(25[0-5]|2[0-4][0-9]|1[0-9]{2}|[1-9]?[0-9])$")
_HOSTNAME = re.compile(
    r"^(([a-z0-9]|[a-z0-9][a-z0-9\-]*[a-z0-9])\.)*([a-z0-9]|[a-z0-9][a-z0-9\-]*[a-z0-9])$",
    re.IGNORECASE,
)


def split_path(path: str) -> tuple[str, ...]:
    """Split a path string into segments, ignoring edge slashes and whitespace."""
    path = path.strip("\t\n /")
    return tuple(path.split("/")) if path else ()


def parse_query(query: str) -> dict[str, Any]:
    """Parse a query string into a dict.

    Repeated keys collect their values into a list.
    """
    result: dict[str, Any] = {}
    for key, value in parse_qsl(query.lstrip("?"), keep_blank_values=True):
        if key in result:
            existing = result[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                result[key] = [existing, value]
        else:
            result[key] = value
    return result


def _validate_port(port: int | None) -> int | None:
    if port is None:
        return None
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 0xFFFF:
        msg = f"{port!r} is not a valid port. Expecting integer between 1 and 65535"
        raise ValueError(msg)
    return port


def _validate_host(host: str) -> str:
    if not _HOSTNAME.match(host) and not _IP_ADDRESS.match(host):
        msg = f"{host!r} is not a valid host name or ip-address."
        raise ValueError(msg)
    return host


@dataclass(frozen=True, slots=True, eq=False)
class Uri:
    """An immutable URI.

    Defaults to ``http://localhost``. The port is omitted from the
    authority when it is the default port of the scheme.
    """

    scheme: str = "http"
    user_info: str = ""
    host: str = "localhost"
    port: int | None = None
    segments: tuple[str, ...] = ()
    query: dict[str, Any] = field(default_factory=dict)
    fragment: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "scheme", self.scheme.lower())
        _validate_port(self.port)

    # -- Factories --

    @classmethod
    def from_string(cls, uri: str) -> Uri:
        """Parse a URI string. Raises ``ValueError`` for malformed input."""
        parts = urlsplit(uri.strip())
        port = parts.port  # raises ValueError on a malformed port
        user_info = ""
        if parts.username is not None:
            user_info = parts.username
            if parts.password:
                user_info = f"{user_info}:{parts.password}"
        return cls(
            scheme=parts.scheme or "http",
            user_info=user_info,
            host=parts.hostname or "localhost",
            port=port,
            segments=split_path(parts.path),
            query=parse_query(parts.query),
            fragment=parts.fragment,
        )

    @classmethod
    def from_mapping(cls, parts: Mapping[str, Any]) -> Uri:
        """Build a Uri from a mapping of components.

        Recognised keys: ``scheme``, ``host``, ``port``, ``user``, ``pass``
        (or ``password``), ``path``, ``query`` (string or mapping), ``fragment``.
        """
        password = parts.get("pass") or parts.get("password")
        user = parts.get("user") or ""
        query = parts.get("query") or {}
        return cls(
            scheme=parts.get("scheme") or "http",
            user_info=f"{user}:{password}" if password else user,
            host=parts.get("host") or "localhost",
            port=parts.get("port") or None,
            segments=split_path(parts.get("path") or ""),
            query=parse_query(query) if isinstance(query, str) else dict(query),
            fragment=parts.get("fragment") or "",
        )

    @classmethod
    def from_value(cls, value: Uri | str | Mapping[str, Any]) -> Uri:
        """Coerce a Uri, string, or component mapping into a Uri."""
        if isinstance(value, Uri):
            return value
        if isinstance(value, str):
            return cls.from_string(value)
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        msg = f"Can't create uri from {type(value).__name__}."
        raise TypeError(msg)

    # -- Derived values --

    @property
    def path(self) -> str:
        """Slash-joined path without a leading slash."""
        return "/".join(self.segments)

    @property
    def path_segments(self) -> tuple[str, ...]:
        return self.segments

    @property
    def authority(self) -> str:
        authority = self.host
        if self.user_info:
            authority = f"{self.user_info}@{authority}"
        if self.port and SCHEME_PORTS.get(self.scheme) != self.port:
            authority = f"{authority}:{self.port}"
        return authority

    @property
    def query_string(self) -> str:
        return urlencode(self.query, doseq=True)

    def __str__(self) -> str:
        uri = f"{self.scheme}:" if self.scheme else ""
        authority = self.authority
        if authority or self.scheme == "file":
            uri += f"//{authority}"
        if self.segments:
            uri += f"/{self.path}"
        query = self.query_string
        if query:
            uri += f"?{query}"
        if self.fragment:
            uri += f"#{self.fragment}"
        return uri

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Uri):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    # -- Chainable transformations --

    def with_scheme(self, scheme: str, auto_port: bool = True) -> Uri:
        """Return a Uri with a new scheme.

        With *auto_port*, the port switches to the scheme's default port
        when one is known.
        """
        scheme = scheme.lower()
        if scheme == self.scheme:
            return self
        port = self.port
        if auto_port and scheme in SCHEME_PORTS:
            port = SCHEME_PORTS[scheme]
        return replace(self, scheme=scheme, port=port)

    def with_user_info(self, user: str, password: str | None = None) -> Uri:
        user_info = f"{user}:{password}" if password else user
        if user_info == self.user_info:
            return self
        return replace(self, user_info=user_info)

    def with_host(self, host: str) -> Uri:
        """Return a Uri with a new host. Raises ``ValueError`` for invalid hosts."""
        if host == self.host:
            return self
        return replace(self, host=_validate_host(host))

    def with_port(self, port: int | None) -> Uri:
        """Return a Uri with a new port (1 to 65535), or ``None`` to clear it."""
        if port == self.port:
            return self
        return replace(self, port=_validate_port(port))

    def with_path(self, path: str) -> Uri:
        segments = split_path(path)
        if segments == self.segments:
            return self
        return replace(self, segments=segments)

    def with_path_prepend(self, path: str) -> Uri:
        segments = split_path(path)
        if not segments:
            return self
        return replace(self, segments=(*segments, *self.segments))

    def with_path_append(self, path: str) -> Uri:
        segments = split_path(path)
        if not segments:
            return self
        return replace(self, segments=(*self.segments, *segments))

    def with_query(self, query: str | Mapping[str, Any]) -> Uri:
        """Return a Uri whose query is replaced by *query*."""
        parsed = self._coerce_query(query)
        if parsed == self.query:
            return self
        return replace(self, query=parsed)

    def with_merged_query(self, query: str | Mapping[str, Any]) -> Uri:
        """Return a Uri whose query is updated with the items of *query*."""
        merged = {**self.query, **self._coerce_query(query)}
        if merged == self.query:
            return self
        return replace(self, query=merged)

    def with_fragment(self, fragment: str) -> Uri:
        if fragment == self.fragment:
            return self
        return replace(self, fragment=fragment)

    @staticmethod
    def _coerce_query(query: str | Mapping[str, Any]) -> dict[str, Any]:
        if isinstance(query, str):
            return parse_query(query)
        if isinstance(query, Mapping):
            return dict(query)
        msg = (
            f"Can't resolve query from given argument of type {type(query).__name__}, "
            "use str or a mapping instead."
        )
        raise TypeError(msg)
