"""Cookie parsing and Set-Cookie serialization.

Consolidates the read side (parse_cookies, used by ServerRequest) and the
write side (Cookie, used by Response) in one module.
"""

import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from email.utils import parsedate_to_datetime
from urllib.parse import quote_plus, unquote_plus

_INVALID_NAME = re.compile(r"[=,; \t\r\n\v\f]")


def parse_cookies(header: str) -> dict[str, str]:
    """Parse a ``Cookie`` header value into a name-value dict.

    Values are URL-decoded. Returns an empty dict for empty or missing headers.
    """
    if not header:
        return {}
    cookies: dict[str, str] = {}
    for pair in header.split(";"):
        pair = pair.strip()
        if "=" in pair:
            key, _, value = pair.partition("=")
            cookies[key.strip()] = unquote_plus(value.strip())
    return cookies


def _to_timestamp(expires: int | float | str | datetime | timedelta | None) -> int:
    if expires is None:
        return 0
    if isinstance(expires, bool):
        msg = "The expiration time is not valid."
        raise ValueError(msg)
    if isinstance(expires, (int, float)):
        return int(expires)
    if isinstance(expires, timedelta):
        return int(time.time() + expires.total_seconds())
    if isinstance(expires, datetime):
        return int(expires.timestamp())
    if isinstance(expires, str):
        text = expires.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        try:
            return int(datetime.fromisoformat(text).timestamp())
        except ValueError:
            pass
        try:
            return int(parsedate_to_datetime(text).timestamp())
        except (TypeError, ValueError):
            pass
    msg = "The expiration time is not valid."
    raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class Cookie:
    """A ``Set-Cookie`` directive attached to a Response.

    *expires* accepts a Unix timestamp, a ``datetime``, a ``timedelta``
    from now, or a date string, and is stored as a timestamp (0 means a
    session cookie). ``same_site`` is only emitted for secure cookies.
    """

    name: str
    value: str = ""
    http_only: bool = False
    secure: bool = False
    expires: int | float | str | datetime | timedelta | None = 0
    domain: str | None = None
    path: str | None = None
    same_site: str | None = None

    def __post_init__(self) -> None:
        if not self.name or _INVALID_NAME.search(self.name):
            msg = f"Invalid name {self.name!r}."
            raise ValueError(msg)
        object.__setattr__(self, "expires", _to_timestamp(self.expires))

    def to_header_line(self) -> str:
        """Serialize to a ``Set-Cookie`` header value string."""
        parts = [f"{self.name}={quote_plus(self.value)}"]
        if self.expires:
            stamp = time.strftime("%a, %d-%b-%Y %H:%M:%S GMT", time.gmtime(self.expires))
            parts.append(f"expires={stamp}")
        if self.path:
            parts.append(f"path={self.path}")
        if self.domain:
            parts.append(f"domain={self.domain}")
        if self.secure:
            parts.append("secure")
            if self.same_site:
                parts.append(f"samesite={self.same_site}")
        if self.http_only:
            parts.append("httponly")
        return "; ".join(parts)

    def __str__(self) -> str:
        return self.to_header_line()
