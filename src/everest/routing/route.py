"""Path templates compiled into matchers.

A template is a slash-separated path with placeholders::

    "user/{id}"            -> {"id": "42"} for "user/42"
    "archive/{year|\\d{4}}" -> inline validation pattern
    "assets*"              -> unterminated: also matches "assets/js/app.js"

Literal text matches literally (case-insensitive unless configured
otherwise). Captured values are percent-decoded after matching, so the
match itself runs against the raw, still encoded path.
"""

import re
from urllib.parse import unquote

from everest.http.methods import Method, parse_method
from everest.http.uri import Uri

DEFAULT_PARAMETER_PATTERN = "[^/]+"

_NAME = re.compile(r"^[a-z0-9_-]+$", re.IGNORECASE)

# {name} or {name|pattern}; the pattern may contain one level of braces
_PLACEHOLDER = re.compile(
    r"\{(?P<name>[a-z0-9_-]+)(?:\|(?P<pattern>(?:[^{}]|\{[^{}]*\})+))?\}",
    re.IGNORECASE,
)


def _check_pattern(name: str, pattern: str) -> str:
    try:
        re.compile(pattern)
    except re.error as exc:
        msg = f"Invalid pattern {pattern!r} for parameter {name!r}: {exc}"
        raise ValueError(msg) from None
    return pattern


class Route:
    """A path template bound to a set of HTTP methods.

    The compiled expression is cached and rebuilt after ``set_prefix()``
    or ``validate()``, so validation added after registration still
    applies on the next ``parse()``.
    """

    __slots__ = (
        "_bound",
        "_case_sensitive",
        "_compiled",
        "_default_pattern",
        "_methods",
        "_patterns",
        "_prefix",
        "_template",
        "_terminated",
    )

    def __init__(
        self,
        template: str,
        methods: str | int | Method = Method.ALL,
        *,
        case_sensitive: bool = False,
        parameter_pattern: str = DEFAULT_PARAMETER_PATTERN,
    ) -> None:
        template = template.strip()
        self._terminated = not template.endswith("*")
        self._template = template.rstrip("*").strip("/")
        self._methods = parse_method(methods)
        self._case_sensitive = case_sensitive
        self._default_pattern = _check_pattern("*", parameter_pattern)
        self._patterns: dict[str, str] = {}
        self._prefix = ""
        self._bound = False
        self._compiled: tuple[re.Pattern[str], tuple[tuple[str, str], ...]] | None = None

    def __str__(self) -> str:
        return self._template

    def __repr__(self) -> str:
        star = "" if self._terminated else "*"
        return f"Route({self._template + star!r}, methods={self._methods!r}, prefix={self._prefix!r})"

    @property
    def template(self) -> str:
        return self._template

    @property
    def methods(self) -> Method:
        return self._methods

    @property
    def terminated(self) -> bool:
        """False for wildcard routes (trailing ``*``) that match any deeper path."""
        return self._terminated

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def parameter_names(self) -> tuple[str, ...]:
        """Placeholder names in declaration order, prefix placeholders first."""
        _, groups = self._compile()
        return tuple(name for _, name in groups)

    def set_prefix(self, prefix: str) -> "Route":
        """Set the path prefix joined in front of the template."""
        prefix = prefix.strip().strip("/")
        if prefix != self._prefix:
            self._prefix = prefix
            self._compiled = None
        return self

    def bind(self, prefix: str) -> "Route":
        """Stamp the owning context's prefix on a registered route.

        A route serves one prefix; registering it again under another raises
        ``ValueError``.
        """
        prefix = prefix.strip().strip("/")
        if self._bound and prefix != self._prefix:
            msg = f"Route {self._template!r} is already registered under prefix {self._prefix!r}"
            raise ValueError(msg)
        self._bound = True
        return self.set_prefix(prefix)

    def validate(self, name: str, pattern: str) -> "Route":
        """Register a validation pattern for the placeholder *name*.

        Takes precedence over an inline ``{name|pattern}`` in the template.
        """
        if not _NAME.match(name):
            msg = f"Invalid parameter name {name!r}"
            raise ValueError(msg)
        self._patterns[name] = _check_pattern(name, pattern)
        self._compiled = None
        return self

    def compile(self) -> "Route":
        """Compile the template now; raises ``ValueError`` if it is not a valid expression."""
        self._compile()
        return self

    def accepts(self, method: str | int | Method) -> bool:
        """Whether *method* is in this route's method mask."""
        return bool(parse_method(method) & self._methods)

    def parse(self, uri: "Uri | str") -> dict[str, str] | None:
        """Match *uri* and return its parameters, or ``None`` when it does not match.

        *uri* is a ``Uri`` or a path string. Parameters are returned in
        declaration order; a wildcard route with no placeholders returns ``{}``.
        """
        path = uri.path if isinstance(uri, Uri) else str(uri).strip().strip("/")
        expression, groups = self._compile()
        match = expression.match(path)
        if match is None:
            return None
        return {name: unquote(match.group(group)) for group, name in groups}

    def _compile(self) -> tuple[re.Pattern[str], tuple[tuple[str, str], ...]]:
        compiled = self._compiled
        if compiled is not None:
            return compiled

        full = "/".join(part for part in (self._prefix, self._template) if part)
        parts: list[str] = ["^"]
        groups: list[tuple[str, str]] = []
        position = 0
        for index, placeholder in enumerate(_PLACEHOLDER.finditer(full)):
            parts.append(re.escape(full[position : placeholder.start()]))
            name = placeholder.group("name")
            inline = placeholder.group("pattern")
            pattern = self._patterns.get(name) or inline or self._default_pattern
            group = f"_p{index}"
            parts.append(f"(?P<{group}>{pattern})")
            groups.append((group, name))
            position = placeholder.end()
        parts.append(re.escape(full[position:]))

        if self._terminated:
            parts.append(r"\Z")
        elif full:
            parts.append(r"(?=/|\Z)")

        flags = 0 if self._case_sensitive else re.IGNORECASE
        try:
            expression = re.compile("".join(parts), flags)
        except re.error as exc:
            msg = f"Route {full!r} does not compile: {exc}"
            raise ValueError(msg) from None
        compiled = (expression, tuple(groups))
        self._compiled = compiled
        return compiled
