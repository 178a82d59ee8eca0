"""Immutable HTTP requests.

``Request`` is the plain message (method, URI, headers, body).
``ServerRequest`` adds what a server knows about an incoming request:
query, parsed body, uploaded files, cookies, server parameters, and the
attributes the router and middleware attach while dispatching.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from everest._internal.asgi import HTTPScope, Scope
from everest.http.cookies import parse_cookies
from everest.http.forms import BodyParser, parse_body
from everest.http.headers import Headers
from everest.http.message import MessageMixin, coerce_body, validate_protocol_version
from everest.http.methods import Method, parse_method
from everest.http.parameters import ParameterCollection
from everest.http.uri import SCHEME_PORTS, Uri, parse_query, split_path

EXTRAS_ATTRIBUTE = "extras"

_SSL_VALUES = ("on", "1", "https", "ssl")
_SINGLE_METHODS = frozenset(Method)


@dataclass(frozen=True, slots=True)
class Request(MessageMixin):
    """An immutable HTTP request.

    *method* accepts a name (any case), a ``Method`` flag or its integer
    value and is stored as the upper-case name. *uri* accepts a ``Uri``,
    a string, or a component mapping. *body* accepts str or bytes.
    """

    method: str = "GET"
    uri: Uri = field(default_factory=Uri)
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    protocol_version: str = "1.1"
    target: str | None = None

    def __post_init__(self) -> None:
        flag = parse_method(self.method)
        if flag not in _SINGLE_METHODS:
            msg = f"Given method {self.method!r} is not a single HTTP method."
            raise ValueError(msg)
        object.__setattr__(self, "method", flag.name)
        object.__setattr__(self, "uri", Uri.from_value(self.uri))
        if not isinstance(self.headers, Headers):
            object.__setattr__(self, "headers", Headers(self.headers))
        object.__setattr__(self, "body", coerce_body(self.body))
        object.__setattr__(self, "protocol_version", validate_protocol_version(self.protocol_version))

    # -- Computed properties --

    @property
    def method_flag(self) -> Method:
        return Method[self.method]

    @property
    def path(self) -> str:
        """The URI path, slash-joined, without a leading slash."""
        return self.uri.path

    @property
    def request_target(self) -> str:
        """The explicit request target, or ``/path?query`` of the URI."""
        if self.target is not None:
            return self.target
        target = f"/{self.uri.path}"
        query = self.uri.query_string
        if query:
            target = f"{target}?{query}"
        return target

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def text(self) -> str:
        """Body decoded as UTF-8."""
        return self.body.decode("utf-8")

    def is_method(self, method: str | int | Method) -> bool:
        """Whether the request method is contained in a name, flag or mask."""
        return bool(parse_method(method) & self.method_flag)

    # -- Chainable transformations --

    def with_method(self, method: str | int | Method) -> Request:
        name = parse_method(method).name
        if name == self.method:
            return self
        return replace(self, method=name)

    def with_uri(self, uri: Uri | str, preserve_host: bool = False) -> Request:
        """Return a request for *uri*.

        Unless *preserve_host* is set, a missing ``Host`` header is filled
        from the new URI.
        """
        uri = Uri.from_value(uri)
        if uri == self.uri:
            return self
        new = replace(self, uri=uri)
        if preserve_host or "host" in self.headers or not uri.host:
            return new
        return new.with_header("Host", uri.host)

    def with_request_target(self, target: str) -> Request:
        if target == self.target:
            return self
        return replace(self, target=target)

    def with_body(self, body: str | bytes) -> Request:
        body = coerce_body(body)
        if body == self.body:
            return self
        return replace(self, body=body)


@dataclass(frozen=True, slots=True)
class ServerRequest(Request):
    """An incoming request as seen by the router.

    Collections default to what the message itself carries: query
    parameters from the URI and cookies from the ``Cookie`` header.
    """

    attributes: ParameterCollection = field(default_factory=ParameterCollection)
    query_params: ParameterCollection | None = None
    parsed_body: ParameterCollection = field(default_factory=ParameterCollection)
    uploaded_files: ParameterCollection = field(default_factory=ParameterCollection)
    cookie_params: ParameterCollection | None = None
    server_params: ParameterCollection = field(default_factory=ParameterCollection)

    def __post_init__(self) -> None:
        Request.__post_init__(self)
        if self.query_params is None:
            object.__setattr__(self, "query_params", ParameterCollection(self.uri.query))
        if self.cookie_params is None:
            header = "; ".join(self.headers.get_list("cookie"))
            object.__setattr__(self, "cookie_params", ParameterCollection(parse_cookies(header)))
        for name in (
            "attributes",
            "query_params",
            "parsed_body",
            "uploaded_files",
            "cookie_params",
            "server_params",
        ):
            value = getattr(self, name)
            if not isinstance(value, ParameterCollection):
                object.__setattr__(self, name, ParameterCollection(value))

    # -- Factories --

    @classmethod
    def from_request(cls, request: Request, **kwargs: Any) -> ServerRequest:
        """Promote a plain ``Request``; *kwargs* set the server-side collections."""
        if isinstance(request, ServerRequest) and not kwargs:
            return request
        return cls(
            method=request.method,
            uri=request.uri,
            headers=request.headers,
            body=request.body,
            protocol_version=request.protocol_version,
            target=request.target,
            **kwargs,
        )

    @classmethod
    def from_asgi(
        cls,
        scope: Scope,
        body: bytes = b"",
        *,
        trust_forwarded: bool = False,
        parsers: Mapping[str, BodyParser] | None = None,
    ) -> ServerRequest:
        """Create a ServerRequest from an ASGI HTTP scope and the read body.

        With *trust_forwarded*, ``X-Forwarded-Proto``, ``X-Forwarded-Host``
        and ``X-Forwarded-Port`` override the scheme, host and port.
        Raises ``ValueError`` for malformed bodies or ports.
        """
        http = HTTPScope.from_scope(scope)
        headers = Headers.from_raw(http.headers)
        scheme, host, port = _origin(http, headers, trust_forwarded)
        uri = Uri(
            scheme=scheme,
            host=host,
            port=port,
            segments=split_path(http.target_path),
            query=parse_query(http.query_string.decode("latin-1")),
        )
        parsed = parse_body(body, headers.get("content-type"), parsers)
        server: dict[str, Any] = {
            "scheme": http.scheme,
            "http_version": http.http_version,
            "root_path": http.root_path,
            "server": http.server,
            "client": http.client,
        }
        return cls(
            method=http.method,
            uri=uri,
            headers=headers,
            body=body,
            protocol_version=http.http_version,
            parsed_body=ParameterCollection(parsed.fields),
            uploaded_files=ParameterCollection(parsed.files),
            server_params=ParameterCollection(server),
        )

    # -- Attributes --

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def with_attribute(self, name: str, value: Any) -> ServerRequest:
        attributes = self.attributes.with_item(name, value)
        if attributes is self.attributes:
            return self
        return replace(self, attributes=attributes)

    def with_attributes(self, values: Mapping[str, Any]) -> ServerRequest:
        attributes = self.attributes
        for name, value in values.items():
            attributes = attributes.with_item(name, value)
        if attributes is self.attributes:
            return self
        return replace(self, attributes=attributes)

    def without_attribute(self, name: str) -> ServerRequest:
        attributes = self.attributes.without(name)
        if attributes is self.attributes:
            return self
        return replace(self, attributes=attributes)

    @property
    def extras(self) -> tuple[Any, ...]:
        """Values handed down by middleware through ``with_extra()``, in order."""
        return self.attributes.get(EXTRAS_ATTRIBUTE, ())

    def with_extra(self, *values: Any) -> ServerRequest:
        """Return a request with *values* appended to ``extras``."""
        if not values:
            return self
        return self.with_attribute(EXTRAS_ATTRIBUTE, (*self.extras, *values))

    # -- Server-side collections --

    def get_query_param(self, name: str, default: Any = None) -> Any:
        return self.query_params.get(name, default)

    def get_body_param(self, name: str, default: Any = None) -> Any:
        return self.parsed_body.get(name, default)

    def get_uploaded_file(self, name: str, default: Any = None) -> Any:
        return self.uploaded_files.get(name, default)

    def get_cookie_param(self, name: str, default: Any = None) -> Any:
        return self.cookie_params.get(name, default)

    def get_server_param(self, name: str, default: Any = None) -> Any:
        return self.server_params.get(name, default)

    def get_request_param(self, name: str, default: Any = None) -> Any:
        """Look *name* up in the query, then the parsed body, then the uploaded files."""
        for collection in (self.query_params, self.parsed_body, self.uploaded_files):
            value = collection.get(name)
            if value is not None:
                return value
        return default

    def with_query_params(self, params: Mapping[str, Any]) -> ServerRequest:
        return self._with_collection("query_params", params)

    def with_parsed_body(self, params: Mapping[str, Any]) -> ServerRequest:
        return self._with_collection("parsed_body", params)

    def with_uploaded_files(self, files: Mapping[str, Any]) -> ServerRequest:
        return self._with_collection("uploaded_files", files)

    def with_cookie_params(self, cookies: Mapping[str, Any]) -> ServerRequest:
        return self._with_collection("cookie_params", cookies)

    def _with_collection(self, name: str, values: Mapping[str, Any]) -> ServerRequest:
        current: ParameterCollection = getattr(self, name)
        if values is current or dict(values) == current.to_dict():
            return self
        return replace(self, **{name: ParameterCollection(values)})


def _split_host(value: str) -> tuple[str, int | None]:
    """Split ``host[:port]``; bracketed IPv6 literals keep their colons."""
    value = value.strip()
    head, sep, tail = value.rpartition(":")
    if sep and tail.isdigit() and (head.endswith("]") or ":" not in head):
        return head, int(tail)
    return value, None


def _origin(http: HTTPScope, headers: Headers, trust_forwarded: bool) -> tuple[str, str, int | None]:
    """Resolve scheme, host and port for an incoming request."""
    scheme = http.scheme
    host_header = headers.get("host", "")
    if host_header:
        host, port = _split_host(host_header)
    elif http.server:
        host, port = http.server[0], http.server[1]
    else:
        host, port = "localhost", None

    if trust_forwarded:
        proto = headers.get("x-forwarded-proto")
        if proto is not None:
            scheme = "https" if proto.strip().lower() in _SSL_VALUES else "http"
        forwarded_host = headers.get("x-forwarded-host")
        if forwarded_host:
            host, _ = _split_host(forwarded_host.split(",")[-1])
        forwarded_port = headers.get("x-forwarded-port")
        if forwarded_port:
            port = int(forwarded_port.strip())
        elif proto is not None:
            port = SCHEME_PORTS[scheme]

    return scheme, (host or "localhost").lower(), port
