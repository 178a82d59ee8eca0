"""The router: configuration API and request dispatch.

Routes, contexts and middleware are registered through builders. A
``Router`` is bound to the root context; each context configurator
receives a ``ContextBuilder`` bound to its own context, so registration
never depends on shared "current context" state::

    router = Router()
    router.before(authenticate)
    router.get("", lambda request: "home")

    def api(ctx):
        ctx.get("user/{id|\\d+}", show_user)
        ctx.error(lambda exc, request: {"error": str(exc)})

    router.context("api", api)
    response = router.handle(ServerRequest(uri="/api/user/42"))

Dispatch walks the context tree depth first. Each context filters on its
prefix and host, runs its own before-middleware, tries its sub-contexts,
then its routes, then its default handler, and wraps whatever it
produced in its after-middleware. Before-middleware therefore run root
first; after-middleware run leaf first.
"""

from __future__ import annotations

import logging
import re
import warnings
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Self

from everest._internal.types import Configurator, DefaultHandler, ErrorHandler, Handler, Middleware
from everest.config import RouterConfig
from everest.errors import ConfigurationError, NotFound
from everest.http.methods import Method
from everest.http.request import Request, ServerRequest
from everest.http.response import Response
from everest.routing.context import MiddlewareKind, RoutingContext
from everest.routing.middleware import run_after, run_before
from everest.routing.results import NO_MATCH, NoMatch, result_to_response
from everest.routing.route import Route

if TYPE_CHECKING:
    from everest.asgi import ASGIAdapter

logger = logging.getLogger("everest.routing")

# Request attribute holding the full parameter mapping of the matched route
PARAMETER_ATTRIBUTE = "parameter"


def _require_callable(value: Any, what: str) -> None:
    if not callable(value):
        msg = f"{what} must be callable, got {type(value).__name__}"
        raise ConfigurationError(msg)


class RouteBuilder:
    """Registration API shared by ``Router`` and ``ContextBuilder``.

    Every method acts on the bound context and returns the builder, so
    calls chain::

        ctx.before(auth).get("users", list_users).post("users", create_user)
    """

    __slots__ = ("_context", "_router")

    def __init__(self, router: Router, context: RoutingContext) -> None:
        self._router = router
        self._context = context

    @property
    def router(self) -> Router:
        return self._router

    @property
    def routing_context(self) -> RoutingContext:
        """The context this builder registers into."""
        return self._context

    # -- Routes --

    def route(self, route: Route, handler: Handler) -> Self:
        """Register a prebuilt ``Route``."""
        _require_callable(handler, f"Handler for route {str(route)!r}")
        try:
            route.bind(self._context.prefixed_path).compile()
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        self._context.add_route(route, handler)
        return self

    def request(self, path: str, methods: str | int | Method, handler: Handler) -> Self:
        """Register *handler* for *path* and the methods in *methods*."""
        config = self._router.config
        try:
            route = Route(
                path,
                methods,
                case_sensitive=config.case_sensitive,
                parameter_pattern=config.parameter_pattern,
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        return self.route(route, handler)

    def get(self, path: str, handler: Handler) -> Self:
        """Register for GET and HEAD."""
        return self.request(path, Method.GET | Method.HEAD, handler)

    def post(self, path: str, handler: Handler) -> Self:
        return self.request(path, Method.POST, handler)

    def put(self, path: str, handler: Handler) -> Self:
        return self.request(path, Method.PUT, handler)

    def patch(self, path: str, handler: Handler) -> Self:
        return self.request(path, Method.PATCH, handler)

    def delete(self, path: str, handler: Handler) -> Self:
        return self.request(path, Method.DELETE, handler)

    def options(self, path: str, handler: Handler) -> Self:
        return self.request(path, Method.OPTIONS, handler)

    def any(self, path: str, handler: Handler) -> Self:
        """Register for every method."""
        return self.request(path, Method.ALL, handler)

    # -- Contexts --

    def context(
        self,
        prefix_or_configurator: str | Configurator,
        configurator: Configurator | None = None,
    ) -> Self:
        """Add a sub-context.

        ``context("api", configure)`` scopes *configure* under ``api``;
        ``context(configure)`` adds a prefix-less context (useful for
        grouping routes behind middleware or a host filter). The
        configurator runs on the first request that reaches the context.
        """
        if configurator is None:
            if not callable(prefix_or_configurator):
                msg = "context() needs a configurator"
                raise ConfigurationError(msg)
            prefix, configurator = "", prefix_or_configurator
        else:
            if not isinstance(prefix_or_configurator, str):
                msg = f"Context prefix must be a str, got {type(prefix_or_configurator).__name__}"
                raise ConfigurationError(msg)
            prefix = prefix_or_configurator
        _require_callable(configurator, "Context configurator")
        self._context.add_sub_context(prefix, configurator)
        return self

    # -- Middleware --

    def before(self, *middleware: Middleware) -> Self:
        """Add middleware that runs before routing in this context."""
        for mw in middleware:
            _require_callable(mw, "Middleware")
            self._context.add_middleware(mw, MiddlewareKind.BEFORE)
        return self

    def after(self, *middleware: Middleware) -> Self:
        """Add middleware that runs on the response produced in this context."""
        for mw in middleware:
            _require_callable(mw, "Middleware")
            self._context.add_middleware(mw, MiddlewareKind.AFTER)
        return self

    def middleware(self, *middleware: Middleware) -> Self:
        """Deprecated alias of ``before()``."""
        warnings.warn(
            "middleware() is deprecated, use before() instead",
            DeprecationWarning,
            stacklevel=2,
        )
        return self.before(*middleware)

    # -- Context settings --

    def host(self, name: str) -> Self:
        """Only handle requests for host *name* (case-insensitive)."""
        self._context.set_host(name)
        return self

    def validate(self, name: str, pattern: str) -> Self:
        """Require parameter *name* of every route in this context to match *pattern*."""
        try:
            re.compile(pattern)
        except re.error as exc:
            msg = f"Invalid pattern {pattern!r} for parameter {name!r}: {exc}"
            raise ConfigurationError(msg) from None
        self._context.add_pattern(name, pattern)
        return self

    def otherwise(self, handler: DefaultHandler) -> Self:
        """Set the handler for requests that reach this context but match nothing in it.

        Called with ``(request, original_request)``; returning ``None`` means no match.
        """
        _require_callable(handler, "Default handler")
        self._context.set_default(handler)
        return self

    def error(self, handler: ErrorHandler) -> Self:
        """Set the handler for exceptions raised in this context, called with ``(exc, request)``."""
        _require_callable(handler, "Error handler")
        self._context.set_error(handler)
        return self


class ContextBuilder(RouteBuilder):
    """Builder handed to context configurators, bound to one context."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"ContextBuilder({self._context.prefixed_path!r})"


class Router(RouteBuilder):
    """Hierarchical request router.

    Usage::

        router = Router(RouterConfig(debug=True))
        router.get("hello/{name}", lambda request: f"Hello {request.get_attribute('name')}")
        response = router.handle(ServerRequest(uri="/hello/world"))
    """

    __slots__ = ("_prefix_matchers", "_root", "config")

    def __init__(self, config: RouterConfig | None = None) -> None:
        self.config = config or RouterConfig()
        self._root = RoutingContext()
        self._prefix_matchers: dict[RoutingContext, Route] = {}
        super().__init__(self, self._root)

    def __repr__(self) -> str:
        return f"Router({self._root!r})"

    @property
    def root(self) -> RoutingContext:
        return self._root

    def compile(self) -> Self:
        """Run every pending configurator in the tree now instead of on first request."""
        for context in self._root.walk():
            context.configure(self)
        return self

    def as_asgi(self) -> ASGIAdapter:
        """Wrap the router in an ASGI 3 application."""
        from everest.asgi import ASGIAdapter

        return ASGIAdapter(self)

    # -- Dispatch --

    def handle(self, request: Request) -> Response:
        """Dispatch *request* through the context tree.

        Raises ``NotFound`` when nothing matches. Exceptions not recovered
        by an error handler propagate to the caller.
        """
        request = ServerRequest.from_request(request)
        result = self._dispatch(request, request, self._root)
        if result is NO_MATCH:
            detail = "Not Found"
            if self.config.debug:
                detail = f"No route matches {request.method} /{request.path}"
            raise NotFound(detail)
        return result

    def _dispatch(
        self,
        request: ServerRequest,
        original: ServerRequest,
        context: RoutingContext,
    ) -> Response | NoMatch:
        if not self._within_prefix(request, context):
            return NO_MATCH

        context.configure(self)

        host = context.host
        if host and host.lower() != request.uri.host.lower():
            return NO_MATCH

        processed = run_before(context.local_middlewares(MiddlewareKind.BEFORE), request)
        if isinstance(processed, Response):
            logger.debug("Before middleware of %r answered directly", context.prefixed_path or "/")
            return processed
        processed = ServerRequest.from_request(processed)

        try:
            result = self._resolve(processed, original, context)
        except Exception as exc:
            handler = context.error
            if handler is None:
                raise
            logger.debug("Error handler of %r handles %r", context.prefixed_path or "/", exc)
            return result_to_response(handler(exc, processed))

        if result is NO_MATCH:
            return NO_MATCH
        return run_after(context.local_middlewares(MiddlewareKind.AFTER), result)

    def _resolve(
        self,
        request: ServerRequest,
        original: ServerRequest,
        context: RoutingContext,
    ) -> Response | NoMatch:
        """Sub-contexts, then routes, then the default handler."""
        for sub_context in context.sub_contexts:
            result = self._dispatch(request, original, sub_context)
            if result is not NO_MATCH:
                return result

        if context.is_empty and not context.is_root:
            msg = f"Context {context.prefixed_path!r} has neither routes nor sub-contexts."
            raise ConfigurationError(msg)

        patterns = context.patterns
        for route, handler in context.routes:
            if not route.accepts(request.method):
                continue
            params = route.parse(request.uri)
            if params is None or not _satisfies(params, patterns):
                continue
            logger.debug("%s /%s matched route %r", request.method, request.path, route)
            enriched = request.with_attributes(params).with_attribute(PARAMETER_ATTRIBUTE, params)
            result = handler(enriched)
            if result is not None:
                return result_to_response(result)

        if context.default is not None:
            result = context.default(request, original)
            if result is not None:
                return result_to_response(result)

        return NO_MATCH

    def _within_prefix(self, request: ServerRequest, context: RoutingContext) -> bool:
        """Segment-aware prefix check; prefixes may contain placeholders."""
        prefix = context.prefixed_path
        if not prefix:
            return True
        matcher = self._prefix_matchers.get(context)
        if matcher is None:
            matcher = Route(
                f"{prefix}*",
                case_sensitive=self.config.case_sensitive,
                parameter_pattern=self.config.parameter_pattern,
            )
            self._prefix_matchers[context] = matcher
        return matcher.parse(request.uri) is not None


def _satisfies(params: Mapping[str, str], patterns: Mapping[str, str]) -> bool:
    """Whether every parameter with a context-wide pattern matches it."""
    return all(re.search(patterns[name], value) for name, value in params.items() if name in patterns)

