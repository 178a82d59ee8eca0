"""Routing contexts: the nodes of the routing tree.

Each context scopes a path prefix and optionally a host. It holds routes,
sub-contexts, before/after middleware, parameter validation patterns, and
default/error handlers. Its deferred configurator runs once, on the first
visit that reaches it (or eagerly via ``Router.compile()``).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any

from everest._internal.types import Configurator, DefaultHandler, ErrorHandler, Handler, Middleware
from everest.routing.route import Route

if TYPE_CHECKING:
    from everest.routing.router import Router

logger = logging.getLogger("everest.routing")


class MiddlewareKind(Enum):
    BEFORE = "before"
    AFTER = "after"


def _kind(kind: Any) -> MiddlewareKind:
    try:
        return MiddlewareKind(kind)
    except ValueError:
        msg = f"Unknown middleware kind {kind!r}; use MiddlewareKind.BEFORE or MiddlewareKind.AFTER"
        raise ValueError(msg) from None


class RoutingContext:
    """A node in the prefix/host-scoped routing tree.

    Registration methods are meant for configuration time. ``configure()``
    serialises the configurator run so concurrent first requests see a
    complete node.
    """

    __slots__ = (
        "_configure_lock",
        "_configured",
        "_configurator",
        "_default",
        "_error",
        "_host",
        "_middleware",
        "_patterns",
        "_routes",
        "_sub_contexts",
        "parent",
        "prefix",
    )

    def __init__(
        self,
        prefix: str = "",
        configurator: Configurator | None = None,
        parent: RoutingContext | None = None,
    ) -> None:
        self.prefix = prefix.strip().strip("/")
        self.parent = parent
        self._configurator = configurator
        self._configured = configurator is None
        self._configure_lock = threading.Lock()
        self._routes: list[tuple[Route, Handler]] = []
        self._sub_contexts: list[RoutingContext] = []
        self._middleware: dict[MiddlewareKind, list[Middleware]] = {kind: [] for kind in MiddlewareKind}
        self._patterns: dict[str, str] = {}
        self._host: str | None = None
        self._default: DefaultHandler | None = None
        self._error: ErrorHandler | None = None

    def __repr__(self) -> str:
        return f"RoutingContext({self.prefixed_path!r}, routes={len(self._routes)}, contexts={len(self._sub_contexts)})"

    # -- Tree --

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def is_empty(self) -> bool:
        """True when the context has neither routes nor sub-contexts."""
        return not self._routes and not self._sub_contexts

    @property
    def prefixed_path(self) -> str:
        """Root-to-leaf join of all prefixes, without edge slashes."""
        parts: list[str] = []
        node: RoutingContext | None = self
        while node is not None:
            if node.prefix:
                parts.append(node.prefix)
            node = node.parent
        return "/".join(reversed(parts))

    def get_prefixed_path(self) -> str:
        return self.prefixed_path

    @property
    def sub_contexts(self) -> tuple[RoutingContext, ...]:
        return tuple(self._sub_contexts)

    def add_sub_context(self, prefix: str, configurator: Configurator | None) -> RoutingContext:
        """Create and append a child context. Its configurator is not run yet."""
        child = RoutingContext(prefix, configurator, parent=self)
        self._sub_contexts.append(child)
        return child

    # -- Configuration --

    @property
    def configured(self) -> bool:
        return self._configured

    def configure(self, router: Router) -> None:
        """Run the deferred configurator once, with a builder bound to this context.

        Thread-safe with double-check locking. If the configurator raises,
        everything it registered is discarded, the error propagates, and
        the next visit tries again.
        """
        if self._configured:
            return
        with self._configure_lock:
            if self._configured:
                return
            from everest.routing.router import ContextBuilder

            logger.debug("Configuring context %r", self.prefixed_path or "/")
            try:
                configurator = self._configurator
                if configurator is not None:
                    configurator(ContextBuilder(router, self))
            except BaseException:
                self._reset()
                raise
            self._configured = True

    def _reset(self) -> None:
        self._routes.clear()
        self._sub_contexts.clear()
        for middleware in self._middleware.values():
            middleware.clear()
        self._patterns.clear()
        self._host = None
        self._default = None
        self._error = None

    # -- Middleware --

    def add_middleware(self, middleware: Middleware, kind: MiddlewareKind | str) -> None:
        self._middleware[_kind(kind)].append(middleware)

    def local_middlewares(self, kind: MiddlewareKind | str) -> tuple[Middleware, ...]:
        """This context's own middleware of *kind*, in registration order."""
        return tuple(self._middleware[_kind(kind)])

    def get_middlewares(self, kind: MiddlewareKind | str) -> tuple[Middleware, ...]:
        """Middleware of *kind* for this context and its ancestors, root first."""
        kind = _kind(kind)
        chain: list[Middleware] = []
        node: RoutingContext | None = self
        while node is not None:
            chain[:0] = node._middleware[kind]
            node = node.parent
        return tuple(chain)

    # -- Routes --

    @property
    def routes(self) -> tuple[tuple[Route, Handler], ...]:
        return tuple(self._routes)

    def add_route(self, route: Route, handler: Handler) -> Route:
        """Register *route* and stamp this context's effective prefix on it."""
        route.bind(self.prefixed_path)
        self._routes.append((route, handler))
        return route

    # -- Host, patterns, handlers --

    @property
    def host(self) -> str | None:
        return self._host

    def set_host(self, host: str | None) -> None:
        self._host = host.strip() if host else None

    @property
    def patterns(self) -> dict[str, str]:
        """Validation patterns applied to parameters of every local route."""
        return dict(self._patterns)

    def add_pattern(self, name: str, pattern: str) -> None:
        self._patterns[name] = pattern

    def get_pattern(self, name: str) -> str | None:
        return self._patterns.get(name)

    @property
    def default(self) -> DefaultHandler | None:
        return self._default

    def set_default(self, handler: DefaultHandler | None) -> None:
        self._default = handler

    @property
    def error(self) -> ErrorHandler | None:
        return self._error

    def set_error(self, handler: ErrorHandler | None) -> None:
        self._error = handler

    def walk(self) -> Iterator[RoutingContext]:
        """This context and all descendants, depth first in registration order.

        Children are read after their parent is yielded, so a caller that
        configures each node also visits the sub-contexts it registers.
        """
        yield self
        for child in self._sub_contexts:
            yield from child.walk()

