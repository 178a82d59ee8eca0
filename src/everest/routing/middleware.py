"""Middleware chains.

A middleware is any callable matching::

    def my_mw(next: Next, request_or_response):
        ...

No base class required. ``before`` middleware receive the request and
either return ``next(request)`` (possibly with a modified request) or a
``Response`` to short-circuit. ``after`` middleware receive the response
and must return a ``Response``; whatever they pass to ``next`` is
coerced by the chain's terminal.

Handing extra values to the handler goes through the request::

    def current_user(next, request):
        return next(request.with_extra(load_user(request)))
"""

from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeAlias

from everest.errors import ConfigurationError
from everest.http.request import Request
from everest.http.response import Response
from everest.routing.results import result_to_response

# The next step in a middleware chain
Next: TypeAlias = Callable[[Any], Any]


class Middleware(Protocol):
    """Protocol for everest middleware.

    Accepts both functions and callable objects::

        # Function middleware
        def timing(next: Next, request: ServerRequest) -> ServerRequest | Response:
            return next(request.with_attribute("started", time.monotonic()))

        # Class middleware
        class RequireToken:
            def __call__(self, next: Next, request: ServerRequest) -> ServerRequest | Response:
                ...
    """

    def __call__(self, next: Next, request_or_response: Any) -> Any: ...


def _describe(mw: Callable[..., Any]) -> str:
    return getattr(mw, "__qualname__", None) or type(mw).__name__


def _compose(
    middleware: Sequence[Callable[..., Any]],
    terminal: Next,
    check: Callable[[Callable[..., Any], Any], None],
) -> Next:
    handler = terminal
    for mw in reversed(middleware):
        outer = handler
        mw_ref = mw

        def make_next(value: Any, _mw: Any = mw_ref, _next: Next = outer) -> Any:
            result = _mw(_next, value)
            check(_mw, result)
            return result

        handler = make_next
    return handler


def _check_before(mw: Callable[..., Any], result: Any) -> None:
    if not isinstance(result, (Request, Response)):
        msg = (
            f"Before middleware {_describe(mw)} returned {type(result).__name__}; "
            "expected a request (via next) or a Response."
        )
        raise ConfigurationError(msg)


def _check_after(mw: Callable[..., Any], result: Any) -> None:
    if not isinstance(result, Response):
        msg = f"After middleware {_describe(mw)} returned {type(result).__name__}; expected a Response."
        raise ConfigurationError(msg)


def run_before(middleware: Sequence[Callable[..., Any]], request: Request) -> Request | Response:
    """Run *middleware* in order; the chain's terminal returns the request unchanged."""
    if not middleware:
        return request
    return _compose(middleware, lambda value: value, _check_before)(request)


def run_after(middleware: Sequence[Callable[..., Any]], response: Response) -> Response:
    """Run *middleware* in order around *response*; the terminal coerces with ``result_to_response``."""
    if not middleware:
        return response
    return _compose(middleware, result_to_response, _check_after)(response)
