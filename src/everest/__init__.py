"""Everest: hierarchical HTTP routing with immutable messages.

Routes live in a tree of contexts scoped by path prefix and host. Each
context carries its own before/after middleware, parameter validation,
default handler and error handler, and is configured lazily on the first
request that reaches it.

Basic usage::

    from everest import Router, ServerRequest

    router = Router()
    router.get("hello/{name}", lambda request: f"Hello {request.get_attribute('name')}")

    def api(ctx):
        ctx.validate("id", r"^\\d+$")
        ctx.get("user/{id}", show_user)

    router.context("api", api)
    response = router.handle(ServerRequest(uri="/hello/world"))

Serving (any ASGI 3 server)::

    app = router.as_asgi()
"""

from importlib import import_module

__version__ = "0.1.0"
__all__ = [
    "ASGIAdapter",
    "ConfigurationError",
    "ContextBuilder",
    "Cookie",
    "EverestError",
    "Headers",
    "HttpException",
    "JsonResponse",
    "Method",
    "Middleware",
    "MiddlewareKind",
    "NO_MATCH",
    "Next",
    "NotFound",
    "ParameterCollection",
    "RedirectResponse",
    "Request",
    "Response",
    "Route",
    "Router",
    "RouterConfig",
    "RoutingContext",
    "ServerRequest",
    "UploadedFile",
    "Uri",
    "result_to_response",
]

# Public name -> defining module. Keeps ``import everest`` cheap.
_LAZY_IMPORTS: dict[str, str] = {
    "ASGIAdapter": "everest.asgi",
    "ConfigurationError": "everest.errors",
    "ContextBuilder": "everest.routing.router",
    "Cookie": "everest.http.cookies",
    "EverestError": "everest.errors",
    "Headers": "everest.http.headers",
    "HttpException": "everest.errors",
    "JsonResponse": "everest.http.response",
    "Method": "everest.http.methods",
    "Middleware": "everest.routing.middleware",
    "MiddlewareKind": "everest.routing.context",
    "NO_MATCH": "everest.routing.results",
    "Next": "everest.routing.middleware",
    "NotFound": "everest.errors",
    "ParameterCollection": "everest.http.parameters",
    "RedirectResponse": "everest.http.response",
    "Request": "everest.http.request",
    "Response": "everest.http.response",
    "Route": "everest.routing.route",
    "Router": "everest.routing.router",
    "RouterConfig": "everest.config",
    "RoutingContext": "everest.routing.context",
    "ServerRequest": "everest.http.request",
    "UploadedFile": "everest.http.files",
    "Uri": "everest.http.uri",
    "result_to_response": "everest.routing.results",
}


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import everest`` fast while providing a clean top-level API.
    """
    module = _LAZY_IMPORTS.get(name)
    if module is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)
    return getattr(import_module(module), name)
