"""Test helpers for everest routers.

Uses the same ServerRequest and Response types as production. No ASGI
round trip: requests go straight to ``Router.handle()``.
"""

import json as json_module
from collections.abc import Mapping
from typing import Any

from everest.errors import HttpException
from everest.http.headers import HeaderInput, Headers
from everest.http.request import ServerRequest
from everest.http.response import Response
from everest.http.uri import Uri
from everest.routing.router import Router


def make_request(
    method: str = "GET",
    path: str = "/",
    *,
    headers: HeaderInput | None = None,
    body: str | bytes = b"",
    query: Mapping[str, Any] | None = None,
    host: str = "localhost",
    **collections: Any,
) -> ServerRequest:
    """Build a ServerRequest for *path* (which may carry a ``?query``).

    Extra keyword arguments set server-side collections such as
    ``attributes``, ``parsed_body`` or ``cookie_params``.
    """
    uri = Uri.from_string(path).with_host(host)
    if query:
        uri = uri.with_merged_query(query)
    return ServerRequest(
        method=method,
        uri=uri,
        headers=Headers(headers),
        body=body,
        **collections,
    )


class RouterClient:
    __test__ = False  # Tell pytest this is not a test class
    """Synchronous test client for a Router.

    ``HttpException`` is rendered to its response, the way the ASGI
    adapter does it; any other exception propagates to the test.

    Usage::

        client = RouterClient(router)
        response = client.get("/users/42")
        assert response.status == 200
    """

    __slots__ = ("router",)

    def __init__(self, router: Router) -> None:
        self.router = router

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: HeaderInput | None = None,
        body: str | bytes = b"",
        **kwargs: Any,
    ) -> Response:
        request = make_request(method, path, headers=headers, body=body, **kwargs)
        try:
            return self.router.handle(request)
        except HttpException as exc:
            return exc.to_response()

    def get(self, path: str, **kwargs: Any) -> Response:
        """Send a GET request."""
        return self.request("GET", path, **kwargs)

    def head(self, path: str, **kwargs: Any) -> Response:
        return self.request("HEAD", path, **kwargs)

    def post(
        self,
        path: str,
        *,
        json: Any = None,
        form: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> Response:
        """Send a POST request.

        *json* is serialised into the body; *form* becomes the parsed body
        (as if a URL-encoded form had been submitted).
        """
        if json is not None:
            headers = Headers(kwargs.pop("headers", None)).with_header("Content-Type", "application/json")
            kwargs["headers"] = headers
            kwargs["body"] = json_module.dumps(json)
            kwargs.setdefault("parsed_body", json if isinstance(json, Mapping) else {})
        if form is not None:
            kwargs.setdefault("parsed_body", form)
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> Response:
        """Send a PUT request."""
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> Response:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> Response:
        """Send a DELETE request."""
        return self.request("DELETE", path, **kwargs)

    def options(self, path: str, **kwargs: Any) -> Response:
        return self.request("OPTIONS", path, **kwargs)
