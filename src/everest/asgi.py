"""ASGI glue: run a Router as an ASGI 3 application.

The only component that touches raw ASGI directly. Reads the request body,
builds a ServerRequest, dispatches through the (synchronous) router in an
anyio worker thread, maps errors to responses, and sends the Response back
through ASGI ``send()``.
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING

import anyio

from everest._internal.asgi import Receive, Scope, Send
from everest.errors import HttpException
from everest.http.request import ServerRequest
from everest.http.response import Response

if TYPE_CHECKING:
    from everest.routing.router import Router

logger = logging.getLogger("everest.server")

DEFAULT_CONTENT_TYPE = "text/html; charset=utf-8"


class _BodyTooLarge(Exception):
    pass


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(response: Response, send: Send, *, head: bool = False) -> None:
    """Translate a Response into ASGI send() calls.

    With *head*, headers (including the content length) are sent as for
    the full response but the body is dropped.
    """
    raw_headers = [
        (name, value) for name, value in response.headers.raw if name != b"content-length"
    ]
    if response.content_type is None:
        raw_headers.insert(0, (b"content-type", DEFAULT_CONTENT_TYPE.encode("latin-1")))

    body = response.body_bytes if _body_allowed(response.status) else b""
    raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": b"" if head else body,
        }
    )


async def read_body(receive: Receive, limit: int) -> bytes:
    """Read the full request body; raises ``_BodyTooLarge`` past *limit* bytes."""
    chunks: list[bytes] = []
    size = 0
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        chunk = message.get("body", b"")
        if chunk:
            size += len(chunk)
            if size > limit:
                raise _BodyTooLarge
            chunks.append(chunk)
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


class ASGIAdapter:
    """ASGI 3 application serving a Router.

    Usage::

        app = router.as_asgi()
        # uvicorn module:app, hypercorn module:app, ...
    """

    __slots__ = ("router",)

    def __init__(self, router: Router) -> None:
        self.router = router

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return
        response = await self._respond(scope, receive)
        await send_response(response, send, head=scope.get("method") == "HEAD")

    async def _respond(self, scope: Scope, receive: Receive) -> Response:
        config = self.router.config
        method = scope.get("method", "GET")
        path = scope.get("path", "/")

        content_length = _content_length(scope)
        if content_length is not None and content_length > config.max_content_length:
            return HttpException(status=413).to_response()
        try:
            body = await read_body(receive, config.max_content_length)
        except _BodyTooLarge:
            return HttpException(status=413).to_response()

        try:
            request = ServerRequest.from_asgi(
                scope,
                body,
                trust_forwarded=config.trust_forwarded_headers,
            )
        except ValueError as exc:
            logger.debug("400 %s %s: %s", method, path, exc)
            detail = str(exc) if config.debug else "Bad Request"
            return HttpException(status=400, detail=detail).to_response()

        try:
            return await anyio.to_thread.run_sync(self.router.handle, request)
        except HttpException as exc:
            logger.debug("%d %s %s: %s", exc.status, method, path, exc.detail)
            return exc.to_response()
        except Exception:
            logger.exception("500 %s %s", method, path)
            detail = traceback.format_exc() if config.debug else ""
            return HttpException(status=500, detail=detail).to_response()

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Compiles the routing tree at startup, before the first request.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await anyio.to_thread.run_sync(self.router.compile)
                except Exception as exc:
                    logger.exception("Router failed to compile")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return


def _content_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers", ()):
        if name.lower() == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None
