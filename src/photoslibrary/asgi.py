"""Module to expose an HTTP request handler through ASGI."""

import urllib.parse

from collections.abc import Awaitable, Callable, Mapping
from photoslibrary.http import Headers, Query, Request, Response
from photoslibrary.stream import Stream


Handler = Callable[[Request], Awaitable[Response]]


def _int(s: str | None) -> int | None:
    if s is not None and s.isdigit():
        return int(s)
    return None


class ReceiveStream(Stream):
    """Stream that encapsulates the ASGI receive interface."""

    def __init__(self, headers: Headers, receive: Callable[[], Awaitable[Mapping]]):
        super().__init__(
            content_type=headers.get("content-type", "application/octet-stream"),
            content_length=_int(headers.get("content-length")),
        )
        self._receive = receive
        self._more = True

    async def __anext__(self) -> bytes:
        if not self._more:
            raise StopAsyncIteration
        event = await self._receive()
        event_type = event["type"]
        if event_type == "http.disconnect":
            self._more = False
            raise StopAsyncIteration
        if event_type != "http.request":
            raise RuntimeError(f"expecting http.request event type; received {event_type}")
        self._more = event.get("more_body", False)
        return event.get("body", b"")

    async def close(self):
        self._more = False


def _url(scope: Mapping) -> str:
    scheme = scope.get("scheme", "http")
    server = scope.get("server")
    host = f"{server[0]}:{server[1]}" if server else "localhost"
    return f"{scheme}://{host}{scope['path']}"


def asgi_app(handler: Handler) -> Callable:
    """
    Expose an HTTP request handler as an ASGI application.

    Parameters:
    • handler: HTTP handler coroutine function

    The handler is called in response to ASGI HTTP protocol events. Lifespan protocol events
    are acknowledged; the application has no startup or shutdown work of its own.
    """

    async def lifespan(scope, receive, send):
        while True:
            message = await receive()
            lifespan_type = message["type"]
            if lifespan_type not in {"lifespan.startup", "lifespan.shutdown"}:
                raise RuntimeError(f"unknown ASGI lifespan type: {lifespan_type}")
            await send({"type": f"{lifespan_type}.complete"})
            if lifespan_type == "lifespan.shutdown":
                return

    async def http(scope, receive, send):
        request = Request(method=scope["method"], url=_url(scope))
        for key, value in scope["headers"]:
            request.headers.add(key.decode(), value.decode())
        request.query = Query(
            urllib.parse.parse_qsl((scope.get("query_string") or b"").decode())
        )
        request.body = ReceiveStream(request.headers, receive)
        response = await handler(request)
        await send(
            {
                "type": "http.response.start",
                "status": response.status,
                "headers": [(k.lower().encode(), v.encode()) for k, v in response.headers.items()],
            }
        )
        if response.body is not None:
            async with response.body:
                async for chunk in response.body:
                    await send({"type": "http.response.body", "body": chunk, "more_body": True})
        await send({"type": "http.response.body", "more_body": False})

    async def app(scope, receive, send):
        """Coroutine that implements ASGI interface."""
        scope_type = scope["type"]
        if scope_type == "http":
            return await http(scope, receive, send)
        elif scope_type == "lifespan":
            return await lifespan(scope, receive, send)
        else:
            raise RuntimeError(f"unknown ASGI scope type: {scope_type}")

    return app
