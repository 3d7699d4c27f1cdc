"""
Module to execute HTTP requests through an injectable transport.

A transport is anything that can execute a request and return a response. The library only
talks to the network through the Transport interface, which allows a test double to inspect
requests and fabricate responses.
"""

import httpx
import logging
import multidict
import urllib.parse

from photoslibrary.api import MAX_RESPONSE_SIZE
from photoslibrary.codec import JSONType, parse_json
from photoslibrary.error import Error, InvalidRequestError, TransportError, wrap_exception
from photoslibrary.stream import BytesStream, Stream, read_body


_logger = logging.getLogger(__name__)


Headers = multidict.CIMultiDict
Query = multidict.MultiDict


class Message:
    """
    Base class for HTTP request and response.

    Parameters and attributes:
    • headers: multi-value dictionary to store headers
    • body: stream message body, or None if no body
    """

    def __init__(
        self,
        *,
        headers: Headers | None = None,
        body: Stream | None = None,
    ):
        super().__init__()
        self.headers = headers if headers is not None else Headers()
        self.body = body

    def __repr__(self):
        return f"Message(headers={self.headers}, body={self.body})"


class Request(Message):
    """
    HTTP request.

    Parameters and attributes:
    • headers: multi-value dictionary to store headers
    • body: stream for request body, or None
    • method: the HTTP method name, in upper case
    • url: absolute URL, excluding query string
    • query: multi-value dictionary to store query string parameters
    """

    def __init__(
        self,
        *,
        headers: Headers | None = None,
        body: Stream | None = None,
        method: str = "GET",
        url: str = "/",
        query: Query | None = None,
    ):
        super().__init__(headers=headers, body=body)
        self.method = method
        self.url = url
        self.query = query if query is not None else Query()

    @property
    def target(self) -> str:
        """The request URL, including query string."""
        if not self.query:
            return self.url
        return f"{self.url}?{urllib.parse.urlencode(list(self.query.items()))}"

    def __repr__(self):
        return (
            f"Request(headers={self.headers}, body={self.body}, method={self.method}, "
            f"url={self.url}, query={self.query})"
        )


class Response(Message):
    """
    HTTP response.

    Parameters and attributes:
    • headers: multi-value dictionary to store headers
    • body: stream for response body, or None
    • status: HTTP status code
    """

    def __init__(
        self,
        *,
        headers: Headers | None = None,
        body: Stream | None = None,
        status: int = 200,
    ):
        super().__init__(headers=headers, body=body)
        self.status = status

    def __repr__(self):
        return f"Response(headers={self.headers}, body={self.body}, status={self.status})"


def join_url(base_url: str, *segments: str) -> str:
    """
    Return an absolute URL by appending path segments to a base URL. Each segment is
    percent-encoded; a segment cannot be empty, contain "/" or be a relative reference.

    Raises InvalidRequestError if the URL cannot be constructed.
    """
    parts = urllib.parse.urlsplit(base_url)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise InvalidRequestError(f"invalid base URL: {base_url!r}")
    for segment in segments:
        if not isinstance(segment, str) or segment in {"", ".", ".."} or "/" in segment:
            raise InvalidRequestError(f"invalid URL path segment: {segment!r}")
    path = "/".join(urllib.parse.quote(s, safe=":") for s in segments)
    return f"{parts.scheme}://{parts.netloc}{parts.path.rstrip('/')}/{path}"


class Transport:
    """
    Base class for a capability that executes HTTP requests.

    A transport can be shared by any number of concurrent callers; callers never mutate it.
    """

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def execute(self, request: Request) -> Response:
        """
        Execute a request and return its response. The caller must close the response body.

        Raises TransportError if the request could not be executed.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release resources held by the transport. Base class implementation does nothing."""
        return


class HTTPXStream(Stream):
    """
    Stream that provides the body of a streamed httpx response. Closing the stream releases
    the underlying connection.
    """

    def __init__(self, response: httpx.Response):
        length = response.headers.get("content-length")
        super().__init__(
            content_type=response.headers.get("content-type", "application/octet-stream"),
            content_length=int(length) if length and length.isdigit() else None,
        )
        self.response = response
        self._chunks = None
        self._closed = False

    async def __anext__(self) -> bytes:
        if self._closed:
            raise StopAsyncIteration
        if self._chunks is None:
            self._chunks = self.response.aiter_bytes()
        with wrap_exception(catch=httpx.HTTPError, throw=TransportError):
            return await self._chunks.__anext__()

    async def close(self):
        self._closed = True
        await self.response.aclose()


class HTTPXTransport(Transport):
    """
    Transport that executes requests with an httpx asynchronous client.

    Parameters:
    • client: client to execute requests  [new client, closed with the transport]
    • auth: authentication for a newly created client
    • timeout: timeout in seconds for a newly created client

    See photoslibrary.oauth2 for the authentication of the Photos Library API.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        auth: httpx.Auth | None = None,
        timeout: float | None = 30.0,
    ):
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(auth=auth, timeout=timeout)
        self.client = client

    async def execute(self, request: Request) -> Response:
        content = None
        if request.body is not None:
            content = await read_body(request.body)
        try:
            outgoing = self.client.build_request(
                request.method,
                request.url,
                params=list(request.query.items()) or None,
                headers=list(request.headers.items()),
                content=content,
            )
        except httpx.InvalidURL as iu:
            raise InvalidRequestError(f"invalid URL {request.url}: {iu}") from iu
        try:
            response = await self.client.send(outgoing, stream=True)
        except httpx.HTTPError as he:
            raise TransportError(f"{request.method} {request.url}: {he}") from he
        return Response(
            status=response.status_code,
            headers=Headers(response.headers.multi_items()),
            body=HTTPXStream(response),
        )

    async def close(self):
        if self._owns_client:
            await self.client.aclose()


async def execute_json(
    transport: Transport, request: Request, *, limit: int | None = MAX_RESPONSE_SIZE
) -> JSONType:
    """
    Execute a request and parse its response body as JSON.

    Parameters:
    • transport: transport to execute the request
    • request: request to execute
    • limit: largest response body accepted, in bytes  [MAX_RESPONSE_SIZE]

    The response body is always closed, whether or not it could be parsed. The HTTP status
    does not alter how the body is handled; a body of an unexpected shape is for the caller's
    decoder to reject.

    Raises TransportError if the transport failed or the body exceeds the limit, or
    DecodeError if the body is not JSON.
    """
    try:
        response = await transport.execute(request)
    except Error:
        raise
    except Exception as e:
        raise TransportError(f"{request.method} {request.target}: {e}") from e
    _logger.debug("received %s response for %s %s", response.status, request.method, request.url)
    try:
        content = await read_body(response.body or BytesStream(b""), limit=limit)
    except ValueError as ve:
        raise TransportError(f"{request.method} {request.target}: {ve}") from ve
    if not 200 <= response.status <= 299:
        _logger.warning(
            "decoding body of %s response for %s %s", response.status, request.method, request.url
        )
    return parse_json(content)
