import httpx
import json
import logging
import pytest

from photoslibrary.api import MAX_RESPONSE_SIZE
from photoslibrary.codec import DecodeError
from photoslibrary.error import InvalidRequestError, TransportError
from photoslibrary.http import (
    HTTPXTransport,
    Query,
    Request,
    Response,
    Transport,
    execute_json,
    join_url,
)
from photoslibrary.stream import BytesStream, Stream


class TrackedStream(BytesStream):
    def __init__(self, content: bytes):
        super().__init__(content, "application/json")
        self.closed = False

    async def close(self):
        self.closed = True
        await super().close()


class FixedTransport(Transport):
    def __init__(self, response: Response | Exception):
        self.response = response

    async def execute(self, request: Request) -> Response:
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_join_url():
    assert join_url("https://host", "v1", "albums") == "https://host/v1/albums"
    assert join_url("https://host/", "v1") == "https://host/v1"
    assert join_url("http://host:8080/base", "v1") == "http://host:8080/base/v1"


def test_join_url_quotes_segments():
    assert join_url("https://host", "v1", "mediaItems:search") == "https://host/v1/mediaItems:search"
    assert join_url("https://host", "a b?") == "https://host/a%20b%3F"


@pytest.mark.parametrize("segment", ["", ".", "..", "a/b"])
def test_join_url_invalid_segment(segment):
    with pytest.raises(InvalidRequestError):
        join_url("https://host", "v1", segment)


@pytest.mark.parametrize("base_url", ["", "host", "ftp://host", "https://"])
def test_join_url_invalid_base(base_url):
    with pytest.raises(InvalidRequestError):
        join_url(base_url, "v1")


def test_request_target():
    request = Request(url="https://host/v1/albums")
    assert request.target == "https://host/v1/albums"
    request.query = Query([("pageSize", "5"), ("pageToken", "a b")])
    assert request.target == "https://host/v1/albums?pageSize=5&pageToken=a+b"


async def test_httpx_transport():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    async with HTTPXTransport(client) as transport:
        request = Request(
            method="GET",
            url="https://host/v1/mediaItems:search",
            query=Query(pageSize="5"),
            body=BytesStream(b'{"albumId": "a"}', "application/json"),
        )
        request.headers["Content-Type"] = "application/json"
        response = await transport.execute(request)
        assert response.status == 200
        assert response.headers["content-type"] == "application/json"
        async with response.body:
            assert json.loads(b"".join([chunk async for chunk in response.body])) == {"ok": True}
    assert seen[0].method == "GET"
    assert seen[0].url == "https://host/v1/mediaItems:search?pageSize=5"
    assert seen[0].headers["Content-Type"] == "application/json"
    assert seen[0].content == b'{"albumId": "a"}'
    assert not client.is_closed  # not owned by transport
    await client.aclose()


async def test_httpx_transport_owns_client():
    transport = HTTPXTransport()
    await transport.close()
    assert transport.client.is_closed


async def test_httpx_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    async with HTTPXTransport(client) as transport:
        with pytest.raises(TransportError, match="connection refused") as info:
            await transport.execute(Request(url="https://host/v1/albums"))
    assert isinstance(info.value.__cause__, httpx.ConnectError)
    await client.aclose()


async def test_execute_json():
    body = TrackedStream(b'{"albums": []}')
    transport = FixedTransport(Response(status=200, body=body))
    assert await execute_json(transport, Request(url="https://host/v1/albums")) == {"albums": []}
    assert body.closed


async def test_execute_json_invalid_json_closes_body():
    body = TrackedStream(b"<html>")
    transport = FixedTransport(Response(status=200, body=body))
    with pytest.raises(DecodeError):
        await execute_json(transport, Request(url="https://host/v1/albums"))
    assert body.closed


async def test_execute_json_error_status(caplog):
    body = TrackedStream(b'{"error": {"code": 404}}')
    transport = FixedTransport(Response(status=404, body=body))
    with caplog.at_level(logging.WARNING, logger="photoslibrary.http"):
        value = await execute_json(transport, Request(url="https://host/v1/albums"))
    assert value == {"error": {"code": 404}}
    assert "404" in caplog.text


async def test_execute_json_body_over_limit():
    body = TrackedStream(b'{"albums": []}')
    transport = FixedTransport(Response(status=200, body=body))
    with pytest.raises(TransportError, match="exceeds 8 bytes") as info:
        await execute_json(transport, Request(url="https://host/v1/albums"), limit=8)
    assert isinstance(info.value.__cause__, ValueError)
    assert body.closed


async def test_execute_json_default_limit():
    body = TrackedStream(b" " * (MAX_RESPONSE_SIZE + 1))
    transport = FixedTransport(Response(status=200, body=body))
    with pytest.raises(TransportError):
        await execute_json(transport, Request(url="https://host/v1/albums"))
    assert body.closed


async def test_execute_json_no_body():

    transport = FixedTransport(Response(status=200))
    with pytest.raises(DecodeError):
        await execute_json(transport, Request(url="https://host/v1/albums"))


async def test_execute_json_wraps_transport_exception():
    transport = FixedTransport(OSError("network unreachable"))
    with pytest.raises(TransportError, match="network unreachable") as info:
        await execute_json(transport, Request(url="https://host/v1/albums"))
    assert isinstance(info.value.__cause__, OSError)


async def test_execute_json_passes_library_errors():
    error = InvalidRequestError("bad")
    transport = FixedTransport(error)
    with pytest.raises(InvalidRequestError) as info:
        await execute_json(transport, Request(url="https://host/v1/albums"))
    assert info.value is error


async def test_base_transport():
    with pytest.raises(NotImplementedError):
        await Transport().execute(Request())
    await Transport().close()


async def test_stream_base_not_implemented():
    with pytest.raises(NotImplementedError):
        await Stream("text/plain").__anext__()
