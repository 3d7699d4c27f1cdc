import pytest

from photoslibrary.stream import BytesStream, Stream, read_body
from random import randbytes


class ChunkedBody(Stream):
    """Body of unknown length, as a chunked response delivers it."""

    def __init__(self, chunks: list[bytes], content_length: int | None = None):
        super().__init__("application/json", content_length)
        self.chunks = chunks
        self.closed = False

    async def __anext__(self) -> bytes:
        if self.closed or not self.chunks:
            raise StopAsyncIteration
        return self.chunks.pop(0)

    async def close(self):
        self.closed = True


async def test_read_body():
    content = randbytes(1024)
    stream = BytesStream(content)
    assert stream.content_length == 1024
    assert await read_body(stream) == content
    assert await read_body(stream) == b""


async def test_read_body_chunked():
    stream = ChunkedBody([b'{"albums"', b": [", b"]}"])
    assert await read_body(stream) == b'{"albums": []}'
    assert stream.closed


async def test_read_body_closes_on_error():
    class FailingBody(ChunkedBody):
        async def __anext__(self):
            raise RuntimeError("connection reset")

    stream = FailingBody([])
    with pytest.raises(RuntimeError):
        await read_body(stream)
    assert stream.closed


async def test_read_body_within_limit():
    assert await read_body(ChunkedBody([b"1234", b"5678"]), limit=8) == b"12345678"


async def test_read_body_over_limit():
    stream = ChunkedBody([b"12345", b"67890", b"ABCDE"])
    with pytest.raises(ValueError, match="exceeds 8 bytes"):
        await read_body(stream, limit=8)
    assert stream.closed
    assert stream.chunks == [b"ABCDE"]


async def test_read_body_declared_length_over_limit():
    stream = ChunkedBody([b"12345"], content_length=4096)
    with pytest.raises(ValueError, match="4096"):
        await read_body(stream, limit=1024)
    assert stream.chunks == [b"12345"]
    assert stream.closed


async def test_bytes_stream_close():
    stream = BytesStream(b"12345", "text/plain")
    assert stream.content_type == "text/plain"
    await stream.close()
    assert [chunk async for chunk in stream] == []
