"""
Module for message bodies, which are carried as asynchronous streams of bytes.

A body is handed over open, and whoever consumes it must close it; closing releases what
holds the body, such as a pooled connection. `read_body` reads a body to its end and always
closes it.
"""

from collections.abc import AsyncIterator


class Stream(AsyncIterator[bytes | bytearray]):
    """
    Base class for a message body, iterated asynchronously in chunks whose size the stream
    decides.

    Parameters and attributes:
    • content_type: media type of the body
    • content_length: length of the body in bytes, or None if it is not known in advance

    Used with `async with`, the stream is closed on exit. Once closed, iteration stops;
    closing again has no effect.
    """

    def __init__(self, content_type: str, content_length: int | None = None):
        self.content_type = content_type
        self.content_length = content_length

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes | bytearray:
        raise NotImplementedError

    async def close(self) -> None:
        """Close the stream."""
        raise NotImplementedError


class BytesStream(Stream):
    """
    Body held in memory, delivered as a single chunk.

    Parameters:
    • content: body content
    • content_type: media type of the body
    """

    def __init__(self, content: bytes | bytearray, content_type: str = "application/octet-stream"):
        super().__init__(content_type, len(content))
        self._pending = content

    async def __anext__(self) -> bytes | bytearray:
        if self._pending is None:
            raise StopAsyncIteration
        chunk, self._pending = self._pending, None
        return chunk

    async def close(self):
        self._pending = None


async def read_body(stream: Stream, *, limit: int | None = None) -> bytes:
    """
    Read a message body to its end, and close it.

    Parameters:
    • stream: body to read
    • limit: largest number of bytes accepted  [no limit]

    The stream is closed whether or not reading succeeded. A body that declares a length
    over the limit is rejected before any of it is read.

    Raises ValueError if the body exceeds the limit.
    """
    async with stream:
        if limit is not None and (stream.content_length or 0) > limit:
            raise ValueError(f"body of {stream.content_length} bytes exceeds {limit} bytes")
        content = bytearray()
        async for chunk in stream:
            content += chunk
            if limit is not None and len(content) > limit:
                raise ValueError(f"body exceeds {limit} bytes")
        return bytes(content)
