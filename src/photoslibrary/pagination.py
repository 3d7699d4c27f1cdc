"""
Module to consume paginated list and search endpoints as a stream of items.

A paginated endpoint returns items in pages. Each page contains:

  • an ordered list of items
  • an opaque `nextPageToken` value to retrieve the next page

The caller initially passes no page token, resulting in the first page of items. If there
are additional items, the page contains a token that is supplied in the subsequent request.
The last page contains an empty token, indicating there are no further items to request.

The `paginate` function runs the page requests in a background task and republishes the
items, one at a time, through an `ItemStream`:

  • pages are requested strictly one after another, in server order
  • an item is only handed over when the consumer asks for it; a slow consumer throttles
    the rate at which pages are requested
  • the first failed page request stops pagination; the error is delivered after all items
    already published
  • setting the cancellation event stops pagination silently, before the next page request
    or the next item handed over

The service may return the same page token repeatedly; this is not detected, and such a
pagination will not end until it is cancelled or closed.
"""

import asyncio
import dataclasses
import logging

from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass, field
from photoslibrary.api import (
    BASE_URL,
    NEXT_PAGE_TOKEN_KEY,
    PAGE_SIZE_QUERY_KEY,
    PAGE_TOKEN_QUERY_KEY,
    PHOTOS_LIBRARY_VERSION,
)
from photoslibrary.codec import (
    APPLICATION_JSON,
    DecodeError,
    encode_json,
    get_codec,
)
from photoslibrary.error import InvalidRequestError
from photoslibrary.http import Request, Transport, execute_json, join_url
from photoslibrary.monitor import Monitor, counter, timer
from photoslibrary.stream import BytesStream
from typing import Any, Generic, TypeVar


_logger = logging.getLogger(__name__)


Item = TypeVar("Item")


@dataclass
class PageRequest:
    """
    Base class for a request of a paginated endpoint. Subclasses add filter and sort fields,
    each with a default value.

    Parameters and attributes:
    • page_size: maximum number of items per page  [server default]
    • page_token: token of the page to request; empty for the first page

    The page token is set by pagination, from the token returned with the previous page. A
    token is only meaningful to the query that produced it.
    """

    page_size: int | None = field(default=None, metadata={"json": PAGE_SIZE_QUERY_KEY})
    page_token: str = field(default="", metadata={"json": PAGE_TOKEN_QUERY_KEY})


@dataclass
class Page(Generic[Item]):
    """
    A decoded page of items.

    Attributes:
    • items: items in the page, in the order returned by the server
    • next_page_token: token of the next page; empty if this is the last page
    """

    items: list[Item] = field(default_factory=list)
    next_page_token: str = ""


@dataclass(frozen=True)
class Endpoint(Generic[Item]):
    """
    Describes a paginated endpoint.

    Parameters and attributes:
    • path: URL path segments, following the API version
    • item_type: type of each item in a page
    • items_key: key of the array of items in the response object
    • method: HTTP method
    • body: send the page request as a JSON body instead of as query parameters
    """

    path: tuple[str, ...]
    item_type: Any
    items_key: str
    method: str = "GET"
    body: bool = False

    @property
    def name(self) -> str:
        return "/".join(self.path)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_request(
    endpoint: Endpoint,
    page_request: PageRequest,
    *,
    base_url: str = BASE_URL,
) -> Request:
    """
    Build the HTTP request for one page of an endpoint.

    Parameters:
    • endpoint: paginated endpoint to request
    • page_request: filter/sort fields, page size and page token
    • base_url: scheme and host of the service

    Fields with empty values (None, "", 0, False) are omitted from the request, so that the
    server applies its defaults. For a query endpoint, each remaining field becomes a query
    parameter; for a body endpoint, the whole request is sent as a JSON body.

    Raises InvalidRequestError if the request cannot be constructed.
    """
    if page_request.page_size is not None and page_request.page_size < 0:
        raise InvalidRequestError(f"invalid page size: {page_request.page_size}")
    request = Request(
        method=endpoint.method,
        url=join_url(base_url, PHOTOS_LIBRARY_VERSION, *endpoint.path),
    )
    if endpoint.body:
        request.body = BytesStream(encode_json(page_request), APPLICATION_JSON)
        request.headers["Content-Type"] = APPLICATION_JSON
    else:
        encoded = get_codec(type(page_request)).encode(page_request)
        for key, value in encoded.items():
            if isinstance(value, dict | list):
                raise InvalidRequestError(f"{key} cannot be sent as a query parameter")
            request.query.add(key, _query_value(value))
    return request


def decode_page(endpoint: Endpoint[Item], value: Any) -> Page[Item]:
    """
    Decode a page of items from a response object.

    Raises DecodeError if the value is not an object of the expected shape.
    """
    if not isinstance(value, dict):
        raise DecodeError("expecting JSON object for page")
    with DecodeError.path_on_error(endpoint.items_key):
        items = value.get(endpoint.items_key)
        items = get_codec(list[endpoint.item_type]).decode(items if items is not None else [])
    with DecodeError.path_on_error(NEXT_PAGE_TOKEN_KEY):
        token = value.get(NEXT_PAGE_TOKEN_KEY)
        next_page_token = get_codec(str).decode(token if token is not None else "")
    return Page(items=items, next_page_token=next_page_token)


async def fetch_page(
    transport: Transport,
    endpoint: Endpoint[Item],
    page_request: PageRequest,
    *,
    base_url: str = BASE_URL,
    monitor: Monitor | None = None,
) -> Page[Item]:
    """
    Fetch and decode a single page.

    Parameters:
    • transport: transport to execute the request
    • endpoint: paginated endpoint to request
    • page_request: filter/sort fields, page size and page token
    • base_url: scheme and host of the service
    • monitor: monitor to record page fetch measurements  [global monitors]

    Raises InvalidRequestError, TransportError or DecodeError.
    """
    request = build_request(endpoint, page_request, base_url=base_url)
    _logger.debug("fetching page %s %s", request.method, request.target)
    tags = {"endpoint": endpoint.name}
    async with counter(name="page_fetches", tags=tags, monitor=monitor, status="status"):
        async with timer(name="page_fetch_duration", tags=tags, monitor=monitor):
            page = decode_page(endpoint, await execute_json(transport, request))
    _logger.debug(
        "decoded page of %d %s; next page token: %r",
        len(page.items),
        endpoint.items_key,
        page.next_page_token,
    )
    return page


_END = object()  # end of stream marker


async def _until_cancelled(awaitable: Awaitable, cancel: asyncio.Event | None):
    """
    Await a result, or the cancellation event, whichever comes first. Returns the result, or
    _END if cancellation was signalled first. The task awaiting the result is cancelled if
    still pending; a result that completed concurrently with cancellation is returned.
    """
    task = asyncio.ensure_future(awaitable)
    if cancel is None:
        return await task
    signal = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait((task, signal), return_when=asyncio.FIRST_COMPLETED)
    finally:
        signal.cancel()
        if not task.done():
            task.cancel()
    if task.done() and not task.cancelled():
        return task.result()
    return _END


class ItemStream(AsyncIterator[Item]):
    """
    Asynchronous iterator of items, produced by a background pagination task.

    Items are handed over one at a time, only when the consumer asks for the next item. When
    pagination fails, the error is stored in the `error` attribute and raised once by the
    iterator, after all items published before the failure; further iteration then ends.
    When pagination is cancelled, iteration ends without error.

    A consumer that does not exhaust the stream should close it, by calling `aclose`, or by
    using `async with`; closing stops the background task.

    Attributes:
    • error: the exception that ended pagination, or None
    """

    def __init__(self):
        self.error: Exception | None = None
        self._waiters: asyncio.Queue[asyncio.Future] = asyncio.Queue()
        self._closed = False
        self._raised = False
        self._task: asyncio.Task | None = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    def __aiter__(self):
        return self

    async def __anext__(self) -> Item:
        if self._closed:
            return self._end()
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.put_nowait(waiter)
        try:
            item = await waiter
        except asyncio.CancelledError:
            waiter.cancel()
            raise
        if item is _END:
            return self._end()
        return item

    def _end(self):
        if self.error is not None and not self._raised:
            self._raised = True
            raise self.error
        raise StopAsyncIteration

    @property
    def closed(self) -> bool:
        """True if pagination has ended and no further items will be published."""
        return self._closed

    async def _publish(self, item: Item, cancel: asyncio.Event | None) -> bool:
        """
        Hand an item to the consumer, once the consumer asks for one. Returns False if
        cancellation was signalled before the item could be handed over.
        """
        while True:
            waiter = await _until_cancelled(self._waiters.get(), cancel)
            if waiter is _END:
                return False
            if cancel is not None and cancel.is_set():
                self._waiters.put_nowait(waiter)  # resolved on close
                return False
            if not waiter.done():  # consumer can abandon a waiter
                waiter.set_result(item)
                return True

    def _close(self):
        self._closed = True
        while not self._waiters.empty():
            waiter = self._waiters.get_nowait()
            if not waiter.done():
                waiter.set_result(_END)

    async def wait(self) -> Exception | None:
        """
        Wait for the background pagination task to end, without consuming items. Returns the
        error that ended pagination, or None.
        """
        if self._task is not None and not self._task.done():
            await asyncio.wait((self._task,))
        return self.error

    async def aclose(self) -> None:
        """
        Close the stream, stopping the background task if it is still running. Any request
        in flight is abandoned. This method is idempotent.
        """
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise
        self._close()


async def _run(
    stream: ItemStream,
    transport: Transport,
    endpoint: Endpoint,
    request: PageRequest,
    cancel: asyncio.Event | None,
    base_url: str,
    monitor: Monitor | None,
) -> None:
    try:
        while True:
            if cancel is not None and cancel.is_set():
                _logger.debug("%s pagination cancelled before page request", endpoint.name)
                return
            try:
                page = await fetch_page(
                    transport, endpoint, request, base_url=base_url, monitor=monitor
                )
            except Exception as e:
                _logger.debug("%s pagination failed: %s", endpoint.name, e)
                stream.error = e
                return
            for item in page.items:
                if cancel is not None and cancel.is_set():
                    _logger.debug("%s pagination cancelled during page", endpoint.name)
                    return
                if not await stream._publish(item, cancel):
                    _logger.debug("%s pagination cancelled awaiting consumer", endpoint.name)
                    return
            if not page.next_page_token:
                _logger.debug("%s pagination complete", endpoint.name)
                return
            request = dataclasses.replace(request, page_token=page.next_page_token)
    finally:
        stream._close()


def paginate(
    transport: Transport,
    endpoint: Endpoint[Item],
    request: PageRequest,
    *,
    cancel: asyncio.Event | None = None,
    base_url: str = BASE_URL,
    monitor: Monitor | None = None,
) -> ItemStream[Item]:
    """
    Start paginating through an endpoint in a background task, returning a stream of its
    items. Must be called from a running event loop.

    Parameters:
    • transport: transport to execute requests; shared, never mutated
    • endpoint: paginated endpoint to request
    • request: initial page request; an empty page token starts with the first page
    • cancel: event that, once set, stops pagination
    • base_url: scheme and host of the service
    • monitor: monitor to record page fetch measurements  [global monitors]

    The caller's request is not modified; each page is requested with a copy carrying the
    token returned by the previous page.
    """
    stream = ItemStream()
    stream._task = asyncio.get_running_loop().create_task(
        _run(stream, transport, endpoint, dataclasses.replace(request), cancel, base_url, monitor)
    )
    return stream
