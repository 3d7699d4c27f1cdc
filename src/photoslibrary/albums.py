"""
Album endpoints.

See: https://developers.google.com/photos/library/reference/rest/v1/albums
"""

import asyncio

from dataclasses import dataclass, field
from photoslibrary.api import (
    BASE_URL,
    EXCLUDE_NON_APP_CREATED_DATA_QUERY_KEY,
    PHOTOS_LIBRARY_VERSION,
)
from photoslibrary.codec import APPLICATION_JSON, encode_json, get_codec
from photoslibrary.http import Request, Transport, execute_json, join_url
from photoslibrary.monitor import Monitor
from photoslibrary.pagination import Endpoint, ItemStream, PageRequest, paginate
from photoslibrary.stream import BytesStream


ALBUMS_PATH = "albums"


@dataclass
class SharedAlbumOptions:
    is_collaborative: bool = False
    is_commentable: bool = False


@dataclass
class ShareInfo:
    """Sharing information of an album that has been shared."""

    shared_album_options: SharedAlbumOptions | None = None
    shareable_url: str = ""
    share_token: str = ""
    is_joined: bool = False
    is_owned: bool = False
    is_joinable: bool = False


@dataclass
class Album:
    """
    An album: a collection of media items.

    Attributes:
    • id: identifier of the album
    • title: name of the album, as displayed to the user
    • product_url: URL to the album in the Photos application
    • is_writeable: whether media items can be created in the album
    • share_info: sharing information, if the album is shared
    • media_items_count: number of media items in the album
    • cover_photo_base_url: base URL of the cover photo bytes
    • cover_photo_media_item_id: identifier of the cover photo media item
    """

    id: str = ""
    title: str = ""
    product_url: str = ""
    is_writeable: bool = False
    share_info: ShareInfo | None = None
    media_items_count: int = 0
    cover_photo_base_url: str = ""
    cover_photo_media_item_id: str = ""


@dataclass
class ListAlbumsRequest(PageRequest):
    """
    Request to list albums.

    Parameters and attributes:
    • page_size: maximum number of albums per page  [server default]
    • page_token: token of the page to request
    • exclude_non_app_created_data: only list albums created by this application
    """

    exclude_non_app_created_data: bool = field(
        default=False, metadata={"json": EXCLUDE_NON_APP_CREATED_DATA_QUERY_KEY}
    )


@dataclass
class CreateAlbumRequest:
    album: Album


ALBUMS = Endpoint(path=(ALBUMS_PATH,), item_type=Album, items_key="albums")


def list_albums(
    transport: Transport,
    request: ListAlbumsRequest | None = None,
    *,
    cancel: asyncio.Event | None = None,
    base_url: str = BASE_URL,
    monitor: Monitor | None = None,
) -> ItemStream[Album]:
    """
    List the albums in the user's library, as a stream of albums. Albums created by the
    Photos application but not yet visible to the user are not listed.

    Parameters:
    • transport: authenticated transport
    • request: list request  [first page, server defaults]
    • cancel: event that, once set, stops listing
    • base_url: scheme and host of the service
    • monitor: monitor to record page fetch measurements  [global monitors]
    """
    return paginate(
        transport,
        ALBUMS,
        request or ListAlbumsRequest(),
        cancel=cancel,
        base_url=base_url,
        monitor=monitor,
    )


async def get_album(transport: Transport, album_id: str, *, base_url: str = BASE_URL) -> Album:
    """Return the album with the specified identifier."""
    request = Request(
        method="GET",
        url=join_url(base_url, PHOTOS_LIBRARY_VERSION, ALBUMS_PATH, album_id),
    )
    return get_codec(Album).decode(await execute_json(transport, request))


async def create_album(transport: Transport, album: Album, *, base_url: str = BASE_URL) -> Album:
    """
    Create an album in the user's library, returning the created album.

    Only the title of the supplied album is meaningful to the service.
    """
    request = Request(
        method="POST",
        url=join_url(base_url, PHOTOS_LIBRARY_VERSION, ALBUMS_PATH),
        body=BytesStream(encode_json(CreateAlbumRequest(album=album)), APPLICATION_JSON),
    )
    request.headers["Content-Type"] = APPLICATION_JSON
    return get_codec(Album).decode(await execute_json(transport, request))
