import json
import pytest

from photoslibrary.albums import (
    Album,
    ListAlbumsRequest,
    ShareInfo,
    create_album,
    get_album,
    list_albums,
)
from photoslibrary.codec import DecodeError
from photoslibrary.error import InvalidRequestError
from photoslibrary.http import Request, Response, Transport
from photoslibrary.stream import BytesStream


class JSONTransport(Transport):
    """Answers requests with JSON values, in order, recording each request and its body."""

    def __init__(self, *values):
        self.values = list(values)
        self.requests = []
        self.bodies = []

    async def execute(self, request: Request) -> Response:
        self.requests.append(request)
        if request.body is not None:
            self.bodies.append(json.loads(b"".join([chunk async for chunk in request.body])))
        content = json.dumps(self.values.pop(0)).encode()
        return Response(body=BytesStream(content, "application/json"))


async def test_list_albums():
    transport = JSONTransport(
        {"albums": [{"id": "a1", "title": "Trip"}], "nextPageToken": "t"},
        {"albums": [{"id": "a2", "title": "Pets", "mediaItemsCount": "12"}]},
    )
    request = ListAlbumsRequest(page_size=1, exclude_non_app_created_data=True)
    async with list_albums(transport, request) as albums:
        result = [album async for album in albums]
    assert result == [Album(id="a1", title="Trip"), Album(id="a2", title="Pets", media_items_count=12)]
    first, second = transport.requests
    assert first.method == "GET"
    assert first.url == "https://photoslibrary.googleapis.com/v1/albums"
    assert dict(first.query) == {"pageSize": "1", "excludeNonAppCreatedData": "true"}
    assert second.query["pageToken"] == "t"
    assert request.page_token == ""


async def test_list_albums_default_request():
    transport = JSONTransport({})
    assert [album async for album in list_albums(transport, base_url="http://localhost:1")] == []
    assert transport.requests[0].url == "http://localhost:1/v1/albums"
    assert len(transport.requests[0].query) == 0


async def test_list_albums_shared():
    transport = JSONTransport(
        {
            "albums": [
                {
                    "id": "a1",
                    "shareInfo": {
                        "sharedAlbumOptions": {"isCollaborative": True},
                        "shareableUrl": "https://photos.app.goo.gl/x",
                        "isOwned": True,
                    },
                }
            ]
        }
    )
    albums = [album async for album in list_albums(transport)]
    share_info = albums[0].share_info
    assert isinstance(share_info, ShareInfo)
    assert share_info.shared_album_options.is_collaborative
    assert not share_info.shared_album_options.is_commentable
    assert share_info.is_owned


async def test_get_album():
    transport = JSONTransport({"id": "a_1", "title": "Trip", "isWriteable": True})
    album = await get_album(transport, "a_1")
    assert album.title == "Trip"
    assert album.is_writeable
    assert transport.requests[0].url == "https://photoslibrary.googleapis.com/v1/albums/a_1"


async def test_get_album_invalid_id():
    with pytest.raises(InvalidRequestError):
        await get_album(JSONTransport(), "a/1")


async def test_get_album_decode_error():
    with pytest.raises(DecodeError) as info:
        await get_album(JSONTransport({"id": "a1", "isWriteable": "yes"}), "a1")
    assert info.value.path == ["isWriteable"]


async def test_create_album():
    transport = JSONTransport({"id": "a1", "title": "New", "productUrl": "https://photos/a1"})
    album = await create_album(transport, Album(title="New"))
    assert album.id == "a1"
    assert album.product_url == "https://photos/a1"
    request = transport.requests[0]
    assert request.method == "POST"
    assert request.url == "https://photoslibrary.googleapis.com/v1/albums"
    assert request.headers["Content-Type"] == "application/json"
    assert transport.bodies == [{"album": {"title": "New"}}]
