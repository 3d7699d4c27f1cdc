import json

from datetime import datetime, timezone
from photoslibrary.http import Request, Response, Transport
from photoslibrary.mediaitems import (
    Date,
    DateFilter,
    DateRange,
    Feature,
    FeatureFilter,
    Filters,
    ListMediaItemsRequest,
    MediaItem,
    MediaType,
    MediaTypeFilter,
    SearchMediaItemsRequest,
    get_media_item,
    list_media_items,
    search_media_items,
)
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


async def test_list_media_items():
    transport = JSONTransport(
        {"mediaItems": [{"id": "m1"}, {"id": "m2"}], "nextPageToken": "t"},
        {"mediaItems": [{"id": "m3"}], "nextPageToken": ""},
    )
    items = list_media_items(transport, ListMediaItemsRequest(page_size=2))
    assert [item.id async for item in items] == ["m1", "m2", "m3"]
    first, second = transport.requests
    assert first.url == "https://photoslibrary.googleapis.com/v1/mediaItems"
    assert dict(first.query) == {"pageSize": "2"}
    assert dict(second.query) == {"pageSize": "2", "pageToken": "t"}
    assert transport.bodies == []


async def test_search_media_items_album():
    transport = JSONTransport(
        {"mediaItems": [{"id": "m1", "filename": "a.jpg"}], "nextPageToken": "t"},
        {"mediaItems": [{"id": "m2", "filename": "b.jpg"}]},
    )
    request = SearchMediaItemsRequest(page_size=25, album_id="a1")
    items = [item async for item in search_media_items(transport, request)]
    assert [item.filename for item in items] == ["a.jpg", "b.jpg"]
    first = transport.requests[0]
    assert first.method == "GET"
    assert first.url == "https://photoslibrary.googleapis.com/v1/mediaItems:search"
    assert len(first.query) == 0
    assert transport.bodies == [
        {"pageSize": 25, "albumId": "a1"},
        {"pageSize": 25, "pageToken": "t", "albumId": "a1"},
    ]


async def test_search_media_items_filters():
    transport = JSONTransport({})
    filters = Filters(
        date_filter=DateFilter(
            dates=[Date(year=2020, month=1)],
            ranges=[DateRange(start_date=Date(2019, 1, 1), end_date=Date(2019, 12, 31))],
        ),
        media_type_filter=MediaTypeFilter(media_types=[MediaType.PHOTO]),
        feature_filter=FeatureFilter(included_features=[Feature.FAVORITES]),
    )
    request = SearchMediaItemsRequest(filters=filters, order_by="MediaMetadata.creation_time")
    assert [item async for item in search_media_items(transport, request)] == []
    assert transport.bodies == [
        {
            "filters": {
                "dateFilter": {
                    "dates": [{"year": 2020, "month": 1}],
                    "ranges": [
                        {
                            "startDate": {"year": 2019, "month": 1, "day": 1},
                            "endDate": {"year": 2019, "month": 12, "day": 31},
                        }
                    ],
                },
                "mediaTypeFilter": {"mediaTypes": ["PHOTO"]},
                "featureFilter": {"includedFeatures": ["FAVORITES"]},
            },
            "orderBy": "MediaMetadata.creation_time",
        }
    ]


async def test_get_media_item():
    transport = JSONTransport(
        {
            "id": "m1",
            "baseUrl": "https://lh3.googleusercontent.com/x",
            "mimeType": "image/jpeg",
            "mediaMetadata": {
                "creationTime": "2021-03-04T05:06:07Z",
                "width": "4032",
                "height": "3024",
                "photo": {"cameraMake": "Pixel", "apertureFNumber": 1.8, "isoEquivalent": 100},
            },
            "contributorInfo": {"displayName": "Pat"},
        }
    )
    item = await get_media_item(transport, "m1")
    assert isinstance(item, MediaItem)
    assert transport.requests[0].url == "https://photoslibrary.googleapis.com/v1/mediaItems/m1"
    metadata = item.media_metadata
    assert metadata.creation_time == datetime(2021, 3, 4, 5, 6, 7, tzinfo=timezone.utc)
    assert (metadata.width, metadata.height) == (4032, 3024)
    assert metadata.photo.camera_make == "Pixel"
    assert metadata.photo.aperture_f_number == 1.8
    assert metadata.photo.iso_equivalent == 100
    assert metadata.video is None
    assert item.contributor_info.display_name == "Pat"
