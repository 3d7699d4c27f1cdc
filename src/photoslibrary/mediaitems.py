"""
Media item endpoints.

See: https://developers.google.com/photos/library/reference/rest/v1/mediaItems
"""

import asyncio
import enum

from dataclasses import dataclass, field
from datetime import datetime
from photoslibrary.api import (
    BASE_URL,
    EXCLUDE_NON_APP_CREATED_DATA_QUERY_KEY,
    PHOTOS_LIBRARY_VERSION,
)
from photoslibrary.codec import get_codec
from photoslibrary.http import Request, Transport, execute_json, join_url
from photoslibrary.monitor import Monitor
from photoslibrary.pagination import Endpoint, ItemStream, PageRequest, paginate


MEDIA_ITEMS_PATH = "mediaItems"
SEARCH_MEDIA_ITEMS_PATH = "mediaItems:search"


class VideoProcessingStatus(str, enum.Enum):
    UNSPECIFIED = "UNSPECIFIED"
    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"


@dataclass
class Photo:
    """Metadata of a photo, as recorded by the camera."""

    camera_make: str = ""
    camera_model: str = ""
    focal_length: float = 0.0
    aperture_f_number: float = 0.0
    iso_equivalent: int = 0
    exposure_time: str = ""


@dataclass
class Video:
    """Metadata of a video. A processing status this client does not know is kept as a string."""

    camera_make: str = ""
    camera_model: str = ""
    fps: float = 0.0
    status: VideoProcessingStatus | str = VideoProcessingStatus.UNSPECIFIED


@dataclass
class MediaMetadata:
    creation_time: datetime | None = None
    width: int = 0
    height: int = 0
    photo: Photo | None = None
    video: Video | None = None


@dataclass
class ContributorInfo:
    """Who added a media item to a shared album."""

    profile_picture_base_url: str = ""
    display_name: str = ""


@dataclass
class MediaItem:
    """
    A photo or video in the user's library.

    Attributes:
    • id: identifier of the media item
    • description: description of the media item, as shown to the user
    • product_url: URL to the media item in the Photos application
    • base_url: base URL of the media item bytes; valid for a limited time
    • mime_type: MIME type of the media item
    • media_metadata: metadata of the media item, such as height, width or creation time
    • contributor_info: contributor, if the media item is in a shared album
    • filename: filename of the media item, as shown to the user
    """

    id: str = ""
    description: str = ""
    product_url: str = ""
    base_url: str = ""
    mime_type: str = ""
    media_metadata: MediaMetadata | None = None
    contributor_info: ContributorInfo | None = None
    filename: str = ""


# ----- search filters -----


@dataclass
class Date:
    """A calendar date. A zero month or day matches any month or day."""

    year: int = 0
    month: int = 0
    day: int = 0


@dataclass
class DateRange:
    start_date: Date | None = None
    end_date: Date | None = None


@dataclass
class DateFilter:
    """Matches media items created on any of the dates, or within any of the date ranges."""

    dates: list[Date] = field(default_factory=list)
    ranges: list[DateRange] = field(default_factory=list)


class ContentCategory(str, enum.Enum):
    NONE = "NONE"
    LANDSCAPES = "LANDSCAPES"
    RECEIPTS = "RECEIPTS"
    CITYSCAPES = "CITYSCAPES"
    LANDMARKS = "LANDMARKS"
    SELFIES = "SELFIES"
    PEOPLE = "PEOPLE"
    PETS = "PETS"
    WEDDINGS = "WEDDINGS"
    BIRTHDAYS = "BIRTHDAYS"
    DOCUMENTS = "DOCUMENTS"
    TRAVEL = "TRAVEL"
    ANIMALS = "ANIMALS"
    FOOD = "FOOD"
    SPORT = "SPORT"
    NIGHT = "NIGHT"
    PERFORMANCES = "PERFORMANCES"
    WHITEBOARDS = "WHITEBOARDS"
    SCREENSHOTS = "SCREENSHOTS"
    UTILITY = "UTILITY"
    ARTS = "ARTS"
    CRAFTS = "CRAFTS"
    FASHION = "FASHION"
    HOUSES = "HOUSES"
    GARDENS = "GARDENS"
    FLOWERS = "FLOWERS"
    HOLIDAYS = "HOLIDAYS"


@dataclass
class ContentFilter:
    included_content_categories: list[ContentCategory] = field(default_factory=list)
    excluded_content_categories: list[ContentCategory] = field(default_factory=list)


class MediaType(str, enum.Enum):
    ALL_MEDIA = "ALL_MEDIA"
    VIDEO = "VIDEO"
    PHOTO = "PHOTO"


@dataclass
class MediaTypeFilter:
    media_types: list[MediaType] = field(default_factory=list)


class Feature(str, enum.Enum):
    NONE = "NONE"
    FAVORITES = "FAVORITES"


@dataclass
class FeatureFilter:
    included_features: list[Feature] = field(default_factory=list)


@dataclass
class Filters:
    """
    Filters to apply to a media item search. All specified filters must match.

    Attributes:
    • date_filter: match media items by creation date
    • content_filter: match media items by content category
    • media_type_filter: match photos or videos
    • feature_filter: match media items with features, such as favorites
    • include_archived_media: include media items the user has archived
    • exclude_non_app_created_data: only match media items created by this application
    """

    date_filter: DateFilter | None = None
    content_filter: ContentFilter | None = None
    media_type_filter: MediaTypeFilter | None = None
    feature_filter: FeatureFilter | None = None
    include_archived_media: bool = False
    exclude_non_app_created_data: bool = False


# ----- requests -----


@dataclass
class ListMediaItemsRequest(PageRequest):
    """
    Request to list all media items in the user's library.

    Parameters and attributes:
    • page_size: maximum number of media items per page  [server default]
    • page_token: token of the page to request
    • exclude_non_app_created_data: only list media items created by this application
    """

    exclude_non_app_created_data: bool = field(
        default=False, metadata={"json": EXCLUDE_NON_APP_CREATED_DATA_QUERY_KEY}
    )


@dataclass
class SearchMediaItemsRequest(PageRequest):
    """
    Request to search for media items, either in an album or by filters.

    Parameters and attributes:
    • page_size: maximum number of media items per page  [server default]
    • page_token: token of the page to request
    • album_id: identifier of the album to search
    • filters: filters to apply; cannot be combined with album_id
    • order_by: result ordering, e.g. "MediaMetadata.creation_time desc"
    """

    album_id: str = ""
    filters: Filters | None = None
    order_by: str = ""


MEDIA_ITEMS = Endpoint(path=(MEDIA_ITEMS_PATH,), item_type=MediaItem, items_key="mediaItems")

SEARCH_MEDIA_ITEMS = Endpoint(
    path=(SEARCH_MEDIA_ITEMS_PATH,),
    item_type=MediaItem,
    items_key="mediaItems",
    method="GET",
    body=True,
)


def list_media_items(
    transport: Transport,
    request: ListMediaItemsRequest | None = None,
    *,
    cancel: asyncio.Event | None = None,
    base_url: str = BASE_URL,
    monitor: Monitor | None = None,
) -> ItemStream[MediaItem]:
    """
    List all media items in the user's library, as a stream of media items.

    Parameters:
    • transport: authenticated transport
    • request: list request  [first page, server defaults]
    • cancel: event that, once set, stops listing
    • base_url: scheme and host of the service
    • monitor: monitor to record page fetch measurements  [global monitors]
    """
    return paginate(
        transport,
        MEDIA_ITEMS,
        request or ListMediaItemsRequest(),
        cancel=cancel,
        base_url=base_url,
        monitor=monitor,
    )


def search_media_items(
    transport: Transport,
    request: SearchMediaItemsRequest,
    *,
    cancel: asyncio.Event | None = None,
    base_url: str = BASE_URL,
    monitor: Monitor | None = None,
) -> ItemStream[MediaItem]:
    """
    Search for media items, as a stream of media items. The request is sent as a JSON body.

    Parameters:
    • transport: authenticated transport
    • request: search request
    • cancel: event that, once set, stops searching
    • base_url: scheme and host of the service
    • monitor: monitor to record page fetch measurements  [global monitors]
    """
    return paginate(
        transport,
        SEARCH_MEDIA_ITEMS,
        request,
        cancel=cancel,
        base_url=base_url,
        monitor=monitor,
    )


async def get_media_item(
    transport: Transport, media_item_id: str, *, base_url: str = BASE_URL
) -> MediaItem:
    """Return the media item with the specified identifier."""
    request = Request(
        method="GET",
        url=join_url(base_url, PHOTOS_LIBRARY_VERSION, MEDIA_ITEMS_PATH, media_item_id),
    )
    return get_codec(MediaItem).decode(await execute_json(transport, request))
