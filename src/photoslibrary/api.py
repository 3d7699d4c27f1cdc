"""Photos Library API service constants."""

PHOTOS_LIBRARY_SCHEME = "https"
PHOTOS_LIBRARY_HOST = "photoslibrary.googleapis.com"
PHOTOS_LIBRARY_VERSION = "v1"

BASE_URL = f"{PHOTOS_LIBRARY_SCHEME}://{PHOTOS_LIBRARY_HOST}"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50

PAGE_SIZE_QUERY_KEY = "pageSize"
PAGE_TOKEN_QUERY_KEY = "pageToken"
EXCLUDE_NON_APP_CREATED_DATA_QUERY_KEY = "excludeNonAppCreatedData"
NEXT_PAGE_TOKEN_KEY = "nextPageToken"

MAX_RESPONSE_SIZE = 16 * 1024 * 1024  # bytes accepted in a response body
