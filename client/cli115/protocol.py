"""Wire helpers for the 115 open platform API.

Holds the endpoint table, the pagination cursor used by directory
listings, and the parsing of JSON responses into cli115 value types.
All responses are JSON objects of the form::

    {"state": true, "code": 0, "message": "", "data": ..., "count": 42}

A false ``state`` means the server rejected the call.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Tuple

API_BASE = "https://proapi.115.com"
USER_INFO_URL = API_BASE + "/open/user/info"
FILE_LIST_URL = API_BASE + "/open/ufile/files"
DOWNLOAD_URL = API_BASE + "/open/ufile/downurl"

ROOT_ID = "0"
DEFAULT_PAGE_SIZE = 1150
DEFAULT_USER_AGENT = "cli115/0.3"

# fc (file category) values
CATEGORY_DIR = "0"
CATEGORY_FILE = "1"


class ProtocolError(Exception):
    """Raised on malformed responses or use of a closed session."""


class File(NamedTuple):
    """One entry of a directory listing.

    Directories are listed with the same shape; for them ``sha1`` and
    ``pick_code`` are usually empty.
    """

    id: str
    name: str
    is_file: bool
    is_directory: bool
    sha1: str = ""
    pick_code: str = ""
    size: int = 0


class DownloadTicket(NamedTuple):
    """A direct URL for one file plus the headers the request must carry."""

    url: str
    file_name: str
    file_size: int = 0
    headers: Optional[Dict[str, str]] = None


class FileCursor:
    """Pagination state for one directory listing.

    The total is unknown until the first page arrives, so a fresh cursor
    always has more.  ``advance()`` moves one page forward::

        cursor = FileCursor()
        while cursor.has_more():
            entries = agent.list_files(dir_id, cursor)
            ...
            cursor.advance()
    """

    def __init__(self, limit: int = DEFAULT_PAGE_SIZE) -> None:
        self.offset = 0
        self.limit = limit
        self.total = None  # type: Optional[int]

    def __repr__(self) -> str:
        return "FileCursor(offset={}, limit={}, total={})".format(
            self.offset, self.limit, self.total)

    def has_more(self) -> bool:
        return self.total is None or self.offset < self.total

    def advance(self) -> None:
        self.offset += self.limit


def check_response(payload: Any) -> Dict[str, Any]:
    """Validate a decoded response body and return it.

    Raises ProtocolError if the body is not a JSON object.  A body whose
    ``state`` is false is returned as-is; the caller turns it into an
    ApiError so the exception hierarchy stays in one place.
    """
    if not isinstance(payload, dict):
        raise ProtocolError(
            "Expected a JSON object, got: {!r}".format(payload))
    if "state" not in payload:
        raise ProtocolError("Response has no state field")
    return payload


def parse_file(raw: Dict[str, Any]) -> File:
    """Convert one listing item into a File."""
    category = str(raw.get("fc", CATEGORY_FILE))
    try:
        size = int(raw.get("fs") or 0)
    except (TypeError, ValueError):
        size = 0
    return File(
        id=str(raw.get("fid", "")),
        name=raw.get("fn", ""),
        is_file=category == CATEGORY_FILE,
        is_directory=category == CATEGORY_DIR,
        sha1=raw.get("sha1") or "",
        pick_code=raw.get("pc") or "",
        size=size,
    )


def parse_file_list(payload: Dict[str, Any]) -> Tuple[List[File], int]:
    """Parse a listing response into (entries, total_count)."""
    data = payload.get("data")
    if not isinstance(data, list):
        raise ProtocolError("Listing data is not a list: {!r}".format(data))
    try:
        total = int(payload.get("count", 0))
    except (TypeError, ValueError):
        raise ProtocolError(
            "Listing has non-numeric count: {!r}".format(payload.get("count")))
    return [parse_file(item) for item in data if isinstance(item, dict)], total


def parse_download_ticket(payload: Dict[str, Any], pick_code: str,
                          headers: Dict[str, str]) -> DownloadTicket:
    """Pick the download URL for pick_code out of a downurl response.

    The data object is keyed by file id; each value carries the file name,
    size and a nested ``url`` object.
    """
    data = payload.get("data")
    if not isinstance(data, dict):
        raise ProtocolError(
            "Download data is not an object: {!r}".format(data))
    for item in data.values():
        if not isinstance(item, dict):
            continue
        url_obj = item.get("url")
        if isinstance(url_obj, dict) and url_obj.get("url"):
            try:
                size = int(item.get("file_size") or 0)
            except (TypeError, ValueError):
                size = 0
            return DownloadTicket(
                url=url_obj["url"],
                file_name=item.get("file_name", ""),
                file_size=size,
                headers=dict(headers),
            )
    raise ProtocolError(
        "No download URL for pick code {!r}".format(pick_code))
