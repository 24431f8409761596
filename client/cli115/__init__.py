"""cli115 -- interactive shell for 115 cloud storage.

Provides Agent, the remote session used by the shell to list directories
and mint download tickets, plus the exception hierarchy shared by the
library and the shell.

Usage::

    with Agent(access_token) as agent:
        cursor = FileCursor()
        while cursor.has_more():
            for entry in agent.list_files("0", cursor):
                print(entry.name)
            cursor.advance()
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .protocol import (
    DEFAULT_PAGE_SIZE, DEFAULT_USER_AGENT, DOWNLOAD_URL, FILE_LIST_URL,
    ROOT_ID, USER_INFO_URL, DownloadTicket, File, FileCursor, ProtocolError,
    check_response, parse_download_ticket, parse_file_list,
)

__version__ = "0.3.0"

__all__ = [
    "Agent",
    "ApiError",
    "ArgumentsError",
    "Cli115Error",
    "CommandNotFoundError",
    "DownloadError",
    "DownloadTicket",
    "File",
    "FileCursor",
    "NotAFileError",
    "NotFoundError",
    "ProtocolError",
    "ROOT_ID",
    "ShutdownError",
    "StartupError",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------

class Cli115Error(Exception):
    """Base exception for cli115 errors.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ApiError(Cli115Error):
    """The 115 API answered with a false state.

    Attributes:
        code: Numeric error code from the server (0 when absent).
    """

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        super().__init__(message or "API error {}".format(code))

    def __str__(self) -> str:
        return "API error {}: {}".format(self.code, self.message)


class CommandNotFoundError(Cli115Error):
    """The first field of an input line names no registered command."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__("no such command: {}".format(name))


class ArgumentsError(Cli115Error):
    """A command was given too few (or malformed) arguments."""

    def __init__(self, message: str = "not enough arguments") -> None:
        super().__init__(message)


class NotFoundError(Cli115Error):
    """A directory or file required by a command does not exist."""


class NotAFileError(Cli115Error):
    """A download target is not a regular file."""


class DownloadError(Cli115Error):
    """No downloader is available, or the downloader failed."""


class StartupError(Cli115Error):
    """The shell context could not be started; the loop never runs."""


class ShutdownError(Cli115Error):
    """The shell context failed to shut down cleanly."""


def _raise_for_state(payload: Dict[str, Any]) -> None:
    """Raise ApiError if the response reports a false state."""
    if payload.get("state"):
        return
    try:
        code = int(payload.get("code") or payload.get("errno") or 0)
    except (TypeError, ValueError):
        code = 0
    message = payload.get("message") or payload.get("error") or ""
    raise ApiError(code, message)


# ---------------------------------------------------------------------------
# Remote session
# ---------------------------------------------------------------------------

class Agent:
    """A session against the 115 open platform.

    Can be used as a context manager::

        with Agent(token) as agent:
            print(agent.user_info()["user_name"])

    Or managed manually::

        agent = Agent(token)
        agent.connect()
        try:
            ...
        finally:
            agent.close()

    The access token must already be issued; this class performs no login.
    """

    def __init__(
        self,
        access_token: str,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.access_token = access_token
        self.user_agent = user_agent
        self.timeout = timeout
        self.page_size = page_size
        self._session = None  # type: Optional[requests.Session]

    # -- Context manager ---------------------------------------------------

    def __enter__(self) -> "Agent":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore
        self.close()
        return None

    def __repr__(self) -> str:
        state = "connected" if self._session is not None else "disconnected"
        return "Agent(user_agent={!r}, {})".format(self.user_agent, state)

    # -- Session lifecycle -------------------------------------------------

    def connect(self) -> None:
        """Open the HTTP session and install the auth headers."""
        if self._session is not None:
            return
        session = requests.Session()
        session.headers.update({
            "Authorization": "Bearer {}".format(self.access_token),
            "User-Agent": self.user_agent,
        })
        self._session = session

    def close(self) -> None:
        """Close the HTTP session.  Safe to call more than once."""
        if self._session is None:
            return
        session, self._session = self._session, None
        session.close()

    @property
    def connected(self) -> bool:
        return self._session is not None

    def new_cursor(self) -> FileCursor:
        """Return a listing cursor using this agent's page size."""
        return FileCursor(self.page_size)

    # -- Internal helpers --------------------------------------------------

    def _call(self, method: str, url: str,
              params: Optional[Dict[str, Any]] = None,
              data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Send one API request and return the decoded, checked body.

        Raises ApiError on a false state, ProtocolError on a malformed
        body or a closed session, and requests exceptions on transport
        or HTTP status failures.
        """
        if self._session is None:
            raise ProtocolError("Not connected")
        logger.debug("%s %s params=%s", method, url, params)
        response = self._session.request(
            method, url, params=params, data=data, timeout=self.timeout)
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError:
            raise ProtocolError(
                "Response from {} is not JSON: {!r}".format(
                    url, response.text[:200]))
        payload = check_response(body)
        if not payload.get("state"):
            logger.debug("API error from %s: %r", url, payload)
        _raise_for_state(payload)
        return payload

    # -- API calls ---------------------------------------------------------

    def user_info(self) -> Dict[str, Any]:
        """Return the account information of the session's user."""
        payload = self._call("GET", USER_INFO_URL)
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ProtocolError("User info has no data object")
        return data

    def list_files(self, dir_id: str, cursor: FileCursor) -> List[File]:
        """Fetch the page of dir_id's entries at the cursor position.

        Records the server's total entry count on the cursor; the caller
        advances it.
        """
        params = {
            "cid": dir_id,
            "offset": cursor.offset,
            "limit": cursor.limit,
            "show_dir": 1,
        }
        payload = self._call("GET", FILE_LIST_URL, params=params)
        entries, total = parse_file_list(payload)
        cursor.total = total
        logger.debug("Listed %d entries of %s at offset %d (total %d)",
                     len(entries), dir_id, cursor.offset, total)
        return entries

    def create_download_ticket(self, pick_code: str) -> DownloadTicket:
        """Resolve a file's pick code to a direct download URL.

        The returned ticket carries this agent's User-Agent; the CDN
        rejects downloads made with a different one.
        """
        payload = self._call("POST", DOWNLOAD_URL,
                             data={"pick_code": pick_code})
        return parse_download_ticket(
            payload, pick_code, {"User-Agent": self.user_agent})
