"""Hand download tickets to an external downloader.

Two downloaders are supported: aria2 (run as ``aria2c`` or driven over
its JSON-RPC interface) and curl.  Both run in the foreground with the
terminal's stdio so their progress output is visible.
"""

import itertools
import logging
import shutil
import subprocess
from typing import List, Optional

import requests

from . import DownloadError, DownloadTicket

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "http://localhost:6800/jsonrpc"

_rpc_ids = itertools.count(1)


def run_downloader(cmd: List[str]) -> None:
    """Run a downloader command in the foreground.

    Raises DownloadError if the executable is missing or exits non-zero.
    """
    logger.info("Running %s", cmd[0])
    logger.debug("Command line: %r", cmd)
    try:
        result = subprocess.run(cmd)
    except FileNotFoundError:
        raise DownloadError("downloader not found: {}".format(cmd[0]))
    if result.returncode != 0:
        raise DownloadError("{} exited with status {}".format(
            cmd[0], result.returncode))


class Aria2Downloader:
    """Download with aria2, verifying the file's SHA-1."""

    name = "aria2"

    def __init__(self, path: str = "aria2c", rpc: bool = False,
                 rpc_url: str = DEFAULT_RPC_URL,
                 rpc_secret: Optional[str] = None,
                 timeout: float = 10) -> None:
        self.path = path
        self.rpc = rpc
        self.rpc_url = rpc_url
        self.rpc_secret = rpc_secret
        self.timeout = timeout

    def __repr__(self) -> str:
        if self.rpc:
            return "Aria2Downloader(rpc_url={!r})".format(self.rpc_url)
        return "Aria2Downloader(path={!r})".format(self.path)

    def command_line(self, ticket: DownloadTicket, sha1: str) -> List[str]:
        cmd = [
            self.path,
            "--max-connection-per-server=2",
            "--split=16", "--min-split-size=1M",
            "--out={}".format(ticket.file_name),
        ]
        if sha1:
            cmd.append("--checksum=sha-1={}".format(sha1))
        for name, value in (ticket.headers or {}).items():
            cmd.append("--header={}: {}".format(name, value))
        cmd.append(ticket.url)
        return cmd

    def download(self, ticket: DownloadTicket, sha1: str = "") -> Optional[str]:
        """Download ticket's file.

        In RPC mode the download is queued on the aria2 daemon and its GID
        is returned; otherwise aria2c runs to completion and None is
        returned.
        """
        if self.rpc:
            return self._add_uri(ticket, sha1)
        run_downloader(self.command_line(ticket, sha1))
        return None

    def _add_uri(self, ticket: DownloadTicket, sha1: str) -> str:
        options = {
            "out": ticket.file_name,
            "header": ["{}: {}".format(name, value)
                       for name, value in (ticket.headers or {}).items()],
        }
        if sha1:
            options["checksum"] = "sha-1={}".format(sha1)
        params = [[ticket.url], options]
        if self.rpc_secret:
            params.insert(0, "token:{}".format(self.rpc_secret))
        request = {
            "jsonrpc": "2.0",
            "id": str(next(_rpc_ids)),
            "method": "aria2.addUri",
            "params": params,
        }
        logger.info("Queueing %s on %s", ticket.file_name, self.rpc_url)
        response = requests.post(self.rpc_url, json=request,
                                 timeout=self.timeout)
        try:
            reply = response.json()
        except ValueError:
            raise DownloadError("aria2 RPC returned non-JSON (HTTP {})".format(
                response.status_code))
        error = reply.get("error") if isinstance(reply, dict) else None
        if error:
            if isinstance(error, dict):
                error = error.get("message", error)
            raise DownloadError("aria2 RPC error: {}".format(error))
        if not isinstance(reply, dict) or "result" not in reply:
            raise DownloadError("aria2 RPC reply has no result")
        return reply["result"]


class CurlDownloader:
    """Download with curl (no checksum verification)."""

    name = "curl"

    def __init__(self, path: str = "curl") -> None:
        self.path = path

    def __repr__(self) -> str:
        return "CurlDownloader(path={!r})".format(self.path)

    def command_line(self, ticket: DownloadTicket) -> List[str]:
        cmd = [self.path, "-#", ticket.url]
        for name, value in (ticket.headers or {}).items():
            cmd.extend(["-H", "{}: {}".format(name, value)])
        cmd.extend(["-o", ticket.file_name])
        return cmd

    def download(self, ticket: DownloadTicket, sha1: str = "") -> None:
        run_downloader(self.command_line(ticket))


def find_downloader():
    """Pick a downloader from the executables on PATH.

    Prefers aria2c over curl; returns None if neither is installed.
    """
    path = shutil.which("aria2c")
    if path:
        return Aria2Downloader(path)
    path = shutil.which("curl")
    if path:
        return CurlDownloader(path)
    return None
