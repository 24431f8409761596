"""Shared fixtures and fakes for the cli115 tests.

Nothing here talks to the network: FakeAgent serves an in-memory
directory tree through the same listing interface as cli115.Agent.

Usage:
    pytest tests/ -v
"""

import os
import sys

import pytest

# Add the client library to the path so tests can import cli115
_client_dir = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "client",
)
if _client_dir not in sys.path:
    sys.path.insert(0, _client_dir)

from cli115 import ApiError, DownloadTicket, File, FileCursor
from cli115.colors import ColorWriter
from cli115.context import Context
from cli115.fs import RemoteFs
from cli115.terminal import PromptAborted


# ---------------------------------------------------------------------------
# Listing entries
# ---------------------------------------------------------------------------

def d(id, name):
    """A directory entry."""
    return File(id=id, name=name, is_file=False, is_directory=True)


def f(id, name, size=100, sha1=None, pick_code=None):
    """A file entry; sha1 and pick code are derived from the id."""
    return File(
        id=id, name=name, is_file=True, is_directory=False,
        sha1=sha1 if sha1 is not None else "SHA1-" + id,
        pick_code=pick_code if pick_code is not None else "pc" + id,
        size=size,
    )


def make_tree():
    """The remote tree used by most tests::

        /
        |-- a/
        |   |-- b/
        |   |   `-- deep.bin
        |   `-- a.txt
        |-- Movies/
        |   |-- x.mkv
        |   |-- y.mkv
        |   `-- x.srt
        |-- my dir/
        |-- readme.txt
        |-- notes.md
        `-- my file.txt
    """
    return {
        "0": [
            d("1", "a"), d("2", "Movies"), d("5", "my dir"),
            f("10", "readme.txt", size=1536), f("11", "notes.md"),
            f("12", "my file.txt"),
        ],
        "1": [d("3", "b"), f("20", "a.txt")],
        "3": [f("30", "deep.bin", size=1048576)],
        "2": [f("40", "x.mkv"), f("41", "y.mkv"), f("42", "x.srt")],
        "5": [],
    }


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeAgent:
    """In-memory stand-in for cli115.Agent.

    Attributes:
        tree: dir id -> list of File entries.
        calls: (dir_id, offset) of every list_files call, in order.
        fail_at: (dir_id, offset) pairs whose page raises ApiError.
    """

    def __init__(self, tree=None, page_size=2):
        self.tree = tree if tree is not None else make_tree()
        self.page_size = page_size
        self.calls = []
        self.fail_at = set()
        self.connected = False
        self.user = {"user_id": "42", "user_name": "tester"}

    def connect(self):
        self.connected = True

    def close(self):
        self.connected = False

    def user_info(self):
        return self.user

    def new_cursor(self):
        return FileCursor(self.page_size)

    def list_files(self, dir_id, cursor):
        self.calls.append((dir_id, cursor.offset))
        if (dir_id, cursor.offset) in self.fail_at:
            raise ApiError(990001, "listing failed")
        entries = self.tree.get(dir_id, [])
        cursor.total = len(entries)
        return entries[cursor.offset:cursor.offset + cursor.limit]

    def listed_dirs(self):
        return [dir_id for dir_id, _offset in self.calls]

    def create_download_ticket(self, pick_code):
        return DownloadTicket(
            url="https://cdn.example.com/{}".format(pick_code),
            file_name="file-" + pick_code,
            file_size=100,
            headers={"User-Agent": "cli115-test"},
        )


class ScriptedEditor:
    """Line editor that replays scripted input.

    Each script item is a line to return, or an exception instance to
    raise from prompt().  Once the script runs out, prompt() raises
    PromptAborted.
    """

    def __init__(self, script=()):
        self.script = list(script)
        self.prompts = []
        self.history = []
        self.completer = None

    def set_completer(self, completer):
        self.completer = completer

    def prompt(self, text):
        self.prompts.append(text)
        if not self.script:
            raise PromptAborted()
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def append_history(self, line):
        self.history.append(line)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def agent():
    return FakeAgent()


@pytest.fixture
def fs(agent):
    return RemoteFs(agent)


def make_context(agent, downloader=None):
    """A started Context over agent without the startup greeting."""
    ctx = Context(agent, downloader=downloader,
                  cw=ColorWriter(force_color=False))
    agent.connect()
    ctx.fs = RemoteFs(agent)
    ctx._alive = True
    return ctx


@pytest.fixture
def ctx(agent):
    return make_context(agent)
