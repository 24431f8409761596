"""Lazily populated mirror of the remote directory tree.

RemoteFs keeps two kinds of state:

- the directory skeleton, a tree of DirNode objects that only ever grows.
  Children of a node are fetched the first time a path walk or a
  completion needs them, and every listing of a directory also records
  the sub-directories it sees;
- the file cache, the files of the current directory only.  It is thrown
  away and rebuilt in full whenever the current directory is set.

Listing failures are not raised: pagination stops at the failed page and
whatever was collected before it is kept.
"""

import fnmatch
import logging
import weakref
from typing import Dict, List, Optional

from . import Cli115Error, File, ProtocolError, ROOT_ID
from .util import SEPARATOR, escape, split_path, unescape

logger = logging.getLogger(__name__)


class DirNode:
    """One remote directory.

    A node is owned by its parent's ``children`` map (the root by the
    RemoteFs).  The parent link is a weak reference used only to walk
    upwards; the root has no parent.
    """

    def __init__(self, id: str, name: str,
                 parent: "Optional[DirNode]" = None) -> None:
        self.id = id
        self.name = name
        self._parent = weakref.ref(parent) if parent is not None else None
        self.children = {}  # type: Dict[str, DirNode]
        self.children_cached = False

    def __repr__(self) -> str:
        return "DirNode({!r}, {!r})".format(self.id, self.path)

    @property
    def parent(self) -> "Optional[DirNode]":
        if self._parent is None:
            return None
        return self._parent()

    @property
    def path(self) -> str:
        """Absolute path of this node, ``/`` for the root."""
        names = []
        node = self
        while node is not None and node.parent is not None:
            names.append(node.name)
            node = node.parent
        return SEPARATOR + SEPARATOR.join(reversed(names))

    def append(self, id: str, name: str) -> "DirNode":
        """Add a child directory, or return the existing one of that name."""
        child = self.children.get(name)
        if child is None:
            child = DirNode(id, name, self)
            self.children[name] = child
        return child


class RemoteFs:
    """The shell's view of the remote storage.

    Owns the directory tree, the current directory and the file cache of
    the current directory.  Constructing it lists the root.
    """

    def __init__(self, agent) -> None:
        self._agent = agent
        self._root = DirNode(ROOT_ID, "")
        self._curr = self._root
        self._files = {}  # type: Dict[str, File]
        self.set_curr(self._root)

    @property
    def root(self) -> DirNode:
        return self._root

    @property
    def curr(self) -> DirNode:
        return self._curr

    # -- Remote listing ----------------------------------------------------

    def _list_pages(self, dir: DirNode):
        """Yield the pages of dir's listing until done or a page fails."""
        cursor = self._agent.new_cursor()
        while cursor.has_more():
            try:
                entries = self._agent.list_files(dir.id, cursor)
            except (Cli115Error, ProtocolError, OSError) as e:
                logger.warning("Listing %s stopped at offset %d: %s",
                               dir.path, cursor.offset, e)
                return
            yield entries
            cursor.advance()

    def set_curr(self, dir: DirNode) -> None:
        """Make dir the current directory and rebuild the file cache.

        Sub-directories seen while listing are appended to dir, so this
        also refreshes the skeleton below it (without marking its
        children as fetched).
        """
        self._curr = dir
        self._files = {}
        for entries in self._list_pages(dir):
            for entry in entries:
                if entry.is_file:
                    self._files[entry.name] = entry
                if entry.is_directory:
                    dir.append(entry.id, entry.name)
        logger.debug("Cached %d files under %s", len(self._files), dir.path)

    def fetch_children(self, dir: DirNode) -> None:
        """List dir and append its sub-directories.

        dir is marked as fetched even when a page fails part way.
        """
        for entries in self._list_pages(dir):
            for entry in entries:
                if entry.is_directory:
                    dir.append(entry.id, entry.name)
        dir.children_cached = True

    # -- Path resolution ---------------------------------------------------

    def locate_dir(self, path: str) -> Optional[DirNode]:
        """Resolve path to a directory node, or None if it does not exist.

        A leading ``/`` starts at the root, anything else at the current
        directory.  ``.`` and empty segments stay put, ``..`` moves to the
        parent (and stays at the root).  Segments are unescaped before
        lookup, and a node's children are fetched before its first lookup.
        Resolution stops at the first missing segment.
        """
        dir = self._curr
        segments = split_path(path)
        if len(segments) > 1 and segments[0] == "":
            dir = self._root
            segments = segments[1:]
        for segment in segments:
            name = unescape(segment)
            if name == "." or name == "":
                continue
            if name == "..":
                if dir is not self._root:
                    dir = dir.parent
            else:
                if not dir.children_cached:
                    self.fetch_children(dir)
                dir = dir.children.get(name)
            if dir is None:
                return None
        return dir

    # -- File cache --------------------------------------------------------

    def file(self, name: str) -> Optional[File]:
        """Return the file called name in the current directory, if any."""
        return self._files.get(unescape(name))

    def files(self, pattern: str) -> List[File]:
        """Return the current directory's files matching a glob pattern.

        ``*`` matches any run of characters, ``?`` one character and
        ``[...]`` a character set.  Matching is case-sensitive.
        """
        pattern = unescape(pattern)
        return [file for name, file in sorted(self._files.items())
                if fnmatch.fnmatchcase(name, pattern)]

    def dirs(self, pattern: str) -> List[DirNode]:
        """Return the current directory's sub-directories matching a glob
        pattern, with the same rules as ``files``."""
        pattern = unescape(pattern)
        return [node for name, node in sorted(self._curr.children.items())
                if fnmatch.fnmatchcase(name, pattern)]

    # -- Completion helpers ------------------------------------------------

    def dir_names(self, dir: Optional[DirNode] = None,
                  prefix: str = "") -> List[str]:
        """Escaped names of dir's sub-directories starting with prefix.

        Each name ends with the separator.  dir defaults to the current
        directory; its children are fetched first if needed.
        """
        prefix = unescape(prefix)
        if dir is None:
            dir = self._curr
        if not dir.children_cached:
            self.fetch_children(dir)
        return [escape(name) + SEPARATOR for name in sorted(dir.children)
                if name.startswith(prefix)]

    def file_names(self, prefix: str = "") -> List[str]:
        """Escaped names of the current directory's files starting with
        prefix."""
        prefix = unescape(prefix)
        return [escape(name) for name in sorted(self._files)
                if name.startswith(prefix)]
