"""Unit tests for the directory tree and the remote filesystem view."""

import gc
import logging

from cli115.fs import DirNode, RemoteFs

from conftest import FakeAgent, f


# ---------------------------------------------------------------------------
# DirNode
# ---------------------------------------------------------------------------

class TestDirNode:
    """Tests for the lazily populated directory node."""

    def test_append_creates_child(self):
        root = DirNode("0", "")
        child = root.append("1", "a")
        assert root.children == {"a": child}
        assert child.parent is root
        assert child.id == "1"
        assert not child.children_cached

    def test_append_is_idempotent(self):
        root = DirNode("0", "")
        first = root.append("1", "a")
        second = root.append("99", "a")
        assert second is first
        assert second.id == "1"
        assert len(root.children) == 1

    def test_root_has_no_parent(self):
        assert DirNode("0", "").parent is None

    def test_path(self):
        root = DirNode("0", "")
        b = root.append("1", "a").append("2", "b")
        assert root.path == "/"
        assert b.path == "/a/b"

    def test_parent_link_does_not_own_parent(self):
        root = DirNode("0", "")
        child = root.append("1", "a")
        del root
        gc.collect()
        assert child.parent is None


# ---------------------------------------------------------------------------
# RemoteFs: current directory and file cache
# ---------------------------------------------------------------------------

class TestSetCurr:
    """Tests for switching directories and rebuilding the file cache."""

    def test_construction_lists_root(self, agent):
        fs = RemoteFs(agent)
        assert fs.curr is fs.root
        assert set(agent.listed_dirs()) == {"0"}
        assert fs.file("readme.txt").id == "10"

    def test_listing_pages_through_all_entries(self, agent):
        RemoteFs(agent)
        # 6 root entries, page size 2
        assert agent.calls == [("0", 0), ("0", 2), ("0", 4)]

    def test_directories_discovered_by_listing(self, fs):
        assert sorted(fs.root.children) == ["Movies", "a", "my dir"]
        # Seen during a listing, but not a full child fetch
        assert not fs.root.children_cached

    def test_cache_rebuilt_on_switch(self, fs):
        movies = fs.locate_dir("/Movies")
        fs.set_curr(movies)
        assert fs.file("x.mkv") is not None
        assert fs.file("readme.txt") is None

    def test_switch_back_and_forth(self, fs):
        a = fs.locate_dir("a")
        fs.set_curr(a)
        assert fs.file("a.txt") is not None
        fs.set_curr(fs.root)
        assert fs.file("a.txt") is None
        assert fs.file("notes.md") is not None

    def test_partial_listing_keeps_earlier_pages(self, caplog):
        agent = FakeAgent()
        agent.fail_at.add(("0", 2))
        with caplog.at_level(logging.WARNING, logger="cli115.fs"):
            fs = RemoteFs(agent)
        # Page 0 had dirs a and Movies; later pages never arrived
        assert sorted(fs.root.children) == ["Movies", "a"]
        assert fs.file("readme.txt") is None
        assert agent.calls == [("0", 0), ("0", 2)]
        assert "listing failed" in caplog.text

    def test_first_page_failure_leaves_empty_cache(self):
        agent = FakeAgent()
        agent.fail_at.add(("0", 0))
        fs = RemoteFs(agent)
        assert fs.file_names() == []
        assert fs.root.children == {}

    def test_last_listed_wins_on_name_collision(self):
        tree = {"0": [f("1", "dup.txt"), f("2", "dup.txt")]}
        fs = RemoteFs(FakeAgent(tree))
        assert fs.file("dup.txt").id == "2"

    def test_directories_not_in_file_cache(self, fs):
        assert fs.file("Movies") is None


class TestFileLookup:
    """Tests for exact and pattern lookups in the file cache."""

    def test_exact(self, fs):
        assert fs.file("notes.md").pick_code == "pc11"

    def test_escaped_name(self, fs):
        assert fs.file("my\\ file.txt").id == "12"

    def test_missing(self, fs):
        assert fs.file("nope.txt") is None

    def test_pattern_star(self, fs):
        fs.set_curr(fs.locate_dir("Movies"))
        assert [x.name for x in fs.files("*.mkv")] == ["x.mkv", "y.mkv"]

    def test_pattern_question(self, fs):
        fs.set_curr(fs.locate_dir("Movies"))
        assert [x.name for x in fs.files("?.srt")] == ["x.srt"]

    def test_pattern_no_match(self, fs):
        assert fs.files("*.iso") == []

    def test_unbalanced_bracket_is_no_match(self, fs):
        assert fs.files("[readme.txt") == []

    def test_pattern_is_case_sensitive(self, fs):
        assert fs.files("README.*") == []

    def test_dirs_pattern(self, fs):
        assert [n.name for n in fs.dirs("*")] == ["Movies", "a", "my dir"]
        assert [n.name for n in fs.dirs("M*")] == ["Movies"]

    def test_dirs_and_files_unescape_alike(self, fs):
        assert [n.name for n in fs.dirs("my\\ *")] == ["my dir"]
        assert [x.name for x in fs.files("my\\ *")] == ["my file.txt"]


# ---------------------------------------------------------------------------
# RemoteFs: path resolution
# ---------------------------------------------------------------------------

class TestLocateDir:
    """Tests for resolving path strings to directory nodes."""

    def test_absolute_equals_relative_from_root(self, fs):
        b = fs.locate_dir("a/b")
        assert b is not None
        fs.set_curr(fs.locate_dir("Movies"))
        assert fs.locate_dir("/a/b") is b

    def test_parent(self, fs):
        a = fs.locate_dir("a")
        fs.set_curr(fs.locate_dir("a/b"))
        assert fs.locate_dir("..") is a

    def test_parent_at_root_stays(self, fs):
        assert fs.locate_dir("..") is fs.root
        assert fs.locate_dir("/../..") is fs.root

    def test_dot_and_empty_segments(self, fs):
        b = fs.locate_dir("a/b")
        assert fs.locate_dir("./a//./b/") is b

    def test_root(self, fs):
        fs.set_curr(fs.locate_dir("a"))
        assert fs.locate_dir("/") is fs.root

    def test_empty_path_is_current(self, fs):
        a = fs.locate_dir("a")
        fs.set_curr(a)
        assert fs.locate_dir("") is a

    def test_dotdot_then_sibling(self, fs):
        fs.set_curr(fs.locate_dir("a/b"))
        assert fs.locate_dir("../../Movies").name == "Movies"

    def test_escaped_segment(self, fs):
        assert fs.locate_dir("my\\ dir").id == "5"

    def test_unescaped_segment(self, fs):
        assert fs.locate_dir("/my dir").id == "5"

    def test_missing_returns_none(self, fs):
        assert fs.locate_dir("nope") is None

    def test_missing_intermediate_stops_resolution(self, agent, fs):
        agent.calls.clear()
        assert fs.locate_dir("/a/zzz/b") is None
        # root and a were expanded; nothing below the miss was fetched
        assert agent.listed_dirs() == ["0", "0", "0", "1"]
        assert "3" not in agent.listed_dirs()

    def test_files_are_not_directories(self, fs):
        assert fs.locate_dir("readme.txt") is None

    def test_children_fetched_once(self, agent, fs):
        fs.locate_dir("a/b")
        calls = len(agent.calls)
        fs.locate_dir("a/b")
        assert len(agent.calls) == calls

    def test_fetch_failure_still_marks_fetched(self):
        agent = FakeAgent()
        fs = RemoteFs(agent)
        agent.fail_at.add(("1", 0))
        assert fs.locate_dir("a/b") is None
        assert fs.root.children["a"].children_cached


# ---------------------------------------------------------------------------
# RemoteFs: completion helpers
# ---------------------------------------------------------------------------

class TestNames:
    """Tests for the escaped name lists used by completion."""

    def test_dir_names_current(self, fs):
        assert fs.dir_names() == ["Movies/", "a/", "my\\ dir/"]

    def test_dir_names_prefix(self, fs):
        assert fs.dir_names(None, "M") == ["Movies/"]

    def test_dir_names_escaped_prefix(self, fs):
        assert fs.dir_names(None, "my\\ ") == ["my\\ dir/"]

    def test_dir_names_fetches_children(self, agent, fs):
        a = fs.root.children["a"]
        assert not a.children_cached
        assert fs.dir_names(a, "") == ["b/"]
        assert a.children_cached

    def test_file_names(self, fs):
        assert fs.file_names() == ["my\\ file.txt", "notes.md", "readme.txt"]

    def test_file_names_prefix(self, fs):
        assert fs.file_names("n") == ["notes.md"]

    def test_file_names_no_match(self, fs):
        assert fs.file_names("zzz") == []
