"""Shell commands for cli115."""

import re
import shutil

from . import (
    ArgumentsError, CommandNotFoundError, DownloadError, NotAFileError,
    NotFoundError,
)
from .terminal import ArgCompleter, Command
from .util import SEPARATOR, escape_path

GLOB_CHARS = "*?["


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_size(nbytes):
    """Format a byte count as a human-readable string.

    Returns the value with a suffix: B, K, M, G, T.
    Values under 1024 are shown as plain integers.
    Values >= 999.95 in a given unit roll over to the next unit.
    """
    if nbytes < 1024:
        return str(nbytes)
    for unit in ("K", "M", "G", "T"):
        nbytes = nbytes / 1024.0
        if nbytes < 999.95 or unit == "T":
            if nbytes == int(nbytes):
                return "{:.0f}{}".format(int(nbytes), unit)
            return "{:.1f}{}".format(nbytes, unit)
    return str(nbytes)


_ANSI_RE = re.compile(r'\033\[[0-9;]*m')


def _visible_len(s):
    """Return display width of string, ignoring ANSI escape codes."""
    return len(_ANSI_RE.sub('', s))


def _columns(names, term_width=None):
    """Lay names out column-major to fit the terminal; returns lines."""
    if not names:
        return []
    if term_width is None:
        term_width = shutil.get_terminal_size((80, 24)).columns
    col_width = max(_visible_len(n) for n in names) + 2  # 2-char gutter
    num_cols = max(1, term_width // col_width)
    num_rows = (len(names) + num_cols - 1) // num_cols
    lines = []
    for row in range(num_rows):
        parts = []
        for col in range(num_cols):
            idx = row + col * num_rows
            if idx < len(names):
                name = names[idx]
                if col < num_cols - 1 and idx + num_rows < len(names):
                    parts.append(name + " " * (col_width - _visible_len(name)))
                else:
                    parts.append(name)
        lines.append("".join(parts))
    return lines


def _complete_dir_path(ctx, prefix):
    """Complete a directory path: returns (head, candidates).

    The directory part of prefix (up to its last separator) is resolved
    and becomes the head; candidates are its sub-directories.
    """
    dir_part, sep, name_prefix = prefix.rpartition(SEPARATOR)
    if not sep:
        return "", ctx.fs.dir_names(None, prefix)
    dir_path = dir_part + sep
    dir = ctx.fs.locate_dir(dir_path)
    if dir is None:
        return "", []
    return escape_path(dir_path), ctx.fs.dir_names(dir, name_prefix)


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------

class CdCommand(Command, ArgCompleter):
    """Change the current directory.

    Usage: cd [PATH]

    PATH    Absolute (starting with /) or relative directory path.
            ".." is the parent directory, "." the current one.
            Omit to return to the root.

    Examples:
        cd /Movies
        cd Season\\ 1
        cd ../Music"""

    name = "cd"
    has_args = True

    def execute(self, ctx, args):
        if not args:
            ctx.fs.set_curr(ctx.fs.root)
            return
        dir = ctx.fs.locate_dir(args[0])
        if dir is None:
            raise NotFoundError("no such directory: {}".format(args[0]))
        ctx.fs.set_curr(dir)

    def complete(self, ctx, index, prefix):
        if index != 0:
            return "", []
        return _complete_dir_path(ctx, prefix)


class PwdCommand(Command):
    """Print the current directory.

    Usage: pwd"""

    name = "pwd"

    def execute(self, ctx, args):
        print(ctx.fs.curr.path)


class RefreshCommand(Command):
    """Re-read the current directory from the server.

    Usage: refresh

    New files and directories appear; removed directories stay in the
    directory cache until the shell is restarted."""

    name = "refresh"

    def execute(self, ctx, args):
        ctx.fs.set_curr(ctx.fs.curr)


class LsCommand(Command, ArgCompleter):
    """List the current directory.

    Usage: ls [-l] [PATTERN]

    PATTERN Only show names matching a glob pattern (* and ?).
    -l      Long format: one entry per line with size and SHA-1.

    Directories are listed first and marked with a trailing /.

    Examples:
        ls
        ls -l
        ls *.mkv"""

    name = "ls"
    has_args = True

    def execute(self, ctx, args):
        long_format = False
        patterns = []
        for arg in args:
            if arg.startswith("-") and len(arg) > 1:
                for ch in arg[1:]:
                    if ch == "l":
                        long_format = True
                    else:
                        raise ArgumentsError("unknown flag: -{}".format(ch))
            else:
                patterns.append(arg)
        if len(patterns) > 1:
            raise ArgumentsError("usage: ls [-l] [PATTERN]")

        pattern = patterns[0] if patterns else "*"
        dirs = [node.name for node in ctx.fs.dirs(pattern)]
        files = ctx.fs.files(pattern)

        if long_format:
            width = max((len(format_size(f.size)) for f in files), default=0)
            for name in dirs:
                print("{tag}  {blank:>{sw}}  {name}".format(
                    tag=ctx.cw.directory("DIR"), blank="", sw=width,
                    name=ctx.cw.directory(name + SEPARATOR)))
            for file in files:
                print("     {size:>{sw}}  {name}  {sha1}".format(
                    size=format_size(file.size), sw=width,
                    name=file.name, sha1=ctx.cw.dim(file.sha1)))
            return

        names = [ctx.cw.directory(d + SEPARATOR) for d in dirs]
        names.extend(f.name for f in files)
        for line in _columns(names):
            print(line)

    def complete(self, ctx, index, prefix):
        if prefix.startswith("-"):
            return "", []
        return "", ctx.fs.dir_names(None, prefix) + ctx.fs.file_names(prefix)


# ---------------------------------------------------------------------------
# Transfer
# ---------------------------------------------------------------------------

class DlCommand(Command, ArgCompleter):
    """Download files from the current directory.

    Usage: dl FILE [FILE ...]

    FILE    File name in the current directory, or a glob pattern
            (* and ?) matching several files.

    Uses aria2 (verifying the SHA-1) when configured or installed,
    otherwise curl.  Files are written to the local working directory.

    Examples:
        dl movie.mkv
        dl *.srt"""

    name = "dl"
    has_args = True

    def execute(self, ctx, args):
        if not args:
            raise ArgumentsError()
        targets = []
        for arg in args:
            file = ctx.fs.file(arg)
            if file is not None:
                targets.append(file)
                continue
            matches = []
            if any(c in arg for c in GLOB_CHARS):
                matches = ctx.fs.files(arg)
            if not matches:
                raise NotFoundError("no such file: {}".format(arg))
            targets.extend(matches)

        for file in targets:
            if not file.is_file:
                raise NotAFileError("not a file: {}".format(file.name))
        if ctx.downloader is None:
            raise DownloadError(
                "no downloader available; install aria2 or curl, or "
                "configure one")

        for file in targets:
            print("Downloading file: {}".format(file.name))
            ticket = ctx.agent.create_download_ticket(file.pick_code)
            gid = ctx.downloader.download(ticket, file.sha1)
            if gid is not None:
                print(ctx.cw.success("Queued as {}".format(gid)))

    def complete(self, ctx, index, prefix):
        return "", ctx.fs.file_names(prefix)


# ---------------------------------------------------------------------------
# Session control
# ---------------------------------------------------------------------------

class HelpCommand(Command, ArgCompleter):
    """Show the available commands, or the usage of one.

    Usage: help [COMMAND]"""

    name = "help"
    has_args = True

    def __init__(self, registry):
        self.registry = registry

    def execute(self, ctx, args):
        if args:
            command = self.registry.get(args[0])
            if command is None:
                raise CommandNotFoundError(args[0])
            print((command.__doc__ or command.name).strip())
            return
        width = max((len(name) for name in self.registry), default=0)
        for name in sorted(self.registry):
            doc = (self.registry[name].__doc__ or "").strip()
            summary = doc.splitlines()[0] if doc else ""
            print("  {:<{w}}  {}".format(name, summary, w=width))

    def complete(self, ctx, index, prefix):
        if index != 0:
            return "", []
        return "", [name for name in sorted(self.registry)
                    if name.startswith(prefix)]


class ExitCommand(Command):
    """Leave the shell.

    Usage: exit

    You can also press Ctrl-D or Ctrl-C at the prompt."""

    name = "exit"

    def execute(self, ctx, args):
        ctx.stop()


class QuitCommand(ExitCommand):
    """Leave the shell (alias for exit)."""

    name = "quit"


def default_commands(registry):
    """Return one instance of every shell command.

    registry is the terminal's command map, consulted by help.
    """
    return [
        CdCommand(),
        PwdCommand(),
        LsCommand(),
        RefreshCommand(),
        DlCommand(),
        HelpCommand(registry),
        ExitCommand(),
        QuitCommand(),
    ]
