"""Input tokenizing and name escaping for the cli115 shell.

Every place the shell shows a remote name to the user (completion
candidates, listings meant to be pasted back) escapes it, and every place
it reads a name back unescapes it.  A backslash before any character makes
that character literal::

    >>> split_input("dl my\\ file.txt")
    ['dl', 'my file.txt']
    >>> escape("my file.txt")
    'my\\ file.txt'
"""

from typing import List

SPACE = " "
ESCAPE = "\\"
SEPARATOR = "/"

# Characters escaped in remote names: the path separator and whitespace.
NAME_SPECIALS = SEPARATOR + " \t"
# Characters escaped when a typed field is written back into the line.
FIELD_SPECIALS = " \t"


def split_input(line: str) -> List[str]:
    """Split a raw input line into fields.

    Fields are separated by runs of spaces.  A backslash makes the next
    character literal (so an escaped space stays inside its field) and is
    itself dropped.  The last field is always emitted, even when empty:
    a line ending in a space yields a trailing ``""`` so the completer can
    tell that a new argument has been started.
    """
    fields = []
    buf = []
    in_escape = False
    for ch in line:
        if in_escape:
            buf.append(ch)
            in_escape = False
        elif ch == SPACE:
            if buf:
                fields.append("".join(buf))
                buf = []
        elif ch == ESCAPE:
            in_escape = True
        else:
            buf.append(ch)
    fields.append("".join(buf))
    return fields


def escape(name: str, specials: str = NAME_SPECIALS) -> str:
    """Prefix every special character in name with the escape marker."""
    return "".join(ESCAPE + ch if ch in specials else ch for ch in name)


def unescape(text: str) -> str:
    """Drop each escape marker and keep the character after it literally.

    A trailing lone escape marker is dropped.
    """
    buf = []
    in_escape = False
    for ch in text:
        if in_escape:
            buf.append(ch)
            in_escape = False
        elif ch == ESCAPE:
            in_escape = True
        else:
            buf.append(ch)
    return "".join(buf)


def split_path(path: str) -> List[str]:
    """Split a path on unescaped separators, keeping escapes in segments.

    Segments come back still escaped so the caller decides when to
    unescape.  ``"/a/b"`` gives ``["", "a", "b"]``; ``"a\\/b"`` is one
    segment.
    """
    segments = []
    buf = []
    in_escape = False
    for ch in path:
        if in_escape:
            buf.append(ch)
            in_escape = False
        elif ch == ESCAPE:
            buf.append(ch)
            in_escape = True
        elif ch == SEPARATOR:
            segments.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    segments.append("".join(buf))
    return segments


def escape_path(path: str) -> str:
    """Escape each segment of an unescaped path, keeping its separators."""
    return SEPARATOR.join(escape(seg) for seg in path.split(SEPARATOR))
