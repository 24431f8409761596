"""ANSI terminal color support for cli115 shell output."""

import os
import sys


def _supports_color():
    """Detect whether the terminal supports ANSI color."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CLI115_COLOR", "").lower() == "never":
        return False
    if os.environ.get("CLI115_COLOR", "").lower() == "always":
        return True
    if not hasattr(sys.stdout, "isatty"):
        return False
    if not sys.stdout.isatty():
        return False
    if sys.platform == "win32":
        # Only Windows Terminal is assumed to render ANSI
        return bool(os.environ.get("WT_SESSION"))
    return True


# ANSI escape sequences
RESET = "\033[0m"
DIM = "\033[2m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"


class ColorWriter:
    """Wrap text in ANSI colors, falling back to plain text if unsupported.

    Usage:
        cw = ColorWriter()
        cw.error("Something failed")     # red
        cw.success("Done")               # green
        cw.directory("Movies/")          # blue
        cw.dim("3f2a...")                # dim
    """

    def __init__(self, force_color=None):
        if force_color is not None:
            self.enabled = force_color
        else:
            self.enabled = _supports_color()

    def _wrap(self, code, text):
        if self.enabled:
            return "{}{}{}".format(code, text, RESET)
        return text

    def error(self, text):
        return self._wrap(RED, text)

    def success(self, text):
        return self._wrap(GREEN, text)

    def directory(self, text):
        return self._wrap(BLUE, text)

    def warning(self, text):
        return self._wrap(YELLOW, text)

    def dim(self, text):
        return self._wrap(DIM, text)
