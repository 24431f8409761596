"""Interactive terminal: command registry, dispatch, completion and loop.

The terminal knows nothing about 115.  It drives a context object that
provides::

    startup()     called once before the first prompt
    alive()       the loop runs while this is true
    prompt()      the prompt string for the next read
    shutdown()    called once after the loop; its result is run()'s result

and a line editor that provides ``prompt(text)``, ``append_history(line)``
and ``set_completer(fn)``.  ReadlineEditor is the interactive one.
"""

import logging
import os
import sys
from typing import Dict, List, Tuple

from . import Cli115Error, CommandNotFoundError, ProtocolError
from .colors import ColorWriter
from .util import FIELD_SPECIALS, escape, split_input

logger = logging.getLogger(__name__)

HISTORY_FILE = "~/.cli115_history"


class Command:
    """A named shell command.

    Subclasses set ``name``, set ``has_args`` when the command takes
    arguments (completion then inserts a space after the name) and
    implement ``execute``.  The docstring's first line is the summary
    shown by ``help``.
    """

    name = ""
    has_args = False

    def execute(self, ctx, args: List[str]):
        raise NotImplementedError


class ArgCompleter:
    """Mixin for commands that can complete their arguments."""

    def complete(self, ctx, index: int, prefix: str) -> Tuple[str, List[str]]:
        """Complete argument number index (zero-based) from prefix.

        Returns (head, candidates): head is inserted before every
        candidate (e.g. the directory part of a path).
        """
        raise NotImplementedError


class PromptAborted(Exception):
    """The user aborted the read (Ctrl-C or Ctrl-D)."""


# ---------------------------------------------------------------------------
# Line editor
# ---------------------------------------------------------------------------

class ReadlineEditor:
    """Line editor backed by the readline module.

    Completion sees the whole line up to the cursor (no word delimiters),
    so the terminal's (head, candidates, tail) answer maps onto readline
    matches of ``head + candidate``; readline keeps the text after the
    cursor in place.
    """

    def __init__(self, history_file=HISTORY_FILE):
        self._completer = None
        self._head = ""
        self._matches = []
        self._prompt = ""
        self._readline = None
        self._history_file = os.path.expanduser(history_file)
        try:
            import readline
        except ImportError:
            return
        self._readline = readline
        readline.set_completer_delims("")
        readline.set_auto_history(False)
        readline.parse_and_bind("tab: complete")
        readline.set_completer(self._complete)
        readline.set_completion_display_matches_hook(self._display_matches)
        try:
            readline.read_history_file(self._history_file)
        except (FileNotFoundError, OSError):
            pass
        import atexit
        atexit.register(self._save_history)

    def _save_history(self):
        try:
            self._readline.write_history_file(self._history_file)
        except OSError as e:
            logger.debug("Could not save history: %s", e)

    def set_completer(self, completer):
        """Install fn(line, cursor) -> (head, candidates, tail)."""
        self._completer = completer

    def prompt(self, text):
        """Read one line.  Raises PromptAborted on Ctrl-C or Ctrl-D."""
        self._prompt = text
        try:
            return input(text)
        except KeyboardInterrupt:
            print()
            raise PromptAborted()
        except EOFError:
            print()  # newline after ^D
            raise PromptAborted()

    def append_history(self, line):
        if self._readline is not None and line.strip():
            self._readline.add_history(line)

    def _complete(self, text, state):
        if state == 0:
            self._matches = []
            if self._completer is None:
                return None
            line = self._readline.get_line_buffer()
            head, candidates, _tail = self._completer(line, self._cursor(line))
            self._head = head
            self._matches = [head + c for c in candidates]
        if state < len(self._matches):
            return self._matches[state]
        return None

    def _cursor(self, line):
        """Cursor offset into line in characters.

        readline reports it in bytes of the encoded buffer.
        """
        raw = line.encode("utf-8", "surrogateescape")
        head = raw[:self._readline.get_endidx()]
        return len(head.decode("utf-8", "ignore"))

    def _display_matches(self, substitution, matches, longest_match_length):
        """Print candidates without the reconstructed head, then redraw."""
        names = [m[len(self._head):] for m in matches]
        print()
        print("  ".join(names))
        print(self._prompt + self._readline.get_line_buffer(), end="")
        sys.stdout.flush()


# ---------------------------------------------------------------------------
# Terminal
# ---------------------------------------------------------------------------

class Terminal:
    """Read-dispatch-report loop over a registry of commands."""

    def __init__(self, ctx, editor=None, cw=None):
        self.ctx = ctx
        self.commands = {}  # type: Dict[str, Command]
        self.cw = cw if cw is not None else ColorWriter()
        self.editor = editor if editor is not None else ReadlineEditor()
        self.editor.set_completer(self.complete)

    def register(self, *commands):
        """Register commands by name; a later command replaces an earlier
        one with the same name."""
        for command in commands:
            self.commands[command.name] = command

    # -- Loop --------------------------------------------------------------

    def run(self):
        """Start the context, loop until it dies or the user aborts, then
        shut it down and return the shutdown result.

        A startup failure propagates before any prompt is shown.  Once
        started, the context is shut down even when an unexpected error
        escapes a command.
        """
        self.ctx.startup()
        try:
            self._loop()
        finally:
            result = self.ctx.shutdown()
        return result

    def _loop(self):
        while self.ctx.alive():
            try:
                line = self.editor.prompt(self.ctx.prompt())
            except PromptAborted:
                break
            except (OSError, ValueError) as e:
                self._report(e)
                continue
            try:
                self.handle(line)
            except KeyboardInterrupt:
                print()
                print(self.cw.warning("Interrupted."))
            except (Cli115Error, ProtocolError, OSError) as e:
                self._report(e)
            finally:
                self.editor.append_history(line)

    def handle(self, line):
        """Tokenize line and run the command it names.

        Blank lines do nothing.  Raises CommandNotFoundError for an
        unknown name; otherwise returns whatever the command returns.
        """
        fields = split_input(line)
        if not fields or not fields[0]:
            return None
        name = fields[0]
        # Only the trailing field can be empty (line ended with a space)
        args = [arg for arg in fields[1:] if arg]
        command = self.commands.get(name)
        if command is None:
            raise CommandNotFoundError(name)
        logger.debug("Dispatching %s %r", name, args)
        return command.execute(self.ctx, args)

    def _report(self, error):
        message = getattr(error, "message", None) or str(error)
        print(self.cw.error("Error: {}".format(message)))

    # -- Completion --------------------------------------------------------

    def complete(self, line, pos):
        """Complete line at cursor offset pos (in characters).

        Returns (head, candidates, tail).  With one field before the
        cursor, candidates are command names (with a trailing space for
        commands taking arguments) and head and tail are empty.  With
        more, the command's own completer is asked about the last field
        and head is the command name plus every complete argument before
        it, followed by the completer's head.
        """
        head, tail = line[:pos], line[pos:]
        fields = split_input(head)
        if len(fields) == 1:
            prefix = fields[0]
            candidates = []
            for name in sorted(self.commands):
                if not name.startswith(prefix):
                    continue
                if self.commands[name].has_args:
                    candidates.append(name + " ")
                else:
                    candidates.append(name)
            return "", candidates, ""

        name = fields[0]
        command = self.commands.get(name)
        if command is None or not isinstance(command, ArgCompleter):
            return head, [], tail
        parts = [name]
        for arg in fields[1:-1]:
            if arg:
                parts.append(escape(arg, FIELD_SPECIALS))
        rebuilt = " ".join(parts) + " "
        arg_head, candidates = command.complete(
            self.ctx, len(fields) - 2, fields[-1])
        return rebuilt + arg_head, candidates, tail
