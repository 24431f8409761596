"""The execution context shared by every shell command."""

import logging

from . import Cli115Error, ProtocolError, ShutdownError, StartupError
from .colors import ColorWriter
from .fs import RemoteFs

logger = logging.getLogger(__name__)


class Context:
    """Session state handed to every command.

    Attributes:
        agent: The remote session (cli115.Agent).
        fs: The RemoteFs, built by startup().
        downloader: Aria2Downloader, CurlDownloader or None.
        cw: ColorWriter for user-facing output.
    """

    def __init__(self, agent, downloader=None, cw=None):
        self.agent = agent
        self.downloader = downloader
        self.cw = cw if cw is not None else ColorWriter()
        self.fs = None
        self._alive = False

    # -- Lifecycle ---------------------------------------------------------

    def startup(self):
        """Connect, check the session and list the root directory."""
        try:
            self.agent.connect()
            info = self.agent.user_info()
        except (Cli115Error, ProtocolError, OSError) as e:
            self.agent.close()
            raise StartupError("cannot start session: {}".format(
                getattr(e, "message", None) or e))
        self.fs = RemoteFs(self.agent)
        self._alive = True
        user = info.get("user_name") or info.get("user_id") or "unknown user"
        logger.info("Session started for %s", user)
        print("Logged in as {}.".format(user))
        print('Type "help" for a list of commands, "exit" to quit.')

    def shutdown(self):
        """Close the remote session."""
        self._alive = False
        try:
            self.agent.close()
        except OSError as e:
            raise ShutdownError("cannot close session: {}".format(e))
        logger.info("Session closed")
        print("Bye.")

    def alive(self):
        return self._alive

    def stop(self):
        """Ask the terminal loop to exit after the current command."""
        self._alive = False

    def prompt(self):
        path = self.fs.curr.path if self.fs is not None else "/"
        return "115:{}> ".format(path)
