"""Command-line entry point for cli115.

Usage:
    python -m cli115 [--config PATH] [--access-token TOKEN] [-v]
"""

import argparse
import configparser
import logging
import os
import sys
from pathlib import Path

from . import Agent, ShutdownError, StartupError, __version__
from .colors import ColorWriter
from .commands import default_commands
from .context import Context
from .download import (
    DEFAULT_RPC_URL, Aria2Downloader, CurlDownloader, find_downloader,
)
from .protocol import DEFAULT_PAGE_SIZE, DEFAULT_USER_AGENT
from .terminal import Terminal

logger = logging.getLogger("cli115")

DEFAULT_CONFIG = "~/.config/cli115/cli115.conf"
LOG_DIR = Path.home() / ".cli115"


# =============================================================================
# Logging
# =============================================================================

def setup_logging(verbosity: int = 0, log_file: bool = True) -> None:
    """Set up logging with console and file handlers.

    Args:
        verbosity: 0=WARNING on the console, 1+=DEBUG on the console
        log_file: Whether to also write DEBUG records to ~/.cli115/cli115.log
    """
    if verbosity >= 1:
        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    else:
        fmt = "%(levelname)s: %(message)s"

    # Clear existing handlers
    logger.handlers = []
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING if verbosity == 0 else logging.DEBUG)
    console_handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(console_handler)

    if log_file:
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(LOG_DIR / "cli115.log", mode="a")
        except OSError as e:
            logger.warning("Cannot open log file: %s", e)
            return
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

    logger.debug("Logging initialized (verbosity=%d)", verbosity)


# =============================================================================
# Configuration
# =============================================================================

class ConfigError(Exception):
    """The configuration file is missing or invalid."""


def load_config(path, explicit):
    """Load settings from an INI config file.

    Args:
        path: File path to read.
        explicit: True if the user passed --config (errors are fatal).

    Returns a dict with keys 'access_token', 'user_agent', 'page_size',
    'timeout', 'aria2' and 'curl' (any may be None).  'aria2' is a dict
    with keys path, rpc, rpc_url, rpc_secret; 'curl' a dict with key
    path.

    Raises ConfigError when explicit is set and the file cannot be used.
    """
    result = {
        "access_token": None,
        "user_agent": None,
        "page_size": None,
        "timeout": None,
        "aria2": None,
        "curl": None,
    }
    if not os.path.exists(path):
        if explicit:
            raise ConfigError("config file not found: {}".format(path))
        return result

    config = configparser.ConfigParser()
    try:
        config.read(path)
    except configparser.Error as e:
        if explicit:
            raise ConfigError("failed to parse config file: {}".format(e))
        logger.warning("Failed to parse config file: %s", e)
        return result

    token = config.get("credentials", "access_token", fallback=None)
    if token is not None:
        token = token.strip() or None
    result["access_token"] = token

    user_agent = config.get("session", "user_agent", fallback=None)
    if user_agent is not None:
        user_agent = user_agent.strip() or None
    result["user_agent"] = user_agent

    try:
        result["page_size"] = config.getint(
            "session", "page_size", fallback=None)
        result["timeout"] = config.getfloat(
            "session", "timeout", fallback=None)
    except ValueError as e:
        if explicit:
            raise ConfigError("invalid value in config file: {}".format(e))
        logger.warning("Invalid value in config file: %s", e)

    for key in ("page_size", "timeout"):
        if result[key] is not None and result[key] <= 0:
            if explicit:
                raise ConfigError("{} must be positive, got {}".format(
                    key, result[key]))
            logger.warning("Ignoring non-positive %s in config file: %s",
                           key, result[key])
            result[key] = None

    if config.has_section("aria2"):
        try:
            rpc = config.getboolean("aria2", "rpc", fallback=False)
        except ValueError as e:
            if explicit:
                raise ConfigError("invalid aria2 rpc flag: {}".format(e))
            logger.warning("Invalid aria2 rpc flag: %s", e)
            rpc = False
        result["aria2"] = {
            "path": config.get("aria2", "path", fallback="aria2c"),
            "rpc": rpc,
            "rpc_url": config.get("aria2", "rpc_url",
                                  fallback=DEFAULT_RPC_URL),
            "rpc_secret": config.get("aria2", "rpc_secret",
                                     fallback=None) or None,
        }

    if config.has_section("curl"):
        result["curl"] = {
            "path": config.get("curl", "path", fallback="curl"),
        }

    return result


def make_downloader(cfg):
    """Build the downloader: aria2 if configured, else curl if configured,
    else whatever is installed."""
    if cfg.get("aria2"):
        return Aria2Downloader(**cfg["aria2"])
    if cfg.get("curl"):
        return CurlDownloader(**cfg["curl"])
    return find_downloader()


# =============================================================================
# Main
# =============================================================================

def main(argv=None) -> int:
    """Parse arguments, start the shell and return the exit status."""
    parser = argparse.ArgumentParser(
        prog="cli115",
        description="Interactive shell for 115 cloud storage",
    )
    parser.add_argument(
        "--config",
        default=None,
        metavar="PATH",
        help="Path to config file (default: {})".format(DEFAULT_CONFIG),
    )
    parser.add_argument(
        "--access-token",
        default=None,
        metavar="TOKEN",
        help="115 open platform access token "
             "(default: $CLI115_ACCESS_TOKEN or the config file)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Show debug logging on the console",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Do not write ~/.cli115/cli115.log",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s {}".format(__version__),
    )
    args = parser.parse_args(argv)

    setup_logging(args.verbose, log_file=not args.no_log_file)

    config_path = os.path.expanduser(args.config or DEFAULT_CONFIG)
    try:
        cfg = load_config(config_path, explicit=bool(args.config))
    except ConfigError as e:
        print("Error: {}".format(e), file=sys.stderr)
        return 1

    # --- Resolve access token (CLI > env > config) ---
    token = (args.access_token
             or os.environ.get("CLI115_ACCESS_TOKEN")
             or cfg.get("access_token"))
    if not token:
        print("Error: no access token; pass --access-token, set "
              "CLI115_ACCESS_TOKEN or add [credentials] access_token to {}"
              .format(config_path), file=sys.stderr)
        return 1

    agent = Agent(
        token,
        user_agent=cfg.get("user_agent") or DEFAULT_USER_AGENT,
        timeout=cfg.get("timeout") or 30,
        page_size=cfg.get("page_size") or DEFAULT_PAGE_SIZE,
    )
    cw = ColorWriter()
    ctx = Context(agent, downloader=make_downloader(cfg), cw=cw)
    logger.debug("Downloader: %r", ctx.downloader)

    terminal = Terminal(ctx, cw=cw)
    terminal.register(*default_commands(terminal.commands))
    try:
        terminal.run()
    except (StartupError, ShutdownError) as e:
        print("Error: {}".format(e.message), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
