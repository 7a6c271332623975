"""Logging configuration for MCP Pointer.

Each AI tool session spawns its own relay, so several relays usually log side
by side. Every record carries the process id to tell the leader's lines apart
from the followers'.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | pid %(process)d | %(message)s"
DEBUG_LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | pid %(process)d | %(name)s:%(lineno)d | %(message)s"
)

# Libraries whose INFO output would drown out the relay's own messages
QUIET_LOGGERS = ("httpx", "httpcore", "websockets", "uvicorn.access")


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """
    Route relay logs to stderr.

    stdout is the MCP stdio transport: anything but protocol frames written
    there corrupts the session with the AI tool.

    Args:
        level: Log level name; unknown names fall back to INFO
        debug: Force DEBUG and add logger name and line number to each record
    """
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=DEBUG_LOG_FORMAT if debug else LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    # The ingress server logs startup/shutdown of the leader's listener
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    # MCP session chatter is only useful when diagnosing the AI tool link
    logging.getLogger("mcp").setLevel(logging.DEBUG if debug else logging.WARNING)
