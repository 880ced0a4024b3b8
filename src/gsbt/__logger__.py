# pyright: standard

"""gsbt: gsbt/__logger__.py
A common logger for text, rich and json output.
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import IO, Any

from rich.console import Console
from rich.errors import MarkupError
from rich.logging import RichHandler
from rich.text import Text

OUTPUT_FORMATS = ("text", "json", "rich")

# Initialize basic console and handler
cons = Console(stderr=True)
rich_handler = RichHandler(console=cons, show_path=False)
# Create a logger directly
logger = logging.getLogger("gsbt")


def _plain(message: str) -> str:
    try:
        return Text.from_markup(message).plain
    except MarkupError:
        return message


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": _plain(record.getMessage()),
        }
        server = getattr(record, "server", None)
        if server:
            entry["server"] = server
        meta = getattr(record, "meta", None)
        if meta:
            entry["meta"] = meta
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class LockedStreamHandler(logging.StreamHandler):
    """StreamHandler that never interleaves lines from worker threads."""

    _write_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        with self._write_lock:
            super().emit(record)


class ServerLogAdapter(logging.LoggerAdapter):
    """Prefix every message with the server name and tag it for json output."""

    def __init__(self, base: logging.Logger, server: str) -> None:
        super().__init__(base, {"server": server})
        self.server = server

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("server", self.server)
        kwargs["extra"] = extra
        return f"[bold cyan]{self.server}[/bold cyan] {msg}", kwargs


def create_logger(
    output_format: str = "text",
    level: str | int = "INFO",
    stream: IO[str] | None = None,
) -> None:
    """Helper function to setup logging depending on output format."""
    # pylint: disable=global-statement
    global cons, rich_handler

    handler: logging.Handler
    if output_format == "json":
        handler = LockedStreamHandler(stream or sys.stderr)
        handler.setFormatter(JsonFormatter())
    else:
        cons = Console(file=stream, stderr=stream is None)
        rich_handler = RichHandler(
            console=cons,
            show_path=False,
            markup=True,
            rich_tracebacks=output_format == "rich",
        )
        handler = rich_handler

    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level)
    logger.addHandler(handler)

    logging.basicConfig(
        format="%(message)s",
        datefmt="%H:%M:%S",
        level=level,
        handlers=[handler],
        force=True,
    )
