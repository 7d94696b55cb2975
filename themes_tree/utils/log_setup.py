"""Logging configuration for the command line."""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

FILE_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(
    verbose: bool = False,
    log_file: str | Path | None = None,
    console: Console | None = None,
) -> None:
    """Send log records to the terminal, and optionally to a file.

    Args:
        verbose: Log debug records to the terminal (info otherwise)
        log_file: File receiving every record, debug included
        console: Console the terminal handler writes to
    """
    root = logging.getLogger()
    level = logging.DEBUG if verbose else logging.INFO

    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setLevel(level)
        root.addHandler(handler)
    else:
        for handler in root.handlers:
            if isinstance(handler, RichHandler):
                handler.setLevel(level)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        if not any(
            isinstance(h, logging.FileHandler)
            and getattr(h, "baseFilename", "") == str(log_path.absolute())
            for h in root.handlers
        ):
            fh = logging.FileHandler(log_path)
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
            root.addHandler(fh)
        root.setLevel(logging.DEBUG)
    else:
        root.setLevel(level)

    # PyGithub and httpx are chatty at debug level.
    for name in ("github", "httpx", "httpcore", "urllib3", "markdown_it"):
        logging.getLogger(name).setLevel(logging.WARNING)
