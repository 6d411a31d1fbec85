from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(
    log_path: Path | None = None,
    level: int = logging.INFO,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the novtrans logger with a rich console handler and an optional file handler."""
    logger = logging.getLogger("novtrans")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(
        RichHandler(console=console, rich_tracebacks=True, show_path=False, show_time=True, show_level=True)
    )
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
        )
        logger.addHandler(fh)

    logger.setLevel(level)
    logger.propagate = False
    return logger
