"""Core logging setup module.

Every record carries a ``cycle`` field: the label of the scan cycle or job
that emitted it, or ``-`` outside of one. Overlapping cycles run as separate
asyncio tasks, so their log lines stay distinguishable.
"""
from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path


_LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(cycle)s | %(message)s"

_current_cycle: ContextVar[str] = ContextVar("squeezescan_cycle", default="-")


class CycleContextFilter(logging.Filter):
    """Stamps each record with the label of the active cycle."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.cycle = _current_cycle.get()
        return True


@contextmanager
def cycle_context(label: str) -> Iterator[None]:
    """Tag log records emitted inside the block (and tasks it spawns) with ``label``."""
    token = _current_cycle.set(label)
    try:
        yield
    finally:
        _current_cycle.reset(token)


def current_cycle() -> str:
    return _current_cycle.get()


def setup_logging(
    name: str,
    level: str = "INFO",
    log_dir: str | None = None,
) -> logging.Logger:
    """Configure and return the named logger.

    Handlers are attached only once per logger name, so repeated calls
    only adjust the level.
    """
    logger = logging.getLogger(name)
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        _configure(console)
        logger.addHandler(console)

        if log_dir:
            log_path = Path(log_dir)
            log_path.mkdir(parents=True, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                filename=log_path / f"{name}.log",
                when="midnight",
                backupCount=30,
                encoding="utf-8",
            )
            file_handler.suffix = "%Y-%m-%d"
            _configure(file_handler)
            logger.addHandler(file_handler)

    return logger


def _configure(handler: logging.Handler) -> None:
    handler.addFilter(CycleContextFilter())
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
