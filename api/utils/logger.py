from __future__ import annotations

import copy
import logging
import os
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional

LOGGER_NAME = "tosba"

REQUEST_ID: ContextVar[str] = ContextVar("request_id", default="-")
TASK_ID: ContextVar[str] = ContextVar("task_id", default="-")


class ContextFilter(logging.Filter):
    """Stamp request and worker task ids onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (shadow built-in name)
        record.request_id = REQUEST_ID.get("-")
        record.task_id = TASK_ID.get("-")
        return True


class ColorFormatter(logging.Formatter):
    """
    Console-only color formatter (ANSI).
    - Timestamp: blue
    - Level: persistent per-level color
    - Auto-disables if NO_COLOR is set or output is not a TTY
    """

    _RESET = "\x1b[0m"
    _DIM = "\x1b[2m"
    _BLUE = "\x1b[34m"

    _LEVEL_COLORS: dict[int, str] = {
        logging.DEBUG: "\x1b[36m",  # cyan
        logging.INFO: "\x1b[32m",  # green
        logging.WARNING: "\x1b[33m",  # yellow
        logging.ERROR: "\x1b[31m",  # red
        logging.CRITICAL: "\x1b[35m",  # magenta
    }

    def __init__(self, *args, enable_color: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.enable_color = enable_color

    def format(self, record: logging.LogRecord) -> str:
        if not self.enable_color:
            return super().format(record)

        r = copy.copy(record)
        level_color = self._LEVEL_COLORS.get(getattr(r, "levelno", logging.INFO), "\x1b[37m")

        r.levelname = f"{level_color}{r.levelname}{self._RESET}"
        r.name = f"{self._DIM}{r.name}{self._RESET}"
        r.task_id = f"{self._BLUE}{getattr(r, 'task_id', '-')}{self._RESET}"
        return super().format(r)


def _should_enable_color(stream) -> bool:
    if os.getenv("NO_COLOR"):
        return False
    try:
        return bool(getattr(stream, "isatty", lambda: False)())
    except Exception:
        return False


def _parse_level(level: str) -> int:
    lvl = (level or "INFO").upper()
    return logging.getLevelNamesMapping().get(lvl, logging.INFO)


def configure_logging(
    *,
    log_dir: str | Path = "logs",
    log_file: str = "content_worker.log",
    level: str = "INFO",
) -> logging.Logger:
    """
    Configure the `tosba` logger: a rotating file under ./logs, plus a console
    handler when LOG_CONSOLE is set.
    Idempotent: safe to call multiple times.
    """

    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_configured", False):
        return logger

    level = os.getenv("LOG_LEVEL", level)
    numeric_level = _parse_level(level)

    logger.setLevel(numeric_level)
    logger.propagate = False

    fmt = (
        "%(asctime)s %(levelname)-8s %(name)s "
        "request_id=%(request_id)s task_id=%(task_id)s src=%(filename)s:%(lineno)d "
        "%(message)s"
    )
    datefmt = "%Y-%m-%d %H:%M:%S"
    context_filter = ContextFilter()

    try:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            filename=str(Path(log_dir) / log_file),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=10,
            encoding="utf-8",
        )
    except OSError:
        # Read-only working directory: fall back to stderr only
        fh = logging.StreamHandler(sys.stderr)
    fh.setLevel(numeric_level)
    fh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
    fh.addFilter(context_filter)
    logger.addHandler(fh)

    if os.getenv("LOG_CONSOLE"):
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(numeric_level)
        ch.setFormatter(ColorFormatter(fmt=fmt, datefmt=datefmt, enable_color=_should_enable_color(sys.stdout)))
        ch.addFilter(context_filter)
        logger.addHandler(ch)

    logger._configured = True  # type: ignore[attr-defined]
    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the configured `tosba` logger, e.g. get_logger(__name__)."""
    configure_logging()
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def set_request_id(request_id: Optional[str] = None) -> str:
    rid = request_id or str(uuid.uuid4())
    REQUEST_ID.set(rid)
    return rid


def clear_request_id() -> None:
    REQUEST_ID.set("-")


@contextmanager
def task_context(task_id: str) -> Iterator[None]:
    """Bind a worker task id to every log line emitted inside the block."""
    token = TASK_ID.set(task_id)
    try:
        yield
    finally:
        TASK_ID.reset(token)


class log_duration:
    """
    Small helper to time operations:
      with log_duration(logger, "GENERATE_MODULE_CONTENT"):
          ...
    Failures are logged at warning level; the exception still propagates.
    """

    def __init__(self, logger: logging.Logger, name: str):
        self.logger = logger
        self.name = name
        self.start = 0.0

    def __enter__(self):
        self.start = time.monotonic()
        self.logger.debug("start %s", self.name)
        return self

    def __exit__(self, exc_type, exc, tb):
        dur_ms = int((time.monotonic() - self.start) * 1000)
        if exc is None:
            self.logger.info("%s ok duration_ms=%s", self.name, dur_ms)
        else:
            self.logger.warning("%s failed duration_ms=%s error=%s", self.name, dur_ms, exc)
        return False
