"""
Logging setup for the admin back office.

Everything under folio.* propagates to one 'folio' logger that writes to a
rotating file (logs/folio.log unless LOG_DIR says otherwise). The level comes
from LOG_LEVEL; anything unknown falls back to INFO.

    configure_logging()        # call from each entry point, repeats are harmless

    @log_call                  # traces a repository/engine operation
    def restore(self, row_id): ...

Trace lines look like:

    2026-10-19 14:32:01 | DEBUG    | CALL list | args=(SoftDeletableRepository('blogs'), include_deleted=True)
    2026-10-19 14:32:01 | INFO     | OK   list | 42ms
    2026-10-19 14:32:01 | ERROR    | FAIL create | ConflictError: blogs.slug already exists | 3ms
"""

import functools
import inspect
import logging
import logging.handlers
import os
import time
from pathlib import Path

ROOT_LOGGER = "folio"

_LOG_DIR = Path(os.environ.get("LOG_DIR") or Path(__file__).parent.parent / "logs")
_LOG_FILE = _LOG_DIR / "folio.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_ROTATE_AT = 5 * 1024 * 1024
_KEEP = 3

# Argument values never written to the log
SECRET_ARGS = frozenset({"password", "token", "access_token", "refresh_token", "api_key"})
_MAX_ARG_REPR = 120

# Chatty libraries held at WARNING regardless of LOG_LEVEL
_QUIET = ("urllib3", "requests")


def _level_from_env() -> int:
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> logging.Logger:
    """Attach the rotating file handler to the folio logger once and return it."""
    logger = logging.getLogger(ROOT_LOGGER)
    if logger.handlers:
        return logger

    _LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.setLevel(_level_from_env())

    handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE, maxBytes=_ROTATE_AT, backupCount=_KEEP, encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logger


def _short_repr(value) -> str:
    text = repr(value)
    if len(text) > _MAX_ARG_REPR:
        return text[:_MAX_ARG_REPR - 3] + "..."
    return text


def _positional_names(func) -> list:
    return [
        p.name for p in inspect.signature(func).parameters.values()
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ]


def _format_args(args, kwargs, names=()) -> str:
    parts = []
    for index, value in enumerate(args):
        secret = index < len(names) and names[index] in SECRET_ARGS
        parts.append("***" if secret else _short_repr(value))
    for key, value in kwargs.items():
        shown = "***" if key in SECRET_ARGS else _short_repr(value)
        parts.append(f"{key}={shown}")
    return ", ".join(parts) if parts else "-"


def log_call(func):
    """
    Trace a call: CALL at DEBUG, OK with elapsed ms at INFO, FAIL at ERROR.
    Exceptions are re-raised untouched. Long reprs are cut short and
    arguments named in SECRET_ARGS are masked, however they are passed.
    """
    names = _positional_names(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(ROOT_LOGGER)
        name = func.__name__
        logger.debug(f"CALL {name} | args=({_format_args(args, kwargs, names)})")

        started = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            elapsed = int((time.perf_counter() - started) * 1000)
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {elapsed}ms")
            raise
        elapsed = int((time.perf_counter() - started) * 1000)
        logger.info(f"OK   {name} | {elapsed}ms")
        return result

    return wrapper
