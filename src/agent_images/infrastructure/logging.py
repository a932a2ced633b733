"""Process logging setup for the API server."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Client and form-parsing libraries log every request at INFO/DEBUG.
_CHATTY_LIBRARY_LOGGERS = ("httpx", "httpcore", "multipart", "python_multipart")


def resolve_log_level(level: str) -> int:
    """Map a level name such as `debug` to its numeric value, falling back to INFO."""

    resolved = logging.getLevelName(level.strip().upper() or "INFO")
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(*, level: str, force: bool = False) -> int:
    """Install the shared root handler and return the numeric level applied.

    Library loggers listed in `_CHATTY_LIBRARY_LOGGERS` stay at WARNING unless
    the process itself runs at DEBUG.
    """

    resolved_level = resolve_log_level(level)
    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, force=force)

    library_level = logging.DEBUG if resolved_level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    return resolved_level
