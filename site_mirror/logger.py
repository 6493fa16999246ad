# === FILE: site_mirror/logger.py ===
"""Logging for **SiteMirror**.

One project logger named ``SiteMirror`` owns the handlers: stdout and,
optionally, a rotating log file. Modules take a child logger through
:func:`get_logger`, so ``site_mirror.crawler.worker`` logs as
``SiteMirror.crawler.worker`` and lands on the same handlers::

    from site_mirror.logger import get_logger
    logger = get_logger(__name__)

The CLI calls :func:`init_logging` once per invocation.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Iterable, Union

LOGGER_NAME: Final[str] = "SiteMirror"
DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

#: chatty libraries that only matter when debugging the mirror itself
NOISY_LOGGERS: Final[tuple[str, ...]] = ("asyncio", "aiohttp.access", "aiohttp.client")

_LevelT = Union[int, str]


def get_logger(name: str | None = None) -> logging.Logger:
    """Child of the project logger; ``site_mirror.x.y`` becomes ``SiteMirror.x.y``."""
    if not name or name in ("site_mirror", LOGGER_NAME):
        return logging.getLogger(LOGGER_NAME)
    suffix = name.removeprefix("site_mirror.")
    return logging.getLogger(f"{LOGGER_NAME}.{suffix}")


def _handlers(log_file: str | Path | None, fmt: str) -> list[logging.Handler]:
    formatter = logging.Formatter(fmt)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def quiet_libraries(level: _LevelT = logging.WARNING, names: Iterable[str] = NOISY_LOGGERS) -> None:
    for name in names:
        logging.getLogger(name).setLevel(level)


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """(Re)configure the project logger.

    Parameters
    ----------
    level
        Numeric or textual level, e.g. ``"DEBUG"``.
    log_file
        Rotating log file; *None* keeps output on stdout only.
    log_format
        Format string for :class:`logging.Formatter`.
    replace_handlers
        Close and drop handlers from a previous call before adding new ones.
    """
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    if replace_handlers:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
    for handler in _handlers(log_file, log_format):
        root.addHandler(handler)
    root.propagate = False

    # libraries follow our level only at DEBUG
    quiet_libraries(logging.DEBUG if root.getEffectiveLevel() <= logging.DEBUG else logging.WARNING)
    return root


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Fresh handler set for one CLI run."""
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


logger: logging.Logger = init_logging()

__all__ = ["logger", "get_logger", "configure", "init_logging", "quiet_libraries", "LOGGER_NAME"]
