"""Thin wrappers over femtologging used throughout Crossbow.

femtologging loggers take a finished string, so the helpers here interpolate
percent-style templates before handing the message over. Call sites therefore
look like stdlib logging calls while the formatting cost is paid eagerly.

Example:
>>> from crossbow.logging import get_logger, log_info
>>> logger = get_logger(__name__)
>>> log_info(logger, "Accepted delivery %s", "d-1")

"""

from __future__ import annotations

import enum
import typing as typ

from femtologging import basicConfig, get_logger

_FALLBACK_LEVEL = "INFO"


class LogLevel(enum.StrEnum):
    """Level names understood by femtologging."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class _Logger(typ.Protocol):
    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> str | None: ...


def normalize_log_level(level: str | None) -> tuple[str, bool]:
    """Upper-case ``level`` and check it against :class:`LogLevel`.

    Parameters
    ----------
    level : str | None
        Level name as configured, surrounding whitespace allowed.

    Returns
    -------
    tuple[str, bool]
        The level to use, and whether ``level`` was rejected in favour of
        ``INFO``.

    """
    candidate = (level or "").strip().upper()
    if candidate and candidate in LogLevel.__members__:
        return (candidate, False)
    return (_FALLBACK_LEVEL, True)


def configure_logging(level: str, *, force: bool = False) -> tuple[str, bool]:
    """Install femtologging's root handler at the normalized ``level``."""
    resolved, rejected = normalize_log_level(level)
    basicConfig(level=resolved, force=force)
    return (resolved, rejected)


def format_log_message(template: str, *args: object) -> str:
    """Interpolate ``args`` into ``template`` with the ``%`` operator."""
    return template % args


def _write(
    logger: _Logger, level: str, message: str, exc_info: object | None
) -> None:
    logger.log(level, message, exc_info=exc_info, stack_info=False)


def log_debug(
    logger: _Logger, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit a DEBUG record."""
    _write(logger, "DEBUG", format_log_message(template, *args), exc_info)


def log_info(
    logger: _Logger, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit an INFO record.

    Parameters
    ----------
    logger
        Any femtologging-compatible logger.
    template
        Percent-style template.
    *args
        Values substituted into ``template``.
    exc_info
        Optional exception to attach.

    """
    _write(logger, "INFO", format_log_message(template, *args), exc_info)


def log_warning(
    logger: _Logger, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit a WARNING record."""
    _write(logger, "WARNING", format_log_message(template, *args), exc_info)


def log_error(
    logger: _Logger, template: str, *args: object, exc_info: object | None = None
) -> None:
    """Emit an ERROR record."""
    _write(logger, "ERROR", format_log_message(template, *args), exc_info)


def log_exception(logger: _Logger, message: str, exc: BaseException) -> None:
    """Emit ``message`` unformatted at ERROR with ``exc`` attached."""
    _write(logger, "ERROR", message, exc)


__all__ = [
    "LogLevel",
    "configure_logging",
    "format_log_message",
    "get_logger",
    "log_debug",
    "log_error",
    "log_exception",
    "log_info",
    "log_warning",
    "normalize_log_level",
]
