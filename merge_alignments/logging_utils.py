"""Shared logging helpers for the alignment merging workflow.

The module wires the ``alignment_merger`` logger to a console handler using a
consistent timestamped format. Importing it never creates a log file; the
command-line entry point calls :func:`configure_logging` with ``log_file`` to
add a persistent trail next to the merged output.

:func:`configure_logging` is idempotent: call it with ``log_level`` to adjust
verbosity, ``log_file`` to redirect output, disable either of the console or
file handlers, or provide ``create_dirs`` when a destination directory needs
to be created automatically. Repeated invocations clear previous handlers so
no duplicate outputs are accumulated.

For error handling the module defines :class:`MergeAlignmentsError` and its
subclasses. :func:`handle_critical_error` records fatal failures at
``CRITICAL`` level before raising them, while
:func:`handle_non_critical_error` logs recoverable conditions as warnings.
"""
from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

LOG_FILE = "merge_alignments.log"
LOG_FORMAT = "%(asctime)s : %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("alignment_merger")
logger.propagate = False


def _normalize_level(level: int | str) -> int:
    """Return a numeric logging level for *level*."""
    if isinstance(level, str):
        name = level.upper()
        try:
            return logging._nameToLevel[name]  # type: ignore[attr-defined]
        except KeyError as exc:
            raise ValueError(f"Unknown log level: {level}") from exc
    return int(level)


def _clear_handlers(existing: Iterable[logging.Handler]) -> None:
    for h in list(existing):
        try:
            h.close()
        finally:
            logger.removeHandler(h)


def configure_logging(
    *,
    log_level: int | str = logging.INFO,
    log_file: str | os.PathLike[str] | None = LOG_FILE,
    enable_file_logging: bool = True,
    enable_console: bool = True,
    create_dirs: bool = True,
) -> None:
    """Idempotent logger setup for the alignment merger."""
    level = _normalize_level(log_level)
    _clear_handlers(logger.handlers)
    logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if enable_file_logging and log_file:
        path = os.fspath(log_file)
        if create_dirs:
            d = os.path.dirname(path)
            if d:
                os.makedirs(d, exist_ok=True)
        fh = logging.FileHandler(path)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    if enable_console:
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        logger.addHandler(sh)


class MergeAlignmentsError(RuntimeError):
    """Base exception for unrecoverable errors in the merged reader."""


class ValidationError(MergeAlignmentsError):
    """Raised when caller input is unusable (paths, regions, source lists)."""


class HeaderConflictError(MergeAlignmentsError):
    """Raised when per-source headers cannot be combined into one."""


class SourceError(MergeAlignmentsError):
    """Raised when a record source faults; carries the source's context."""

    def __init__(
        self,
        message: str,
        *,
        source_index: Optional[int] = None,
        source_label: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.source_index = source_index
        self.source_label = source_label


class UnsupportedOperationError(MergeAlignmentsError, NotImplementedError):
    """Raised for operations the merged iterator deliberately does not offer."""


class ClosedIteratorError(MergeAlignmentsError, ValueError):
    """Raised when a closed iterator or reader is used again."""


def log_message(
    message: str,
    verbose: bool = False,
    level: int = logging.INFO,
    *,
    exc_info: BaseException | bool | None = None,
) -> None:
    """Log *message* at the requested level and optionally echo it to stdout."""

    logger.log(level, message, exc_info=exc_info)
    if verbose:
        print(message)


def handle_critical_error(
    message: str,
    exc_cls=None,
    *,
    exc_info: BaseException | bool | None = None,
    **error_context,
) -> None:
    """Log and raise a fatal error.

    Extra keyword arguments are forwarded to the exception constructor, which
    lets :class:`SourceError` carry the index and label of the failing source.
    """

    log_message(message, level=logging.ERROR)
    logger.critical(message, exc_info=exc_info)
    exception_class = exc_cls or MergeAlignmentsError
    error = exception_class(message, **error_context)
    if isinstance(exc_info, BaseException):
        raise error from exc_info
    raise error


def handle_non_critical_error(message: str) -> None:
    """Log a recoverable error."""

    log_message(message, level=logging.WARNING)


__all__ = [
    "LOG_FILE",
    "configure_logging",
    "logger",
    "log_message",
    "handle_critical_error",
    "handle_non_critical_error",
    "MergeAlignmentsError",
    "ValidationError",
    "HeaderConflictError",
    "SourceError",
    "UnsupportedOperationError",
    "ClosedIteratorError",
]

# Default configuration: console only at WARNING level.
configure_logging(log_level=logging.WARNING, enable_file_logging=False)
