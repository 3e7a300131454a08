"""
Exception logging helpers for the proxy pipeline and the global error handlers.

Nothing in here may raise: a request whose failure cannot be logged must
still get its error response.
"""

import logging
from typing import Any, Dict, Optional


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.

    Args:
        obj: The object to convert to string

    Returns:
        A string representation of the object, falling back to safe alternatives
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            try:
                return f"<{type(obj).__name__} object (string conversion failed)>"
            except Exception:
                return "<object (all string conversions failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def format_exception_message(exception: Optional[BaseException]) -> str:
    """
    Describe an exception in one line. Exception groups (e.g. from anyio task
    groups inside the ASGI stack) list their sub-exceptions.
    """
    if exception is None:
        return "None"

    sub_exceptions = (
        _safe_get_exceptions(exception) if hasattr(exception, "exceptions") else []
    )
    main_str = _safe_str(exception)
    if not sub_exceptions:
        return main_str

    parts = [f"{type(sub).__name__}: {_safe_str(sub)}" for sub in sub_exceptions]
    return f"{main_str} [sub-exceptions: {'; '.join(parts)}]"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Optional[BaseException],
    level: int = logging.ERROR,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log an exception with its message, stack and request context.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Proxy]", "[Server]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
        context: Extra structured fields (target url, method, path, ...)
    """
    try:
        extra = {"error": format_exception_message(exception)}
        if context:
            extra.update(context)
        logger.log(
            level,
            f"{_safe_str(prefix)} {type(exception).__name__}: {extra['error']}",
            exc_info=exception if exception is not None else False,
            extra=extra,
        )
    except Exception:
        # Fall back to a bare message when formatting or handlers fail
        try:
            logger.log(level, f"{_safe_str(prefix)} Exception (logging failed)")
        except Exception:
            pass
