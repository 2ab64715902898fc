"""Secure logging utilities to prevent credential and PII disclosure.

Connector failures frequently carry provider response bodies, URLs with
workspace identifiers, and employee email addresses. Outside debug mode
those are masked before they reach the log.
"""

import logging
import re
from functools import lru_cache
from typing import Any

from lifecycle_api.config import get_settings


@lru_cache(maxsize=1)
def is_debug_mode() -> bool:
    """Check if application is running in debug mode."""
    return get_settings().debug


def sanitize_exception_message(error: Exception | str) -> str:
    """Sanitize an error message for logging in production.

    Removes file system paths, URLs, email addresses and long tokens, then
    truncates the result.

    Args:
        error: The exception (or message) to sanitize

    Returns:
        Sanitized error message suitable for production logs
    """
    error_msg = str(error)

    # URLs first so their paths are not mangled into [PATH]
    url_pattern = r"(postgresql|mysql|sqlite|mongodb|redis|http|https)://[^\s]+"
    error_msg = re.sub(url_pattern, "[URL]", error_msg)

    error_msg = re.sub(r"['\"]?(/[a-zA-Z0-9_./\-]+|[A-Z]:\\[^\s'\"]+)['\"]?", "[PATH]", error_msg)
    error_msg = re.sub(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+", "[EMAIL]", error_msg)
    error_msg = re.sub(r"[a-zA-Z0-9_\-]{32,}", "[TOKEN]", error_msg)

    if len(error_msg) > 200:
        error_msg = error_msg[:197] + "..."

    return error_msg


def log_error(
    logger: logging.Logger,
    message: str,
    error: Exception | None = None,
    **kwargs: Any,
) -> None:
    """Log an error with appropriate detail level based on environment.

    Args:
        logger: The logger instance to use
        message: The log message (should be generic, no sensitive data)
        error: Optional exception to include
        **kwargs: Additional context, only attached in debug mode
    """
    if is_debug_mode():
        if error:
            logger.error(f"{message}: {error}", exc_info=True, extra=kwargs)
        else:
            logger.error(message, extra=kwargs)
    else:
        if error:
            logger.error(f"{message}: {sanitize_exception_message(error)}")
        else:
            logger.error(message)


def log_warning(
    logger: logging.Logger,
    message: str,
    error: Exception | str | None = None,
    **kwargs: Any,
) -> None:
    """Log a warning with appropriate detail level based on environment.

    Args:
        logger: The logger instance to use
        message: The log message (should be generic, no sensitive data)
        error: Optional exception or provider message to include
        **kwargs: Additional context, only attached in debug mode
    """
    if is_debug_mode():
        if error:
            logger.warning(f"{message}: {error}", extra=kwargs)
        else:
            logger.warning(message, extra=kwargs)
    else:
        if error:
            logger.warning(f"{message}: {sanitize_exception_message(error)}")
        else:
            logger.warning(message)
