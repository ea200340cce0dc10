#!/usr/bin/env python3

"""Logging utility functions and decorators."""

import logging
from collections.abc import Callable, Iterable
from functools import wraps
from time import time
from typing import Any, TypeVar, cast

F = TypeVar("F", bound=Callable[..., Any])

# Keyed by Severity value; INFO diagnostics only reach the debug log
_SEVERITY_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.DEBUG,
}


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given module name.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def log_diagnostics(logger: logging.Logger, diagnostics: Iterable[Any]) -> dict[str, int]:
    """
    Log diagnostics at a level matching their severity.

    Args:
        logger: Target logger
        diagnostics: Diagnostic objects in report order

    Returns:
        Number of diagnostics logged per severity value
    """
    counts = dict.fromkeys(_SEVERITY_LEVELS, 0)
    for diagnostic in diagnostics:
        severity = diagnostic.severity.value
        counts[severity] += 1
        logger.log(_SEVERITY_LEVELS[severity], str(diagnostic))
    return counts


def log_timing(func: F) -> F:
    """
    Decorator to log execution time of a function.

    Args:
        func: Function to decorate

    Returns:
        Wrapped function that logs timing
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        logger = get_logger(func.__module__)
        func_name = func.__qualname__

        logger.debug(f"Starting {func_name}")
        start_time = time()

        try:
            result = func(*args, **kwargs)
            elapsed = time() - start_time
            logger.debug(f"Completed {func_name} in {elapsed:.2f}s")
            return result
        except Exception as e:
            elapsed = time() - start_time
            logger.error(f"Failed {func_name} after {elapsed:.2f}s: {e}")
            raise

    return cast("F", wrapper)
