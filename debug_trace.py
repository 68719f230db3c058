"""
debug_trace.py

Category-tagged diagnostic tracing for the render and history paths.

Enable by setting the environment variable MOCKUPSTUDIO_TRACE=1.
Set MOCKUPSTUDIO_TRACE_PAINT=1 as well to trace per-item paint calls
(very verbose). MOCKUPSTUDIO_TRACE_FILE names an optional log file.
"""

from __future__ import annotations

import logging
import os
import traceback
from functools import wraps

DEBUG_TRACE = os.environ.get("MOCKUPSTUDIO_TRACE", "") not in ("", "0")

TRACE_PAINT = os.environ.get("MOCKUPSTUDIO_TRACE_PAINT", "") not in ("", "0")

LOG_FILE = os.environ.get("MOCKUPSTUDIO_TRACE_FILE") or None

_logger = logging.getLogger("mockupstudio.trace")
_file_handler = None

if DEBUG_TRACE:
    # Traces go to stderr regardless of the root logging configuration
    _stderr_handler = logging.StreamHandler()
    _stderr_handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s"))
    _logger.addHandler(_stderr_handler)
    _logger.setLevel(logging.DEBUG)
    _logger.propagate = False


def _ensure_file_handler():
    global _file_handler
    if LOG_FILE and _file_handler is None:
        try:
            _file_handler = logging.FileHandler(LOG_FILE, mode="w", encoding="utf-8")
        except OSError as e:
            _logger.warning("Cannot open trace file %s: %s", LOG_FILE, e)
            return
        _file_handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s"))
        _logger.addHandler(_file_handler)


def trace(msg: str, category: str = "INFO"):
    """Emit a trace message tagged with a category."""
    if not DEBUG_TRACE:
        return
    if category == "PAINT" and not TRACE_PAINT:
        return

    _ensure_file_handler()
    level = logging.ERROR if category in ("ERROR", "CRASH") else logging.DEBUG
    _logger.log(level, "[%s] %s", category, msg)


def trace_exception(msg: str = "Exception"):
    """Trace the exception currently being handled."""
    if not DEBUG_TRACE:
        return
    trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def trace_call(category: str = "CALL"):
    """Decorator to trace entry and exit of a function."""
    def decorator(func):
        if not DEBUG_TRACE:
            return func

        @wraps(func)
        def wrapper(*args, **kwargs):
            func_name = func.__qualname__
            trace(f">>> {func_name}", category)
            try:
                result = func(*args, **kwargs)
                trace(f"<<< {func_name}", category)
                return result
            except Exception as e:
                trace(f"!!! {func_name} raised {type(e).__name__}: {e}", "ERROR")
                raise
        return wrapper
    return decorator


def close_log():
    """Detach and close the trace file handler."""
    global _file_handler
    if _file_handler is not None:
        _logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None
