"""
Logging infrastructure for the affiliate platform.

Provides request correlation for every log line:

- set_request_context / clear_request_context: thread-local request context
- RequestIDFilter: injects request context into log records

The middleware sets the context once per request; the filter is attached to
the console handlers in settings, so service code keeps using plain
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

# Thread-local storage for request context
_request_context = threading.local()

_CONTEXT_ATTRS = ("request_id", "user_id", "ip_address")


# =============================================================================
# REQUEST CONTEXT FUNCTIONS
# =============================================================================


def set_request_context(**kwargs: Any) -> None:
    """Set request context for the current thread"""
    for key, value in kwargs.items():
        setattr(_request_context, key, value)


def get_request_context() -> dict[str, Any]:
    """Get request context for the current thread"""
    return {
        "request_id": getattr(_request_context, "request_id", "-"),
        "user_id": getattr(_request_context, "user_id", None),
        "ip_address": getattr(_request_context, "ip_address", None),
    }


def clear_request_context() -> None:
    """Clear request context for the current thread"""
    for attr in _CONTEXT_ATTRS:
        if hasattr(_request_context, attr):
            delattr(_request_context, attr)


# =============================================================================
# REQUEST ID FILTER - Structured Logging with Request Correlation
# =============================================================================


class RequestIDFilter(logging.Filter):
    """
    Add request ID and context to log records.

    This filter injects the request ID from thread-local storage
    into every log record, enabling request tracing across logs.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add request_id attribute to log record"""
        context = get_request_context()
        for attr in _CONTEXT_ATTRS:
            if not hasattr(record, attr):
                setattr(record, attr, context[attr])
        return True
