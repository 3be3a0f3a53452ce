from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from flask import Response, jsonify

from app.utils.time import iso_now

_log = logging.getLogger(__name__)

# Client-facing text per status; the real exception stays in the server log
_GENERIC_MESSAGES: dict[int, str] = {
    400: "Invalid request",
    404: "Resource not found",
    409: "Conflict",
    500: "An internal error occurred",
    502: "Coordinator unavailable",
    503: "Device gateway unavailable",
}


def safe_error(
    exc: BaseException,
    status: int = 500,
    *,
    context: str = "",
) -> Response:
    """Log ``exc`` with ``context`` and answer with the generic message for ``status``."""
    _log.error("API error [%s] %s: %s", status, context, exc, exc_info=exc)
    message = _GENERIC_MESSAGES.get(status, _GENERIC_MESSAGES[500])
    return error_response(message, status)


def success_response(
    data: dict | list | None = None,
    status: int = 200,
    *,
    message: str | None = None,
) -> Response:
    payload: dict[str, Any] = {"ok": True, "data": data, "error": None}
    if message is not None:
        payload["message"] = message
    response = jsonify(payload)
    response.status_code = status
    return response


def error_response(
    message: str,
    status: int = 500,
    *,
    details: dict | None = None,
) -> Response:
    error: dict[str, Any] = {"message": message, "timestamp": iso_now()}
    if details:
        error["details"] = details
    response = jsonify({"ok": False, "data": None, "error": error})
    response.status_code = status
    return response


def safe_route(
    error_message: str = "An internal error occurred",
    *,
    error_status: int = 500,
) -> Callable:
    """Wrap a route so errors become ``{ok: false}`` envelopes.

    :class:`~app.domain.exceptions.EdgeError` subclasses map to
    ``exc.http_status``; 4xx messages are shown to the caller, 5xx are
    replaced with a generic text. Anything else is a logged ``error_status``.

    Usage::

        @status_api.get("/chambers/<int:chamber_id>")
        @safe_route("Failed to get chamber")
        def get_chamber(chamber_id):
            ...
    """
    from app.domain.exceptions import EdgeError

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Response:
            try:
                return fn(*args, **kwargs)
            except EdgeError as exc:
                status = exc.http_status
                if status >= 500:
                    return safe_error(exc, status, context=error_message)
                return error_response(str(exc) or error_message, status, details=exc.detail or None)
            except Exception as exc:
                return safe_error(exc, error_status, context=error_message)

        return wrapper

    return decorator
