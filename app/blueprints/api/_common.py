"""
Blueprint Common Utilities
==========================

Shared helpers for the API blueprints.

Usage:
    from app.blueprints.api._common import get_container, success, fail
"""
from __future__ import annotations

from flask import current_app

from app.utils.http import error_response, success_response


def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def success(data: dict | list | None = None, status: int = 200, *, message: str | None = None):
    """Standard ``{ok: true, data}`` response."""
    return success_response(data, status, message=message)


def fail(message: str, status: int = 400, *, details: dict | None = None):
    """Standard ``{ok: false, error}`` response."""
    return error_response(message, status, details=details)
