"""
Status API Module
=================

Read-only view of the edge node, organized by concern:
- system.py: health, clock, sync and execution status
- chambers.py: discovered chambers
- experiments.py: active experiments, progress and tracking
"""

from flask import Blueprint

from app.utils.http import error_response

# Create blueprint here to avoid circular imports
status_api = Blueprint("status_api", __name__)


@status_api.errorhandler(404)
def not_found(error):
    return error_response("Resource not found", 404)


@status_api.errorhandler(405)
def method_not_allowed(error):
    return error_response("Method not allowed", 405)


# Import submodules to register routes (must be after blueprint creation)
from . import chambers, experiments, system  # noqa: E402

__all__ = ["status_api"]
