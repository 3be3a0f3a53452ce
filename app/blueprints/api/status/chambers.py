"""Chamber endpoints."""

from __future__ import annotations

from app.blueprints.api._common import get_container, success
from app.domain.exceptions import NotFoundError
from app.utils.http import safe_route

from . import status_api


@status_api.get("/chambers")
@safe_route("Failed to list chambers")
def list_chambers():
    return success([chamber.to_dict() for chamber in get_container().registry.all()])


@status_api.get("/chambers/<int:chamber_id>")
@safe_route("Failed to get chamber")
def get_chamber(chamber_id: int):
    chamber = get_container().registry.get_by_id(chamber_id)
    if chamber is None:
        raise NotFoundError(f"Chamber {chamber_id} not found")
    return success(chamber.to_dict())
