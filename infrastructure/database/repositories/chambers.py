"""
Chamber Repository
==================

Concrete implementation of the ChamberRepository protocol using SQLite.
Wraps the ChamberOperations mixin from the infrastructure layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from app.domain.chambers import Chamber

if TYPE_CHECKING:
    from infrastructure.database.ops.chambers import ChamberOperations


class ChamberRepository:
    """Concrete implementation of the ChamberRepository protocol."""

    def __init__(self, backend: "ChamberOperations") -> None:
        """
        Initialize with database backend.

        Args:
            backend: Database handler that implements ChamberOperations
        """
        self._backend = backend

    # ==================== CRUD Operations ====================

    def create(self, chamber: Chamber) -> Chamber | None:
        return self._backend.create_chamber(chamber)

    def update(self, chamber: Chamber) -> bool:
        return self._backend.update_chamber(chamber)

    # ==================== Queries ====================

    def get_by_id(self, chamber_id: int) -> Chamber | None:
        return self._backend.get_chamber_by_id(chamber_id)

    def get_by_room_tag(self, room_tag: str) -> Chamber | None:
        return self._backend.get_chamber_by_room_tag(room_tag)

    def list_all(self) -> list[Chamber]:
        return self._backend.list_chambers()
