"""
Chamber Repository Protocol
===========================

Defines the interface for chamber persistence.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

from app.domain.chambers.chamber_entity import Chamber


class ChamberRepository(Protocol):
    """Protocol for chamber persistence operations."""

    @abstractmethod
    def create(self, chamber: Chamber) -> Chamber | None:
        """
        Persist a new chamber.

        Args:
            chamber: Chamber to create (chamber_id should be None)

        Returns:
            Created chamber with assigned chamber_id, or None on error
        """
        ...

    @abstractmethod
    def update(self, chamber: Chamber) -> bool:
        """Overwrite every column of an existing chamber."""
        ...

    @abstractmethod
    def get_by_id(self, chamber_id: int) -> Chamber | None:
        ...

    @abstractmethod
    def get_by_room_tag(self, room_tag: str) -> Chamber | None:
        ...

    @abstractmethod
    def list_all(self) -> list[Chamber]:
        ...
