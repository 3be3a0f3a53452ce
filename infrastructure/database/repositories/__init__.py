"""Repository facades exposing typed accessors over low-level mixins."""

from infrastructure.database.repositories.chambers import ChamberRepository
from infrastructure.database.repositories.experiments import ExperimentRepository

__all__ = [
    "ChamberRepository",
    "ExperimentRepository",
]
