"""CRUD mixins composed into SQLiteDatabaseHandler."""

from infrastructure.database.ops.chambers import ChamberOperations
from infrastructure.database.ops.experiments import ExperimentOperations

__all__ = ["ChamberOperations", "ExperimentOperations"]
