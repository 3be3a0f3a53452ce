"""
Common Enumerations
====================

Application-wide enums that don't fit in chamber or experiment categories.
"""

from enum import Enum


class HealthLevel(str, Enum):
    """
    System/component health levels.
    Used by: status API, scheduler health checks
    """

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    def __str__(self) -> str:
        return self.value
