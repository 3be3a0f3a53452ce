"""
Chamber-related Enumerations
============================

Enums describing chambers, their registration with the coordinator and the
semantic roles assigned to gateway entities by the classifier.
"""

from enum import Enum


class ChamberStatus(str, Enum):
    """Liveness of a chamber, driven by heartbeats."""

    ONLINE = "online"
    OFFLINE = "offline"

    def __str__(self):
        return self.value


class RegistrationState(str, Enum):
    """Relationship of a local chamber with the remote coordinator."""

    UNREGISTERED = "unregistered"
    REGISTERING = "registering"
    REGISTERED = "registered"

    def __str__(self):
        return self.value


class ControlCategory(str, Enum):
    """Climate categories a gateway input can control."""

    DAY_START = "day_start"
    DAY_DURATION = "day_duration"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    CO2 = "co2"

    def __str__(self):
        return self.value


class DayPeriod(str, Enum):
    """Day/night split used by temperature, humidity and CO2 setpoints."""

    DAY = "day"
    NIGHT = "night"

    def __str__(self):
        return self.value


class WateringRole(str, Enum):
    """Role of an entity inside a watering zone."""

    START = "start"
    PERIOD = "period"
    PAUSE = "pause"
    DURATION = "duration"

    def __str__(self):
        return self.value
