"""
System Status
=============

Node health, network time, coordinator sync and execution loop state.
"""

from __future__ import annotations

import logging

from app.blueprints.api._common import get_container, success
from app.enums import ChamberStatus, HealthLevel
from app.utils.http import safe_route

from . import status_api

logger = logging.getLogger("status_api.system")


@status_api.get("/health")
@safe_route("Failed to get node health")
def get_health():
    container = get_container()
    chambers = container.registry.all()
    scheduler = container.scheduler.health_check()

    registered = sum(1 for chamber in chambers if chamber.is_registered)
    online = sum(1 for chamber in chambers if chamber.status == ChamberStatus.ONLINE)

    status = HealthLevel.HEALTHY
    if scheduler["health"] != HealthLevel.HEALTHY.value or not container.clock.is_connected():
        status = HealthLevel.DEGRADED

    return success(
        {
            "status": status.value,
            "chambers_total": len(chambers),
            "chambers_registered": registered,
            "chambers_online": online,
            "ntp_enabled": container.clock.ntp_enabled,
            "ntp_connected": container.clock.is_connected(),
            "scheduler": scheduler,
        }
    )


@status_api.get("/time")
@safe_route("Failed to get clock status")
def get_time():
    return success(get_container().clock.get_status())


@status_api.get("/sync/status")
@safe_route("Failed to get sync status")
def get_sync_status():
    return success(get_container().sync_coordinator.get_sync_status())


@status_api.get("/execution/status")
@safe_route("Failed to get execution status")
def get_execution_status():
    return success(get_container().execution_service.get_status())
