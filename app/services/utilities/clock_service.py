"""
Clock Service
=============

Network-time corrected "now" for every scheduling decision on the node.

The service queries a prioritised list of NTP servers (first answer wins).
After a successful sync, ``now()`` is the synced time plus the monotonic time
elapsed since, so host clock jumps do not move the schedule. Until the first
successful sync (or with NTP disabled) the local wall clock is used and the
service reports itself as not connected. A failed re-sync keeps the last good
reference.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

import ntplib

from app.enums import TimeSource
from app.utils.time import from_timestamp, isoformat_or_none

logger = logging.getLogger(__name__)


class ClockService:
    """Thread-safe NTP-backed clock."""

    def __init__(
        self,
        servers: list[str],
        *,
        enabled: bool = True,
        timeout: float = 5.0,
        timezone: str = "Europe/Moscow",
        ntp_client: Optional[ntplib.NTPClient] = None,
        monotonic: Callable[[], float] = time.monotonic,
        wall: Callable[[], float] = time.time,
    ) -> None:
        self.servers = list(servers)
        self._enabled = enabled
        self.timeout = timeout
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)
        self._client = ntp_client or ntplib.NTPClient()
        self._monotonic = monotonic
        self._wall = wall
        self._lock = threading.Lock()

        self._connected = False
        self._synced_time: float = 0.0
        self._monotonic_at_sync: float = 0.0
        self._offset: float = 0.0
        self._server: str | None = None
        self._last_sync: float | None = None
        self._last_error: str | None = None
        self._failed_attempts = 0

    @property
    def ntp_enabled(self) -> bool:
        return self._enabled

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(self) -> bool:
        """Query the servers in order until one answers.

        Returns:
            True when a server answered; False otherwise (state unchanged)
        """
        if not self._enabled:
            return False

        errors: list[str] = []
        for server in self.servers:
            try:
                response = self._client.request(server, version=3, timeout=self.timeout)
            except (ntplib.NTPException, OSError) as e:
                logger.debug("NTP server %s failed: %s", server, e)
                errors.append(f"{server}: {e}")
                continue

            with self._lock:
                was_connected = self._connected
                self._synced_time = response.tx_time
                self._monotonic_at_sync = self._monotonic()
                self._offset = response.offset
                self._server = server
                self._last_sync = response.tx_time
                self._last_error = None
                self._failed_attempts = 0
                self._connected = True

            if was_connected:
                logger.debug("NTP re-sync via %s (offset %.3fs)", server, response.offset)
            else:
                logger.info("NTP synchronised via %s (offset %.3fs)", server, response.offset)
            return True

        with self._lock:
            self._failed_attempts += 1
            self._last_error = "; ".join(errors) or "no NTP servers configured"
            first_failure = self._failed_attempts == 1
            connected = self._connected

        if first_failure:
            if connected:
                logger.warning("NTP re-sync failed, keeping last good reference: %s", self._last_error)
            else:
                logger.warning("NTP unavailable, using local system clock: %s", self._last_error)
        return False

    # ------------------------------------------------------------------
    # Reading time
    # ------------------------------------------------------------------

    def now(self) -> float:
        """Current epoch seconds."""
        with self._lock:
            if self._connected:
                return self._synced_time + (self._monotonic() - self._monotonic_at_sync)
        return self._wall()

    def now_local(self) -> datetime:
        return datetime.fromtimestamp(self.now(), tz=self._tz)

    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def offset_seconds(self) -> float:
        with self._lock:
            return self._offset

    @property
    def time_source(self) -> TimeSource:
        return TimeSource.NTP if self.is_connected() else TimeSource.SYSTEM

    def get_status(self) -> dict[str, Any]:
        with self._lock:
            last_sync = self._last_sync
            status = {
                "timezone": self.timezone,
                "ntp_enabled": self._enabled,
                "ntp_connected": self._connected,
                "offset_seconds": round(self._offset, 6),
                "server": self._server,
                "servers": list(self.servers),
                "failed_attempts": self._failed_attempts,
                "last_error": self._last_error,
            }
        status["current_time"] = self.now_local().isoformat()
        status["time_source"] = self.time_source.value
        status["last_sync"] = isoformat_or_none(from_timestamp(last_sync)) if last_sync else None
        return status
