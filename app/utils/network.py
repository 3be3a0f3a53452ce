"""Host network helpers."""

from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)


def detect_local_ip(probe_host: str = "8.8.8.8", probe_port: int = 80) -> str:
    """Return the address of the interface used for outbound traffic.

    Connecting a UDP socket sends no packets; it only selects a route.
    Falls back to ``127.0.0.1`` when the host has no route.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect((probe_host, probe_port))
        return sock.getsockname()[0]
    except OSError as e:
        logger.warning(f"Could not determine local IP address: {e}")
        return "127.0.0.1"
    finally:
        sock.close()
