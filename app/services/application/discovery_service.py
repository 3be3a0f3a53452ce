"""
Discovery Service
=================

Reads the gateway's entities, classifies them and upserts one chamber per
room tag into the registry. Also waits for the gateway to become reachable
during startup.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from app.domain.chambers import Chamber

if TYPE_CHECKING:
    from app.services.application.chamber_registry import ChamberRegistry
    from app.services.application.entity_classifier import EntityClassifier
    from app.services.protocols import ActuatorClient

logger = logging.getLogger(__name__)


class DiscoveryService:
    def __init__(
        self,
        actuator: "ActuatorClient",
        classifier: "EntityClassifier",
        registry: "ChamberRegistry",
        *,
        retry_seconds: float = 10.0,
    ) -> None:
        self._actuator = actuator
        self._classifier = classifier
        self._registry = registry
        self.retry_seconds = retry_seconds

    def wait_for_gateway(self, stop_event: threading.Event) -> bool:
        """Probe the gateway until it answers or ``stop_event`` is set."""
        attempts = 0
        while not stop_event.is_set():
            attempts += 1
            if self._actuator.probe():
                logger.info("Gateway reachable after %d attempt(s)", attempts)
                return True
            logger.warning("Gateway not reachable, retrying in %.0fs", self.retry_seconds)
            stop_event.wait(self.retry_seconds)
        return False

    def run_discovery(self) -> list[Chamber]:
        """
        One discovery pass.

        Raises:
            ActuatorError: when the gateway cannot be listed
        """
        raw_entities = self._actuator.list_states()
        rooms = self._classifier.classify(raw_entities)

        chambers = [self._registry.upsert(tag, entities) for tag, entities in rooms.items()]
        unrecognised = sum(len(entities.unrecognised) for entities in rooms.values())
        logger.info(
            "Discovery: %d entities, %d chambers, %d unrecognised",
            len(raw_entities),
            len(chambers),
            unrecognised,
        )
        return chambers
