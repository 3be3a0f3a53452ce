from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from app.config import AppConfig
from app.domain.exceptions import ActuatorError, EdgeError
from app.hardware.home_assistant import HomeAssistantClient
from app.services.application.chamber_registry import ChamberRegistry
from app.services.application.completion_tracker import CompletionTracker
from app.services.application.discovery_service import DiscoveryService
from app.services.application.entity_classifier import EntityClassifier
from app.services.application.execution_service import ExecutionService
from app.services.application.sync_coordinator import SyncCoordinator
from app.services.utilities.clock_service import ClockService
from app.services.utilities.coordinator_client import CoordinatorClient
from app.utils.network import detect_local_ip
from app.workers.unified_scheduler import UnifiedScheduler
from infrastructure.database.repositories.chambers import ChamberRepository
from infrastructure.database.repositories.experiments import ExperimentRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage the node's services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    chamber_repo: ChamberRepository
    experiment_repo: ExperimentRepository
    clock: ClockService
    actuator: HomeAssistantClient
    coordinator: CoordinatorClient
    classifier: EntityClassifier
    registry: ChamberRegistry
    discovery_service: DiscoveryService
    sync_coordinator: SyncCoordinator
    execution_service: ExecutionService
    completion_tracker: CompletionTracker
    scheduler: UnifiedScheduler
    stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _bootstrap_thread: threading.Thread | None = field(default=None, repr=False)
    _is_shutdown: bool = field(default=False, repr=False)

    @classmethod
    def build(cls, config: AppConfig, *, start_runtime: bool = False) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            start_runtime: Run the startup sequence and the scheduler in the background
        """
        logger.info("Building ServiceContainer...")
        database = SQLiteDatabaseHandler(config.database_path)
        database.create_tables()
        chamber_repo = ChamberRepository(database)
        experiment_repo = ExperimentRepository(database)

        clock = ClockService(
            config.ntp_servers,
            enabled=config.ntp_enabled,
            timeout=config.ntp_timeout_seconds,
            timezone=config.timezone,
        )
        actuator = HomeAssistantClient(config.ha_url, config.ha_token, timeout=config.ha_timeout_seconds)
        coordinator = CoordinatorClient(
            config.backend_url,
            config.backend_api_key,
            timeout=config.backend_timeout_seconds,
        )

        classifier = EntityClassifier(config.chamber_suffixes)
        registry = ChamberRegistry(chamber_repo, base_name=config.chamber_name, clock=clock.now)
        registry.load()

        sync_coordinator = SyncCoordinator(
            coordinator,
            registry,
            experiment_repo,
            clock,
            ha_url=config.ha_url,
            ha_token=config.ha_token,
            local_ip=config.local_ip or detect_local_ip(),
        )

        container = cls(
            config=config,
            database=database,
            chamber_repo=chamber_repo,
            experiment_repo=experiment_repo,
            clock=clock,
            actuator=actuator,
            coordinator=coordinator,
            classifier=classifier,
            registry=registry,
            discovery_service=DiscoveryService(
                actuator,
                classifier,
                registry,
                retry_seconds=config.ha_connect_retry_seconds,
            ),
            sync_coordinator=sync_coordinator,
            execution_service=ExecutionService(actuator, experiment_repo, registry, clock),
            completion_tracker=CompletionTracker(
                experiment_repo,
                registry,
                clock,
                sync_coordinator,
                grace_seconds=config.completion_grace_seconds,
            ),
            scheduler=UnifiedScheduler(clock=clock.now, max_workers=config.scheduler_max_workers),
        )

        if start_runtime:
            container.start_runtime()

        logger.info("ServiceContainer built successfully.")
        return container

    # ------------------------------------------------------------------
    # Runtime
    # ------------------------------------------------------------------

    def start_runtime(self) -> None:
        """Run the startup sequence in a background thread."""
        if self._bootstrap_thread is not None:
            return
        self._bootstrap_thread = threading.Thread(target=self.bootstrap, daemon=True, name="EdgeBootstrap")
        self._bootstrap_thread.start()

    def bootstrap(self) -> bool:
        """
        Startup sequence: clock sync, gateway wait, discovery, registration,
        then the periodic drivers.

        Returns:
            False when shutdown interrupted the sequence
        """
        from app.workers.scheduled_tasks import configure_scheduler

        if self.config.ntp_enabled:
            self.clock.sync()

        if not self.discovery_service.wait_for_gateway(self.stop_event):
            logger.info("Startup interrupted while waiting for the gateway")
            return False

        try:
            self.discovery_service.run_discovery()
        except ActuatorError as e:
            # Known chambers from the store keep running; the next restart rediscovers
            logger.error(f"Initial discovery failed: {e}")

        try:
            self.sync_coordinator.register_pending()
        except EdgeError as e:
            logger.error(f"Initial registration failed: {e}")

        if self.stop_event.is_set():
            return False

        configure_scheduler(self.scheduler, self)
        logger.info("Edge runtime started with %d chamber(s)", len(self.registry.chamber_ids()))
        return True

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        if self._is_shutdown:
            return
        self._is_shutdown = True
        self.stop_event.set()

        try:
            self.scheduler.shutdown(wait=True, timeout=max(self.config.backend_timeout_seconds, 5))
            logger.info("UnifiedScheduler stopped")
        except RuntimeError as e:
            logger.warning(f"Failed to stop UnifiedScheduler: {e}")

        if self._bootstrap_thread is not None:
            self._bootstrap_thread.join(timeout=5.0)

        self.actuator.close()
        self.coordinator.close()
        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")
