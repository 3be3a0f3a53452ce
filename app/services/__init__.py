"""
Service Organization
====================
Services are organized by their role:

**application/**
  Singleton services managed by ServiceContainer. One instance per process.
  Examples: ChamberRegistry, ExecutionService, SyncCoordinator

**utilities/**
  Adapters around external time and network services.
  Examples: ClockService, CoordinatorClient

``protocols.py`` holds the structural interfaces the application services
depend on, so tests can swap in fakes.
"""
