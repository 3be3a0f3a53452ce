"""Centralized exception hierarchy for the chamber edge node.

All domain and service exceptions inherit from :class:`EdgeError` so that
callers can catch a single base class when they need a broad safety net, yet
still match on specific subclasses where narrower handling is appropriate.

Blueprint-level error handling (see ``app/utils/http.safe_route``) maps these
to the correct HTTP status codes automatically.

Hierarchy
---------
::

    EdgeError (base: maps to 500)
    ├── ValidationError                  (400: bad input)
    │   └── ScheduleConfigurationError   (400: malformed experiment schedule)
    ├── NotFoundError                    (404: entity does not exist)
    ├── ConflictError                    (409: state conflict)
    │   └── UnregisteredChamberError     (409: no remote id yet)
    ├── ServiceError                     (500: business-logic failure)
    │   ├── RepositoryError              (500: database / persistence)
    │   └── ExternalServiceError         (502: third-party / network)
    │       └── CoordinatorError         (502: remote coordinator)
    ├── DeviceError                      (503: device gateway communication)
    │   └── ActuatorError                (503: gateway read/write failed)
    └── ConfigurationError               (500: missing / invalid config)
"""

from __future__ import annotations


class EdgeError(Exception):
    """Base exception for all edge node errors.

    Parameters
    ----------
    message:
        Human-readable description (logged server-side, **not** leaked to
        the HTTP client unless the exception class opts in).
    detail:
        Optional machine-readable context dict attached to the error for
        structured logging.
    """

    http_status: int = 500

    def __init__(self, message: str = "", *, detail: dict | None = None) -> None:
        super().__init__(message)
        self.detail = detail or {}


# ── Client errors (4xx) ──────────────────────────────────────────────


class ValidationError(EdgeError):
    """Caller supplied invalid or incomplete input (HTTP 400)."""

    http_status: int = 400


class ScheduleConfigurationError(ValidationError):
    """Experiment phases or schedule items violate their invariants.

    Raised when an experiment is ingested, never by the resolver.
    """


class NotFoundError(EdgeError):
    """Requested entity does not exist (HTTP 404)."""

    http_status: int = 404


class ConflictError(EdgeError):
    """Operation conflicts with existing state (HTTP 409)."""

    http_status: int = 409


class UnregisteredChamberError(ConflictError):
    """Coordinator call attempted for a chamber without a remote id."""


# ── Server errors (5xx) ──────────────────────────────────────────────


class ServiceError(EdgeError):
    """Business-logic failure in a service method (HTTP 500)."""

    http_status: int = 500


class RepositoryError(ServiceError):
    """Database / persistence layer failure (HTTP 500)."""

    http_status: int = 500


class ExternalServiceError(ServiceError):
    """Third-party or network dependency failure (HTTP 502)."""

    http_status: int = 502


class CoordinatorError(ExternalServiceError):
    """Remote coordinator unreachable or answered with an error."""


class DeviceError(EdgeError):
    """Device gateway communication failure (HTTP 503)."""

    http_status: int = 503


class ActuatorError(DeviceError):
    """Reading or writing a gateway entity failed."""


class ConfigurationError(EdgeError):
    """Missing or invalid application configuration (HTTP 500)."""

    http_status: int = 500
