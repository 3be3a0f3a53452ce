from __future__ import annotations

import atexit
import contextlib
import logging
import signal
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api.status import status_api
from app.config import load_config, setup_logging

API_PREFIX = "/api/v1"


def create_app(config_overrides: dict[str, Any] | None = None, *, bootstrap_runtime: bool = False) -> Flask:
    config = load_config()
    if config_overrides:
        for key, value in config_overrides.items():
            setattr(config, key.lower(), value)
        config.__post_init__()

    # Configure logging early so the startup sequence is visible in the terminal and log file
    setup_logging(debug=config.DEBUG, log_level=config.log_level, log_file=config.log_file)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())

    from app.services.container import ServiceContainer

    container = ServiceContainer.build(config, start_runtime=bootstrap_runtime)
    flask_app.config["CONTAINER"] = container
    container.database.init_app(flask_app)

    # ── Graceful shutdown handlers ──────────────────────────────────
    _shutdown_lock = threading.Lock()
    _shutdown_done = False

    def _graceful_shutdown(reason: str = "unknown") -> None:
        nonlocal _shutdown_done
        with _shutdown_lock:
            if _shutdown_done:
                return
            _shutdown_done = True
        logging.info("Graceful shutdown initiated (%s)", reason)
        try:
            container.shutdown()
        except Exception as exc:
            logging.warning("Error during graceful shutdown: %s", exc)

    def _signal_handler(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logging.info("Received %s, shutting down", sig_name)
        _graceful_shutdown(sig_name)
        raise SystemExit(0)

    atexit.register(_graceful_shutdown, "atexit")

    # signal.signal only works from the main thread; test runners may build apps elsewhere
    if bootstrap_runtime:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(OSError, ValueError):
                signal.signal(sig, _signal_handler)

    flask_app.extensions["edge_shutdown"] = _graceful_shutdown

    # Domain exceptions carry their own ``http_status``; anything else is a generic 500
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        from app.domain.exceptions import EdgeError
        from app.utils.http import error_response, safe_error

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, EdgeError):
            status = exc.http_status
            if status >= 500:
                return safe_error(exc, status, context=type(exc).__name__)
            return error_response(str(exc) or "Request failed", status)

        if not request.path.startswith("/api/"):
            raise exc
        return safe_error(exc, 500, context="unhandled")

    flask_app.register_blueprint(status_api, url_prefix=API_PREFIX)

    for bp_name in flask_app.blueprints:
        logging.info(f" Registered blueprint: {bp_name}")

    if not bootstrap_runtime:
        logging.info("Skipping edge runtime (bootstrap_runtime=False)")

    logger = logging.getLogger(__name__)
    logger.info("Chamber edge application initialized (%d chambers known).", len(container.registry.all()))
    return flask_app


__all__ = ["create_app"]
