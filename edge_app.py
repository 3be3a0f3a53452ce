"""Entry point for the chamber edge node.

Builds the Flask app with the edge runtime enabled (startup sequence,
scheduler) and serves the read-only status API.
"""
from __future__ import annotations

import logging

from app import create_app


def main() -> int:
    app = create_app(bootstrap_runtime=True)
    container = app.config["CONTAINER"]
    host = container.config.host
    port = container.config.port

    logging.info("Starting status API on %s:%s", host, port)
    try:
        app.run(host=host, port=port, debug=False, use_reloader=False)
        logging.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")
        return 0
    except OSError as exc:
        logging.exception("ERROR: Failed to start server: %s", exc)
        return 1
    finally:
        app.extensions["edge_shutdown"]("server-exit")


if __name__ == "__main__":
    raise SystemExit(main())
