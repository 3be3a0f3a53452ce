import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from infrastructure.database.ops.chambers import ChamberOperations
from infrastructure.database.ops.experiments import ExperimentOperations

logger = logging.getLogger(__name__)


class SQLiteDatabaseHandler(
    ChamberOperations,
    ExperimentOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals."""

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()

        # Ensure the directory for the database file exists
        if database_path != ":memory:":
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logging.info(f"Created database directory: {db_path.parent}")

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask | None = None) -> None:
        if app is not None:
            app.teardown_appcontext(self.close_db)
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._open_connection()
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False, timeout=10)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """Configure SQLite connection for concurrent periodic drivers.

        - WAL mode: readers never block the single writer
        - NORMAL synchronous: safe with WAL, fewer fsyncs on SD cards
        - foreign keys on: experiments follow their chamber
        """
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA foreign_keys=ON")
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        finally:
            conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        try:
            with self.connection() as db:
                # One row per room group discovered on the gateway
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Chambers (
                        chamber_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        room_tag TEXT NOT NULL UNIQUE,
                        remote_id TEXT,
                        status TEXT NOT NULL DEFAULT 'online',
                        registration_state TEXT NOT NULL DEFAULT 'unregistered',
                        control_points TEXT,
                        last_heartbeat TIMESTAMP,
                        config_synced_at TIMESTAMP,
                        created_at TIMESTAMP NOT NULL,
                        updated_at TIMESTAMP NOT NULL
                    )
                    """
                )
                db.execute("CREATE INDEX IF NOT EXISTS idx_chambers_remote ON Chambers(remote_id)")

                # Experiments mirrored from the coordinator
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Experiments (
                        experiment_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        remote_id TEXT,
                        chamber_id INTEGER NOT NULL,
                        remote_chamber_id TEXT,
                        chamber_name TEXT,
                        title TEXT NOT NULL,
                        description TEXT,
                        status TEXT NOT NULL DEFAULT 'draft',
                        phases TEXT NOT NULL,
                        schedule TEXT NOT NULL,
                        active_phase_index INTEGER,
                        created_at TIMESTAMP NOT NULL,
                        updated_at TIMESTAMP NOT NULL,
                        synced_at TIMESTAMP,
                        UNIQUE (remote_id, chamber_id),
                        FOREIGN KEY (chamber_id) REFERENCES Chambers(chamber_id) ON DELETE CASCADE
                    )
                    """
                )
                db.execute("CREATE INDEX IF NOT EXISTS idx_experiments_status ON Experiments(status, chamber_id)")
            logger.info("Database tables ensured at %s", self._database_path)
        except sqlite3.Error as exc:
            logger.error("Failed to create tables: %s", exc)
            raise
