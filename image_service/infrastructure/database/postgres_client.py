"""PostgreSQL metadata store client.

Wraps a psycopg2 connection pool; each ``get_cursor`` block runs in its own
transaction that commits on exit and rolls back on error.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

import psycopg2
import structlog
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from image_service.config import Settings
from image_service.domain.errors import ConstraintViolation, MetadataUnavailableError

logger = structlog.get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS images (
    id VARCHAR(64) PRIMARY KEY,
    filename VARCHAR(255) NOT NULL UNIQUE,
    original_filename VARCHAR(255),
    path TEXT NOT NULL,
    patient_id VARCHAR(100) NOT NULL,
    uploaded_by_user_id VARCHAR(100) NOT NULL,
    uploaded_by_username VARCHAR(100),
    upload_date TIMESTAMPTZ NOT NULL,
    file_size BIGINT,
    mime_type VARCHAR(100),
    description TEXT,
    tags TEXT,
    is_edited BOOLEAN NOT NULL DEFAULT FALSE,
    parent_image_id VARCHAR(64) REFERENCES images(id) ON DELETE SET NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS idx_images_patient ON images (patient_id);
CREATE INDEX IF NOT EXISTS idx_images_upload_date ON images (upload_date);
CREATE INDEX IF NOT EXISTS idx_images_uploaded_by ON images (uploaded_by_user_id);

CREATE TABLE IF NOT EXISTS image_edits (
    id SERIAL PRIMARY KEY,
    image_id VARCHAR(64) NOT NULL REFERENCES images(id) ON DELETE CASCADE,
    edit_type VARCHAR(20) NOT NULL CHECK (edit_type IN ('add_text', 'draw')),
    edit_data JSONB NOT NULL,
    edited_by_user_id VARCHAR(100),
    edited_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_image_edits_image ON image_edits (image_id);
"""


class PostgresClient:
    """PostgreSQL database client with connection pooling."""

    def __init__(self, settings: Settings) -> None:
        try:
            self._pool = pool.SimpleConnectionPool(
                minconn=1,
                maxconn=settings.db_pool_max,
                host=settings.db_host,
                port=settings.db_port,
                dbname=settings.db_name,
                user=settings.db_user,
                password=settings.db_password,
            )
        except psycopg2.OperationalError as exc:
            raise MetadataUnavailableError(
                f"Failed to initialize PostgreSQL connection pool: {exc}"
            ) from exc

    @contextmanager
    def get_connection(self) -> Generator[Any, None, None]:
        """Get a pooled connection; commits on success, rolls back on error.

        Yields:
            Database connection, returned to the pool on exit. Connections the
            server dropped are discarded instead of reused.

        Raises:
            ConstraintViolation: On unique, not-null or foreign key violations.
            MetadataUnavailableError: If the database cannot be reached.
        """
        conn = None
        try:
            conn = self._pool.getconn()
            yield conn
            conn.commit()
        except psycopg2.IntegrityError as exc:
            self._rollback(conn)
            raise ConstraintViolation(f"Constraint violation: {exc}") from exc
        except (psycopg2.OperationalError, psycopg2.InterfaceError, pool.PoolError) as exc:
            self._rollback(conn)
            raise MetadataUnavailableError(f"Database unavailable: {exc}") from exc
        except Exception:
            self._rollback(conn)
            raise
        finally:
            if conn is not None:
                self._pool.putconn(conn, close=bool(conn.closed))

    @staticmethod
    def _rollback(conn: Any) -> None:
        if conn is not None and not conn.closed:
            conn.rollback()

    @contextmanager
    def get_cursor(self, dict_cursor: bool = True) -> Generator[Any, None, None]:
        """Get a database cursor.

        Args:
            dict_cursor: If True, returns results as dictionaries (default: True).

        Yields:
            Database cursor.
        """
        with self.get_connection() as conn:
            cursor_factory = RealDictCursor if dict_cursor else None
            cursor = conn.cursor(cursor_factory=cursor_factory)
            try:
                yield cursor
            finally:
                cursor.close()

    def execute_one(self, query: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a query and return a single result.

        Args:
            query: SQL query string.
            params: Query parameters.

        Returns:
            Single row as dictionary or None if no results.
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            result = cursor.fetchone()
            return dict(result) if result else None

    def execute_many(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a query and return all results.

        Args:
            query: SQL query string.
            params: Query parameters.

        Returns:
            List of rows as dictionaries.
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def execute_insert(self, query: str, params: tuple = ()) -> dict[str, Any]:
        """Execute an INSERT query and return the inserted row.

        Args:
            query: SQL INSERT query with RETURNING clause.
            params: Query parameters.

        Returns:
            Inserted row as dictionary.
        """
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            result = cursor.fetchone()
            if not result:
                raise ConstraintViolation("Insert query did not return a row")
            return dict(result)

    def init_schema(self) -> None:
        with self.get_cursor(dict_cursor=False) as cursor:
            cursor.execute(SCHEMA)
        logger.info("database_schema_ready")

    def ping(self) -> bool:
        try:
            self.execute_one("SELECT 1 AS ok")
        except MetadataUnavailableError:
            return False
        return True

    def close(self) -> None:
        """Close all connections in the pool."""
        if self._pool:
            self._pool.closeall()
