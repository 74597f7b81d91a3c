"""
Tests for connection handling in the PostgreSQL client, using a mocked pool.
"""
from __future__ import annotations

from unittest.mock import Mock

import psycopg2
import pytest
from psycopg2 import pool

from image_service.domain.errors import ConstraintViolation, MetadataUnavailableError
from image_service.infrastructure.database.postgres_client import PostgresClient


def _client_with(conn) -> PostgresClient:
    client = object.__new__(PostgresClient)
    client._pool = Mock()
    client._pool.getconn.return_value = conn
    return client


def test_dropped_connection_is_discarded_without_rollback():
    conn = Mock()
    conn.closed = 2
    client = _client_with(conn)

    with pytest.raises(MetadataUnavailableError):
        with client.get_connection():
            raise psycopg2.OperationalError("server closed the connection unexpectedly")

    conn.rollback.assert_not_called()
    client._pool.putconn.assert_called_once_with(conn, close=True)


def test_constraint_violation_rolls_back_and_reuses_connection():
    conn = Mock()
    conn.closed = 0
    client = _client_with(conn)

    with pytest.raises(ConstraintViolation):
        with client.get_connection():
            raise psycopg2.IntegrityError("duplicate key value")

    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    client._pool.putconn.assert_called_once_with(conn, close=False)


def test_exhausted_pool_is_unavailable():
    client = object.__new__(PostgresClient)
    client._pool = Mock()
    client._pool.getconn.side_effect = pool.PoolError("connection pool exhausted")

    with pytest.raises(MetadataUnavailableError):
        with client.get_connection():
            pass

    client._pool.putconn.assert_not_called()


def test_success_commits():
    conn = Mock()
    conn.closed = 0
    client = _client_with(conn)

    with client.get_connection() as got:
        assert got is conn

    conn.commit.assert_called_once()
    client._pool.putconn.assert_called_once_with(conn, close=False)
