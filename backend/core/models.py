"""Lightweight database helpers for storing series measurements."""
from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Iterator, List, Optional, Union
from urllib.parse import unquote, urlparse

import pymysql
from pymysql.cursors import DictCursor

from backend.core.abstractions import DEFAULT_UNITS_LABEL, Measurement, MeasurementStatus
from backend.core.validator import parse_calendar_date


logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "FRED"
DRIVER_ERRORS = (sqlite3.Error, pymysql.MySQLError)


class PersistenceError(RuntimeError):
    """Raised when the measurement store cannot complete an operation."""


class DatabaseSession:
    """Minimal DB-API session wrapper with context aware placeholders."""

    def __init__(self, connection, placeholder: str, owns_connection: bool = True):
        self.connection = connection
        self.placeholder = placeholder
        self.owns_connection = owns_connection

    # -- DB-API compatibility -------------------------------------------------
    def _prepare_sql(self, sql: str) -> str:
        if self.placeholder == "?":
            return sql
        return sql.replace("?", self.placeholder)

    def execute(self, sql: str, params: tuple = ()):
        cursor = self.connection.cursor()
        cursor.execute(self._prepare_sql(sql), params)
        return cursor

    def fetchone(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        cursor.close()
        return row

    def fetchall(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        rows = cursor.fetchall()
        cursor.close()
        return rows

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def close(self) -> None:
        if self.owns_connection:
            self.connection.close()


class SessionFactory:
    """Open a session per call.

    An in-memory sqlite database lives only as long as its connection, so
    those URLs share a single connection across sessions.
    """

    def __init__(self, url: str, placeholder: str, driver: str):
        self.url = url
        self.placeholder = placeholder
        self.driver = driver
        self._shared_connection = None

    @property
    def in_memory(self) -> bool:
        return self.driver == "sqlite" and sqlite_path(self.url) == ":memory:"

    def _connect(self):
        try:
            return create_connection(self.url, self.driver)
        except DRIVER_ERRORS as exc:
            raise PersistenceError(f"cannot connect to {self.driver} database") from exc

    def __call__(self) -> DatabaseSession:
        if not self.in_memory:
            return DatabaseSession(self._connect(), self.placeholder)
        if self._shared_connection is None:
            self._shared_connection = self._connect()
        return DatabaseSession(self._shared_connection, self.placeholder, owns_connection=False)


# ---------------------------------------------------------------------------

def detect_driver(url: str) -> tuple[str, str]:
    parsed = urlparse(url)
    if parsed.scheme.startswith("mysql"):
        return "mysql", "%s"
    if parsed.scheme.startswith("sqlite") or parsed.scheme == "":
        return "sqlite", "?"
    raise ValueError(f"Unsupported database scheme: {parsed.scheme}")


def sqlite_path(url: str) -> str:
    parsed = urlparse(url)
    path = unquote(parsed.path or parsed.netloc)
    if path.startswith("/"):
        path = path[1:]
    if path == ":memory:":
        return path
    return os.path.abspath(path or "measurements.db")


def create_connection(url: str, driver: str):
    parsed = urlparse(url)
    if driver == "sqlite":
        path = sqlite_path(url)
        connection = sqlite3.connect(path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        return connection

    if driver == "mysql":
        params = {
            "host": parsed.hostname or "localhost",
            "user": parsed.username,
            "password": unquote(parsed.password) if parsed.password else None,
            "database": parsed.path.lstrip("/") or None,
            "port": parsed.port or 3306,
            "cursorclass": DictCursor,
            "autocommit": False,
        }
        return pymysql.connect(**params)

    raise ValueError(f"Unsupported driver: {driver}")


def build_session_factory(url: str) -> SessionFactory:
    """Create a session factory for ``url`` and make sure the schema exists."""

    driver, placeholder = detect_driver(url)
    factory = SessionFactory(url, placeholder, driver)
    run_migrations(factory)
    return factory


@contextmanager
def session_scope(session_factory: SessionFactory) -> Iterator[DatabaseSession]:
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------

_SCHEMA = {
    "sqlite": (
        """
        CREATE TABLE IF NOT EXISTS measurements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            value REAL,
            date TEXT,
            series_id VARCHAR(200) NOT NULL,
            units VARCHAR(50) NOT NULL DEFAULT 'Percent Change',
            source VARCHAR(50) NOT NULL DEFAULT 'FRED',
            status VARCHAR(16) NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'processed', 'error')),
            error_message TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_measurements_date ON measurements (date)",
        "CREATE INDEX IF NOT EXISTS idx_measurements_status ON measurements (status)",
    ),
    "mysql": (
        """
        CREATE TABLE IF NOT EXISTS measurements (
            id BIGINT PRIMARY KEY AUTO_INCREMENT,
            value DOUBLE,
            date DATE,
            series_id VARCHAR(200) NOT NULL,
            units VARCHAR(50) NOT NULL DEFAULT 'Percent Change',
            source VARCHAR(50) NOT NULL DEFAULT 'FRED',
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            error_message TEXT,
            created_at VARCHAR(40) NOT NULL,
            updated_at VARCHAR(40) NOT NULL,
            CONSTRAINT chk_measurements_status CHECK (status IN ('pending', 'processed', 'error')),
            INDEX idx_measurements_date (date),
            INDEX idx_measurements_status (status)
        )
        """,
    ),
}


def run_migrations(session_factory: SessionFactory) -> None:
    try:
        with session_scope(session_factory) as session:
            for statement in _SCHEMA[session_factory.driver]:
                session.execute(statement)
    except DRIVER_ERRORS as exc:
        raise PersistenceError("schema migration failed") from exc


# ---------------------------------------------------------------------------

def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_utc_day(value: Union[date, datetime, str]) -> date:
    """Normalize a date-like value to its UTC calendar day."""

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        day = parse_calendar_date(value)
        if day is not None:
            return day
    raise ValueError(f"Invalid date: {value!r}")


def _decode_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return to_utc_day(value)
    return date.fromisoformat(str(value))


def _measurement_from_row(row) -> Measurement:
    value = row["value"]
    return Measurement(
        id=int(row["id"]),
        value=float(value) if value is not None else None,
        date=_decode_date(row["date"]),
        series_id=row["series_id"],
        units=row["units"],
        status=MeasurementStatus(row["status"]),
        error_message=row["error_message"],
    )


_COLUMNS = "id, value, date, series_id, units, status, error_message"


class SQLMeasurementRepository:
    """Measurement storage on top of a DB-API session factory."""

    def __init__(self, session_factory: SessionFactory, source: str = DEFAULT_SOURCE) -> None:
        self.session_factory = session_factory
        self.source = source

    def insert(self, measurement: Measurement) -> int:
        now = utcnow_iso()
        day = to_utc_day(measurement.date) if measurement.date is not None else None
        params = (
            measurement.value,
            day.isoformat() if day else None,
            measurement.series_id,
            measurement.units or DEFAULT_UNITS_LABEL,
            self.source,
            MeasurementStatus(measurement.status).value,
            measurement.error_message,
            now,
            now,
        )
        with self._scope("insert measurement") as session:
            cursor = session.execute(
                """
                INSERT INTO measurements (
                    value, date, series_id, units, source, status, error_message, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                params,
            )
            measurement_id = int(cursor.lastrowid)
            cursor.close()
        return measurement_id

    def update_status(
        self,
        measurement_id: int,
        status: MeasurementStatus,
        error_message: Optional[str] = None,
    ) -> None:
        with self._scope("update measurement status") as session:
            cursor = session.execute(
                """
                UPDATE measurements
                SET status = ?, error_message = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (
                    MeasurementStatus(status).value,
                    error_message,
                    utcnow_iso(),
                    measurement_id,
                    MeasurementStatus.PENDING.value,
                ),
            )
            updated = cursor.rowcount
            cursor.close()
        if updated != 1:
            raise PersistenceError(f"measurement {measurement_id} is not pending")

    def get(self, measurement_id: int) -> Optional[Measurement]:
        with self._scope("get measurement") as session:
            row = session.fetchone(
                f"SELECT {_COLUMNS} FROM measurements WHERE id = ?",
                (measurement_id,),
            )
        return _measurement_from_row(row) if row else None

    def latest(self) -> Optional[Measurement]:
        with self._scope("get latest measurement") as session:
            row = session.fetchone(
                f"""
                SELECT {_COLUMNS} FROM measurements
                WHERE status = ?
                ORDER BY date DESC, id DESC
                LIMIT 1
                """,
                (MeasurementStatus.PROCESSED.value,),
            )
        return _measurement_from_row(row) if row else None

    def by_date_range(self, start: date, end: date) -> List[Measurement]:
        with self._scope("get measurements by date range") as session:
            rows = session.fetchall(
                f"""
                SELECT {_COLUMNS} FROM measurements
                WHERE date BETWEEN ? AND ?
                ORDER BY date DESC, id DESC
                """,
                (to_utc_day(start).isoformat(), to_utc_day(end).isoformat()),
            )
        return [_measurement_from_row(row) for row in rows]

    def delete_older_than(self, cutoff: date) -> int:
        with self._scope("delete old measurements") as session:
            cursor = session.execute(
                "DELETE FROM measurements WHERE date < ?",
                (to_utc_day(cutoff).isoformat(),),
            )
            deleted = cursor.rowcount
            cursor.close()
        return int(deleted)

    def count(self) -> int:
        with self._scope("count measurements") as session:
            row = session.fetchone("SELECT COUNT(*) AS cnt FROM measurements")
        return int(row["cnt"])

    @contextmanager
    def _scope(self, operation: str) -> Iterator[DatabaseSession]:
        try:
            with session_scope(self.session_factory) as session:
                yield session
        except DRIVER_ERRORS as exc:
            logger.error("Error during %s", operation, exc_info=exc)
            raise PersistenceError(f"{operation} failed: {exc}") from exc


__all__ = [
    "DatabaseSession",
    "PersistenceError",
    "SQLMeasurementRepository",
    "SessionFactory",
    "build_session_factory",
    "run_migrations",
    "session_scope",
    "to_utc_day",
]
