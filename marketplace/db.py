from __future__ import annotations

import contextlib
import sqlite3
from typing import Iterable, Iterator

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


class Database:
    """Connection handle shared by repositories and services.

    Both backends run in autocommit mode; ``transaction()`` is the only place
    where a multi-statement unit of work is opened.
    """

    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection
        self._depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def for_update(self) -> str:
        # SQLite takes the database write lock at BEGIN IMMEDIATE instead.
        return " FOR UPDATE" if self.backend == "postgres" else ""

    @contextlib.contextmanager
    def transaction(self) -> Iterator["Database"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self.execute("BEGIN IMMEDIATE" if self.backend == "sqlite" else "BEGIN")
        self._depth = 1
        try:
            yield self
        except BaseException:
            self._depth = 0
            self.execute("ROLLBACK")
            raise
        self._depth = 0
        self.execute("COMMIT")

    def close(self):
        self._conn.close()


INTEGRITY_ERRORS: tuple = (sqlite3.IntegrityError,) + ((psycopg2.IntegrityError,) if psycopg2 is not None else ())


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def connect_database(db_path: str, *, timeout: float = 30.0) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 is not installed.")
        conn = psycopg2.connect(db_path, connect_timeout=int(timeout))
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path, timeout=timeout, isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return Database("sqlite", conn)


def get_db() -> Database:
    if "db" not in g:
        g.db = connect_database(
            current_app.config["DB_PATH"],
            timeout=float(current_app.config.get("DB_BUSY_TIMEOUT_SECONDS", 30)),
        )
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db(db: Database | None = None):
    db = db or get_db()
    if db.backend == "postgres":
        _init_db_postgres(db)
        return

    _init_db_sqlite(db)


def _init_db_sqlite(db: Database):
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            first_name TEXT,
            last_name TEXT,
            role TEXT NOT NULL CHECK (role IN ('admin','client','supplier','employee')),
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS supplier_profiles (
            user_id TEXT PRIMARY KEY REFERENCES users (id),
            company_name TEXT,
            rating REAL
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS service_requests (
            id TEXT PRIMARY KEY,
            client_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            category TEXT NOT NULL DEFAULT 'other' CHECK (
                category IN ('construction','maintenance','consulting','technology','legal','other')
            ),
            priority TEXT NOT NULL DEFAULT 'medium' CHECK (
                priority IN ('low','medium','high','urgent')
            ),
            status TEXT NOT NULL DEFAULT 'draft' CHECK (
                status IN ('draft','published','in_progress','on_hold','completed','cancelled')
            ),
            status_before_hold TEXT,
            budget_min REAL,
            budget_max REAL,
            deadline TEXT,
            location TEXT,
            requirements TEXT,
            assigned_supplier_id TEXT,
            assigned_employee_id TEXT,
            supplier_assigned_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            CHECK (budget_min IS NULL OR budget_max IS NULL OR budget_min <= budget_max)
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS quotations (
            id TEXT PRIMARY KEY,
            service_request_id TEXT NOT NULL REFERENCES service_requests (id),
            supplier_id TEXT NOT NULL,
            amount REAL NOT NULL CHECK (amount >= 0),
            description TEXT,
            estimated_duration TEXT,
            terms_conditions TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (
                status IN ('pending','accepted','rejected','expired')
            ),
            valid_until TEXT,
            resolved_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (service_request_id, supplier_id)
        )
        """
    )

    db.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS ux_quotations_one_accepted
        ON quotations (service_request_id) WHERE status = 'accepted'
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS status_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            entity TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            from_status TEXT,
            to_status TEXT,
            reason TEXT,
            actor_id TEXT,
            occurred_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        "CREATE INDEX IF NOT EXISTS ix_service_requests_listing ON service_requests (created_at DESC, id DESC)"
    )
    db.execute("CREATE INDEX IF NOT EXISTS ix_service_requests_client ON service_requests (client_id)")
    db.execute("CREATE INDEX IF NOT EXISTS ix_quotations_request ON quotations (service_request_id, created_at)")
    db.execute("CREATE INDEX IF NOT EXISTS ix_status_events_entity ON status_events (entity, entity_id)")


def _init_db_postgres(db: Database) -> None:
    db.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            first_name TEXT,
            last_name TEXT,
            role TEXT NOT NULL CHECK (role IN ('admin','client','supplier','employee')),
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS supplier_profiles (
            user_id TEXT PRIMARY KEY REFERENCES users (id),
            company_name TEXT,
            rating NUMERIC(3, 2)
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS service_requests (
            id TEXT PRIMARY KEY,
            client_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            category TEXT NOT NULL DEFAULT 'other' CHECK (
                category IN ('construction','maintenance','consulting','technology','legal','other')
            ),
            priority TEXT NOT NULL DEFAULT 'medium' CHECK (
                priority IN ('low','medium','high','urgent')
            ),
            status TEXT NOT NULL DEFAULT 'draft' CHECK (
                status IN ('draft','published','in_progress','on_hold','completed','cancelled')
            ),
            status_before_hold TEXT,
            budget_min DOUBLE PRECISION,
            budget_max DOUBLE PRECISION,
            deadline TEXT,
            location TEXT,
            requirements TEXT,
            assigned_supplier_id TEXT,
            assigned_employee_id TEXT,
            supplier_assigned_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            CHECK (budget_min IS NULL OR budget_max IS NULL OR budget_min <= budget_max)
        )
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS quotations (
            id TEXT PRIMARY KEY,
            service_request_id TEXT NOT NULL REFERENCES service_requests (id),
            supplier_id TEXT NOT NULL,
            amount DOUBLE PRECISION NOT NULL CHECK (amount >= 0),
            description TEXT,
            estimated_duration TEXT,
            terms_conditions TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (
                status IN ('pending','accepted','rejected','expired')
            ),
            valid_until TEXT,
            resolved_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE (service_request_id, supplier_id)
        )
        """
    )

    db.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS ux_quotations_one_accepted
        ON quotations (service_request_id) WHERE status = 'accepted'
        """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS status_events (
            id SERIAL PRIMARY KEY,
            entity TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            from_status TEXT,
            to_status TEXT,
            reason TEXT,
            actor_id TEXT,
            occurred_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        "CREATE INDEX IF NOT EXISTS ix_service_requests_listing ON service_requests (created_at DESC, id DESC)"
    )
    db.execute("CREATE INDEX IF NOT EXISTS ix_service_requests_client ON service_requests (client_id)")
    db.execute("CREATE INDEX IF NOT EXISTS ix_quotations_request ON quotations (service_request_id, created_at)")
    db.execute("CREATE INDEX IF NOT EXISTS ix_status_events_entity ON status_events (entity, entity_id)")
