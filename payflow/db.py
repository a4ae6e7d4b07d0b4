import contextlib
import sqlite3
from typing import Iterable, List

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


DATABASE_ERRORS = (sqlite3.Error,) + ((psycopg2.Error,) if psycopg2 is not None else ())


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

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

    @contextlib.contextmanager
    def transaction(self):
        if self.backend == "postgres":
            self._conn.autocommit = False
        try:
            yield self
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()
        finally:
            if self.backend == "postgres":
                self._conn.autocommit = True

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 nao instalado.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        g.db = connect_database(current_app.config["DB_PATH"])
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db(db: Database | None = None):
    db = db or get_db()
    for statement in schema_statements(db.backend):
        db.execute(statement)
    db.commit()


REQUEST_STATUSES = (
    "submitted",
    "finance_review",
    "approved",
    "payment_scheduled",
    "paid",
    "manager_rejected",
    "finance_rejected",
)

TABLES = (
    "action_logs",
    "request_history",
    "payment_requests",
    "user_roles",
    "profiles",
    "cost_centers",
    "sectors",
    "companies",
)


def schema_statements(backend: str) -> List[str]:
    serial = "BIGSERIAL PRIMARY KEY" if backend == "postgres" else "INTEGER PRIMARY KEY AUTOINCREMENT"
    real = "DOUBLE PRECISION" if backend == "postgres" else "REAL"
    statuses = ",".join(f"'{status}'" for status in REQUEST_STATUSES)
    return [
        """
        CREATE TABLE IF NOT EXISTS companies (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            code TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS sectors (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS cost_centers (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            code TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS profiles (
            user_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            email TEXT,
            active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS user_roles (
            id {serial},
            user_id TEXT NOT NULL,
            role TEXT NOT NULL CHECK (role IN ('requester','manager','finance','admin')),
            company_id TEXT REFERENCES companies(id),
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_user_roles_user ON user_roles (user_id)",
        f"""
        CREATE TABLE IF NOT EXISTS payment_requests (
            id TEXT PRIMARY KEY,
            company_id TEXT NOT NULL REFERENCES companies(id),
            requester_id TEXT NOT NULL,
            requester_name TEXT,
            sector_id TEXT NOT NULL REFERENCES sectors(id),
            cost_center_id TEXT REFERENCES cost_centers(id),
            supplier_name TEXT NOT NULL,
            supplier_tax_id TEXT NOT NULL,
            invoice_number TEXT NOT NULL,
            issue_date TEXT NOT NULL,
            due_date TEXT NOT NULL,
            description TEXT NOT NULL,
            total_amount_cents INTEGER NOT NULL CHECK (total_amount_cents > 0),
            payment_method TEXT CHECK (payment_method IS NULL OR payment_method IN ('bank_transfer','bank_slip')),
            bank TEXT,
            branch TEXT,
            account_number TEXT,
            pix_key TEXT,
            holder_name TEXT,
            holder_tax_id TEXT,
            invoice_document_ref TEXT,
            slip_document_ref TEXT,
            early_due_justification TEXT,
            titular_divergence_justification TEXT,
            status TEXT NOT NULL DEFAULT 'submitted' CHECK (status IN ({statuses})),
            manager_comment TEXT,
            finance_comment TEXT,
            manager_decided_at TEXT,
            finance_decided_at TEXT,
            planned_payment_date TEXT,
            submitted_at TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 1
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_payment_requests_company_status ON payment_requests (company_id, status)",
        "CREATE INDEX IF NOT EXISTS idx_payment_requests_requester ON payment_requests (requester_id)",
        f"""
        CREATE TABLE IF NOT EXISTS request_history (
            id {serial},
            request_id TEXT NOT NULL,
            previous_status TEXT,
            new_status TEXT NOT NULL,
            actor_id TEXT,
            actor_name TEXT NOT NULL,
            comment TEXT,
            rejection_reason TEXT,
            days_to_due INTEGER,
            time_in_previous_status_seconds {real},
            created_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_request_history_request ON request_history (request_id, created_at)",
        f"""
        CREATE TABLE IF NOT EXISTS action_logs (
            id {serial},
            action_type TEXT NOT NULL,
            table_name TEXT NOT NULL,
            record_id TEXT,
            user_id TEXT,
            description TEXT,
            old_data TEXT,
            new_data TEXT,
            created_at TEXT NOT NULL
        )
        """,
    ]
