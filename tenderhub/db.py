import contextlib
import sqlite3
from datetime import datetime, timezone
from typing import Iterable, List

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


INTEGRITY_ERRORS = (sqlite3.IntegrityError,) + ((psycopg2.IntegrityError,) if psycopg2 is not None else ())


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection
        self._tx_depth = 0

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
        """Run the enclosed statements as one unit; nested blocks join the outer one."""
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield self
            finally:
                self._tx_depth -= 1
            return

        self._tx_depth = 1
        if self.backend == "postgres":
            self.execute("BEGIN")
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()
        finally:
            self._tx_depth = 0

    def commit(self):
        if self.backend == "postgres":
            if not self._conn.autocommit:
                self._conn.commit()
            elif self._tx_depth:
                self.execute("COMMIT")
            return
        self._conn.commit()

    def rollback(self):
        if self.backend == "postgres":
            if not self._conn.autocommit:
                self._conn.rollback()
            else:
                self.execute("ROLLBACK")
            return
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 is not installed.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path, timeout=30.0, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = _connect_database(db_path)
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(value) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    raw = str(value).strip()
    if not raw:
        return None
    normalized = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


_COLUMN_TYPES = {
    "sqlite": {
        "pk": "INTEGER PRIMARY KEY AUTOINCREMENT",
        "ts": "TEXT",
        "flag": "INTEGER NOT NULL DEFAULT 0",
        "real": "REAL",
    },
    "postgres": {
        "pk": "SERIAL PRIMARY KEY",
        "ts": "TIMESTAMPTZ",
        "flag": "BOOLEAN NOT NULL DEFAULT FALSE",
        "real": "DOUBLE PRECISION",
    },
}


_SCHEMA: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS tenants (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT UNIQUE,
        created_at {ts} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE,
        username TEXT,
        created_at {ts} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_roles (
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        role TEXT NOT NULL CHECK (role IN ('super-admin','tenant','client')),
        PRIMARY KEY (user_id, role)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_tenants (
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        tenant_id TEXT NOT NULL REFERENCES tenants (id) ON DELETE CASCADE,
        position INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (user_id, tenant_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT UNIQUE,
        parent_id TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS products (
        id {pk},
        name TEXT NOT NULL,
        category_id TEXT,
        tenant_id TEXT NOT NULL,
        created_at {ts} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tenders (
        id {pk},
        tender_number TEXT NOT NULL UNIQUE,
        title TEXT NOT NULL,
        description TEXT,
        type TEXT NOT NULL DEFAULT 'rfq' CHECK (type IN ('rfq','rfp')),
        status TEXT NOT NULL DEFAULT 'draft' CHECK (status IN ('draft','open','closed','cancelled')),
        category_ids TEXT NOT NULL DEFAULT '[]',
        response_deadline {ts},
        contact_preference TEXT NOT NULL DEFAULT 'email' CHECK (contact_preference IN ('email','phone','chat')),
        bid_count INTEGER NOT NULL DEFAULT 0 CHECK (bid_count >= 0),
        documents TEXT NOT NULL DEFAULT '[]',
        tenant_id TEXT,
        created_by TEXT NOT NULL,
        created_at {ts} NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at {ts} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tender_bids (
        id {pk},
        tender_id INTEGER NOT NULL REFERENCES tenders (id),
        submitted_by TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'submitted' CHECK (
            status IN ('submitted','shortlisted','rejected','withdrawn')
        ),
        message TEXT,
        documents TEXT NOT NULL DEFAULT '[]',
        amount {real} CHECK (amount IS NULL OR amount >= 0),
        currency TEXT NOT NULL DEFAULT 'RWF',
        valid_until TEXT,
        created_at {ts} NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at {ts} NOT NULL DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (tender_id, submitted_by)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id {pk},
        user_id TEXT NOT NULL,
        type TEXT NOT NULL DEFAULT 'tender',
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        icon TEXT,
        url TEXT,
        priority TEXT NOT NULL DEFAULT 'normal' CHECK (priority IN ('low','normal','high','urgent')),
        data TEXT NOT NULL DEFAULT '{{}}',
        seen {flag},
        read {flag},
        sent_via_push {flag},
        expires_at {ts},
        created_at {ts} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_user_tenants_tenant ON user_tenants (tenant_id)",
    "CREATE INDEX IF NOT EXISTS idx_user_roles_role ON user_roles (role)",
    "CREATE INDEX IF NOT EXISTS idx_products_category ON products (category_id)",
    "CREATE INDEX IF NOT EXISTS idx_tenders_status ON tenders (status)",
    "CREATE INDEX IF NOT EXISTS idx_tenders_created_by ON tenders (created_by)",
    "CREATE INDEX IF NOT EXISTS idx_tenders_tenant ON tenders (tenant_id)",
    "CREATE INDEX IF NOT EXISTS idx_tender_bids_submitted_by ON tender_bids (submitted_by)",
    "CREATE INDEX IF NOT EXISTS idx_tender_bids_status ON tender_bids (status)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user_read ON notifications (user_id, read)",
]

# Drop order for downgrades: children first.
SCHEMA_TABLES: List[str] = [
    "notifications",
    "tender_bids",
    "tenders",
    "products",
    "categories",
    "user_tenants",
    "user_roles",
    "users",
    "tenants",
]


def schema_statements(backend: str) -> List[str]:
    types = _COLUMN_TYPES["postgres" if backend == "postgres" else "sqlite"]
    return [statement.format(**types) for statement in _SCHEMA]


def init_db():
    db = get_db()
    apply_schema(db)
    db.commit()


def apply_schema(db) -> None:
    for statement in schema_statements(db.backend):
        db.execute(statement)
