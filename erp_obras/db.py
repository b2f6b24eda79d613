import sqlite3
from typing import Iterable, List

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


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

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 nao instalado.")
        # one transaction per request; routes commit after the service returns
        conn = psycopg2.connect(db_path)
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return Database("sqlite", conn)


def get_db() -> Database:
    if "db" not in g:
        g.db = _connect_database(current_app.config["DB_PATH"])
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    db = get_db()
    for statement in schema_statements(db.backend):
        db.execute(statement)
    db.commit()


_COLUMN_TYPES = {
    "sqlite": {"timestamp": "TEXT", "now": "CURRENT_TIMESTAMP", "serial_pk": "INTEGER PRIMARY KEY AUTOINCREMENT"},
    "postgres": {"timestamp": "TIMESTAMPTZ", "now": "NOW()", "serial_pk": "SERIAL PRIMARY KEY"},
}

# Every collection (orders, payables, suppliers...) shares `records`; rows hold
# the camelCase JSON of one record and `position` keeps insertion order.
_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS workspaces (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        created_at {timestamp} NOT NULL DEFAULT {now}
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS records (
        workspace_id TEXT NOT NULL,
        collection TEXT NOT NULL,
        record_id TEXT NOT NULL,
        position INTEGER NOT NULL DEFAULT 0,
        payload TEXT NOT NULL,
        updated_at {timestamp} NOT NULL DEFAULT {now},
        PRIMARY KEY (workspace_id, collection, record_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_records_collection ON records (workspace_id, collection, position)",
    """
    CREATE TABLE IF NOT EXISTS status_events (
        id {serial_pk},
        workspace_id TEXT NOT NULL,
        entity TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        from_status TEXT,
        to_status TEXT NOT NULL,
        reason TEXT NOT NULL,
        payload TEXT,
        occurred_at {timestamp} NOT NULL DEFAULT {now}
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_status_events_entity ON status_events (workspace_id, entity, entity_id)",
)

SCHEMA_TABLES = ("status_events", "records", "workspaces")
SCHEMA_INDEXES = ("idx_status_events_entity", "idx_records_collection")


def schema_statements(backend: str) -> List[str]:
    types = _COLUMN_TYPES["postgres" if backend == "postgres" else "sqlite"]
    return [statement.format(**types) for statement in _SCHEMA]
