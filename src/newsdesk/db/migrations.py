"""
Database migrations for the article mirror.

Two kinds of change, both idempotent:
  - ALTER TABLE ADD COLUMN for columns added after the first release
  - the FTS5 search index over articles and the triggers that keep it current

Called automatically from get_engine() after create_all() so both fresh
installs and existing DBs are handled without manual steps.
"""
from sqlalchemy import text

FTS_TABLE = "articles_fts"

_FTS_TRIGGERS = {
    "articles_fts_insert": f"""
        CREATE TRIGGER articles_fts_insert AFTER INSERT ON articles BEGIN
            INSERT INTO {FTS_TABLE}(rowid, title, excerpt, why_it_matters)
            VALUES (new.rowid, new.title, new.excerpt, new.why_it_matters);
        END
    """,
    "articles_fts_delete": f"""
        CREATE TRIGGER articles_fts_delete AFTER DELETE ON articles BEGIN
            INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, title, excerpt, why_it_matters)
            VALUES ('delete', old.rowid, old.title, old.excerpt, old.why_it_matters);
        END
    """,
    "articles_fts_update": f"""
        CREATE TRIGGER articles_fts_update AFTER UPDATE ON articles BEGIN
            INSERT INTO {FTS_TABLE}({FTS_TABLE}, rowid, title, excerpt, why_it_matters)
            VALUES ('delete', old.rowid, old.title, old.excerpt, old.why_it_matters);
            INSERT INTO {FTS_TABLE}(rowid, title, excerpt, why_it_matters)
            VALUES (new.rowid, new.title, new.excerpt, new.why_it_matters);
        END
    """,
}


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times: checks for existing columns, tables and
    triggers before creating them. Supports SQLite only (PRAGMA, FTS5).

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        # articles.last_edited_time: incremental sync watermark source
        _add_column_if_missing(conn, "articles", "last_edited_time", "TEXT")

        _create_search_index(conn)

        conn.commit()


def _add_column_if_missing(conn, table: str, column: str, col_type: str) -> None:
    """Add a column to a table if it doesn't already exist.

    Args:
        conn: SQLAlchemy connection.
        table: Table name, as SQLite stores it.
        column: Column name to add.
        col_type: SQLite type string, e.g. "INTEGER", "REAL", "TEXT".
    """
    result = conn.execute(text(f"PRAGMA table_info({table})"))
    existing_columns = {row[1] for row in result}
    if column not in existing_columns:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}"))


def _sqlite_object_exists(conn, kind: str, name: str) -> bool:
    row = conn.execute(
        text("SELECT 1 FROM sqlite_master WHERE type = :kind AND name = :name"),
        {"kind": kind, "name": name},
    ).first()
    return row is not None


def _create_search_index(conn) -> None:
    """Create the external-content FTS5 table and its sync triggers.

    A newly created index is rebuilt from the rows already in `articles`.
    """
    if not _sqlite_object_exists(conn, "table", FTS_TABLE):
        conn.execute(text(
            f"CREATE VIRTUAL TABLE {FTS_TABLE} USING fts5("
            "title, excerpt, why_it_matters, content='articles', content_rowid='rowid')"
        ))
        conn.execute(text(f"INSERT INTO {FTS_TABLE}({FTS_TABLE}) VALUES ('rebuild')"))

    for name, ddl in _FTS_TRIGGERS.items():
        if not _sqlite_object_exists(conn, "trigger", name):
            conn.execute(text(ddl))
