from ftm_backend.adapters.db.dialect import (
    PostgresDialect,
    SqliteDialect,
    contains_pattern,
    dialect_for,
    escape_like,
)


def test_dialect_for() -> None:
    assert isinstance(dialect_for("postgres"), PostgresDialect)
    assert isinstance(dialect_for("sqlite"), SqliteDialect)


def test_postgres_translate_numbers_placeholders() -> None:
    sql = "SELECT id FROM files WHERE current_path = ? AND file_size > ? LIMIT ?"
    assert PostgresDialect().translate(sql) == (
        "SELECT id FROM files WHERE current_path = $1 AND file_size > $2 LIMIT $3"
    )


def test_postgres_translate_skips_quoted_text() -> None:
    sql = "SELECT '?' AS q, \"what?\" FROM t WHERE a = ? AND b LIKE 'x?%' AND c = ?"
    assert PostgresDialect().translate(sql) == (
        "SELECT '?' AS q, \"what?\" FROM t WHERE a = $1 AND b LIKE 'x?%' AND c = $2"
    )


def test_sqlite_translate_is_identity() -> None:
    sql = "SELECT ? , ?"
    assert SqliteDialect().translate(sql) == sql


def test_escape_like() -> None:
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
    assert contains_pattern("a%b") == "%a\\%b%"


def test_insert_ignore_spellings() -> None:
    cols, conflict = ("file_id", "tag_id"), ("file_id", "tag_id")
    assert SqliteDialect().insert_ignore("file_tags", cols, conflict) == (
        "INSERT OR IGNORE INTO file_tags (file_id, tag_id) VALUES (?, ?)"
    )
    assert PostgresDialect().insert_ignore("file_tags", cols, conflict) == (
        "INSERT INTO file_tags (file_id, tag_id) VALUES (?, ?) ON CONFLICT (file_id, tag_id) DO NOTHING"
    )


def test_upsert_with_where() -> None:
    sql = SqliteDialect().upsert(
        "files",
        ("current_path", "file_size"),
        ("current_path",),
        {"file_size": "excluded.file_size", "deleted_at": "NULL"},
        where="files.deleted_at IS NOT NULL",
    )
    assert sql == (
        "INSERT INTO files (current_path, file_size) VALUES (?, ?) "
        "ON CONFLICT (current_path) DO UPDATE SET file_size = excluded.file_size, deleted_at = NULL "
        "WHERE files.deleted_at IS NOT NULL"
    )


def test_timestamp_rendering_uses_column() -> None:
    assert "created_at" in SqliteDialect().render_ts("created_at")
    assert SqliteDialect().select_ts_columns(["created_at"], alias="t").endswith("AS created_at")
    assert "AT TIME ZONE 'UTC'" in PostgresDialect().render_ts("t.updated_at")
