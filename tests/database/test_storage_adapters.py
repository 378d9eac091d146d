from pathlib import Path

import pytest

from ftm_backend.adapters.db import connect_storage
from ftm_backend.config import DatabaseConfig
from ftm_backend.shared import ErrorCode, Result, TransactionAborted


def test_connect_storage_rejects_invalid_config() -> None:
    res = connect_storage(DatabaseConfig(db_type="postgres", host="localhost", port=5432))
    assert not res.ok
    assert res.code == "CONFIG_ERROR"


def test_connect_storage_selects_adapter(tmp_path: Path) -> None:
    sqlite = connect_storage(DatabaseConfig.sqlite(tmp_path / "a.db"))
    assert sqlite.ok and sqlite.data.backend == "sqlite"

    pg = connect_storage(
        DatabaseConfig(db_type="postgres", host="127.0.0.1", port=5432, username="u", password="p")
    )
    assert pg.ok and pg.data.backend == "postgres"


@pytest.mark.asyncio
async def test_sqlite_creates_parent_directories(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "ftm.db"
    storage = connect_storage(DatabaseConfig.sqlite(path)).data
    try:
        assert await storage.ahealth_check()
        assert path.exists()
    finally:
        await storage.aclose()


@pytest.mark.asyncio
async def test_sqlite_unopenable_path_is_connection_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file.txt"
    blocker.write_text("x", encoding="utf-8")
    storage = connect_storage(DatabaseConfig.sqlite(blocker / "ftm.db")).data
    try:
        res = await storage.aquery("SELECT 1")
        assert not res.ok
        assert res.code == "CONNECTION_ERROR"
        assert await storage.ahealth_check() is False
    finally:
        await storage.aclose()


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_abort(db) -> None:
    now = db.dialect.now()
    try:
        async with db.atransaction() as tx:
            assert tx.ok
            assert db.in_transaction()
            res = await db.aexecute(
                f"INSERT INTO tags (name, created_at, updated_at) VALUES (?, {now}, {now})", ("rolled",)
            )
            assert res.ok
            raise TransactionAborted(Result.Err(ErrorCode.INVALID_INPUT, "stop"))
    except TransactionAborted as aborted:
        assert aborted.result.code == "INVALID_INPUT"

    assert not db.in_transaction()
    count = await db.ascalar("SELECT COUNT(*) FROM tags WHERE name = ?", ("rolled",))
    assert int(count.data) == 0


@pytest.mark.asyncio
async def test_nested_transaction_joins_outer(db) -> None:
    now = db.dialect.now()
    async with db.atransaction() as outer:
        assert outer.ok
        async with db.atransaction() as inner:
            assert inner.ok
            await db.aexecute(f"INSERT INTO tags (name, created_at, updated_at) VALUES (?, {now}, {now})", ("inner",))
    count = await db.ascalar("SELECT COUNT(*) FROM tags WHERE name = ?", ("inner",))
    assert int(count.data) == 1


@pytest.mark.asyncio
async def test_query_errors_are_results(db) -> None:
    res = await db.aquery("SELECT * FROM no_such_table")
    assert not res.ok
    assert res.code == "QUERY_ERROR"


@pytest.mark.asyncio
async def test_insert_returning_id(db) -> None:
    now = db.dialect.now()
    first = await db.ainsert_returning_id(
        f"INSERT INTO tags (name, created_at, updated_at) VALUES (?, {now}, {now})", ("a",)
    )
    second = await db.ainsert_returning_id(
        f"INSERT INTO tags (name, created_at, updated_at) VALUES (?, {now}, {now})", ("b",)
    )
    assert first.ok and second.ok
    assert second.data > first.data
    assert db.runtime_status()["backend"] == db.backend


@pytest.mark.asyncio
async def test_sqlite_pool_refuses_connections_before_initialization(tmp_path: Path) -> None:
    from ftm_backend.adapters.db import sqlite as sqlite_adapter

    storage = sqlite_adapter.SqliteStorage(DatabaseConfig.sqlite(tmp_path / "fresh.db"))
    with pytest.raises(sqlite_adapter._ConnectionUnavailable):
        await storage._acquire()
    assert storage._translate_error(sqlite_adapter._ConnectionUnavailable("x")).code == "CONNECTION_ERROR"


@pytest.mark.asyncio
async def test_sqlite_search_function_is_registered(sqlite_db) -> None:
    res = await sqlite_db.ascalar("SELECT ftm_lower('ÄPFEL')")
    assert res.ok and res.data == "äpfel"
