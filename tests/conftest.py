import os
import sys
from pathlib import Path
from urllib.parse import unquote, urlsplit

import pytest
import pytest_asyncio

# Tests live at <repo>/tests/ so the repo root is one parent above.
REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

POSTGRES_DSN_ENV = "FTM_TEST_POSTGRES_DSN"


def _postgres_config():
    from ftm_backend.config import DatabaseConfig

    dsn = os.environ.get(POSTGRES_DSN_ENV, "").strip()
    if not dsn:
        return None
    parts = urlsplit(dsn)
    return DatabaseConfig(
        db_type="postgres",
        host=parts.hostname,
        port=parts.port or 5432,
        username=unquote(parts.username or ""),
        password=unquote(parts.password or ""),
        database=(parts.path or "/").lstrip("/") or "postgres",
        max_connections=4,
    )


async def _reset_postgres(db) -> None:
    res = await db.aexecute("DROP TABLE IF EXISTS file_tags, files, tags, schema_migrations CASCADE")
    assert res.ok, res.error


@pytest_asyncio.fixture(params=["sqlite", "postgres"])
async def db(request, tmp_path):
    """Migrated storage; every business-rule test runs once per backend."""
    from ftm_backend.adapters.db import connect_storage
    from ftm_backend.config import DatabaseConfig

    if request.param == "postgres":
        config = _postgres_config()
        if config is None:
            pytest.skip(f"{POSTGRES_DSN_ENV} not set")
    else:
        config = DatabaseConfig.sqlite(tmp_path / "ftm.db")

    storage_res = connect_storage(config)
    assert storage_res.ok, storage_res.error
    storage = storage_res.data
    if request.param == "postgres":
        await _reset_postgres(storage)
    migrated = await storage.amigrate()
    assert migrated.ok, migrated.error
    try:
        yield storage
    finally:
        await storage.aclose()


@pytest_asyncio.fixture
async def sqlite_db(tmp_path):
    from ftm_backend.adapters.db import connect_storage
    from ftm_backend.config import DatabaseConfig

    storage = connect_storage(DatabaseConfig.sqlite(tmp_path / "ftm.db")).data
    try:
        yield storage
    finally:
        await storage.aclose()


@pytest_asyncio.fixture
async def services(tmp_path):
    from ftm_backend.config import AppConfig, DatabaseConfig
    from ftm_backend.deps import build_services, close_services

    config = AppConfig(database=DatabaseConfig.sqlite(tmp_path / "services.db"), home_path=str(tmp_path))
    svc_res = await build_services(config)
    assert svc_res.ok, svc_res.error
    svc = svc_res.data
    try:
        yield svc
    finally:
        await close_services(svc)
