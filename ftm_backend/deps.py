"""
Dependency injection - builds services.
Simple, debug-friendly DI without framework magic.
"""

from .adapters.db import StoragePort, connect_storage
from .adapters.fs import FilesystemPort, LocalFilesystem
from .config import AppConfig
from .features.browser import DirectoryLister
from .features.files import FileOpsCoordinator, FileReconciler, FileRecordStore
from .features.health import HealthService
from .features.tags import FileTagLinker, TagStore
from .shared import ErrorCode, Result, get_logger, log_success

logger = get_logger(__name__)


def _init_db_or_error(config: AppConfig) -> Result[StoragePort]:
    logger.info("Initializing database: %s", config.database.redacted_connection_string())
    db_res = connect_storage(config.database)
    if not db_res.ok:
        logger.error("Failed to initialize database: %s", db_res.error)
    return db_res


async def _connect_db_or_error(db: StoragePort) -> Result[bool]:
    if not await db.ahealth_check():
        await db.aclose()
        return Result.Err(ErrorCode.CONNECTION_ERROR, f"Failed to connect to {db.backend} storage")
    return Result.Ok(True)


async def _migrate_db_or_error(db: StoragePort) -> Result[int]:
    migrate_result = await db.amigrate()
    if not migrate_result.ok:
        logger.error("Schema migration failed: %s", migrate_result.error)
        await db.aclose()
        return Result.Err(
            migrate_result.code or ErrorCode.MIGRATION_ERROR,
            f"Failed to initialize database: {migrate_result.error}",
        )
    return migrate_result


def _build_services_dict(db: StoragePort, fs: FilesystemPort, config: AppConfig) -> dict:
    records = FileRecordStore(db)
    linker = FileTagLinker(db)
    return {
        "config": config,
        "db": db,
        "fs": fs,
        "browser": DirectoryLister(fs, home_path=config.home_path),
        "tags": TagStore(db),
        "records": records,
        "linker": linker,
        "file_ops": FileOpsCoordinator(fs, records, linker, copy_tags_on_copy=config.copy_tags_on_copy),
        "reconciler": FileReconciler(fs, records, linker),
        "health": HealthService(db),
    }


async def build_services(config: AppConfig | None = None, fs: FilesystemPort | None = None) -> Result[dict]:
    """
    Build all services (DI container).

    Args:
        config: Runtime configuration (default: AppConfig.from_env())
        fs: Filesystem adapter (default: LocalFilesystem)

    Returns:
        Result[dict] of service instances
    """
    logger.info("Building services...")
    config = config or AppConfig.from_env()

    db_res = _init_db_or_error(config)
    if not db_res.ok or db_res.data is None:
        return Result.Err(db_res.code or ErrorCode.CONFIG_ERROR, db_res.error or "Failed to initialize database", **db_res.meta)
    db = db_res.data

    connected = await _connect_db_or_error(db)
    if not connected.ok:
        return connected  # type: ignore[return-value]

    migrated = await _migrate_db_or_error(db)
    if not migrated.ok:
        return migrated  # type: ignore[return-value]
    logger.info("Schema version %s (%s)", migrated.data, db.backend)

    services = _build_services_dict(db, fs or LocalFilesystem(), config)
    log_success(logger, "All services initialized")
    return Result.Ok(services)


async def close_services(services: dict) -> None:
    db = services.get("db")
    if db is not None:
        await db.aclose()
