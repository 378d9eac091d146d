"""
Health service - storage status for diagnostics.
"""
from ...adapters.db import CURRENT_SCHEMA_VERSION, StoragePort
from ...shared import Result, get_logger

logger = get_logger(__name__)


class HealthService:
    """
    Health check service.

    Reports whether the storage backend answers a round trip and whether its
    schema is current.
    """

    def __init__(self, db: StoragePort):
        self.db = db

    async def astatus(self) -> Result[dict]:
        """
        Get storage health.

        Returns:
            Result with a dict containing:
                - backend: "sqlite" or "postgres"
                - healthy: round-trip query succeeded
                - schema_version / schema_current
                - pool: adapter runtime counters
                - overall: "healthy", "degraded" or "unhealthy"
        """
        healthy = await self.db.ahealth_check()
        version = await self.db.aschema_version() if healthy else 0
        schema_current = version >= CURRENT_SCHEMA_VERSION
        if not healthy:
            overall = "unhealthy"
            logger.warning("Storage health check failed (%s)", self.db.backend)
        elif not schema_current:
            overall = "degraded"
        else:
            overall = "healthy"
        return Result.Ok(
            {
                "backend": self.db.backend,
                "healthy": healthy,
                "schema_version": version,
                "schema_current": schema_current,
                "pool": self.db.runtime_status(),
                "overall": overall,
            }
        )
