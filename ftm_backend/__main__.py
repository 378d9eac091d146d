"""
Run the file tag manager API server.

    python -m ftm_backend
"""

from aiohttp import web

from .config import AppConfig, _env_int, _env_raw
from .deps import build_services
from .routes import create_app
from .shared import get_logger

logger = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765


async def _make_app() -> web.Application:
    services = await build_services(AppConfig.from_env())
    if not services.ok:
        raise SystemExit(f"Failed to initialize services: [{services.code}] {services.error}")
    return create_app(services.data)


def main() -> None:
    host = _env_raw("FTM_HOST", default=DEFAULT_HOST) or DEFAULT_HOST
    port = _env_int(DEFAULT_PORT, "FTM_PORT", min_value=1, max_value=65535)
    logger.info("Serving on http://%s:%s", host, port)
    web.run_app(_make_app(), host=host, port=port)


if __name__ == "__main__":
    main()
