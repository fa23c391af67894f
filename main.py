"""
Main entrypoint: FastAPI scoring server under uvicorn.

Env: GOLD_API_URL, SILVER_API_URL, PLATINUM_API_URL, STABLE_API_URL (and
*_API_TOKEN), API_HOST, API_PORT, LOG_LEVEL, LOG_FORMAT. See backend_mcs.config.

Equivalent: uvicorn backend_mcs.api_server.server:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_mcs.mcs_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Load settings, then serve the API in the main thread."""
    from backend_mcs.config.settings import get_settings

    settings = get_settings()
    logger.info(
        "main_platforms_configured",
        platforms={p.value: cfg.base_url for p, cfg in settings.platforms.items()},
        cache_ttl_sec=settings.cache_ttl_sec,
    )

    from backend_mcs.api_server.server import app
    import uvicorn

    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
