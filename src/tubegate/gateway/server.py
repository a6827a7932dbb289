"""Process entry point: serve the gateway with uvicorn."""

from __future__ import annotations

import logging

import uvicorn

from tubegate.config import get_settings
from tubegate.gateway.app import create_app

logger = logging.getLogger(__name__)


def main() -> None:
    """Entry point for ``tubegate`` / ``python -m tubegate.gateway.server``."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("starting tubegate %s on %s:%d", settings.version, settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
