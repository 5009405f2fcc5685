"""HTTP server entry point — uvicorn with a bounded graceful-shutdown window.

Usage:
    web-template                      # reads config/app.yaml
    WEBTEMPLATE_CONFIG=/etc/app.yaml web-template
"""

import logging
import sys

import uvicorn

from webtemplate.config import get_settings
from webtemplate.core.errors import ConfigLoadError
from webtemplate.infrastructure.observability import setup_logging
from webtemplate.main import create_app

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 15


def main() -> None:
    try:
        settings = get_settings()
    except ConfigLoadError as e:
        print(f"Failed to load configuration: {e.message}", file=sys.stderr)
        sys.exit(1)

    setup_logging(settings.logger)
    logger.info(
        f"Starting web-template {settings.app.version} on {settings.app.addr}",
        extra={"environment": settings.app.environment},
    )

    app = create_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.app.host,
        port=settings.app.port,
        timeout_graceful_shutdown=SHUTDOWN_TIMEOUT_SECONDS,
        log_config=None,
    )
    uvicorn.Server(config).run()
    logger.info("web-template stopped")


if __name__ == "__main__":
    main()
