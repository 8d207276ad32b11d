from __future__ import annotations

import logging
import sys

import uvicorn

from xrpic.core.config import ConfigError, load_settings
from xrpic.core.logging import configure_logging
from xrpic.main import create_app

logger = logging.getLogger("xrpic")


def main() -> int:
    configure_logging(logging.INFO)
    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Failed to load config: %s", exc)
        return 1

    try:
        app = create_app(settings)
        uvicorn.run(app, host=settings.server.host, port=settings.server.port, log_config=None)
    except (OSError, SystemExit) as exc:
        logger.error("Server stopped: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
