import logging
import sys

import uvicorn

from api_tester.config import get_settings
from api_tester.middlewares.logging_middleware import CorrelationIdFilter
from api_tester.web import create_app


def main():
    """Configure logging and serve the actions."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level_value,
        format="%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s",
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(CorrelationIdFilter())
    logger = logging.getLogger(__name__)

    app = create_app(settings)

    logger.info("Starting API tester on %s:%d", settings.server.host, settings.server.port)
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    try:
        main()
    except (KeyboardInterrupt, SystemExit):
        logging.info("API tester stopped.")
