"""
Process entrypoint for the Model Context server.

Architectural role:
- Configures process-wide logging from `LOG_LEVEL`.
- Initializes the JSON context database when it does not exist yet.
- Serves `context_server.api.http_api:app` with uvicorn on `PORT`.

Usage:
    python -m context_server.api.main
"""

import logging

import uvicorn

from context_server.api.http_api import app, get_store
from context_server.llm import provider_config


logger = logging.getLogger(__name__)


def configure_logging(level=None):
    logging.basicConfig(
        level=level or provider_config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main():
    configure_logging()
    get_store()

    logger.info(
        "MCP Server running on port %s (provider=%s, endpoint=%s)",
        provider_config.PORT,
        provider_config.MODEL_PROVIDER,
        provider_config.MODEL_ENDPOINT,
    )
    logger.info("API available at http://localhost:%s/api", provider_config.PORT)

    uvicorn.run(app, host="0.0.0.0", port=provider_config.PORT)


if __name__ == "__main__":
    main()
