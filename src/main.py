"""Main application entry point for the café POS service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os

from fastapi import FastAPI

from cafe_pos_service.handlers.api_handler import create_app
from cafe_pos_service.observability import configure_logging, setup_observability
from cafe_pos_service.wiring import create_services, get_dynamodb_resource, load_api_keys

logger = logging.getLogger(__name__)


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    Returns:
        Configured FastAPI application instance
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Initializing café POS service...")

    menu_service, cart_service, analytics_service = create_services(get_dynamodb_resource())

    app = create_app(
        menu_service=menu_service,
        cart_service=cart_service,
        analytics_service=analytics_service,
        api_keys=load_api_keys(),
    )

    setup_observability(app)

    logger.info("Café POS service initialized successfully")
    return app


# The real app is only built outside of tests
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    app = FastAPI()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
