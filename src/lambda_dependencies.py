"""Shared dependency factory for the Lambda handler.

Dependencies are created once per Lambda container and reused across
invocations to keep warm starts cheap.
"""

import logging
import os
from typing import Any

from fastapi import FastAPI

from cafe_pos_service.handlers.api_handler import create_app
from cafe_pos_service.observability import configure_logging, setup_observability
from cafe_pos_service.services.analytics_service import AnalyticsService
from cafe_pos_service.services.cart_service import CartService
from cafe_pos_service.services.menu_service import MenuService
from cafe_pos_service.wiring import create_services, get_dynamodb_resource, load_api_keys

logger = logging.getLogger(__name__)

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_services: tuple[MenuService, CartService, AnalyticsService] | None = None
_fastapi_app: FastAPI | None = None


def get_cached_dynamodb_resource() -> Any:
    """Create or retrieve the cached DynamoDB resource."""
    global _dynamodb_resource

    if _dynamodb_resource is None:
        _dynamodb_resource = get_dynamodb_resource()

    return _dynamodb_resource


def get_services() -> tuple[MenuService, CartService, AnalyticsService]:
    """Create or retrieve the cached menu, cart and analytics services.

    Returns:
        The menu, cart and analytics services
    """
    global _services

    if _services is None:
        _services = create_services(get_cached_dynamodb_resource())

    return _services


def get_fastapi_app() -> FastAPI:
    """Create or retrieve the cached FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    menu_service, cart_service, analytics_service = get_services()

    _fastapi_app = create_app(
        menu_service=menu_service,
        cart_service=cart_service,
        analytics_service=analytics_service,
        api_keys=load_api_keys(),
    )
    setup_observability(_fastapi_app)

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Configure logging; call once during Lambda cold start."""
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Lambda environment initialized")
