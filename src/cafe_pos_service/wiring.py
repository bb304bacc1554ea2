"""Environment-driven wiring of repositories and services.

Shared by the local server entry point and the Lambda dependency cache.
"""

import logging
import os
from datetime import UTC, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import boto3

from cafe_pos_service.auth.api_key_validator import parse_api_keys
from cafe_pos_service.repositories.menu_repositories import (
    AddOnRepository,
    ItemModifierRepository,
    MenuItemRepository,
)
from cafe_pos_service.repositories.transaction_repositories import (
    DraftCartRepository,
    TransactionRepository,
)
from cafe_pos_service.services.analytics_service import AnalyticsService
from cafe_pos_service.services.cart_service import CartService
from cafe_pos_service.services.menu_service import MenuService

logger = logging.getLogger(__name__)

DEFAULT_TABLES = {
    "DYNAMODB_MENU_ITEMS_TABLE": "cafe-pos-menu-items",
    "DYNAMODB_ADD_ONS_TABLE": "cafe-pos-add-ons",
    "DYNAMODB_ITEM_MODIFIERS_TABLE": "cafe-pos-item-modifiers",
    "DYNAMODB_DRAFT_CARTS_TABLE": "cafe-pos-draft-carts",
    "DYNAMODB_TRANSACTIONS_TABLE": "cafe-pos-transactions",
}


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", "dummy"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", "dummy"),
        )

    logger.info(f"Using AWS DynamoDB in region {region}")
    return boto3.resource("dynamodb", region_name=region)


def table_name(env_var: str) -> str:
    """Resolve a table name from the environment, falling back to its default."""
    return os.getenv(env_var, DEFAULT_TABLES[env_var])


def get_pos_timezone() -> tzinfo:
    """Timezone used for analytics day boundaries (POS_TIMEZONE, default UTC)."""
    name = os.getenv("POS_TIMEZONE")
    if not name:
        return UTC
    return ZoneInfo(name)


def load_api_keys() -> dict[str, str]:
    """Read the POS_API_KEYS `key:user_id` list.

    Falls back to a single development key when nothing is configured.
    """
    api_keys = parse_api_keys(os.getenv("POS_API_KEYS", ""))

    if not api_keys:
        logger.warning("No POS_API_KEYS configured - using development key")
        api_keys = {"dev-key": "dev-user"}

    return api_keys


def create_services(dynamodb_resource: Any) -> tuple[MenuService, CartService, AnalyticsService]:
    """Wire repositories and services against a DynamoDB resource.

    Args:
        dynamodb_resource: Boto3 DynamoDB service resource

    Returns:
        The menu, cart and analytics services
    """
    menu_item_repository = MenuItemRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=table_name("DYNAMODB_MENU_ITEMS_TABLE"),
    )
    add_on_repository = AddOnRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=table_name("DYNAMODB_ADD_ONS_TABLE"),
    )
    modifier_repository = ItemModifierRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=table_name("DYNAMODB_ITEM_MODIFIERS_TABLE"),
    )
    draft_repository = DraftCartRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=table_name("DYNAMODB_DRAFT_CARTS_TABLE"),
    )
    transaction_repository = TransactionRepository(
        dynamodb_resource=dynamodb_resource,
        table_name=table_name("DYNAMODB_TRANSACTIONS_TABLE"),
    )

    menu_service = MenuService(
        menu_item_repository=menu_item_repository,
        add_on_repository=add_on_repository,
        modifier_repository=modifier_repository,
    )
    cart_service = CartService(
        menu_item_repository=menu_item_repository,
        add_on_repository=add_on_repository,
        modifier_repository=modifier_repository,
        draft_repository=draft_repository,
        transaction_repository=transaction_repository,
        max_conflict_retries=int(os.getenv("CART_CONFLICT_RETRIES", "3")),
    )
    analytics_service = AnalyticsService(
        transaction_repository=transaction_repository,
        menu_item_repository=menu_item_repository,
        timezone=get_pos_timezone(),
    )

    logger.info("Services initialized")
    return menu_service, cart_service, analytics_service
