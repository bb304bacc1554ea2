"""DynamoDB repository classes for the menu catalog.

These repositories provide CRUD operations for menu items, add-ons and item
modifiers. Expected failures come back as simple return values (None/False/[])
rather than exceptions; the service layer decides what to raise.
"""

import logging
from typing import Any

from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from cafe_pos_service.models.menu_models import AddOn, ItemModifier, MenuItem, ModifierType

logger = logging.getLogger(__name__)


def _scan_all(table: Table, **kwargs: Any) -> list[dict[str, Any]]:
    """Scan a table following LastEvaluatedKey until exhausted."""
    items: list[dict[str, Any]] = []
    response = table.scan(**kwargs)
    items.extend(response.get("Items", []))

    while "LastEvaluatedKey" in response:
        response = table.scan(ExclusiveStartKey=response["LastEvaluatedKey"], **kwargs)
        items.extend(response.get("Items", []))

    return items


class MenuItemRepository:
    """Repository for menu item CRUD operations.

    Manages menu item records in DynamoDB with id as partition key.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_item(self, menu_item_id: str) -> MenuItem | None:
        """Retrieve a menu item by ID.

        Args:
            menu_item_id: Menu item identifier

        Returns:
            MenuItem if found, None otherwise
        """
        try:
            response = self.table.get_item(Key={"id": menu_item_id})

            if "Item" not in response:
                return None

            return MenuItem.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get menu item {menu_item_id}: {e}")  # pragma: no cover
            return None

    def save_item(self, menu_item: MenuItem) -> bool:
        """Save or replace a menu item.

        Args:
            menu_item: MenuItem to save

        Returns:
            bool: True if save succeeded, False otherwise
        """
        try:
            self.table.put_item(Item=menu_item.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save menu item {menu_item.id}: {e}")  # pragma: no cover
            return False

    def list_items(self) -> list[MenuItem]:
        """List every menu item.

        Returns:
            list: List of MenuItem objects (empty list if none found)
        """
        try:
            return [MenuItem.from_dynamodb_item(item) for item in _scan_all(self.table)]

        except ClientError as e:
            logger.error(f"Failed to list menu items: {e}")  # pragma: no cover
            return []

    def delete_item(self, menu_item_id: str) -> bool:
        """Delete a menu item.

        Args:
            menu_item_id: Menu item identifier

        Returns:
            bool: True if delete succeeded, False otherwise
        """
        try:
            self.table.delete_item(Key={"id": menu_item_id})
            return True

        except ClientError as e:
            logger.error(f"Failed to delete menu item {menu_item_id}: {e}")  # pragma: no cover
            return False


class AddOnRepository:
    """Repository for add-on CRUD operations."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_add_on(self, add_on_id: str) -> AddOn | None:
        """Retrieve an add-on by ID, None if missing."""
        try:
            response = self.table.get_item(Key={"id": add_on_id})

            if "Item" not in response:
                return None

            return AddOn.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get add-on {add_on_id}: {e}")  # pragma: no cover
            return None

    def save_add_on(self, add_on: AddOn) -> bool:
        """Save or replace an add-on."""
        try:
            self.table.put_item(Item=add_on.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save add-on {add_on.id}: {e}")  # pragma: no cover
            return False

    def list_add_ons(self) -> list[AddOn]:
        """List every add-on."""
        try:
            return [AddOn.from_dynamodb_item(item) for item in _scan_all(self.table)]

        except ClientError as e:
            logger.error(f"Failed to list add-ons: {e}")  # pragma: no cover
            return []


class ItemModifierRepository:
    """Repository for item modifier CRUD operations.

    Uses a Global Secondary Index on (type, sort_order) for ordered listing.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def get_modifier(self, modifier_id: str) -> ItemModifier | None:
        """Retrieve a modifier by ID, None if missing."""
        try:
            response = self.table.get_item(Key={"id": modifier_id})

            if "Item" not in response:
                return None

            return ItemModifier.from_dynamodb_item(response["Item"])

        except ClientError as e:
            logger.error(f"Failed to get item modifier {modifier_id}: {e}")  # pragma: no cover
            return None

    def save_modifier(self, modifier: ItemModifier) -> bool:
        """Save or replace a modifier."""
        try:
            self.table.put_item(Item=modifier.to_dynamodb_item())
            return True

        except ClientError as e:
            logger.error(f"Failed to save item modifier {modifier.id}: {e}")  # pragma: no cover
            return False

    def list_by_type(self, modifier_type: ModifierType) -> list[ItemModifier]:
        """List modifiers of one axis ordered by sort_order.

        Args:
            modifier_type: Modifier axis

        Returns:
            list: List of ItemModifier objects (empty list if none found)
        """
        try:
            response = self.table.query(
                IndexName="type-sort_order-index",
                KeyConditionExpression="#type = :type",
                ExpressionAttributeNames={"#type": "type"},
                ExpressionAttributeValues={":type": modifier_type.value},
                ScanIndexForward=True,
            )

            return [ItemModifier.from_dynamodb_item(item) for item in response.get("Items", [])]

        except ClientError as e:
            logger.error(f"Failed to list {modifier_type.value} modifiers: {e}")  # pragma: no cover
            return []
