"""In-memory DynamoDB double for component tests.

Supports the subset of the boto3 resource API the repositories use: get/put/delete
with the condition expressions they send, scans, the two GSI queries and
TransactWriteItems.
"""

import copy
from collections.abc import Iterator
from datetime import datetime
from types import SimpleNamespace
from typing import Any

import pytest
from boto3.dynamodb.types import TypeDeserializer
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from cafe_pos_service.handlers.api_handler import create_app
from cafe_pos_service.models.menu_models import AddOn, ItemModifier, MenuItem, ModifierType
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

TABLE_KEYS = {
    "menu-items": "id",
    "add-ons": "id",
    "item-modifiers": "id",
    "draft-carts": "user_id",
    "transactions": "transaction_id",
}


def conditional_check_failed(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException", "Message": "Condition failed"}},
        operation,
    )


def condition_holds(
    existing: dict[str, Any] | None, condition: str | None, values: dict[str, Any] | None
) -> bool:
    if condition is None:
        return True
    if condition.startswith("attribute_not_exists"):
        return existing is None
    if condition == "version = :expected_version":
        return existing is not None and existing["version"] == (values or {})[":expected_version"]
    raise AssertionError(f"Unsupported condition: {condition}")


class FakeTable:
    """Single DynamoDB table keyed by one partition key attribute."""

    def __init__(self, key: str) -> None:
        self.key = key
        self.items: dict[str, dict[str, Any]] = {}

    def get_item(self, Key: dict[str, Any], ConsistentRead: bool = False) -> dict[str, Any]:
        item = self.items.get(Key[self.key])
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def put_item(
        self,
        Item: dict[str, Any],
        ConditionExpression: str | None = None,
        ExpressionAttributeValues: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        existing = self.items.get(Item[self.key])
        if not condition_holds(existing, ConditionExpression, ExpressionAttributeValues):
            raise conditional_check_failed("PutItem")
        self.items[Item[self.key]] = copy.deepcopy(Item)
        return {}

    def delete_item(
        self,
        Key: dict[str, Any],
        ConditionExpression: str | None = None,
        ExpressionAttributeValues: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        existing = self.items.get(Key[self.key])
        if not condition_holds(existing, ConditionExpression, ExpressionAttributeValues):
            raise conditional_check_failed("DeleteItem")
        self.items.pop(Key[self.key], None)
        return {}

    def scan(self, **kwargs: Any) -> dict[str, Any]:
        return {"Items": [copy.deepcopy(item) for item in self.items.values()]}

    def query(
        self,
        IndexName: str,
        KeyConditionExpression: str,
        ExpressionAttributeNames: dict[str, str],
        ExpressionAttributeValues: dict[str, Any],
        ScanIndexForward: bool = True,
        Limit: int | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        if IndexName == "type-sort_order-index":
            wanted = ExpressionAttributeValues[":type"]
            matches = [i for i in self.items.values() if i["type"] == wanted]
            sort_key = "sort_order"
        elif IndexName == "status-completed_at-index":
            start = ExpressionAttributeValues.get(":start")
            end = ExpressionAttributeValues.get(":end")
            matches = [
                i
                for i in self.items.values()
                if i["status"] == ExpressionAttributeValues[":status"]
                and (start is None or i["completed_at"] >= start)
                and (end is None or i["completed_at"] <= end)
            ]
            sort_key = "completed_at"
        else:
            raise AssertionError(f"Unknown index: {IndexName}")

        matches.sort(key=lambda i: i[sort_key], reverse=not ScanIndexForward)
        if Limit is not None:
            matches = matches[:Limit]
        return {"Items": copy.deepcopy(matches)}


class FakeDynamoDB:
    """Stand-in for boto3.resource("dynamodb")."""

    def __init__(self) -> None:
        self.tables = {name: FakeTable(key) for name, key in TABLE_KEYS.items()}
        self.meta = SimpleNamespace(
            client=SimpleNamespace(transact_write_items=self.transact_write_items)
        )
        self._deserializer = TypeDeserializer()

    def Table(self, name: str) -> FakeTable:
        return self.tables[name]

    def _plain(self, attributes: dict[str, Any]) -> dict[str, Any]:
        return {k: self._deserializer.deserialize(v) for k, v in attributes.items()}

    def transact_write_items(self, TransactItems: list[dict[str, Any]]) -> dict[str, Any]:
        """Apply all puts/deletes, or none if any condition fails."""
        operations = []
        reasons = []
        for entry in TransactItems:
            kind, request = next(iter(entry.items()))
            table = self.tables[request["TableName"]]
            if kind == "Put":
                item = self._plain(request["Item"])
                key_value = item[table.key]
            else:
                item = None
                key_value = self._plain(request["Key"])[table.key]

            values = self._plain(request.get("ExpressionAttributeValues", {}))
            ok = condition_holds(
                table.items.get(key_value), request.get("ConditionExpression"), values
            )
            reasons.append({"Code": "None" if ok else "ConditionalCheckFailed"})
            operations.append((table, key_value, item))

        if any(reason["Code"] != "None" for reason in reasons):
            raise ClientError(
                {
                    "Error": {"Code": "TransactionCanceledException", "Message": "Cancelled"},
                    "CancellationReasons": reasons,
                },
                "TransactWriteItems",
            )

        for table, key_value, item in operations:
            if item is None:
                table.items.pop(key_value, None)
            else:
                table.items[key_value] = item
        return {}


@pytest.fixture
def dynamodb() -> FakeDynamoDB:
    return FakeDynamoDB()


@pytest.fixture
def repositories(dynamodb: FakeDynamoDB) -> SimpleNamespace:
    return SimpleNamespace(
        menu_items=MenuItemRepository(dynamodb, "menu-items"),
        add_ons=AddOnRepository(dynamodb, "add-ons"),
        modifiers=ItemModifierRepository(dynamodb, "item-modifiers"),
        drafts=DraftCartRepository(dynamodb, "draft-carts"),
        transactions=TransactionRepository(dynamodb, "transactions"),
    )


@pytest.fixture
def seeded_catalog(
    repositories: SimpleNamespace,
    latte: MenuItem,
    americano: MenuItem,
    tote_bag: MenuItem,
    extra_shot: AddOn,
    oat_milk: AddOn,
    modifiers: dict[str, ItemModifier],
) -> None:
    """Catalog with the shared fixtures plus a Warm modifier no item allows."""
    for item in (latte, americano, tote_bag):
        repositories.menu_items.save_item(item)
    for add_on in (extra_shot, oat_milk):
        repositories.add_ons.save_add_on(add_on)
    for modifier in modifiers.values():
        repositories.modifiers.save_modifier(modifier)
    repositories.modifiers.save_modifier(
        ItemModifier(id="mod_warm", name="Warm", type=ModifierType.TEMPERATURE, sort_order=3)
    )


@pytest.fixture
def services(
    repositories: SimpleNamespace, seeded_catalog: None, fixed_now: datetime
) -> SimpleNamespace:
    clock = lambda: fixed_now  # noqa: E731
    return SimpleNamespace(
        menu=MenuService(
            menu_item_repository=repositories.menu_items,
            add_on_repository=repositories.add_ons,
            modifier_repository=repositories.modifiers,
            clock=clock,
        ),
        cart=CartService(
            menu_item_repository=repositories.menu_items,
            add_on_repository=repositories.add_ons,
            modifier_repository=repositories.modifiers,
            draft_repository=repositories.drafts,
            transaction_repository=repositories.transactions,
            clock=clock,
        ),
        analytics=AnalyticsService(
            transaction_repository=repositories.transactions,
            menu_item_repository=repositories.menu_items,
            clock=clock,
        ),
    )


@pytest.fixture
def client(services: SimpleNamespace) -> Iterator[TestClient]:
    app = create_app(
        menu_service=services.menu,
        cart_service=services.cart,
        analytics_service=services.analytics,
        api_keys={"barista-key": "user_123", "manager-key": "user_456"},
    )
    with TestClient(app) as test_client:
        yield test_client
