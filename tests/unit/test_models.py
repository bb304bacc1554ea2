"""Unit tests for menu and transaction models."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from cafe_pos_service.models.menu_models import (
    AddOn,
    AddOnEligibility,
    AddOnType,
    DiscountType,
    ItemModifier,
    MenuCategory,
    MenuItem,
    MenuItemStatus,
    ModifierType,
)
from cafe_pos_service.models.transaction_models import (
    AppliedDiscount,
    CartAddOn,
    CartLineItem,
    ModifierSelection,
    Transaction,
    TransactionStatus,
)


@pytest.mark.unit
class TestMenuItem:
    """Test suite for MenuItem model."""

    def test_defaults(self) -> None:
        """Test that a new item is active with no promotion."""
        item = MenuItem(id="menu_1", name="Espresso", category=MenuCategory.COFFEE, cogm=Decimal("15000"))

        assert item.is_active is True
        assert item.has_promo is False
        assert item.add_on_eligibility == AddOnEligibility.NONE
        assert item.item_modifier_eligibility.temperature == []

    def test_cogm_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            MenuItem(id="menu_1", name="Free", category=MenuCategory.PROMO, cogm=Decimal("0"))

    def test_promo_dates_must_be_timezone_aware(self) -> None:
        with pytest.raises(ValidationError):
            MenuItem(
                id="menu_1",
                name="Latte",
                category=MenuCategory.COFFEE,
                cogm=Decimal("20000"),
                promo_start_date=datetime(2024, 3, 1),
            )

    @pytest.mark.parametrize(
        ("eligibility", "accepted"),
        [
            (AddOnEligibility.COFFEE_BASED, {AddOnType.EXTRA_SHOT, AddOnType.OAT_MILK}),
            (AddOnEligibility.COFFEE_ONLY, {AddOnType.EXTRA_SHOT}),
            (AddOnEligibility.NON_COFFEE, {AddOnType.OAT_MILK}),
            (AddOnEligibility.NONE, set()),
        ],
    )
    def test_accepts_add_on(
        self, americano: MenuItem, eligibility: AddOnEligibility, accepted: set[AddOnType]
    ) -> None:
        """Test the add-on eligibility rules."""
        item = americano.model_copy(update={"add_on_eligibility": eligibility})

        assert {t for t in AddOnType if item.accepts_add_on(t)} == accepted

    def test_dynamodb_round_trip_with_promotion(self, latte: MenuItem) -> None:
        """Test conversion to and from the DynamoDB item format."""
        item = latte.to_dynamodb_item()

        assert item["cogm"] == Decimal("20000")
        assert item["discount_type"] == "percentage"
        assert item["promo_start_date"] == "2024-03-01T00:00:00+00:00"
        assert item["item_modifier_eligibility"]["temperature"] == ["mod_hot", "mod_cold"]
        assert MenuItem.from_dynamodb_item(item) == latte

    def test_dynamodb_item_omits_unset_promotion(self, tote_bag: MenuItem) -> None:
        item = tote_bag.to_dynamodb_item()

        assert "discount_type" not in item
        assert "promo_start_date" not in item

    def test_from_dynamodb_item_applies_defaults(self) -> None:
        """Test that sparse records parse with defaults."""
        item = MenuItem.from_dynamodb_item(
            {"id": "menu_1", "name": "Tea", "category": "Non-Coffee", "cogm": Decimal("12000")}
        )

        assert item.status == MenuItemStatus.ACTIVE
        assert item.add_on_eligibility == AddOnEligibility.NONE
        assert item.discount_type is None


@pytest.mark.unit
class TestCatalogRecords:
    """Test suite for AddOn and ItemModifier models."""

    def test_add_on_from_dynamodb(self) -> None:
        add_on = AddOn.from_dynamodb_item(
            {"id": "addon_1", "name": "Oat Milk", "price": Decimal("3000"), "type": "oat-milk"}
        )

        assert add_on.price == Decimal("3000")
        assert add_on.type == AddOnType.OAT_MILK

    def test_modifier_sort_order_defaults_to_zero(self) -> None:
        modifier = ItemModifier.from_dynamodb_item({"id": "mod_1", "name": "Hot", "type": "temperature"})

        assert modifier.sort_order == 0
        assert modifier.type == ModifierType.TEMPERATURE


@pytest.mark.unit
class TestTransaction:
    """Test suite for cart and transaction models."""

    @pytest.fixture
    def line(self) -> CartLineItem:
        return CartLineItem(
            line_item_id="line_1",
            menu_item_id="menu_latte",
            quantity=2,
            base_price=Decimal("20000"),
            add_ons=[CartAddOn(add_on_id="addon_shot", price=Decimal("6000"))],
            modifiers=ModifierSelection(temperature="mod_hot"),
            applied_discount=AppliedDiscount(
                type=DiscountType.PERCENTAGE, value=Decimal("20"), amount=Decimal("4000")
            ),
            item_total=Decimal("44000"),
        )

    @pytest.fixture
    def transaction(self, line: CartLineItem) -> Transaction:
        now = datetime(2024, 3, 13, 10, 0, tzinfo=UTC)
        return Transaction(
            transaction_id="txn_1",
            user_id="user_123",
            items=[line],
            subtotal=Decimal("52000"),
            total_discount=Decimal("13000"),
            total=Decimal("39000"),
            cogs=Decimal("40000"),
            transaction_discount=AppliedDiscount(
                type=DiscountType.FIXED, value=Decimal("5000"), amount=Decimal("5000")
            ),
            created_at=now,
            updated_at=now,
            version=3,
        )

    def test_line_item_properties(self, line: CartLineItem) -> None:
        assert line.add_on_total == Decimal("6000")
        assert line.unit_discount == Decimal("4000")

    def test_quantity_must_be_positive(self, line: CartLineItem) -> None:
        with pytest.raises(ValidationError):
            CartLineItem(**{**line.model_dump(), "quantity": 0})

    def test_applied_discount_is_frozen(self, line: CartLineItem) -> None:
        """Test that a discount snapshot cannot be changed in place."""
        assert line.applied_discount is not None

        with pytest.raises(ValidationError):
            line.applied_discount.amount = Decimal("1")  # type: ignore[misc]

    def test_find_item(self, transaction: Transaction) -> None:
        assert transaction.find_item("line_1") is transaction.items[0]
        assert transaction.find_item("line_missing") is None

    def test_new_transaction_is_draft_at_version_one(self) -> None:
        draft = Transaction(transaction_id="txn_2", user_id="user_123", created_at=datetime.now(UTC))

        assert draft.is_draft is True
        assert draft.version == 1
        assert draft.items == []

    def test_dynamodb_round_trip(self, transaction: Transaction) -> None:
        """Test conversion to and from the DynamoDB item format."""
        item = transaction.to_dynamodb_item()

        assert item["status"] == "draft"
        assert item["version"] == 3
        assert item["items"][0]["modifiers"] == {"temperature": "mod_hot"}
        assert item["transaction_discount"]["amount"] == Decimal("5000")
        assert "completed_at" not in item
        assert Transaction.from_dynamodb_item(item) == transaction

    def test_completed_round_trip(self, transaction: Transaction) -> None:
        completed = transaction.model_copy(
            update={
                "status": TransactionStatus.COMPLETED,
                "completed_at": datetime(2024, 3, 13, 11, 0, tzinfo=UTC),
            }
        )

        parsed = Transaction.from_dynamodb_item(completed.to_dynamodb_item())

        assert parsed.is_draft is False
        assert parsed.completed_at == completed.completed_at

    def test_line_without_modifiers_omits_them(self, line: CartLineItem) -> None:
        plain = line.model_copy(update={"modifiers": ModifierSelection()})

        assert "modifiers" not in plain.to_dynamodb_item()
