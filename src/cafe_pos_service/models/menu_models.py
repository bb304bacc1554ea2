"""Menu catalog models.

These models represent menu items, add-ons and item modifiers stored in DynamoDB.
Prices are kept as Decimal so they round-trip through DynamoDB unchanged.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


class MenuCategory(str, Enum):
    """Menu categories shown on the POS."""

    COFFEE = "Coffee"
    NON_COFFEE = "Non-Coffee"
    MERCH = "Merch"
    PROMO = "Promo"
    ADD_ON = "Add-on"
    CONSIGNMENT = "Consignment"
    BUNDLE = "Bundle"


class AddOnEligibility(str, Enum):
    """Which add-on types a menu item accepts."""

    COFFEE_ONLY = "coffee-only"
    COFFEE_BASED = "coffee-based"
    NON_COFFEE = "non-coffee"
    NONE = "none"


class MenuItemStatus(str, Enum):
    """Whether a menu item can currently be sold."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class DiscountType(str, Enum):
    """Discount calculation mode."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class AddOnType(str, Enum):
    """Add-on kinds."""

    EXTRA_SHOT = "extra-shot"
    OAT_MILK = "oat-milk"


class ModifierType(str, Enum):
    """Modifier axes."""

    TEMPERATURE = "temperature"
    SWEETNESS = "sweetness"


# Add-on types each eligibility class accepts
ADD_ON_ELIGIBILITY_RULES: dict[AddOnEligibility, frozenset[AddOnType]] = {
    AddOnEligibility.COFFEE_BASED: frozenset({AddOnType.EXTRA_SHOT, AddOnType.OAT_MILK}),
    AddOnEligibility.COFFEE_ONLY: frozenset({AddOnType.EXTRA_SHOT}),
    AddOnEligibility.NON_COFFEE: frozenset({AddOnType.OAT_MILK}),
    AddOnEligibility.NONE: frozenset(),
}


class ModifierEligibility(BaseModel):
    """Modifier ids a menu item allows, per axis."""

    temperature: list[str] = Field(default_factory=list)
    sweetness: list[str] = Field(default_factory=list)

    def allowed_for(self, modifier_type: ModifierType) -> list[str]:
        """Return the allowed modifier ids for an axis."""
        if modifier_type == ModifierType.TEMPERATURE:
            return self.temperature
        return self.sweetness


class MenuItem(BaseModel):
    """Menu item model.

    The item's promotion lives in the flat promo fields. Whether the promotion
    applies at a given moment is decided by the pricing module, not here.
    """

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the menu item")
    name: str = Field(..., description="Item name")
    category: MenuCategory = Field(..., description="Menu category")
    cogm: Decimal = Field(..., description="Base sell price before discounts", gt=0)
    add_on_eligibility: AddOnEligibility = Field(
        default=AddOnEligibility.NONE, description="Add-on types the item accepts"
    )
    item_modifier_eligibility: ModifierEligibility = Field(
        default_factory=ModifierEligibility, description="Allowed modifier ids per axis"
    )
    status: MenuItemStatus = Field(default=MenuItemStatus.ACTIVE, description="Sale status")
    has_promo: bool = Field(default=False, description="Whether a promotion is configured")
    discount_type: DiscountType | None = Field(None, description="Promotion discount type")
    discount_value: Decimal | None = Field(None, description="Promotion discount value")
    promo_start_date: AwareDatetime | None = Field(None, description="Promotion start (inclusive)")
    promo_end_date: AwareDatetime | None = Field(None, description="Promotion end (inclusive)")
    promo_active: bool = Field(default=False, description="Promotion on/off switch")

    @property
    def is_active(self) -> bool:
        return self.status == MenuItemStatus.ACTIVE

    def accepts_add_on(self, add_on_type: AddOnType) -> bool:
        """Check whether this item's eligibility class permits an add-on type."""
        return add_on_type in ADD_ON_ELIGIBILITY_RULES[self.add_on_eligibility]

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "cogm": self.cogm,
            "add_on_eligibility": self.add_on_eligibility.value,
            "item_modifier_eligibility": {
                "temperature": list(self.item_modifier_eligibility.temperature),
                "sweetness": list(self.item_modifier_eligibility.sweetness),
            },
            "status": self.status.value,
            "has_promo": self.has_promo,
            "promo_active": self.promo_active,
        }

        if self.discount_type is not None:
            item["discount_type"] = self.discount_type.value

        if self.discount_value is not None:
            item["discount_value"] = self.discount_value

        if self.promo_start_date is not None:
            item["promo_start_date"] = self.promo_start_date.isoformat()

        if self.promo_end_date is not None:
            item["promo_end_date"] = self.promo_end_date.isoformat()

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            MenuItem: Parsed model instance
        """
        eligibility = item.get("item_modifier_eligibility") or {}
        data: dict[str, Any] = {
            "id": item["id"],
            "name": item["name"],
            "category": MenuCategory(item["category"]),
            "cogm": Decimal(str(item["cogm"])),
            "add_on_eligibility": AddOnEligibility(item.get("add_on_eligibility", "none")),
            "item_modifier_eligibility": ModifierEligibility(
                temperature=list(eligibility.get("temperature", [])),
                sweetness=list(eligibility.get("sweetness", [])),
            ),
            "status": MenuItemStatus(item.get("status", "active")),
            "has_promo": bool(item.get("has_promo", False)),
            "promo_active": bool(item.get("promo_active", False)),
        }

        if "discount_type" in item:
            data["discount_type"] = DiscountType(item["discount_type"])

        if "discount_value" in item:
            data["discount_value"] = Decimal(str(item["discount_value"]))

        if "promo_start_date" in item:
            data["promo_start_date"] = datetime.fromisoformat(item["promo_start_date"])

        if "promo_end_date" in item:
            data["promo_end_date"] = datetime.fromisoformat(item["promo_end_date"])

        return cls(**data)


class AddOn(BaseModel):
    """Flat-priced supplement that can be added to eligible items."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the add-on")
    name: str = Field(..., description="Add-on name")
    price: Decimal = Field(..., description="Flat price", ge=0)
    type: AddOnType = Field(..., description="Add-on type")

    def to_dynamodb_item(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "type": self.type.value,
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "AddOn":
        return cls(
            id=item["id"],
            name=item["name"],
            price=Decimal(str(item["price"])),
            type=AddOnType(item["type"]),
        )


class ItemModifier(BaseModel):
    """Named option along a modifier axis (e.g. Hot, Less Sugar)."""

    id: str = Field(..., description="Unique identifier for the modifier")
    name: str = Field(..., description="Modifier name")
    type: ModifierType = Field(..., description="Modifier axis")
    sort_order: int = Field(default=0, description="Display order within the axis")

    def to_dynamodb_item(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "sort_order": self.sort_order,
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "ItemModifier":
        return cls(
            id=item["id"],
            name=item["name"],
            type=ModifierType(item["type"]),
            sort_order=int(item.get("sort_order", 0)),
        )


class PricedMenuItem(MenuItem):
    """Menu item annotated with its price at the time it was listed."""

    final_price: Decimal = Field(..., description="Price after any active promotion", ge=0)
    has_active_promo: bool = Field(default=False, description="Whether the promotion applies now")
