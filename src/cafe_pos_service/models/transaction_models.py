"""Cart and transaction models.

A Transaction in DRAFT status is a user's cart. Drafts are stored keyed by user
id (one per user) and carry a version counter used for optimistic concurrency.
Completed transactions are stored keyed by transaction id and never change.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cafe_pos_service.models.menu_models import AddOn, DiscountType, ItemModifier, MenuItem


class TransactionStatus(str, Enum):
    """Enumeration of transaction status values."""

    DRAFT = "draft"
    COMPLETED = "completed"


class AppliedDiscount(BaseModel):
    """Immutable discount snapshot.

    For a line item, amount is the per-unit discount taken off the base price.
    For a transaction, amount is taken off the whole subtotal.
    """

    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    type: DiscountType = Field(..., description="Discount type")
    value: Decimal = Field(..., description="Configured discount value")
    amount: Decimal = Field(..., description="Computed discount amount", ge=0)

    def to_dynamodb_item(self) -> dict[str, Any]:
        return {"type": self.type.value, "value": self.value, "amount": self.amount}

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "AppliedDiscount":
        return cls(
            type=DiscountType(item["type"]),
            value=Decimal(str(item["value"])),
            amount=Decimal(str(item["amount"])),
        )


class CartAddOn(BaseModel):
    """Add-on attached to a line item with its price at add time."""

    model_config = ConfigDict(frozen=True, json_encoders={Decimal: str})

    add_on_id: str
    price: Decimal = Field(..., ge=0)


class ModifierSelection(BaseModel):
    """Selected modifier per axis, at most one each."""

    model_config = ConfigDict(frozen=True)

    temperature: str | None = None
    sweetness: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.temperature is None and self.sweetness is None


class CartLineItem(BaseModel):
    """Single line of a cart."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    line_item_id: str = Field(..., description="Stable identifier of the line")
    menu_item_id: str = Field(..., description="Referenced menu item")
    quantity: int = Field(..., description="Units ordered", gt=0)
    base_price: Decimal = Field(..., description="Menu item cogm at add time", ge=0)
    add_ons: list[CartAddOn] = Field(default_factory=list)
    modifiers: ModifierSelection | None = None
    applied_discount: AppliedDiscount | None = None
    item_total: Decimal = Field(..., description="Discounted line total", ge=0)

    @property
    def add_on_total(self) -> Decimal:
        return sum((add_on.price for add_on in self.add_ons), Decimal("0"))

    @property
    def unit_discount(self) -> Decimal:
        return self.applied_discount.amount if self.applied_discount else Decimal("0")

    def to_dynamodb_item(self) -> dict[str, Any]:
        item: dict[str, Any] = {
            "line_item_id": self.line_item_id,
            "menu_item_id": self.menu_item_id,
            "quantity": self.quantity,
            "base_price": self.base_price,
            "add_ons": [{"add_on_id": a.add_on_id, "price": a.price} for a in self.add_ons],
            "item_total": self.item_total,
        }

        if self.modifiers is not None and not self.modifiers.is_empty:
            modifiers: dict[str, str] = {}
            if self.modifiers.temperature is not None:
                modifiers["temperature"] = self.modifiers.temperature
            if self.modifiers.sweetness is not None:
                modifiers["sweetness"] = self.modifiers.sweetness
            item["modifiers"] = modifiers

        if self.applied_discount is not None:
            item["applied_discount"] = self.applied_discount.to_dynamodb_item()

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "CartLineItem":
        data: dict[str, Any] = {
            "line_item_id": item["line_item_id"],
            "menu_item_id": item["menu_item_id"],
            "quantity": int(item["quantity"]),
            "base_price": Decimal(str(item["base_price"])),
            "add_ons": [
                CartAddOn(add_on_id=a["add_on_id"], price=Decimal(str(a["price"])))
                for a in item.get("add_ons", [])
            ],
            "item_total": Decimal(str(item["item_total"])),
        }

        if "modifiers" in item:
            data["modifiers"] = ModifierSelection(
                temperature=item["modifiers"].get("temperature"),
                sweetness=item["modifiers"].get("sweetness"),
            )

        if "applied_discount" in item:
            data["applied_discount"] = AppliedDiscount.from_dynamodb_item(
                item["applied_discount"]
            )

        return cls(**data)


class Transaction(BaseModel):
    """Cart aggregate and, once checked out, the sales record.

    Monetary totals are derived by the pricing module; they are stored so that
    history and analytics reads do not need to recompute them.
    """

    model_config = ConfigDict(json_encoders={Decimal: str})

    transaction_id: str = Field(..., description="Unique transaction identifier")
    user_id: str = Field(..., description="Owning user")
    status: TransactionStatus = Field(default=TransactionStatus.DRAFT)
    items: list[CartLineItem] = Field(default_factory=list)
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    total_discount: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(default=Decimal("0"), ge=0)
    cogs: Decimal = Field(default=Decimal("0"), ge=0)
    transaction_discount: AppliedDiscount | None = None
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    version: int = Field(default=1, description="Optimistic concurrency counter", ge=1)

    @property
    def is_draft(self) -> bool:
        return self.status == TransactionStatus.DRAFT

    def find_item(self, line_item_id: str) -> CartLineItem | None:
        for item in self.items:
            if item.line_item_id == line_item_id:
                return item
        return None

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "transaction_id": self.transaction_id,
            "user_id": self.user_id,
            "status": self.status.value,
            "items": [line.to_dynamodb_item() for line in self.items],
            "subtotal": self.subtotal,
            "total_discount": self.total_discount,
            "total": self.total,
            "cogs": self.cogs,
            "created_at": self.created_at.isoformat(),
            "version": self.version,
        }

        if self.transaction_discount is not None:
            item["transaction_discount"] = self.transaction_discount.to_dynamodb_item()

        if self.updated_at is not None:
            item["updated_at"] = self.updated_at.isoformat()

        if self.completed_at is not None:
            item["completed_at"] = self.completed_at.isoformat()

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Transaction":
        """Create Transaction from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Transaction: Parsed model instance
        """
        data: dict[str, Any] = {
            "transaction_id": item["transaction_id"],
            "user_id": item["user_id"],
            "status": TransactionStatus(item["status"]),
            "items": [CartLineItem.from_dynamodb_item(line) for line in item.get("items", [])],
            "subtotal": Decimal(str(item["subtotal"])),
            "total_discount": Decimal(str(item["total_discount"])),
            "total": Decimal(str(item["total"])),
            "cogs": Decimal(str(item["cogs"])),
            "created_at": datetime.fromisoformat(item["created_at"]),
            "version": int(item.get("version", 1)),
        }

        if "transaction_discount" in item:
            data["transaction_discount"] = AppliedDiscount.from_dynamodb_item(
                item["transaction_discount"]
            )

        if "updated_at" in item:
            data["updated_at"] = datetime.fromisoformat(item["updated_at"])

        if "completed_at" in item:
            data["completed_at"] = datetime.fromisoformat(item["completed_at"])

        return cls(**data)


class PopulatedCartAddOn(CartAddOn):
    """Cart add-on with the current catalog record attached (None if deleted)."""

    details: AddOn | None = None


class ModifierDetails(BaseModel):
    """Catalog records of the selected modifiers."""

    temperature: ItemModifier | None = None
    sweetness: ItemModifier | None = None


class PopulatedLineItem(CartLineItem):
    """Line item with menu item, add-on and modifier details for display."""

    add_ons: list[PopulatedCartAddOn] = Field(default_factory=list)
    menu_item: MenuItem | None = None
    modifier_details: ModifierDetails = Field(default_factory=ModifierDetails)


class PopulatedTransaction(Transaction):
    """Transaction whose line items carry catalog details."""

    items: list[PopulatedLineItem] = Field(default_factory=list)
