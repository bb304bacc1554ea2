"""Cart pricing engine.

Pure functions that resolve menu item promotions and keep a cart's
subtotal, discount, total and cogs consistent. Nothing here does I/O;
the cart service calls these inside each read-modify-write.

Totals follow these rules for every cart state:
    subtotal       = sum((base_price + add-ons) * quantity)
    total_discount = sum(unit_discount * quantity) + transaction discount amount
    total          = max(0, subtotal - total_discount)
    cogs           = sum(base_price * quantity)
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from cafe_pos_service.errors import InvalidDiscountError, InvalidQuantityError
from cafe_pos_service.models.menu_models import DiscountType, MenuItem
from cafe_pos_service.models.transaction_models import (
    AppliedDiscount,
    CartLineItem,
    Transaction,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

# Upper bounds that keep every stored amount inside DynamoDB's number range
MAX_QUANTITY = 999
MAX_FIXED_DISCOUNT = Decimal("1000000000")


@dataclass(frozen=True)
class PromotionResult:
    """Effective unit price of a menu item and the discount that produced it.

    Attributes:
        effective_price: Base price after the promotion
        discount: Snapshot to store on the line item, None when no promotion applies
    """

    effective_price: Decimal
    discount: AppliedDiscount | None = None


@dataclass(frozen=True)
class CartTotals:
    """Derived monetary fields of a cart."""

    subtotal: Decimal
    item_discount: Decimal
    total_discount: Decimal
    total: Decimal
    cogs: Decimal


def validate_discount(discount_type: DiscountType, value: Decimal) -> None:
    """Check a discount value against its type's range and a two-decimal scale.

    Percentages must lie in (0, 100], fixed amounts in (0, MAX_FIXED_DISCOUNT].

    Raises:
        InvalidDiscountError: If the value is out of range for its type
    """
    if not value.is_finite():
        raise InvalidDiscountError(f"Discount value must be a finite number, got {value}")
    if value <= ZERO:
        raise InvalidDiscountError("Discount value must be greater than zero")
    if discount_type == DiscountType.PERCENTAGE and value > HUNDRED:
        raise InvalidDiscountError("Percentage discount cannot exceed 100")
    if discount_type == DiscountType.FIXED and value > MAX_FIXED_DISCOUNT:
        raise InvalidDiscountError(f"Fixed discount cannot exceed {MAX_FIXED_DISCOUNT}")
    if value != value.quantize(CENT):
        raise InvalidDiscountError(f"Discount value has more than two decimal places: {value}")


def validate_quantity(quantity: int) -> None:
    """Reject anything that is not an integer from 1 to MAX_QUANTITY.

    Raises:
        InvalidQuantityError: If quantity is not an int in range
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(f"Quantity must be a positive integer, got {quantity!r}")
    if quantity > MAX_QUANTITY:
        raise InvalidQuantityError(f"Quantity cannot exceed {MAX_QUANTITY}, got {quantity}")


def compute_discount_amount(
    discount_type: DiscountType, value: Decimal, discountable: Decimal
) -> Decimal:
    """Compute how much of `discountable` a discount takes off.

    The result never exceeds `discountable`, so the discounted value floors at zero.
    """
    if discount_type == DiscountType.PERCENTAGE:
        amount = discountable * (value / HUNDRED)
    else:
        amount = value
    return max(ZERO, min(discountable, amount))


def is_promotion_active(menu_item: MenuItem, now: datetime) -> bool:
    """Check whether a menu item's promotion applies at `now`.

    Both window bounds are inclusive.
    """
    if not (menu_item.has_promo and menu_item.promo_active):
        return False
    if menu_item.promo_start_date is None or menu_item.promo_end_date is None:
        return False
    if menu_item.discount_type is None:
        return False
    return menu_item.promo_start_date <= now <= menu_item.promo_end_date


def resolve_promotion(menu_item: MenuItem, now: datetime) -> PromotionResult:
    """Resolve the unit price of a menu item at `now`.

    Args:
        menu_item: Menu item with its promotion fields
        now: Current time (timezone-aware)

    Returns:
        PromotionResult with the effective price and the discount snapshot
    """
    base_price = menu_item.cogm
    discount_type = menu_item.discount_type
    if discount_type is None or not is_promotion_active(menu_item, now):
        return PromotionResult(effective_price=base_price)

    value = menu_item.discount_value or ZERO
    amount = compute_discount_amount(discount_type, value, base_price)

    return PromotionResult(
        effective_price=max(ZERO, base_price - amount),
        discount=AppliedDiscount(type=discount_type, value=value, amount=amount),
    )


def compute_item_total(
    base_price: Decimal,
    add_on_total: Decimal,
    unit_discount: Decimal,
    quantity: int,
) -> Decimal:
    """Line total: (discounted base + add-ons) * quantity."""
    discounted_base = max(ZERO, base_price - unit_discount)
    return (discounted_base + add_on_total) * quantity


def reprice_line_item(item: CartLineItem, quantity: int) -> CartLineItem:
    """Return a copy of `item` at a new quantity.

    The stored discount snapshot is reused as-is; the live menu item is not consulted.
    """
    return item.model_copy(
        update={
            "quantity": quantity,
            "item_total": compute_item_total(
                item.base_price, item.add_on_total, item.unit_discount, quantity
            ),
        }
    )


def calculate_totals(
    items: list[CartLineItem],
    transaction_discount: AppliedDiscount | None = None,
) -> CartTotals:
    """Derive subtotal, discounts, total and cogs for a list of line items.

    Args:
        items: Cart line items
        transaction_discount: Transaction-level discount whose amount is kept as stored

    Returns:
        CartTotals for the cart
    """
    subtotal = sum(((i.base_price + i.add_on_total) * i.quantity for i in items), ZERO)
    item_discount = sum((i.unit_discount * i.quantity for i in items), ZERO)
    cogs = sum((i.base_price * i.quantity for i in items), ZERO)
    transaction_amount = transaction_discount.amount if transaction_discount else ZERO
    total_discount = item_discount + transaction_amount

    return CartTotals(
        subtotal=subtotal,
        item_discount=item_discount,
        total_discount=total_discount,
        total=max(ZERO, subtotal - total_discount),
        cogs=cogs,
    )


def build_transaction_discount(
    subtotal: Decimal, discount_type: DiscountType, value: Decimal
) -> AppliedDiscount:
    """Validate and compute a transaction-level discount over `subtotal`.

    Raises:
        InvalidDiscountError: If the value is out of range for its type
    """
    validate_discount(discount_type, value)
    amount = compute_discount_amount(discount_type, value, subtotal)
    return AppliedDiscount(type=discount_type, value=value, amount=amount)


def apply_totals(
    transaction: Transaction,
    items: list[CartLineItem],
    transaction_discount: AppliedDiscount | None,
) -> Transaction:
    """Return a copy of `transaction` with new items, discount and recomputed totals."""
    totals = calculate_totals(items, transaction_discount)
    return transaction.model_copy(
        update={
            "items": items,
            "transaction_discount": transaction_discount,
            "subtotal": totals.subtotal,
            "total_discount": totals.total_discount,
            "total": totals.total,
            "cogs": totals.cogs,
        }
    )
