"""Menu service for managing the catalog of menu items, add-ons and modifiers."""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from cafe_pos_service.errors import (
    InvalidDiscountError,
    InvalidMenuItemError,
    NotFoundError,
    StorageError,
)
from cafe_pos_service.models.menu_models import (
    AddOn,
    AddOnEligibility,
    AddOnType,
    ItemModifier,
    MenuCategory,
    MenuItem,
    MenuItemStatus,
    ModifierEligibility,
    ModifierType,
    PricedMenuItem,
)
from cafe_pos_service.observability import traced
from cafe_pos_service.repositories.menu_repositories import (
    AddOnRepository,
    ItemModifierRepository,
    MenuItemRepository,
)
from cafe_pos_service.services.pricing import resolve_promotion, validate_discount

logger = logging.getLogger(__name__)

DEFAULT_ADD_ONS: list[tuple[str, Decimal, AddOnType]] = [
    ("Extra Shot", Decimal("6000"), AddOnType.EXTRA_SHOT),
    ("Oat Milk", Decimal("3000"), AddOnType.OAT_MILK),
]

DEFAULT_MODIFIERS: dict[ModifierType, list[tuple[str, int]]] = {
    ModifierType.TEMPERATURE: [("Hot", 1), ("Warm", 2), ("Less Ice", 3), ("Cold", 4)],
    ModifierType.SWEETNESS: [("Not Sweet", 1), ("Less Sugar", 2), ("Normal", 3)],
}

# Fields a bulk update may touch
BULK_UPDATE_FIELDS = frozenset(
    {
        "status",
        "has_promo",
        "discount_type",
        "discount_value",
        "promo_start_date",
        "promo_end_date",
        "promo_active",
    }
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class MenuService:
    """Service for managing the café menu catalog.

    Besides plain CRUD, listing annotates each item with the price a customer
    would pay right now, using the same promotion rules as the cart.
    """

    def __init__(
        self,
        menu_item_repository: MenuItemRepository,
        add_on_repository: AddOnRepository,
        modifier_repository: ItemModifierRepository,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the MenuService.

        Args:
            menu_item_repository: Repository for menu items
            add_on_repository: Repository for add-ons
            modifier_repository: Repository for item modifiers
            clock: Returns the current time; used for promotion windows
        """
        self.menu_item_repository = menu_item_repository
        self.add_on_repository = add_on_repository
        self.modifier_repository = modifier_repository
        self.clock = clock

    # Menu items

    def _price(self, item: MenuItem, now: datetime) -> PricedMenuItem:
        promotion = resolve_promotion(item, now)
        return PricedMenuItem(
            **item.model_dump(),
            final_price=promotion.effective_price,
            has_active_promo=promotion.discount is not None,
        )

    async def list_menu_items(self) -> list[PricedMenuItem]:
        """List every menu item with its current price."""
        now = self.clock()
        items = self.menu_item_repository.list_items()
        return [self._price(item, now) for item in sorted(items, key=lambda i: i.name)]

    async def list_menu_items_for_pos(self) -> list[PricedMenuItem]:
        """List only active menu items with their current price."""
        now = self.clock()
        items = [item for item in self.menu_item_repository.list_items() if item.is_active]
        return [self._price(item, now) for item in sorted(items, key=lambda i: i.name)]

    async def get_menu_item(self, menu_item_id: str) -> MenuItem:
        """Get a menu item by ID.

        Raises:
            NotFoundError: If the menu item does not exist
        """
        item = self.menu_item_repository.get_item(menu_item_id)
        if item is None:
            raise NotFoundError(f"Menu item {menu_item_id} not found")
        return item

    @traced("menu.create_menu_item")
    async def create_menu_item(
        self,
        name: str,
        category: MenuCategory,
        cogm: Decimal,
        add_on_eligibility: AddOnEligibility = AddOnEligibility.NONE,
        item_modifier_eligibility: ModifierEligibility | None = None,
    ) -> MenuItem:
        """Create an active menu item without a promotion.

        Args:
            name: Item name
            category: Menu category
            cogm: Base sell price
            add_on_eligibility: Add-on types the item accepts
            item_modifier_eligibility: Allowed modifier ids per axis

        Returns:
            The created MenuItem

        Raises:
            StorageError: If the item could not be saved
        """
        item = MenuItem(
            id=_new_id("menu"),
            name=name,
            category=category,
            cogm=cogm,
            add_on_eligibility=add_on_eligibility,
            item_modifier_eligibility=item_modifier_eligibility or ModifierEligibility(),
            status=MenuItemStatus.ACTIVE,
            has_promo=False,
        )

        if not self.menu_item_repository.save_item(item):
            raise StorageError(f"Failed to save menu item {name}")

        logger.info(f"Created menu item {item.id} ({item.name})")
        return item

    @traced("menu.update_menu_item")
    async def update_menu_item(self, menu_item_id: str, updates: dict[str, Any]) -> MenuItem:
        """Apply a partial update to a menu item.

        Args:
            menu_item_id: Menu item to update
            updates: Field values to overwrite

        Returns:
            The updated MenuItem

        Raises:
            NotFoundError: If the menu item does not exist
            InvalidMenuItemError: If a field value is invalid
            InvalidDiscountError: If the resulting promotion is invalid
            StorageError: If the item could not be saved
        """
        item = await self.get_menu_item(menu_item_id)
        updated = self._merge(item, updates)

        if not self.menu_item_repository.save_item(updated):
            raise StorageError(f"Failed to save menu item {menu_item_id}")

        logger.info(f"Updated menu item {menu_item_id}: {', '.join(sorted(updates))}")
        return updated

    @traced("menu.bulk_update_menu_items")
    async def bulk_update_menu_items(
        self, menu_item_ids: list[str], updates: dict[str, Any]
    ) -> list[MenuItem]:
        """Apply the same status/promotion update to several menu items.

        Every item is validated before any is written.

        Raises:
            InvalidMenuItemError: If updates touch fields other than status and promotion
            NotFoundError: If any menu item does not exist
            InvalidDiscountError: If a resulting promotion is invalid
            StorageError: If an item could not be saved
        """
        unsupported = set(updates) - BULK_UPDATE_FIELDS
        if unsupported:
            fields = ", ".join(sorted(unsupported))
            raise InvalidMenuItemError(f"Bulk update cannot change: {fields}")

        merged = [self._merge(await self.get_menu_item(i), updates) for i in menu_item_ids]

        for item in merged:
            if not self.menu_item_repository.save_item(item):
                raise StorageError(f"Failed to save menu item {item.id}")

        logger.info(f"Bulk updated {len(merged)} menu items")
        return merged

    async def delete_menu_item(self, menu_item_id: str) -> None:
        """Delete a menu item.

        Line items already in carts or transactions keep their snapshots.

        Raises:
            NotFoundError: If the menu item does not exist
            StorageError: If the delete failed
        """
        await self.get_menu_item(menu_item_id)

        if not self.menu_item_repository.delete_item(menu_item_id):
            raise StorageError(f"Failed to delete menu item {menu_item_id}")

        logger.info(f"Deleted menu item {menu_item_id}")

    async def bulk_delete_menu_items(self, menu_item_ids: list[str]) -> int:
        """Delete several menu items; returns how many were deleted.

        Raises:
            StorageError: If a delete failed
        """
        for menu_item_id in menu_item_ids:
            if not self.menu_item_repository.delete_item(menu_item_id):
                raise StorageError(f"Failed to delete menu item {menu_item_id}")

        logger.info(f"Bulk deleted {len(menu_item_ids)} menu items")
        return len(menu_item_ids)

    def _merge(self, item: MenuItem, updates: dict[str, Any]) -> MenuItem:
        """Overlay `updates` on `item`, validate, and check the promotion."""
        data = item.model_dump()
        data.update({k: v for k, v in updates.items() if k != "id"})

        try:
            merged = MenuItem.model_validate(data)
        except ValidationError as e:
            raise InvalidMenuItemError(f"Invalid menu item update: {e}") from e

        if merged.has_promo and merged.discount_type is not None:
            if merged.discount_value is None:
                raise InvalidDiscountError("Promotion requires a discount value")
            validate_discount(merged.discount_type, merged.discount_value)

        if (
            merged.promo_start_date is not None
            and merged.promo_end_date is not None
            and merged.promo_end_date < merged.promo_start_date
        ):
            raise InvalidDiscountError("Promotion end date precedes its start date")

        return merged

    # Add-ons

    async def list_add_ons(self) -> list[AddOn]:
        """List every add-on."""
        return sorted(self.add_on_repository.list_add_ons(), key=lambda a: a.name)

    async def create_add_on(self, name: str, price: Decimal, add_on_type: AddOnType) -> AddOn:
        """Create an add-on.

        Raises:
            StorageError: If the add-on could not be saved
        """
        add_on = AddOn(id=_new_id("addon"), name=name, price=price, type=add_on_type)

        if not self.add_on_repository.save_add_on(add_on):
            raise StorageError(f"Failed to save add-on {name}")

        logger.info(f"Created add-on {add_on.id} ({add_on.name})")
        return add_on

    async def initialize_default_add_ons(self) -> list[AddOn]:
        """Create the default add-ons when the catalog has none.

        Returns:
            The add-ons created (empty if any add-on already existed)
        """
        if self.add_on_repository.list_add_ons():
            return []

        return [
            await self.create_add_on(name, price, add_on_type)
            for name, price, add_on_type in DEFAULT_ADD_ONS
        ]

    # Item modifiers

    async def list_item_modifiers(self) -> list[ItemModifier]:
        """List temperature modifiers then sweetness modifiers, each by sort order."""
        return [
            *self.modifier_repository.list_by_type(ModifierType.TEMPERATURE),
            *self.modifier_repository.list_by_type(ModifierType.SWEETNESS),
        ]

    async def create_item_modifier(
        self, name: str, modifier_type: ModifierType, sort_order: int
    ) -> ItemModifier:
        """Create an item modifier.

        Raises:
            StorageError: If the modifier could not be saved
        """
        modifier = ItemModifier(
            id=_new_id("mod"), name=name, type=modifier_type, sort_order=sort_order
        )

        if not self.modifier_repository.save_modifier(modifier):
            raise StorageError(f"Failed to save item modifier {name}")

        logger.info(f"Created {modifier_type.value} modifier {modifier.id} ({modifier.name})")
        return modifier

    async def initialize_default_modifiers(self) -> list[ItemModifier]:
        """Create any default modifiers missing from the catalog, matched by name."""
        created: list[ItemModifier] = []

        for modifier_type, defaults in DEFAULT_MODIFIERS.items():
            existing = {m.name for m in self.modifier_repository.list_by_type(modifier_type)}
            for name, sort_order in defaults:
                if name not in existing:
                    created.append(
                        await self.create_item_modifier(name, modifier_type, sort_order)
                    )

        return created
