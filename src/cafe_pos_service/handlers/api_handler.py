"""FastAPI application exposing the POS operations to the UI layer."""

import logging
from decimal import Decimal

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import AwareDatetime, BaseModel, Field

from cafe_pos_service.auth.api_dependencies import get_current_user_id
from cafe_pos_service.auth.api_key_validator import APIKeyIdentityProvider
from cafe_pos_service.errors import NotFoundError, PosError
from cafe_pos_service.models.analytics_models import DailySales, MenuItemRanking, WeekdaySales
from cafe_pos_service.models.menu_models import (
    AddOn,
    AddOnEligibility,
    AddOnType,
    DiscountType,
    ItemModifier,
    MenuCategory,
    MenuItem,
    MenuItemStatus,
    ModifierEligibility,
    ModifierType,
    PricedMenuItem,
)
from cafe_pos_service.models.transaction_models import (
    ModifierSelection,
    PopulatedTransaction,
    Transaction,
)
from cafe_pos_service.services.analytics_service import AnalyticsService
from cafe_pos_service.services.cart_service import CartService
from cafe_pos_service.services.menu_service import MenuService
from cafe_pos_service.services.pricing import MAX_FIXED_DISCOUNT, MAX_QUANTITY

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class MenuItemCreateRequest(BaseModel):
    """Request body for creating a menu item."""

    name: str = Field(..., min_length=1)
    category: MenuCategory
    cogm: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    add_on_eligibility: AddOnEligibility = AddOnEligibility.NONE
    item_modifier_eligibility: ModifierEligibility | None = None


class PromotionFields(BaseModel):
    """Status and promotion fields shared by single and bulk updates."""

    status: MenuItemStatus | None = None
    has_promo: bool | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(None, max_digits=12, decimal_places=2)
    promo_start_date: AwareDatetime | None = None
    promo_end_date: AwareDatetime | None = None
    promo_active: bool | None = None


class MenuItemUpdateRequest(PromotionFields):
    """Request body for a partial menu item update; only sent fields change."""

    name: str | None = Field(None, min_length=1)
    category: MenuCategory | None = None
    cogm: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)
    add_on_eligibility: AddOnEligibility | None = None
    item_modifier_eligibility: ModifierEligibility | None = None


class BulkUpdateRequest(BaseModel):
    """Request body for updating several menu items at once."""

    ids: list[str] = Field(..., min_length=1)
    updates: PromotionFields


class BulkDeleteRequest(BaseModel):
    """Request body for deleting several menu items at once."""

    ids: list[str] = Field(..., min_length=1)


class DeleteResponse(BaseModel):
    """Number of records deleted."""

    deleted: int


class AddOnCreateRequest(BaseModel):
    """Request body for creating an add-on."""

    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    type: AddOnType


class ItemModifierCreateRequest(BaseModel):
    """Request body for creating an item modifier."""

    name: str = Field(..., min_length=1)
    type: ModifierType
    sort_order: int = 0


class AddToCartRequest(BaseModel):
    """Request body for adding a menu item to the cart."""

    menu_item_id: str
    quantity: int = Field(1, le=MAX_QUANTITY)
    add_on_ids: list[str] = Field(default_factory=list)
    modifiers: ModifierSelection | None = None


class UpdateQuantityRequest(BaseModel):
    """Request body for changing a line's quantity."""

    quantity: int = Field(..., le=MAX_QUANTITY)


class TransactionDiscountRequest(BaseModel):
    """Request body for applying a transaction-level discount."""

    type: DiscountType
    value: Decimal = Field(..., le=MAX_FIXED_DISCOUNT, decimal_places=2)


class ClearCartResponse(BaseModel):
    """Whether a draft cart was deleted."""

    cleared: bool


class CheckoutResponse(BaseModel):
    """Identity of the completed transaction."""

    transaction_id: str


def create_app(
    menu_service: MenuService,
    cart_service: CartService,
    analytics_service: AnalyticsService,
    api_keys: dict[str, str],
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        menu_service: Service for the menu catalog
        cart_service: Service for carts, checkout and history
        analytics_service: Service for sales reports
        api_keys: Mapping of valid API keys to user ids

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Café POS API",
        description="Menu, cart, checkout and sales analytics for the café point of sale",
        version="1.0.0",
    )

    app.state.menu_service = menu_service
    app.state.cart_service = cart_service
    app.state.analytics_service = analytics_service
    app.state.identity_provider = APIKeyIdentityProvider(api_keys=api_keys)

    @app.exception_handler(PosError)
    async def handle_pos_error(_request: Request, exc: PosError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}")
        else:
            logger.info(f"{exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": exc.code},
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    # Menu items

    @app.get("/menu-items", response_model=list[PricedMenuItem], tags=["Menu"])
    async def list_menu_items(_user_id: str = Depends(get_current_user_id)) -> list[PricedMenuItem]:
        """List all menu items with their current price."""
        items: list[PricedMenuItem] = await app.state.menu_service.list_menu_items()
        return items

    @app.get("/menu-items/pos", response_model=list[PricedMenuItem], tags=["Menu"])
    async def list_menu_items_for_pos(
        _user_id: str = Depends(get_current_user_id),
    ) -> list[PricedMenuItem]:
        """List active menu items with their current price."""
        items: list[PricedMenuItem] = await app.state.menu_service.list_menu_items_for_pos()
        return items

    @app.post("/menu-items", response_model=MenuItem, status_code=201, tags=["Menu"])
    async def create_menu_item(
        body: MenuItemCreateRequest,
        _user_id: str = Depends(get_current_user_id),
    ) -> MenuItem:
        """Create a menu item."""
        item: MenuItem = await app.state.menu_service.create_menu_item(
            name=body.name,
            category=body.category,
            cogm=body.cogm,
            add_on_eligibility=body.add_on_eligibility,
            item_modifier_eligibility=body.item_modifier_eligibility,
        )
        return item

    @app.patch("/menu-items/{menu_item_id}", response_model=MenuItem, tags=["Menu"])
    async def update_menu_item(
        menu_item_id: str,
        body: MenuItemUpdateRequest,
        _user_id: str = Depends(get_current_user_id),
    ) -> MenuItem:
        """Partially update a menu item, including its promotion."""
        item: MenuItem = await app.state.menu_service.update_menu_item(
            menu_item_id, body.model_dump(exclude_unset=True)
        )
        return item

    @app.post("/menu-items/bulk-update", response_model=list[MenuItem], tags=["Menu"])
    async def bulk_update_menu_items(
        body: BulkUpdateRequest,
        _user_id: str = Depends(get_current_user_id),
    ) -> list[MenuItem]:
        """Apply the same status/promotion change to several menu items."""
        items: list[MenuItem] = await app.state.menu_service.bulk_update_menu_items(
            body.ids, body.updates.model_dump(exclude_unset=True)
        )
        return items

    @app.post("/menu-items/bulk-delete", response_model=DeleteResponse, tags=["Menu"])
    async def bulk_delete_menu_items(
        body: BulkDeleteRequest,
        _user_id: str = Depends(get_current_user_id),
    ) -> DeleteResponse:
        """Delete several menu items."""
        deleted: int = await app.state.menu_service.bulk_delete_menu_items(body.ids)
        return DeleteResponse(deleted=deleted)

    @app.delete("/menu-items/{menu_item_id}", response_model=DeleteResponse, tags=["Menu"])
    async def delete_menu_item(
        menu_item_id: str,
        _user_id: str = Depends(get_current_user_id),
    ) -> DeleteResponse:
        """Delete a menu item."""
        await app.state.menu_service.delete_menu_item(menu_item_id)
        return DeleteResponse(deleted=1)

    # Add-ons and modifiers

    @app.get("/add-ons", response_model=list[AddOn], tags=["Add-ons"])
    async def list_add_ons(_user_id: str = Depends(get_current_user_id)) -> list[AddOn]:
        """List add-ons."""
        add_ons: list[AddOn] = await app.state.menu_service.list_add_ons()
        return add_ons

    @app.post("/add-ons", response_model=AddOn, status_code=201, tags=["Add-ons"])
    async def create_add_on(
        body: AddOnCreateRequest,
        _user_id: str = Depends(get_current_user_id),
    ) -> AddOn:
        """Create an add-on."""
        add_on: AddOn = await app.state.menu_service.create_add_on(
            name=body.name, price=body.price, add_on_type=body.type
        )
        return add_on

    @app.post("/add-ons/initialize", response_model=list[AddOn], tags=["Add-ons"])
    async def initialize_add_ons(_user_id: str = Depends(get_current_user_id)) -> list[AddOn]:
        """Create the default add-ons if none exist."""
        created: list[AddOn] = await app.state.menu_service.initialize_default_add_ons()
        return created

    @app.get("/item-modifiers", response_model=list[ItemModifier], tags=["Modifiers"])
    async def list_item_modifiers(
        _user_id: str = Depends(get_current_user_id),
    ) -> list[ItemModifier]:
        """List modifiers, temperature first, each axis by sort order."""
        modifiers: list[ItemModifier] = await app.state.menu_service.list_item_modifiers()
        return modifiers

    @app.post("/item-modifiers", response_model=ItemModifier, status_code=201, tags=["Modifiers"])
    async def create_item_modifier(
        body: ItemModifierCreateRequest,
        _user_id: str = Depends(get_current_user_id),
    ) -> ItemModifier:
        """Create an item modifier."""
        modifier: ItemModifier = await app.state.menu_service.create_item_modifier(
            name=body.name, modifier_type=body.type, sort_order=body.sort_order
        )
        return modifier

    @app.post("/item-modifiers/initialize", response_model=list[ItemModifier], tags=["Modifiers"])
    async def initialize_item_modifiers(
        _user_id: str = Depends(get_current_user_id),
    ) -> list[ItemModifier]:
        """Create any missing default modifiers."""
        created: list[ItemModifier] = await app.state.menu_service.initialize_default_modifiers()
        return created

    # Cart

    @app.get("/cart", response_model=PopulatedTransaction | None, tags=["Cart"])
    async def get_current_cart(
        user_id: str = Depends(get_current_user_id),
    ) -> PopulatedTransaction | None:
        """Get the caller's draft cart, or null if there is none."""
        cart: PopulatedTransaction | None = await app.state.cart_service.get_current_cart(user_id)
        return cart

    @app.post("/cart/items", response_model=Transaction, tags=["Cart"])
    async def add_to_cart(
        body: AddToCartRequest,
        user_id: str = Depends(get_current_user_id),
    ) -> Transaction:
        """Add a menu item to the caller's cart."""
        cart: Transaction = await app.state.cart_service.add_to_cart(
            user_id=user_id,
            menu_item_id=body.menu_item_id,
            quantity=body.quantity,
            add_on_ids=body.add_on_ids,
            modifiers=body.modifiers,
        )
        return cart

    @app.patch("/cart/items/{line_item_id}", response_model=Transaction | None, tags=["Cart"])
    async def update_cart_item_quantity(
        line_item_id: str,
        body: UpdateQuantityRequest,
        user_id: str = Depends(get_current_user_id),
    ) -> Transaction | None:
        """Change a line's quantity; returns null when the cart was emptied and deleted."""
        cart: Transaction | None = await app.state.cart_service.update_cart_item_quantity(
            user_id=user_id, line_item_id=line_item_id, quantity=body.quantity
        )
        return cart

    @app.post("/cart/discount", response_model=Transaction, tags=["Cart"])
    async def apply_transaction_discount(
        body: TransactionDiscountRequest,
        user_id: str = Depends(get_current_user_id),
    ) -> Transaction:
        """Apply a transaction-level discount to the caller's cart."""
        cart: Transaction = await app.state.cart_service.apply_transaction_discount(
            user_id=user_id, discount_type=body.type, value=body.value
        )
        return cart

    @app.delete("/cart/discount", response_model=Transaction, tags=["Cart"])
    async def remove_transaction_discount(
        user_id: str = Depends(get_current_user_id),
    ) -> Transaction:
        """Remove the transaction-level discount from the caller's cart."""
        cart: Transaction = await app.state.cart_service.remove_transaction_discount(
            user_id=user_id
        )
        return cart

    @app.delete("/cart", response_model=ClearCartResponse, tags=["Cart"])
    async def clear_cart(user_id: str = Depends(get_current_user_id)) -> ClearCartResponse:
        """Delete the caller's draft cart."""
        cleared: bool = await app.state.cart_service.clear_cart(user_id)
        return ClearCartResponse(cleared=cleared)

    @app.post("/cart/checkout", response_model=CheckoutResponse, tags=["Cart"])
    async def checkout(user_id: str = Depends(get_current_user_id)) -> CheckoutResponse:
        """Complete the caller's draft cart."""
        transaction_id: str = await app.state.cart_service.checkout(user_id=user_id)
        return CheckoutResponse(transaction_id=transaction_id)

    # Transactions

    @app.get("/transactions", response_model=list[PopulatedTransaction], tags=["Transactions"])
    async def get_completed_transactions(
        start: AwareDatetime | None = None,
        end: AwareDatetime | None = None,
        limit: int = Query(10, ge=1, le=100),
        _user_id: str = Depends(get_current_user_id),
    ) -> list[PopulatedTransaction]:
        """List completed transactions, most recent first."""
        transactions: list[PopulatedTransaction] = (
            await app.state.cart_service.get_completed_transactions(
                start=start, end=end, limit=limit
            )
        )
        return transactions

    @app.get(
        "/transactions/{transaction_id}",
        response_model=PopulatedTransaction,
        tags=["Transactions"],
    )
    async def get_transaction(
        transaction_id: str,
        _user_id: str = Depends(get_current_user_id),
    ) -> PopulatedTransaction:
        """Get a completed transaction."""
        transaction: PopulatedTransaction | None = (
            await app.state.cart_service.get_transaction_by_id(transaction_id)
        )
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    # Analytics

    @app.get("/analytics/weekly-sales", response_model=list[WeekdaySales], tags=["Analytics"])
    async def get_weekly_sales(_user_id: str = Depends(get_current_user_id)) -> list[WeekdaySales]:
        """Sales per weekday, Monday to Friday of the current week."""
        sales: list[WeekdaySales] = await app.state.analytics_service.get_weekly_sales()
        return sales

    @app.get("/analytics/monthly-sales", response_model=list[DailySales], tags=["Analytics"])
    async def get_monthly_sales(_user_id: str = Depends(get_current_user_id)) -> list[DailySales]:
        """Sales per day over the trailing 30 days."""
        sales: list[DailySales] = await app.state.analytics_service.get_monthly_sales()
        return sales

    @app.get(
        "/analytics/menu-item-ranking",
        response_model=list[MenuItemRanking],
        tags=["Analytics"],
    )
    async def get_menu_item_ranking(
        start: AwareDatetime | None = None,
        end: AwareDatetime | None = None,
        _user_id: str = Depends(get_current_user_id),
    ) -> list[MenuItemRanking]:
        """Menu items ranked by units sold, optionally within a date range."""
        ranking: list[MenuItemRanking] = await app.state.analytics_service.get_menu_item_ranking(
            start=start, end=end
        )
        return ranking

    return app
