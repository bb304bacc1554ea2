"""Cart service for draft cart mutations, checkout and transaction history."""

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import TypeVar, cast

from cafe_pos_service.errors import (
    ConcurrentModificationError,
    InvalidModifierError,
    InvalidQuantityError,
    NotFoundError,
    StorageError,
    TransactionNotMutableError,
)
from cafe_pos_service.models.menu_models import (
    AddOn,
    DiscountType,
    ItemModifier,
    MenuItem,
    ModifierType,
)
from cafe_pos_service.models.transaction_models import (
    CartAddOn,
    CartLineItem,
    ModifierDetails,
    ModifierSelection,
    PopulatedCartAddOn,
    PopulatedLineItem,
    PopulatedTransaction,
    Transaction,
    TransactionStatus,
)
from cafe_pos_service.observability import traced
from cafe_pos_service.observability.metrics import (
    record_cart_conflict,
    record_cart_mutation,
    record_checkout,
)
from cafe_pos_service.repositories.menu_repositories import (
    AddOnRepository,
    ItemModifierRepository,
    MenuItemRepository,
)
from cafe_pos_service.repositories.transaction_repositories import (
    DraftCartRepository,
    TransactionRepository,
)
from cafe_pos_service.services.pricing import (
    MAX_QUANTITY,
    apply_totals,
    build_transaction_discount,
    compute_item_total,
    reprice_line_item,
    resolve_promotion,
    validate_quantity,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CartService:
    """Service for the per-user draft cart.

    Every mutation reads the user's draft, computes the new state with the
    pricing module and writes it back conditioned on the version it read.
    When another request got there first the whole mutation is re-run,
    up to max_conflict_retries attempts.
    """

    def __init__(
        self,
        menu_item_repository: MenuItemRepository,
        add_on_repository: AddOnRepository,
        modifier_repository: ItemModifierRepository,
        draft_repository: DraftCartRepository,
        transaction_repository: TransactionRepository,
        max_conflict_retries: int = 3,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the CartService.

        Args:
            menu_item_repository: Catalog lookup for menu items
            add_on_repository: Catalog lookup for add-ons
            modifier_repository: Catalog lookup for item modifiers
            draft_repository: Storage for draft carts
            transaction_repository: Storage for completed transactions
            max_conflict_retries: Attempts per mutation before a version conflict is surfaced
            clock: Returns the current time; used for promotions and timestamps
        """
        if max_conflict_retries < 1:
            raise ValueError("max_conflict_retries must be at least 1")

        self.menu_item_repository = menu_item_repository
        self.add_on_repository = add_on_repository
        self.modifier_repository = modifier_repository
        self.draft_repository = draft_repository
        self.transaction_repository = transaction_repository
        self.max_conflict_retries = max_conflict_retries
        self.clock = clock

    # Reads

    async def get_current_cart(self, user_id: str) -> PopulatedTransaction | None:
        """Get the user's draft cart with catalog details, or None if there is none."""
        draft = self.draft_repository.get_draft(user_id)
        if draft is None:
            return None
        return self._populate(draft)

    async def get_completed_transactions(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 10,
    ) -> list[PopulatedTransaction]:
        """List completed transactions, most recent first.

        Args:
            start: Optional inclusive lower bound on completion time
            end: Optional inclusive upper bound on completion time
            limit: Maximum number of transactions to return
        """
        transactions = self.transaction_repository.list_completed(start=start, end=end, limit=limit)
        return [self._populate(t) for t in transactions]

    async def get_transaction_by_id(self, transaction_id: str) -> PopulatedTransaction | None:
        """Get a completed transaction with catalog details, or None if missing."""
        transaction = self.transaction_repository.get_transaction(transaction_id)
        if transaction is None:
            return None
        return self._populate(transaction)

    # Mutations

    @traced("cart.add_to_cart")
    async def add_to_cart(
        self,
        user_id: str,
        menu_item_id: str,
        quantity: int,
        add_on_ids: list[str] | None = None,
        modifiers: ModifierSelection | None = None,
    ) -> Transaction:
        """Add a menu item to the user's draft cart, creating the draft if needed.

        The item's promotion is resolved now and stored on the line; later
        promotion changes do not affect it.

        Args:
            user_id: Owning user
            menu_item_id: Menu item to add
            quantity: Units to add, a positive integer
            add_on_ids: Add-ons to attach; unknown or ineligible ids are skipped
            modifiers: Optional temperature/sweetness selection

        Returns:
            The updated draft

        Raises:
            InvalidQuantityError: If quantity is not a positive integer
            NotFoundError: If the menu item or a selected modifier does not exist
            InvalidModifierError: If a modifier is not allowed for the item
            ConcurrentModificationError: If the draft kept changing underneath us
        """
        validate_quantity(quantity)

        menu_item = self.menu_item_repository.get_item(menu_item_id)
        if menu_item is None:
            raise NotFoundError(f"Menu item {menu_item_id} not found")
        if not menu_item.is_active:
            raise NotFoundError(f"Menu item {menu_item_id} is not available")

        selection = self._validate_modifiers(menu_item, modifiers)
        add_ons = self._resolve_add_ons(menu_item, add_on_ids or [])
        line = self._build_line_item(menu_item, quantity, add_ons, selection)

        def mutate(draft: Transaction | None) -> Transaction:
            now = self.clock()
            if draft is None:
                created = Transaction(
                    transaction_id=f"txn_{uuid.uuid4().hex}",
                    user_id=user_id,
                    status=TransactionStatus.DRAFT,
                    created_at=now,
                    updated_at=now,
                )
                return apply_totals(created, [line], None)

            updated = apply_totals(draft, [*draft.items, line], draft.transaction_discount)
            return updated.model_copy(update={"updated_at": now})

        result = cast(Transaction, await self._mutate("add_to_cart", user_id, mutate))
        logger.info(
            f"Added {quantity} x {menu_item_id} to cart {result.transaction_id} for user {user_id}"
        )
        return result

    @traced("cart.update_cart_item_quantity")
    async def update_cart_item_quantity(
        self, user_id: str, line_item_id: str, quantity: int
    ) -> Transaction | None:
        """Change a line's quantity; zero or less removes the line.

        Removing the last line deletes the draft.

        Args:
            user_id: Owning user
            line_item_id: Stable id of the line to change
            quantity: New quantity

        Returns:
            The updated draft, or None if the draft was deleted

        Raises:
            InvalidQuantityError: If quantity is not an integer or exceeds MAX_QUANTITY
            NotFoundError: If there is no draft or no such line
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantityError(f"Quantity must be an integer, got {quantity!r}")
        if quantity > MAX_QUANTITY:
            raise InvalidQuantityError(f"Quantity cannot exceed {MAX_QUANTITY}, got {quantity}")

        def mutate(draft: Transaction | None) -> Transaction | None:
            draft = self._require_draft(draft, user_id)
            if draft.find_item(line_item_id) is None:
                raise NotFoundError(f"Line item {line_item_id} not found in cart")

            if quantity <= 0:
                items = [i for i in draft.items if i.line_item_id != line_item_id]
            else:
                items = [
                    reprice_line_item(i, quantity) if i.line_item_id == line_item_id else i
                    for i in draft.items
                ]

            if not items:
                return None

            updated = apply_totals(draft, items, draft.transaction_discount)
            return updated.model_copy(update={"updated_at": self.clock()})

        result = await self._mutate("update_cart_item_quantity", user_id, mutate)
        if result is None:
            logger.info(f"Removed last line {line_item_id}; cart deleted for user {user_id}")
        return result

    @traced("cart.apply_transaction_discount")
    async def apply_transaction_discount(
        self, user_id: str, discount_type: DiscountType, value: Decimal
    ) -> Transaction:
        """Apply a transaction-level discount, replacing any existing one.

        The amount is computed over the cart's current subtotal.

        Raises:
            InvalidDiscountError: If value is non-positive or a percentage above 100
            NotFoundError: If the user has no draft
        """
        build_transaction_discount(Decimal("0"), discount_type, value)

        def mutate(draft: Transaction | None) -> Transaction:
            draft = self._require_draft(draft, user_id)
            discount = build_transaction_discount(draft.subtotal, discount_type, value)
            updated = apply_totals(draft, draft.items, discount)
            return updated.model_copy(update={"updated_at": self.clock()})

        return cast(Transaction, await self._mutate("apply_transaction_discount", user_id, mutate))

    @traced("cart.remove_transaction_discount")
    async def remove_transaction_discount(self, user_id: str) -> Transaction:
        """Remove the transaction-level discount.

        Raises:
            NotFoundError: If the user has no draft
        """

        def mutate(draft: Transaction | None) -> Transaction:
            draft = self._require_draft(draft, user_id)
            updated = apply_totals(draft, draft.items, None)
            return updated.model_copy(update={"updated_at": self.clock()})

        return cast(Transaction, await self._mutate("remove_transaction_discount", user_id, mutate))

    async def clear_cart(self, user_id: str) -> bool:
        """Delete the user's draft.

        Returns:
            True if a draft was deleted, False if there was none

        Raises:
            StorageError: If the delete failed
        """
        draft = self.draft_repository.get_draft(user_id)
        if draft is None:
            return False

        if not self.draft_repository.delete_draft(user_id):
            raise StorageError(f"Failed to clear cart for user {user_id}")

        record_cart_mutation("clear_cart")
        logger.info(f"Cleared cart {draft.transaction_id} for user {user_id}")
        return True

    @traced("cart.checkout")
    async def checkout(self, user_id: str) -> str:
        """Complete the user's draft.

        The draft is removed and the completed transaction written in one
        atomic operation.

        Returns:
            The transaction id

        Raises:
            NotFoundError: If the user has no draft
            ConcurrentModificationError: If the draft kept changing underneath us
        """

        def attempt() -> Transaction:
            draft = self._require_draft(self.draft_repository.get_draft(user_id), user_id)
            now = self.clock()
            completed = draft.model_copy(
                update={
                    "status": TransactionStatus.COMPLETED,
                    "completed_at": now,
                    "updated_at": now,
                    "version": draft.version + 1,
                }
            )

            saved = self.transaction_repository.complete_checkout(
                completed,
                draft_table_name=self.draft_repository.table_name,
                expected_draft_version=draft.version,
            )
            if not saved:
                raise StorageError(f"Failed to check out cart {draft.transaction_id}")
            return completed

        completed = await self._with_retries("checkout", attempt)
        record_checkout(completed.total, len(completed.items))
        logger.info(
            f"Checked out transaction {completed.transaction_id} for user {user_id}, "
            f"total {completed.total}"
        )
        return completed.transaction_id

    # Internals

    async def _mutate(
        self,
        operation: str,
        user_id: str,
        mutate: Callable[[Transaction | None], Transaction | None],
    ) -> Transaction | None:
        """Run a read-modify-write of the user's draft with version checking.

        `mutate` receives the current draft (or None) and returns the new
        draft, or None to delete it.
        """

        def attempt() -> Transaction | None:
            before = self.draft_repository.get_draft(user_id)
            after = mutate(before)
            return self._write(before, after)

        result = await self._with_retries(operation, attempt)
        record_cart_mutation(operation)
        return result

    async def _with_retries(self, operation: str, attempt: Callable[[], T]) -> T:
        for attempt_number in range(1, self.max_conflict_retries + 1):
            try:
                return attempt()
            except ConcurrentModificationError:
                record_cart_conflict(operation)
                if attempt_number == self.max_conflict_retries:
                    logger.error(
                        f"{operation} gave up after {attempt_number} version conflicts"
                    )
                    raise
                logger.warning(
                    f"{operation} hit a version conflict (attempt {attempt_number}), retrying"
                )

        raise ConcurrentModificationError(f"{operation} could not be applied")  # pragma: no cover

    def _write(self, before: Transaction | None, after: Transaction | None) -> Transaction | None:
        if after is None:
            if before is not None and not self.draft_repository.delete_draft(
                before.user_id, before.version
            ):
                raise StorageError(f"Failed to delete cart for user {before.user_id}")
            return None

        if before is None:
            if not self.draft_repository.create_draft(after):
                raise StorageError(f"Failed to create cart for user {after.user_id}")
            return after

        after = after.model_copy(update={"version": before.version + 1})
        if not self.draft_repository.save_draft(after, expected_version=before.version):
            raise StorageError(f"Failed to save cart for user {after.user_id}")
        return after

    def _require_draft(self, draft: Transaction | None, user_id: str) -> Transaction:
        if draft is None:
            raise NotFoundError(f"No active cart found for user {user_id}")
        if not draft.is_draft:
            raise TransactionNotMutableError(
                f"Transaction {draft.transaction_id} is {draft.status.value}"
            )
        return draft

    def _validate_modifiers(
        self, menu_item: MenuItem, modifiers: ModifierSelection | None
    ) -> ModifierSelection | None:
        """Check each selected modifier against the item's allowed set for its axis."""
        if modifiers is None or modifiers.is_empty:
            return None

        eligibility = menu_item.item_modifier_eligibility
        for modifier_type, modifier_id in (
            (ModifierType.TEMPERATURE, modifiers.temperature),
            (ModifierType.SWEETNESS, modifiers.sweetness),
        ):
            if modifier_id is None:
                continue

            if modifier_id not in eligibility.allowed_for(modifier_type):
                raise InvalidModifierError(
                    f"{modifier_type.value.capitalize()} modifier {modifier_id} "
                    f"not allowed for menu item {menu_item.id}"
                )

            modifier = self.modifier_repository.get_modifier(modifier_id)
            if modifier is None:
                raise NotFoundError(f"Item modifier {modifier_id} not found")
            if modifier.type != modifier_type:
                raise InvalidModifierError(
                    f"Modifier {modifier_id} is a {modifier.type.value} modifier, "
                    f"not {modifier_type.value}"
                )

        return modifiers

    def _resolve_add_ons(self, menu_item: MenuItem, add_on_ids: list[str]) -> list[AddOn]:
        add_ons: list[AddOn] = []
        for add_on_id in add_on_ids:
            add_on = self.add_on_repository.get_add_on(add_on_id)
            if add_on is None:
                logger.warning(f"Skipping unknown add-on {add_on_id} for menu item {menu_item.id}")
                continue
            if not menu_item.accepts_add_on(add_on.type):
                logger.warning(
                    f"Skipping add-on {add_on_id} ({add_on.type.value}): menu item "
                    f"{menu_item.id} is {menu_item.add_on_eligibility.value}"
                )
                continue
            add_ons.append(add_on)
        return add_ons

    def _build_line_item(
        self,
        menu_item: MenuItem,
        quantity: int,
        add_ons: list[AddOn],
        modifiers: ModifierSelection | None,
    ) -> CartLineItem:
        promotion = resolve_promotion(menu_item, self.clock())
        cart_add_ons = [CartAddOn(add_on_id=a.id, price=a.price) for a in add_ons]
        unit_discount = promotion.discount.amount if promotion.discount else Decimal("0")

        return CartLineItem(
            line_item_id=f"line_{uuid.uuid4().hex[:12]}",
            menu_item_id=menu_item.id,
            quantity=quantity,
            base_price=menu_item.cogm,
            add_ons=cart_add_ons,
            modifiers=modifiers,
            applied_discount=promotion.discount,
            item_total=compute_item_total(
                menu_item.cogm,
                sum((a.price for a in cart_add_ons), Decimal("0")),
                unit_discount,
                quantity,
            ),
        )

    def _populate(self, transaction: Transaction) -> PopulatedTransaction:
        """Attach current catalog records to each line item."""
        menu_items: dict[str, MenuItem | None] = {}
        add_ons: dict[str, AddOn | None] = {}
        modifiers: dict[str, ItemModifier | None] = {}

        def menu_item(menu_item_id: str) -> MenuItem | None:
            if menu_item_id not in menu_items:
                menu_items[menu_item_id] = self.menu_item_repository.get_item(menu_item_id)
            return menu_items[menu_item_id]

        def add_on(add_on_id: str) -> AddOn | None:
            if add_on_id not in add_ons:
                add_ons[add_on_id] = self.add_on_repository.get_add_on(add_on_id)
            return add_ons[add_on_id]

        def modifier(modifier_id: str | None) -> ItemModifier | None:
            if modifier_id is None:
                return None
            if modifier_id not in modifiers:
                modifiers[modifier_id] = self.modifier_repository.get_modifier(modifier_id)
            return modifiers[modifier_id]

        items = []
        for line in transaction.items:
            selection = line.modifiers or ModifierSelection()
            items.append(
                PopulatedLineItem(
                    **line.model_dump(exclude={"add_ons"}),
                    add_ons=[
                        PopulatedCartAddOn(
                            add_on_id=a.add_on_id, price=a.price, details=add_on(a.add_on_id)
                        )
                        for a in line.add_ons
                    ],
                    menu_item=menu_item(line.menu_item_id),
                    modifier_details=ModifierDetails(
                        temperature=modifier(selection.temperature),
                        sweetness=modifier(selection.sweetness),
                    ),
                )
            )

        return PopulatedTransaction(**transaction.model_dump(exclude={"items"}), items=items)
