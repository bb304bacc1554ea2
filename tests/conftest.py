"""Shared pytest fixtures and configuration for all tests."""

import os
from datetime import UTC, datetime
from decimal import Decimal

import pytest

# Entry-point modules skip building the real app when imported under test
os.environ.setdefault("ENVIRONMENT", "test")

from cafe_pos_service.models.menu_models import (  # noqa: E402
    AddOn,
    AddOnEligibility,
    AddOnType,
    DiscountType,
    ItemModifier,
    MenuCategory,
    MenuItem,
    ModifierEligibility,
    ModifierType,
)


@pytest.fixture
def fixed_now() -> datetime:
    """Fixture providing a fixed current time (Wednesday 13 March 2024, 10:00 UTC)."""
    return datetime(2024, 3, 13, 10, 0, tzinfo=UTC)


@pytest.fixture
def mock_user_id() -> str:
    """Fixture providing a standard test user ID."""
    return "user_123"


@pytest.fixture
def latte() -> MenuItem:
    """Coffee item priced 20000 with a 20% promotion running through March 2024."""
    return MenuItem(
        id="menu_latte",
        name="Latte",
        category=MenuCategory.COFFEE,
        cogm=Decimal("20000"),
        add_on_eligibility=AddOnEligibility.COFFEE_BASED,
        item_modifier_eligibility=ModifierEligibility(
            temperature=["mod_hot", "mod_cold"],
            sweetness=["mod_normal"],
        ),
        has_promo=True,
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("20"),
        promo_start_date=datetime(2024, 3, 1, tzinfo=UTC),
        promo_end_date=datetime(2024, 3, 31, 23, 59, 59, tzinfo=UTC),
        promo_active=True,
    )


@pytest.fixture
def americano() -> MenuItem:
    """Coffee item priced 20000 without a promotion."""
    return MenuItem(
        id="menu_americano",
        name="Americano",
        category=MenuCategory.COFFEE,
        cogm=Decimal("20000"),
        add_on_eligibility=AddOnEligibility.COFFEE_ONLY,
        item_modifier_eligibility=ModifierEligibility(temperature=["mod_hot", "mod_cold"]),
    )


@pytest.fixture
def tote_bag() -> MenuItem:
    """Merch item that accepts no add-ons or modifiers."""
    return MenuItem(
        id="menu_tote",
        name="Tote Bag",
        category=MenuCategory.MERCH,
        cogm=Decimal("45000"),
    )


@pytest.fixture
def extra_shot() -> AddOn:
    """Fixture providing the extra shot add-on."""
    return AddOn(id="addon_shot", name="Extra Shot", price=Decimal("6000"), type=AddOnType.EXTRA_SHOT)


@pytest.fixture
def oat_milk() -> AddOn:
    """Fixture providing the oat milk add-on."""
    return AddOn(id="addon_oat", name="Oat Milk", price=Decimal("3000"), type=AddOnType.OAT_MILK)


@pytest.fixture
def modifiers() -> dict[str, ItemModifier]:
    """Fixture providing temperature and sweetness modifiers keyed by id."""
    return {
        "mod_hot": ItemModifier(id="mod_hot", name="Hot", type=ModifierType.TEMPERATURE, sort_order=1),
        "mod_cold": ItemModifier(
            id="mod_cold", name="Cold", type=ModifierType.TEMPERATURE, sort_order=4
        ),
        "mod_normal": ItemModifier(
            id="mod_normal", name="Normal", type=ModifierType.SWEETNESS, sort_order=3
        ),
    }
