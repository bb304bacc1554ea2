"""Sales analytics result models."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class WeekdaySales(BaseModel):
    """Sales total for one weekday of the current week."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    day: str = Field(..., description="Weekday name, Monday..Friday")
    total: Decimal = Field(default=Decimal("0"), ge=0)


class DailySales(BaseModel):
    """Sales total for one calendar date."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    date: str = Field(..., description="ISO date (YYYY-MM-DD)")
    total: Decimal = Field(default=Decimal("0"), ge=0)


class MenuItemRanking(BaseModel):
    """Units sold and revenue for one menu item."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    menu_item_id: str
    name: str
    quantity: int = Field(default=0, ge=0)
    revenue: Decimal = Field(default=Decimal("0"), ge=0)
