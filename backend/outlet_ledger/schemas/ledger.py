"""Live inventory output and override schemas."""

from __future__ import annotations

import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class DailyInventoryRecord(BaseModel):
    """One day of one product's ledger at one outlet.

    ``*_whole`` fields are in the product's display unit; ``*_sub`` fields are
    sub-units of a conversion pair and stay 0 for standalone products.
    """

    model_config = ConfigDict(frozen=True)

    date: dt.date
    opening_whole: float = 0.0
    opening_sub: float = 0.0
    received_whole: float = 0.0
    received_sub: float = 0.0
    wastage_whole: float = 0.0
    wastage_sub: float = 0.0
    sold_whole: float = 0.0
    sold_sub: float = 0.0
    current_whole: float = 0.0
    current_sub: float = 0.0
    discrepancy_whole: float = 0.0
    discrepancy_sub: float = 0.0
    manually_edited_date: Optional[dt.date] = None
    replace_inventory_date: Optional[dt.date] = None

    def has_activity(self) -> bool:
        """True when any quantity on the record is non-zero."""
        return any(
            value != 0
            for value in (
                self.opening_whole, self.opening_sub,
                self.received_whole, self.received_sub,
                self.wastage_whole, self.wastage_sub,
                self.sold_whole, self.sold_sub,
                self.current_whole, self.current_sub,
            )
        )


class ProductInventoryHistory(BaseModel):
    """Daily records for one product (or conversion pair) at one outlet."""

    model_config = ConfigDict(frozen=True)

    product_id: int
    product_name: str
    unit: str
    outlet: str
    sub_unit_product_id: Optional[int] = None
    sub_unit_name: Optional[str] = None
    conversion_factor: Optional[int] = None
    show_in_stock: bool = True
    records: List[DailyInventoryRecord] = Field(default_factory=list)


class LiveInventoryResponse(BaseModel):
    """Response for the live inventory listing."""

    items: List[ProductInventoryHistory]
    total: int
    outlet: str
    dates: List[dt.date]


class WindowResponse(BaseModel):
    dates: List[dt.date]
    range: Literal["week", "month"]


class OverrideRequest(BaseModel):
    """Set the current stock of a product at an outlet on a date."""

    outlet: str = Field(..., min_length=1, max_length=100)
    product_id: int
    date: dt.date
    whole: float
    sub: float = 0.0


class StockCountResponse(BaseModel):
    product_id: int
    quantity: float
    opening_stock: Optional[float] = None
    manually_edited_date: Optional[dt.date] = None

    model_config = {"from_attributes": True}


class OverrideResponse(BaseModel):
    """Summary of the stock check the override was written to."""

    stock_check_id: int
    outlet: str
    date: dt.date
    completed_by: Optional[str] = None
    created: bool
    counts: List[StockCountResponse]
