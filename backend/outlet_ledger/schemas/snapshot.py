"""Read-only snapshot schemas consumed by the live inventory engine.

Every schema is frozen and built with ``from_attributes`` straight from the
ORM rows, so an engine pass works on a consistent copy of the store that no
concurrent write can change underneath it.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from outlet_ledger.models.outlet import OutletType
from outlet_ledger.models.product import ProductCategory
from outlet_ledger.models.reports import SourceUnit
from outlet_ledger.models.transfer import TransferStatus

logger = logging.getLogger(__name__)

_SNAPSHOT_CONFIG = ConfigDict(from_attributes=True, frozen=True)


class OutletSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    id: int
    name: str
    outlet_type: OutletType
    location: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.outlet_type == OutletType.PRODUCTION


class ProductSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    id: int
    name: str
    unit: str
    category: ProductCategory
    show_in_stock: bool = True
    sales_based_raw_calc: bool = False


class ConversionSnapshot(BaseModel):
    """1 whole-side product = ``factor`` sub-unit products."""

    model_config = _SNAPSHOT_CONFIG

    id: Optional[int] = None
    whole_product_id: int
    sub_unit_product_id: int
    factor: int = Field(gt=0)


class StockCountSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    product_id: int
    quantity: float = 0.0
    opening_stock: Optional[float] = None
    received_stock: Optional[float] = None
    wastage: Optional[float] = None
    manually_edited_date: Optional[dt.date] = None
    auto_filled_received_from_prod_req: Optional[float] = None


class StockCheckSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    id: Optional[int] = None
    outlet: str
    date: dt.date
    timestamp: int
    completed_by: Optional[str] = None
    replace_all_inventory: bool = False
    counts: tuple[StockCountSnapshot, ...] = ()

    def count_for(self, product_id: int) -> Optional[StockCountSnapshot]:
        """First count for ``product_id`` in this check, if any."""
        for count in self.counts:
            if count.product_id == product_id:
                return count
        return None


class TransferSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    id: Optional[int] = None
    product_id: int
    from_outlet: str
    to_outlet: str
    request_date: Optional[dt.date] = None
    quantity: float
    status: TransferStatus


class ProductionLineSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    product_id: int
    quantity_whole: float = 0.0
    quantity_slices: float = 0.0


class ProdsReqSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    product_id: int
    prods_req_whole: float = 0.0
    prods_req_slices: float = 0.0


class ProductionReportSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    id: Optional[int] = None
    outlet: str
    date: dt.date
    timestamp: int
    lines: tuple[ProductionLineSnapshot, ...] = ()
    prods_req: tuple[ProdsReqSnapshot, ...] = ()


class SalesLineSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    product_id: int
    sold_whole: float = 0.0
    sold_slices: float = 0.0
    source_unit: Optional[SourceUnit] = None


class RawConsumptionSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    raw_product_id: int
    consumed_whole: float = 0.0
    consumed_slices: float = 0.0


class SalesReportSnapshot(BaseModel):
    model_config = _SNAPSHOT_CONFIG

    id: Optional[int] = None
    outlet: str
    date: dt.date
    timestamp: int
    lines: tuple[SalesLineSnapshot, ...] = ()
    raw_consumption: tuple[RawConsumptionSnapshot, ...] = ()


class LegacyEntrySnapshot(BaseModel):
    """Old-format reconciliation; payloads keep their original camelCase keys."""

    model_config = _SNAPSHOT_CONFIG

    id: Optional[int] = None
    outlet: str
    date: dt.date
    timestamp: int
    sync_updated_at: Optional[int] = None
    sales_data: Optional[tuple[dict[str, Any], ...]] = None
    raw_consumption: Optional[tuple[dict[str, Any], ...]] = None
    prods_req_updates: Optional[tuple[dict[str, Any], ...]] = None

    @field_validator("sales_data", "raw_consumption", "prods_req_updates", mode="before")
    @classmethod
    def keep_dict_rows(cls, v: Any, info: ValidationInfo) -> Any:
        """Drop rows that are not objects; a payload that is not a list becomes None."""
        if v is None:
            return None
        if not isinstance(v, (list, tuple)):
            logger.warning(
                "Ignoring legacy %s payload of type %s", info.field_name, type(v).__name__,
            )
            return None
        rows = []
        for row in v:
            if isinstance(row, dict):
                rows.append(row)
            else:
                logger.warning("Dropping legacy %s row %r", info.field_name, row)
        return rows

    @property
    def recency(self) -> int:
        """Ordering key: last sync update, falling back to the upload time."""
        return self.sync_updated_at if self.sync_updated_at is not None else self.timestamp


class InventorySnapshot(BaseModel):
    """Everything one engine pass reads, already stripped of tombstones."""

    model_config = _SNAPSHOT_CONFIG

    outlets: tuple[OutletSnapshot, ...] = ()
    products: tuple[ProductSnapshot, ...] = ()
    conversions: tuple[ConversionSnapshot, ...] = ()
    stock_checks: tuple[StockCheckSnapshot, ...] = ()
    transfers: tuple[TransferSnapshot, ...] = ()
    production_reports: tuple[ProductionReportSnapshot, ...] = ()
    sales_reports: tuple[SalesReportSnapshot, ...] = ()
    legacy_entries: tuple[LegacyEntrySnapshot, ...] = ()

    def outlet_named(self, name: str) -> Optional[OutletSnapshot]:
        for outlet in self.outlets:
            if outlet.name == name:
                return outlet
        return None
