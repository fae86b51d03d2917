"""SQLAlchemy models."""

from outlet_ledger.models.outlet import Outlet, OutletType
from outlet_ledger.models.product import Product, ProductCategory, ProductConversion
from outlet_ledger.models.stock_check import StockCheck, StockCount
from outlet_ledger.models.transfer import TransferRequest, TransferStatus
from outlet_ledger.models.reports import (
    ProductionReport,
    ProductionReportLine,
    ProductionRequestDelta,
    RawConsumptionLine,
    SalesReport,
    SalesReportLine,
    SourceUnit,
)
from outlet_ledger.models.legacy_reconciliation import LegacyReconciliationEntry

__all__ = [
    "Outlet",
    "OutletType",
    "Product",
    "ProductCategory",
    "ProductConversion",
    "StockCheck",
    "StockCount",
    "TransferRequest",
    "TransferStatus",
    "ProductionReport",
    "ProductionReportLine",
    "ProductionRequestDelta",
    "RawConsumptionLine",
    "SalesReport",
    "SalesReportLine",
    "SourceUnit",
    "LegacyReconciliationEntry",
]
