"""Snapshot loading: reads the synchronized store into immutable engine inputs."""

import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from outlet_ledger.models.legacy_reconciliation import LegacyReconciliationEntry
from outlet_ledger.models.outlet import Outlet
from outlet_ledger.models.product import Product, ProductConversion
from outlet_ledger.models.reports import ProductionReport, SalesReport
from outlet_ledger.models.stock_check import StockCheck
from outlet_ledger.models.transfer import TransferRequest
from outlet_ledger.schemas.snapshot import (
    ConversionSnapshot,
    InventorySnapshot,
    LegacyEntrySnapshot,
    OutletSnapshot,
    ProductionReportSnapshot,
    ProductSnapshot,
    SalesReportSnapshot,
    StockCheckSnapshot,
    TransferSnapshot,
)

logger = logging.getLogger(__name__)


class SnapshotService:
    """Builds an ``InventorySnapshot`` with every tombstoned row left out."""

    def __init__(self, db: Session):
        self.db = db

    def load(
        self,
        outlet: Optional[str] = None,
        dates: Optional[Sequence[date]] = None,
    ) -> InventorySnapshot:
        """
        Load the engine inputs.

        Args:
            outlet: Restrict outlet-keyed collections to this outlet
            dates: Restrict date-keyed collections to this window, plus the
                day before it (opening stock reads the previous day's check)
        """
        start: Optional[date] = None
        end: Optional[date] = None
        if dates:
            start = min(dates) - timedelta(days=1)
            end = max(dates)

        outlets = (
            self.db.query(Outlet).filter(Outlet.not_deleted()).order_by(Outlet.id).all()
        )
        products = (
            self.db.query(Product).filter(Product.not_deleted()).order_by(Product.id).all()
        )
        conversions = (
            self.db.query(ProductConversion)
            .filter(ProductConversion.not_deleted())
            .order_by(ProductConversion.id)
            .all()
        )

        checks_query = (
            self.db.query(StockCheck)
            .options(selectinload(StockCheck.counts))
            .filter(StockCheck.not_deleted())
        )
        production_query = (
            self.db.query(ProductionReport)
            .options(selectinload(ProductionReport.lines), selectinload(ProductionReport.prods_req))
            .filter(ProductionReport.not_deleted())
        )
        sales_query = (
            self.db.query(SalesReport)
            .options(selectinload(SalesReport.lines), selectinload(SalesReport.raw_consumption))
            .filter(SalesReport.not_deleted())
        )
        legacy_query = self.db.query(LegacyReconciliationEntry).filter(
            LegacyReconciliationEntry.not_deleted()
        )
        transfers_query = self.db.query(TransferRequest).filter(TransferRequest.not_deleted())

        if outlet is not None:
            checks_query = checks_query.filter(StockCheck.outlet == outlet)
            production_query = production_query.filter(ProductionReport.outlet == outlet)
            sales_query = sales_query.filter(SalesReport.outlet == outlet)
            legacy_query = legacy_query.filter(LegacyReconciliationEntry.outlet == outlet)
            transfers_query = transfers_query.filter(
                or_(TransferRequest.from_outlet == outlet, TransferRequest.to_outlet == outlet)
            )

        if start is not None:
            checks_query = checks_query.filter(StockCheck.date.between(start, end))
            production_query = production_query.filter(ProductionReport.date.between(start, end))
            sales_query = sales_query.filter(SalesReport.date.between(start, end))
            legacy_query = legacy_query.filter(LegacyReconciliationEntry.date.between(start, end))
            transfers_query = transfers_query.filter(TransferRequest.request_date.between(start, end))

        snapshot = InventorySnapshot(
            outlets=tuple(OutletSnapshot.model_validate(o) for o in outlets),
            products=tuple(ProductSnapshot.model_validate(p) for p in products),
            conversions=tuple(ConversionSnapshot.model_validate(c) for c in conversions),
            stock_checks=tuple(
                StockCheckSnapshot.model_validate(c) for c in checks_query.order_by(StockCheck.id).all()
            ),
            transfers=tuple(
                TransferSnapshot.model_validate(t)
                for t in transfers_query.order_by(TransferRequest.id).all()
            ),
            production_reports=tuple(
                ProductionReportSnapshot.model_validate(r)
                for r in production_query.order_by(ProductionReport.id).all()
            ),
            sales_reports=tuple(
                SalesReportSnapshot.model_validate(r)
                for r in sales_query.order_by(SalesReport.id).all()
            ),
            legacy_entries=tuple(
                LegacyEntrySnapshot.model_validate(e)
                for e in legacy_query.order_by(LegacyReconciliationEntry.id).all()
            ),
        )

        logger.debug(
            "Loaded snapshot for %s: %d checks, %d transfers, %d production, %d sales, %d legacy",
            outlet or "all outlets",
            len(snapshot.stock_checks),
            len(snapshot.transfers),
            len(snapshot.production_reports),
            len(snapshot.sales_reports),
            len(snapshot.legacy_entries),
        )
        return snapshot
