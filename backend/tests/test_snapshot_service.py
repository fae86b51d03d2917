"""Tests for snapshot loading from the synchronized store."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from outlet_ledger.models.legacy_reconciliation import LegacyReconciliationEntry
from outlet_ledger.models.product import Product, ProductCategory
from outlet_ledger.models.reports import SalesReport, SalesReportLine, SourceUnit
from outlet_ledger.models.stock_check import StockCheck, StockCount
from outlet_ledger.models.transfer import TransferRequest, TransferStatus
from outlet_ledger.services.snapshot_service import SnapshotService


def _check(outlet, day, quantity, product_id, timestamp=1, completed_by="alice"):
    check = StockCheck(outlet=outlet, date=day, timestamp=timestamp, completed_by=completed_by)
    check.counts.append(StockCount(product_id=product_id, quantity=Decimal(str(quantity))))
    return check


class TestSnapshotService:
    """Tombstone filtering and scoping."""

    @pytest.fixture
    def seeded(self, db_session, sales_outlet, production_outlet, cake, cake_slice, cake_conversion):
        retired = Product(name="Retired Tart", unit="whole", category=ProductCategory.MENU)
        retired.soft_delete()
        deleted_check = _check("Main", date(2024, 1, 2), 99, cake.id, timestamp=5)
        deleted_check.soft_delete()

        report = SalesReport(outlet="Main", date=date(2024, 1, 2), timestamp=3)
        report.lines.append(
            SalesReportLine(product_id=cake_slice.id, sold_slices=Decimal("4"), source_unit=SourceUnit.SLICES)
        )

        db_session.add_all([
            retired,
            deleted_check,
            _check("Main", date(2024, 1, 1), 3, cake.id),
            _check("Main", date(2024, 1, 2), 4, cake.id, timestamp=2),
            _check("Main", date(2023, 12, 20), 7, cake.id),
            _check("Kitchen", date(2024, 1, 2), 8, cake.id),
            TransferRequest(
                product_id=cake.id, from_outlet="Kitchen", to_outlet="Main",
                request_date=date(2024, 1, 2), quantity=Decimal("1.5"),
                status=TransferStatus.APPROVED,
            ),
            TransferRequest(
                product_id=cake.id, from_outlet="Kitchen", to_outlet="Other",
                request_date=date(2024, 1, 2), quantity=Decimal("1"),
                status=TransferStatus.APPROVED,
            ),
            report,
            LegacyReconciliationEntry(
                outlet="Main", date=date(2024, 1, 2), timestamp=1,
                sales_data=[{"productId": cake.id, "sold": 2}],
            ),
        ])
        db_session.commit()

    def test_load_scoped_to_outlet_and_window(self, db_session, seeded):
        snapshot = SnapshotService(db_session).load(
            outlet="Main", dates=[date(2024, 1, 2), date(2024, 1, 3)]
        )

        assert {(c.outlet, c.date) for c in snapshot.stock_checks} == {
            ("Main", date(2024, 1, 1)),
            ("Main", date(2024, 1, 2)),
        }
        assert [t.to_outlet for t in snapshot.transfers] == ["Main"]
        assert snapshot.transfers[0].quantity == 1.5
        assert len(snapshot.sales_reports) == 1
        assert snapshot.sales_reports[0].lines[0].source_unit == SourceUnit.SLICES
        assert snapshot.legacy_entries[0].sales_data[0]["sold"] == 2

    def test_tombstones_filtered(self, db_session, seeded):
        snapshot = SnapshotService(db_session).load()

        assert "Retired Tart" not in {p.name for p in snapshot.products}
        assert 99 not in {c.counts[0].quantity for c in snapshot.stock_checks}
        assert len(snapshot.conversions) == 1
        assert {o.name for o in snapshot.outlets} == {"Main", "Kitchen"}

    def test_malformed_legacy_payload_loads(self, db_session, seeded):
        db_session.add(
            LegacyReconciliationEntry(
                outlet="Main", date=date(2024, 1, 2), timestamp=2,
                sales_data="not a list",
                raw_consumption=["flour:3", {"rawProductId": 3, "consumed": 2}],
            )
        )
        db_session.commit()

        snapshot = SnapshotService(db_session).load(
            outlet="Main", dates=[date(2024, 1, 2), date(2024, 1, 3)]
        )

        malformed = next(e for e in snapshot.legacy_entries if e.timestamp == 2)
        assert malformed.sales_data is None
        assert malformed.raw_consumption == ({"rawProductId": 3, "consumed": 2},)

    def test_snapshot_is_immutable(self, db_session, seeded):
        snapshot = SnapshotService(db_session).load(outlet="Main")

        with pytest.raises(ValidationError):
            snapshot.stock_checks[0].outlet = "Elsewhere"
