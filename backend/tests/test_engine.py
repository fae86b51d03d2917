"""Tests for the live inventory engine: day ledger, carry-forward and discrepancies."""

from datetime import date, timedelta

import pytest

from outlet_ledger.core.config import Settings
from outlet_ledger.models.outlet import OutletType
from outlet_ledger.models.product import ProductCategory
from outlet_ledger.models.reports import SourceUnit
from outlet_ledger.models.transfer import TransferStatus
from outlet_ledger.schemas.snapshot import (
    ConversionSnapshot,
    InventorySnapshot,
    LegacyEntrySnapshot,
    OutletSnapshot,
    ProdsReqSnapshot,
    ProductionLineSnapshot,
    ProductionReportSnapshot,
    ProductSnapshot,
    RawConsumptionSnapshot,
    SalesLineSnapshot,
    SalesReportSnapshot,
    StockCheckSnapshot,
    StockCountSnapshot,
    TransferSnapshot,
)
from outlet_ledger.services.ledger.engine import LiveInventoryEngine

MAIN = OutletSnapshot(id=1, name="Main", outlet_type=OutletType.SALES)
KITCHEN = OutletSnapshot(id=2, name="Kitchen", outlet_type=OutletType.PRODUCTION)
CAKE = ProductSnapshot(id=1, name="Cake", unit="whole", category=ProductCategory.KITCHEN)
SLICE = ProductSnapshot(id=2, name="Cake Slice", unit="slice", category=ProductCategory.KITCHEN)
FLOUR = ProductSnapshot(id=3, name="Flour", unit="kg", category=ProductCategory.RAW)
PAIR = ConversionSnapshot(id=1, whole_product_id=1, sub_unit_product_id=2, factor=10)


def _ts(day: date, hour: int = 18) -> int:
    return int((day - date(2024, 1, 1)).total_seconds() * 1000) + hour * 3_600_000 + 1_704_067_200_000


def count(product_id, quantity=0, **fields):
    return StockCountSnapshot(product_id=product_id, quantity=quantity, **fields)


def check(day, *counts, outlet="Main", hour=18, completed_by="alice", replace_all=False):
    return StockCheckSnapshot(
        outlet=outlet,
        date=day,
        timestamp=_ts(day, hour),
        completed_by=completed_by,
        replace_all_inventory=replace_all,
        counts=counts,
    )


def transfer(day, product_id, quantity, to_outlet="Main", from_outlet="Kitchen",
             status=TransferStatus.APPROVED):
    return TransferSnapshot(
        product_id=product_id,
        from_outlet=from_outlet,
        to_outlet=to_outlet,
        request_date=day,
        quantity=quantity,
        status=status,
    )


def sales(day, lines=(), raw=(), outlet="Main"):
    return SalesReportSnapshot(
        outlet=outlet, date=day, timestamp=_ts(day, 22), lines=lines, raw_consumption=raw,
    )


def snapshot(**collections):
    collections.setdefault("outlets", (MAIN, KITCHEN))
    collections.setdefault("products", (CAKE, SLICE, FLOUR))
    collections.setdefault("conversions", (PAIR,))
    return InventorySnapshot(**collections)


def history_for(histories, product_id):
    return next((h for h in histories if h.product_id == product_id), None)


def record_on(history, day):
    return next((r for r in history.records if r.date == day), None)


@pytest.fixture
def engine():
    return LiveInventoryEngine(Settings(_env_file=None))


class TestPairedLedger:
    """Ledger for a product with a conversion pair at a sales outlet."""

    def test_worked_example(self, engine):
        d1, d2, d3 = date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)
        snap = snapshot(
            stock_checks=(
                check(d1, count(1, 3), count(2, 4)),
                check(d2, count(1, 2), count(2, 0)),
            ),
            transfers=(transfer(d2, 1, 1),),
            sales_reports=(
                sales(d2, lines=(SalesLineSnapshot(product_id=2, sold_slices=8, source_unit=SourceUnit.SLICES),)),
            ),
        )

        history = history_for(engine.compute(snap, "Main", d3, "week"), CAKE.id)
        day = record_on(history, d2)

        assert (day.opening_whole, day.opening_sub) == (3, 4)
        assert (day.received_whole, day.received_sub) == (1, 0)
        assert (day.sold_whole, day.sold_sub) == (0, 8)
        assert (day.current_whole, day.current_sub) == (3, 6)
        assert (day.discrepancy_whole, day.discrepancy_sub) == (-2, 4)

        last = record_on(history, d3)
        assert (last.opening_whole, last.opening_sub) == (2, 0)
        assert (last.discrepancy_whole, last.discrepancy_sub) == (0, 0)
        assert history.conversion_factor == 10
        assert history.sub_unit_name == "Cake Slice"

    def test_continuity_without_checks(self, engine):
        start = date(2024, 1, 1)
        snap = snapshot(
            stock_checks=(check(start, count(1, 2)),),
            transfers=(transfer(start + timedelta(days=2), 1, 1),),
            sales_reports=(
                sales(start + timedelta(days=3), lines=(
                    SalesLineSnapshot(product_id=2, sold_slices=5, source_unit=SourceUnit.SLICES),
                )),
            ),
        )

        records = history_for(engine.compute(snap, "Main", start + timedelta(days=4)), CAKE.id).records

        assert [r.date for r in records] == [start + timedelta(days=n) for n in range(1, 5)]
        for current, following in zip(records, records[1:]):
            assert (following.opening_whole, following.opening_sub) == (
                current.current_whole, current.current_sub,
            )
            assert (current.discrepancy_whole, current.discrepancy_sub) == (0, 0)
        assert (records[-1].current_whole, records[-1].current_sub) == (2, 5)

    def test_sub_units_below_factor(self, engine):
        day = date(2024, 1, 5)
        snap = snapshot(
            stock_checks=(
                check(day - timedelta(days=1), count(2, 27)),
                check(day, count(1, 0, wastage=0), count(2, 0, wastage=13)),
            ),
            transfers=(transfer(day, 2, 34), transfer(day, 1, 0.75)),
            sales_reports=(
                sales(day, lines=(SalesLineSnapshot(product_id=2, sold_slices=12, source_unit=SourceUnit.SLICES),)),
            ),
        )

        for history in engine.compute(snap, "Main", day):
            for record in history.records:
                for value in (record.opening_sub, record.received_sub, record.wastage_sub,
                              record.sold_sub, record.current_sub, record.discrepancy_sub):
                    assert 0 <= value < 10

    def test_wastage_tracked_per_side_and_not_subtracted(self, engine):
        d1, d2 = date(2024, 1, 1), date(2024, 1, 2)
        snap = snapshot(
            stock_checks=(
                check(d1, count(1, 4)),
                check(d2, count(1, 4, wastage=1), count(2, 0, wastage=3)),
            ),
        )

        day = record_on(history_for(engine.compute(snap, "Main", d2), CAKE.id), d2)

        assert (day.wastage_whole, day.wastage_sub) == (1, 3)
        assert (day.current_whole, day.current_sub) == (4, 0)

    def test_negative_current(self, engine):
        day = date(2024, 1, 2)
        snap = snapshot(
            stock_checks=(check(day - timedelta(days=1), count(2, 4)),),
            sales_reports=(
                sales(day, lines=(SalesLineSnapshot(product_id=1, sold_whole=2, source_unit=SourceUnit.WHOLE),)),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Main", day), CAKE.id), day)

        assert (record.current_whole, record.current_sub) == (-2, 4)


class TestCurrentPrecedence:
    """Replace-All, then manual edit, then the formula."""

    def test_replace_all(self, engine):
        d9, d10, d11 = date(2024, 2, 9), date(2024, 2, 10), date(2024, 2, 11)
        snap = snapshot(
            stock_checks=(
                check(d9, count(1, 5)),
                check(d10, count(1, 12), count(2, 0), replace_all=True),
            ),
            transfers=(transfer(d10, 1, 3),),
            sales_reports=(
                sales(d10, lines=(SalesLineSnapshot(product_id=1, sold_whole=1, source_unit=SourceUnit.WHOLE),)),
            ),
        )

        history = history_for(engine.compute(snap, "Main", d11), CAKE.id)
        replaced = record_on(history, d10)
        following = record_on(history, d11)

        assert (replaced.opening_whole, replaced.received_whole, replaced.sold_whole) == (5, 3, 1)
        assert (replaced.current_whole, replaced.current_sub) == (12, 0)
        assert replaced.replace_inventory_date == d10
        assert replaced.manually_edited_date is None
        assert (following.opening_whole, following.opening_sub) == (12, 0)

    def test_replace_all_missing_count_is_zero(self, engine):
        d1, d2 = date(2024, 2, 1), date(2024, 2, 2)
        snap = snapshot(
            stock_checks=(
                check(d1, count(1, 5)),
                check(d2, count(3, 1), replace_all=True),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Main", d2), CAKE.id), d2)

        assert (record.current_whole, record.current_sub) == (0, 0)
        assert record.replace_inventory_date == d2

    def test_manual_edit_on_date(self, engine):
        d1, d2 = date(2024, 3, 1), date(2024, 3, 2)
        snap = snapshot(
            stock_checks=(
                check(d1, count(1, 7, manually_edited_date=d1), count(2, 5, manually_edited_date=d1)),
            ),
            transfers=(transfer(d1, 1, 2),),
        )

        history = history_for(engine.compute(snap, "Main", d2), CAKE.id)
        edited = record_on(history, d1)

        assert (edited.received_whole, edited.current_whole, edited.current_sub) == (2, 7, 5)
        assert edited.manually_edited_date == d1
        assert (record_on(history, d2).opening_whole, record_on(history, d2).opening_sub) == (7, 5)

    def test_stale_manual_edit_date_ignored(self, engine):
        d1, d2 = date(2024, 3, 1), date(2024, 3, 2)
        snap = snapshot(
            stock_checks=(
                check(d1, count(1, 1)),
                check(d2, count(1, 9, manually_edited_date=d1)),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Main", d2), CAKE.id), d2)

        assert record.manually_edited_date is None
        assert (record.current_whole, record.current_sub) == (1, 0)

    def test_override_isolation(self, engine):
        start = date(2024, 3, 1)
        base = dict(
            stock_checks=(check(start, count(1, 4)),),
            transfers=tuple(transfer(start + timedelta(days=n), 1, 1) for n in range(1, 6)),
        )
        edit_day = start + timedelta(days=3)
        edited = dict(base)
        edited["stock_checks"] = base["stock_checks"] + (
            check(edit_day, count(1, 2, manually_edited_date=edit_day), count(2, 5, manually_edited_date=edit_day)),
        )
        anchor = start + timedelta(days=5)

        before = history_for(engine.compute(snapshot(**base), "Main", anchor), CAKE.id)
        after = history_for(engine.compute(snapshot(**edited), "Main", anchor), CAKE.id)

        for record in after.records:
            if record.date < edit_day:
                original = record_on(before, record.date)
                assert record.model_dump(exclude={"discrepancy_whole", "discrepancy_sub"}) == (
                    original.model_dump(exclude={"discrepancy_whole", "discrepancy_sub"})
                )
        next_day = record_on(after, edit_day + timedelta(days=1))
        assert (next_day.opening_whole, next_day.opening_sub) == (2, 5)


class TestStockCheckSelection:
    """Which stock check feeds opening, wastage and current."""

    def test_auto_checks_ignored(self, engine):
        d1, d2 = date(2024, 4, 1), date(2024, 4, 2)
        snap = snapshot(
            stock_checks=(
                check(d1, count(1, 3)),
                check(d1, count(1, 9), hour=23, completed_by="AUTO"),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Main", d2), CAKE.id), d2)

        assert record.opening_whole == 3

    def test_latest_user_check_wins(self, engine):
        d1, d2 = date(2024, 4, 1), date(2024, 4, 2)
        snap = snapshot(
            stock_checks=(
                check(d1, count(1, 3), hour=9),
                check(d1, count(1, 6), hour=20, completed_by="bob"),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Main", d2), CAKE.id), d2)

        assert record.opening_whole == 6

    def test_missing_count_falls_back_to_carried_closing(self, engine):
        d1, d2, d3 = date(2024, 4, 1), date(2024, 4, 2), date(2024, 4, 3)
        snap = snapshot(
            stock_checks=(
                check(d1, count(1, 3)),
                check(d2, count(3, 8)),
            ),
            transfers=(transfer(d2, 1, 1),),
        )

        record = record_on(history_for(engine.compute(snap, "Main", d3), CAKE.id), d3)

        assert record.opening_whole == 4


class TestStandaloneLedger:
    """Products without a conversion pair."""

    def test_raw_material_example(self, engine):
        d1, d2 = date(2024, 1, 1), date(2024, 1, 2)
        snap = snapshot(
            stock_checks=(
                check(d1, count(3, 5)),
                check(d2, count(3, 3, wastage=1)),
            ),
            sales_reports=(sales(d2, raw=(RawConsumptionSnapshot(raw_product_id=3, consumed_whole=2),)),),
        )

        history = history_for(engine.compute(snap, "Main", d2), FLOUR.id)
        record = record_on(history, d2)

        assert (record.opening_whole, record.received_whole, record.wastage_whole) == (5, 0, 1)
        assert (record.sold_whole, record.current_whole) == (2, 3)
        assert record.current_sub == 0
        assert history.conversion_factor is None

    def test_discrepancy_is_plain_difference(self, engine):
        d1, d2, d3 = date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)
        snap = snapshot(
            stock_checks=(
                check(d1, count(3, 5)),
                check(d2, count(3, 2.5)),
            ),
            sales_reports=(sales(d2, raw=(RawConsumptionSnapshot(raw_product_id=3, consumed_whole=2),)),),
        )

        history = history_for(engine.compute(snap, "Main", d3), FLOUR.id)

        assert record_on(history, d2).current_whole == 3
        assert record_on(history, d2).discrepancy_whole == -0.5
        assert record_on(history, d3).discrepancy_whole == 0

    def test_legacy_sold_fallback(self, engine):
        juice = ProductSnapshot(id=4, name="Juice", unit="bottle", category=ProductCategory.MENU)
        d1, d2 = date(2024, 1, 1), date(2024, 1, 2)
        snap = snapshot(
            products=(CAKE, SLICE, FLOUR, juice),
            stock_checks=(check(d1, count(4, 10)),),
            legacy_entries=(
                LegacyEntrySnapshot(
                    outlet="Main", date=d2, timestamp=_ts(d2),
                    sales_data=({"productId": "4", "sold": 4},),
                ),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Main", d2), 4), d2)

        assert (record.sold_whole, record.current_whole) == (4, 6)

    def test_zero_report_line_falls_back_to_legacy(self, engine):
        juice = ProductSnapshot(id=4, name="Juice", unit="bottle", category=ProductCategory.MENU)
        d1, d2 = date(2024, 1, 1), date(2024, 1, 2)
        snap = snapshot(
            products=(CAKE, SLICE, FLOUR, juice),
            stock_checks=(check(d1, count(4, 10)),),
            sales_reports=(sales(d2, lines=(SalesLineSnapshot(product_id=4, sold_whole=0),)),),
            legacy_entries=(
                LegacyEntrySnapshot(
                    outlet="Main", date=d2, timestamp=_ts(d2),
                    sales_data=({"productId": 4, "sold": 4},),
                ),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Main", d2), 4), d2)

        assert (record.sold_whole, record.current_whole) == (4, 6)

    def test_malformed_legacy_rows_ignored(self, engine, caplog):
        d1, d2 = date(2024, 1, 1), date(2024, 1, 2)
        snap = snapshot(
            stock_checks=(check(d1, count(3, 5)),),
            legacy_entries=(
                LegacyEntrySnapshot(
                    outlet="Main", date=d2, timestamp=_ts(d2),
                    sales_data={"productId": 1, "sold": 3},
                    raw_consumption=["flour:3", {"rawProductId": 3, "consumed": 2}],
                ),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Main", d2), FLOUR.id), d2)

        assert (record.sold_whole, record.current_whole) == (2, 3)
        assert "Dropping legacy raw_consumption row 'flour:3'" in caplog.text
        assert "Ignoring legacy sales_data payload of type dict" in caplog.text


class TestProductionOutlet:
    """Received from production, sold as outgoing transfers."""

    def test_production_and_transfers(self, engine):
        day = date(2024, 5, 2)
        snap = snapshot(
            production_reports=(
                ProductionReportSnapshot(
                    outlet="Kitchen", date=day, timestamp=_ts(day),
                    lines=(ProductionLineSnapshot(product_id=1, quantity_whole=4, quantity_slices=5),),
                    prods_req=(ProdsReqSnapshot(product_id=1, prods_req_whole=1),),
                ),
            ),
            transfers=(
                transfer(day, 1, 2),
                transfer(day, 1, 5, status=TransferStatus.PENDING),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Kitchen", day), CAKE.id), day)

        assert (record.received_whole, record.received_sub) == (5, 5)
        assert (record.sold_whole, record.sold_sub) == (2, 0)
        assert (record.current_whole, record.current_sub) == (3, 5)

    def test_legacy_prods_req_added_to_production(self, engine):
        day = date(2024, 5, 2)
        snap = snapshot(
            production_reports=(
                ProductionReportSnapshot(
                    outlet="Kitchen", date=day, timestamp=_ts(day),
                    lines=(ProductionLineSnapshot(product_id=1, quantity_whole=2),),
                ),
            ),
            legacy_entries=(
                LegacyEntrySnapshot(
                    outlet="Kitchen", date=day, timestamp=_ts(day, 8), sync_updated_at=_ts(day, 9),
                    prods_req_updates=({"productId": 1, "prodsReqWhole": 9, "prodsReqSlices": 0},),
                ),
                LegacyEntrySnapshot(
                    outlet="Kitchen", date=day, timestamp=_ts(day, 8), sync_updated_at=_ts(day, 12),
                    prods_req_updates=({"productId": 1, "prodsReqWhole": 1, "prodsReqSlices": 5},),
                ),
            ),
        )

        record = record_on(history_for(engine.compute(snap, "Kitchen", day), CAKE.id), day)

        assert (record.received_whole, record.received_sub) == (3, 5)


class TestEngineFacade:
    """Grouping, ordering and robustness."""

    def test_unknown_outlet(self, engine, caplog):
        assert engine.compute(snapshot(), "Nowhere", date(2024, 1, 1)) == []
        assert "Nowhere" in caplog.text

    def test_sparse_output(self, engine):
        day = date(2024, 1, 2)
        snap = snapshot(stock_checks=(check(day - timedelta(days=1), count(3, 1)),))

        histories = engine.compute(snap, "Main", day)

        assert [h.product_id for h in histories] == [FLOUR.id]
        assert [r.date for r in histories[0].records] == [day]

    def test_sorted_by_name(self, engine):
        day = date(2024, 1, 2)
        snap = snapshot(
            stock_checks=(check(day - timedelta(days=1), count(3, 1), count(1, 1)),),
        )

        names = [h.product_name for h in engine.compute(snap, "Main", day)]

        assert names == ["Cake", "Flour"]

    def test_pair_with_unknown_whole_product_skipped(self, engine, caplog):
        day = date(2024, 1, 2)
        orphan = ConversionSnapshot(id=9, whole_product_id=99, sub_unit_product_id=3, factor=4)
        snap = snapshot(
            conversions=(PAIR, orphan),
            stock_checks=(check(day - timedelta(days=1), count(1, 1), count(3, 2)),),
        )

        histories = engine.compute(snap, "Main", day)

        assert [h.product_id for h in histories] == [CAKE.id]
        assert "99" in caplog.text

    def test_idempotent(self, engine):
        d1, d2 = date(2024, 1, 1), date(2024, 1, 2)
        snap = snapshot(
            stock_checks=(check(d1, count(1, 3), count(2, 4), count(3, 2)),),
            transfers=(transfer(d2, 2, 13),),
        )

        first = engine.compute(snap, "Main", d2, "month")
        second = engine.compute(snap, "Main", d2, "month")

        assert [h.model_dump_json() for h in first] == [h.model_dump_json() for h in second]

    def test_show_in_stock_carried(self, engine):
        hidden = ProductSnapshot(id=5, name="Napkins", unit="pack", category=ProductCategory.RAW,
                                 show_in_stock=False)
        day = date(2024, 1, 2)
        snap = snapshot(
            products=(CAKE, SLICE, FLOUR, hidden),
            stock_checks=(check(day - timedelta(days=1), count(5, 3)),),
        )

        history = history_for(engine.compute(snap, "Main", day), 5)

        assert history is not None
        assert history.show_in_stock is False
