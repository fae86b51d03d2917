"""Per-day ledger for one product (or conversion pair) at one outlet.

Steps, in order: opening, received, wastage, sold, current. Paired products
carry every quantity as a sub-unit total and split it into (whole, sub) only
when the record is built.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Optional, Tuple

from outlet_ledger.models.product import ProductCategory
from outlet_ledger.schemas.ledger import DailyInventoryRecord
from outlet_ledger.schemas.snapshot import (
    ConversionSnapshot,
    OutletSnapshot,
    ProductSnapshot,
    StockCheckSnapshot,
    StockCountSnapshot,
)
from outlet_ledger.services.ledger.policies import (
    paired_raw_sold,
    paired_sales_sold,
    paired_transfer_total,
    prods_req_delta,
    production_received,
    standalone_sales_sold,
)
from outlet_ledger.services.ledger.sources import LedgerSources
from outlet_ledger.services.ledger.units import (
    normalize,
    round_half_up,
    split_sub_units,
    to_sub_units,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerContext:
    """Outlet and sources shared by every day of one engine pass."""

    outlet: OutletSnapshot
    sources: LedgerSources

    @property
    def outlet_name(self) -> str:
        return self.outlet.name


@dataclass(frozen=True)
class DayResult:
    """A day's record plus the unrounded totals the sequencer threads forward.

    For paired products ``opening`` and ``current`` are sub-unit totals.
    """

    day: date
    record: DailyInventoryRecord
    opening: float
    current: float

    @property
    def emitted(self) -> bool:
        return self.record.has_activity()


def _quantity(count: Optional[StockCountSnapshot]) -> float:
    return count.quantity if count is not None and count.quantity is not None else 0.0


def _wastage(count: Optional[StockCountSnapshot]) -> float:
    return count.wastage if count is not None and count.wastage else 0.0


def _edited_on(count: Optional[StockCountSnapshot], day: date) -> bool:
    return count is not None and count.manually_edited_date == day


def _is_raw(product: ProductSnapshot) -> bool:
    return product.category == ProductCategory.RAW


def _paired_values(total: float, factor: int) -> Tuple[float, float]:
    whole, sub = split_sub_units(total, factor)
    return round_half_up(whole), round_half_up(sub)


def build_paired_day(
    ctx: LedgerContext,
    whole_product: ProductSnapshot,
    pair: ConversionSnapshot,
    day: date,
    carried_opening: float,
) -> DayResult:
    """Ledger for one day of a conversion pair; ``carried_opening`` is in sub-units."""
    outlet = ctx.outlet_name
    sources = ctx.sources
    factor = pair.factor
    whole_id = pair.whole_product_id
    sub_id = pair.sub_unit_product_id
    ids = (whole_id, sub_id)

    # Opening: yesterday's latest user count, else the carried closing
    opening = carried_opening
    previous = sources.stock_checks.latest_user_check(outlet, day - timedelta(days=1))
    if previous is not None:
        whole_count = previous.count_for(whole_id)
        sub_count = previous.count_for(sub_id)
        if whole_count is not None or sub_count is not None:
            opening = to_sub_units(_quantity(whole_count), _quantity(sub_count), factor)

    # Received
    if ctx.outlet.is_production:
        received = production_received(sources, outlet, day, whole_id, factor)
        received += prods_req_delta(sources, outlet, day, ids, factor)
    else:
        received = paired_transfer_total(sources.transfers.incoming(outlet, day, ids), pair)

    # Wastage, per side
    today = sources.stock_checks.latest_user_check(outlet, day)
    today_whole = today.count_for(whole_id) if today is not None else None
    today_sub = today.count_for(sub_id) if today is not None else None
    wastage_whole, wastage_sub = normalize(_wastage(today_whole), _wastage(today_sub), factor)

    # Sold / transferred out
    if ctx.outlet.is_production:
        sold = paired_transfer_total(sources.transfers.outgoing(outlet, day, ids), pair)
    elif _is_raw(whole_product):
        sold = paired_raw_sold(sources, outlet, day, pair)
    else:
        sold = paired_sales_sold(sources, outlet, day, pair)

    # Current
    current, manually_edited_date, replace_inventory_date = _resolve_current(
        sources.stock_checks.latest_replace_all_check(outlet, day),
        today,
        lambda check: to_sub_units(
            _quantity(check.count_for(whole_id)), _quantity(check.count_for(sub_id)), factor
        ),
        lambda: _edited_on(today_whole, day) or _edited_on(today_sub, day),
        opening + received - sold,
        whole_product.name,
        day,
    )

    opening_whole, opening_sub = _paired_values(opening, factor)
    received_whole, received_sub = _paired_values(received, factor)
    sold_whole, sold_sub = _paired_values(sold, factor)
    current_whole, current_sub = _paired_values(current, factor)

    record = DailyInventoryRecord(
        date=day,
        opening_whole=opening_whole,
        opening_sub=opening_sub,
        received_whole=received_whole,
        received_sub=received_sub,
        wastage_whole=round_half_up(wastage_whole),
        wastage_sub=round_half_up(wastage_sub),
        sold_whole=sold_whole,
        sold_sub=sold_sub,
        current_whole=current_whole,
        current_sub=current_sub,
        manually_edited_date=manually_edited_date,
        replace_inventory_date=replace_inventory_date,
    )
    return DayResult(day=day, record=record, opening=opening, current=current)


def build_standalone_day(
    ctx: LedgerContext,
    product: ProductSnapshot,
    day: date,
    carried_opening: float,
) -> DayResult:
    """Ledger for one day of a product without a conversion pair."""
    outlet = ctx.outlet_name
    sources = ctx.sources
    ids = (product.id,)

    opening = carried_opening
    previous = sources.stock_checks.latest_user_check(outlet, day - timedelta(days=1))
    if previous is not None:
        count = previous.count_for(product.id)
        if count is not None:
            opening = _quantity(count)

    if ctx.outlet.is_production:
        received = production_received(sources, outlet, day, product.id, 1)
        received += prods_req_delta(sources, outlet, day, ids, 1)
    else:
        received = sum(t.quantity for t in sources.transfers.incoming(outlet, day, ids))

    today = sources.stock_checks.latest_user_check(outlet, day)
    today_count = today.count_for(product.id) if today is not None else None
    wastage = _wastage(today_count)

    if ctx.outlet.is_production:
        sold = sum(t.quantity for t in sources.transfers.outgoing(outlet, day, ids))
    else:
        sold = standalone_sales_sold(sources, outlet, day, product.id, _is_raw(product))

    current, manually_edited_date, replace_inventory_date = _resolve_current(
        sources.stock_checks.latest_replace_all_check(outlet, day),
        today,
        lambda check: _quantity(check.count_for(product.id)),
        lambda: _edited_on(today_count, day),
        opening + received - sold,
        product.name,
        day,
    )

    record = DailyInventoryRecord(
        date=day,
        opening_whole=round_half_up(opening),
        received_whole=round_half_up(received),
        wastage_whole=round_half_up(wastage),
        sold_whole=round_half_up(sold),
        current_whole=round_half_up(current),
        manually_edited_date=manually_edited_date,
        replace_inventory_date=replace_inventory_date,
    )
    return DayResult(day=day, record=record, opening=opening, current=current)


def _resolve_current(
    replace_check: Optional[StockCheckSnapshot],
    today: Optional[StockCheckSnapshot],
    quantity_of: Callable[[StockCheckSnapshot], float],
    edited_today: Callable[[], bool],
    formula: float,
    product_name: str,
    day: date,
) -> Tuple[float, Optional[date], Optional[date]]:
    """Current stock by precedence: Replace-All, then manual edit, then formula.

    Returns ``(current, manually_edited_date, replace_inventory_date)``.
    """
    if replace_check is not None:
        current = quantity_of(replace_check)
        logger.info(
            "Replace-All inventory on %s sets current of %s to %s",
            day.isoformat(), product_name, current,
        )
        return current, None, day

    if today is not None and edited_today():
        current = quantity_of(today)
        logger.info(
            "Manual edit on %s sets current of %s to %s",
            day.isoformat(), product_name, current,
        )
        return current, day, None

    return formula, None, None
