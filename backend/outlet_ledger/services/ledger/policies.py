"""Source providers for received and sold quantities.

Every quantity that more than one source can supply is read through an
ordered list of providers. Each provider returns a value or None when its
source has nothing for the day, and the first present value wins. The one
exception is ``max_of_sources`` for paired sales, which compares the modern
report against the legacy log instead of taking the first one present.

Paired quantities are returned as sub-unit totals.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple

from outlet_ledger.models.reports import SourceUnit
from outlet_ledger.schemas.snapshot import (
    ConversionSnapshot,
    SalesLineSnapshot,
    SalesReportSnapshot,
)
from outlet_ledger.services.ledger.sources import LedgerSources
from outlet_ledger.services.ledger.units import (
    split_sub_quantity,
    split_whole_quantity,
    to_sub_units,
)

logger = logging.getLogger(__name__)

Provider = Callable[[], Optional[float]]

_SPLIT_TAGS = (SourceUnit.WHOLE, SourceUnit.SLICES)


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def first_present(providers: Sequence[Tuple[str, Provider]]) -> Tuple[Optional[str], Optional[float]]:
    """Query providers in order; return ``(name, value)`` of the first present value."""
    for name, provider in providers:
        value = provider()
        if value is not None:
            return name, value
    return None, None


def max_of_sources(
    modern: Optional[float],
    legacy: Optional[float],
    label: str = "",
) -> Optional[float]:
    """Pick the larger of the modern and legacy sold totals.

    Older sales exports dropped rows that the legacy log still has, so a
    strictly larger legacy total replaces the modern one. This also hides an
    intentional downward correction made only in the modern report.
    """
    if legacy is None:
        return modern
    if modern is None:
        logger.info("Legacy fallback used for sold quantity of %s: %s", label, legacy)
        return legacy
    if legacy > modern:
        logger.info(
            "Maximum-of-sources applied for %s: legacy %s over report %s",
            label, legacy, modern,
        )
        return legacy
    return modern


# ---------------------------------------------------------------------------
# Paired menu/kitchen sales
# ---------------------------------------------------------------------------


def _line_total(line: SalesLineSnapshot, factor: int) -> float:
    return to_sub_units(line.sold_whole, line.sold_slices, factor)


def _is_tagged(line: SalesLineSnapshot) -> bool:
    return line.source_unit is not None and line.source_unit != SourceUnit.LEGACY


def tagged_paired_sold(
    lines: Sequence[SalesLineSnapshot],
    pair: ConversionSnapshot,
) -> float:
    """Sum canonical split lines, or aggregate lines when there are no split lines."""
    factor = pair.factor
    split_total = 0.0
    aggregate_total = 0.0
    has_split = False

    for line in lines:
        if line.source_unit == SourceUnit.WHOLE and line.product_id == pair.whole_product_id:
            split_total += line.sold_whole * factor
            has_split = True
        elif line.source_unit == SourceUnit.SLICES and line.product_id == pair.sub_unit_product_id:
            split_total += line.sold_slices
            has_split = True
        elif line.source_unit == SourceUnit.AGGREGATE:
            aggregate_total += _line_total(line, factor)
        elif line.source_unit in _SPLIT_TAGS:
            logger.debug(
                "Ignoring non-canonical %s line on product %s",
                line.source_unit.value, line.product_id,
            )

    if has_split:
        return split_total
    return aggregate_total


def untagged_paired_sold(
    lines: Sequence[SalesLineSnapshot],
    pair: ConversionSnapshot,
) -> float:
    """Sum untagged lines, counting a total duplicated under both ids once."""
    factor = pair.factor
    whole_lines = [line for line in lines if line.product_id == pair.whole_product_id]
    sub_lines = [line for line in lines if line.product_id == pair.sub_unit_product_id]
    whole_total = sum(_line_total(line, factor) for line in whole_lines)
    sub_total = sum(_line_total(line, factor) for line in sub_lines)

    if whole_lines and sub_lines and whole_total != 0 and whole_total == sub_total:
        logger.info(
            "Duplicate sales total %s under products %s and %s counted once",
            whole_total, pair.whole_product_id, pair.sub_unit_product_id,
        )
        return whole_total
    return whole_total + sub_total


def report_paired_sold(
    report: Optional[SalesReportSnapshot],
    pair: ConversionSnapshot,
) -> Optional[float]:
    if report is None:
        return None
    ids = (pair.whole_product_id, pair.sub_unit_product_id)
    lines = [line for line in report.lines if line.product_id in ids]
    if not lines:
        return None
    if any(_is_tagged(line) for line in lines):
        return tagged_paired_sold([line for line in lines if _is_tagged(line)], pair)
    return untagged_paired_sold(lines, pair)


def legacy_paired_sold(
    sources: LedgerSources,
    outlet: str,
    day: date,
    pair: ConversionSnapshot,
) -> Optional[float]:
    whole_row = sources.legacy.sales_row(outlet, day, pair.whole_product_id)
    sub_row = sources.legacy.sales_row(outlet, day, pair.sub_unit_product_id)
    if whole_row is None and sub_row is None:
        return None
    total = 0.0
    if whole_row is not None:
        total += _num(whole_row.get("sold")) * pair.factor
    if sub_row is not None:
        total += _num(sub_row.get("sold"))
    return total


def paired_sales_sold(
    sources: LedgerSources,
    outlet: str,
    day: date,
    pair: ConversionSnapshot,
) -> float:
    """Sold sub-units of a paired menu/kitchen item at a sales outlet."""
    modern = report_paired_sold(sources.sales.report_for(outlet, day), pair)
    legacy = legacy_paired_sold(sources, outlet, day, pair)
    label = f"product {pair.whole_product_id} at {outlet} on {day.isoformat()}"
    sold = max_of_sources(modern, legacy, label=label)
    return sold if sold is not None else 0.0


# ---------------------------------------------------------------------------
# Raw material consumption
# ---------------------------------------------------------------------------


def legacy_raw_total(
    row: Dict[str, Any],
    factor: int,
    is_whole_side: bool,
) -> Optional[float]:
    """Sub-unit total of a legacy raw consumption row in either stored shape."""
    if "consumedWhole" in row or "consumedSlices" in row:
        return to_sub_units(_num(row.get("consumedWhole")), _num(row.get("consumedSlices")), factor)
    if "consumed" in row:
        consumed = _num(row.get("consumed"))
        if is_whole_side:
            whole, sub = split_whole_quantity(consumed, factor)
        else:
            whole, sub = split_sub_quantity(consumed, factor)
        return to_sub_units(whole, sub, factor)
    logger.warning(
        "Unrecognised legacy raw consumption shape for product %s: keys %s",
        row.get("rawProductId"), sorted(row.keys()),
    )
    return None


def paired_raw_sold(
    sources: LedgerSources,
    outlet: str,
    day: date,
    pair: ConversionSnapshot,
) -> float:
    """Sold sub-units of a paired raw material at a sales outlet."""
    factor = pair.factor
    sides = ((pair.whole_product_id, True), (pair.sub_unit_product_id, False))

    def from_report() -> Optional[float]:
        report = sources.sales.report_for(outlet, day)
        if report is None:
            return None
        # The same consumption is stored under both sides; read one, never sum.
        for product_id, _ in sides:
            for line in report.raw_consumption:
                if line.raw_product_id == product_id:
                    total = to_sub_units(line.consumed_whole, line.consumed_slices, factor)
                    return total if total != 0 else None
        return None

    def from_legacy() -> Optional[float]:
        for product_id, is_whole_side in sides:
            row = sources.legacy.raw_consumption_row(outlet, day, product_id)
            if row is not None:
                total = legacy_raw_total(row, factor, is_whole_side)
                if total is not None:
                    logger.info(
                        "Legacy fallback used for raw consumption of %s at %s on %s",
                        pair.whole_product_id, outlet, day.isoformat(),
                    )
                return total
        return None

    _, sold = first_present([("sales_report", from_report), ("legacy", from_legacy)])
    return sold if sold is not None else 0.0


# ---------------------------------------------------------------------------
# Standalone products
# ---------------------------------------------------------------------------


def standalone_sales_sold(
    sources: LedgerSources,
    outlet: str,
    day: date,
    product_id: int,
    is_raw: bool,
) -> float:
    """Sold quantity of a product without a conversion pair at a sales outlet."""

    def from_report() -> Optional[float]:
        report = sources.sales.report_for(outlet, day)
        if report is None:
            return None
        if is_raw:
            for line in report.raw_consumption:
                if line.raw_product_id == product_id and line.consumed_whole != 0:
                    return line.consumed_whole
            return None
        lines = [line for line in report.lines if line.product_id == product_id]
        total = sum(line.sold_whole for line in lines)
        return total if total != 0 else None

    def from_legacy() -> Optional[float]:
        if is_raw:
            row = sources.legacy.raw_consumption_row(outlet, day, product_id)
            if row is None:
                return None
            if "consumed" in row:
                return _num(row.get("consumed"))
            if "consumedWhole" in row or "consumedSlices" in row:
                # Without a pair only the whole-unit column carries a quantity
                return _num(row.get("consumedWhole"))
            logger.warning(
                "Unrecognised legacy raw consumption shape for product %s: keys %s",
                product_id, sorted(row.keys()),
            )
            return None
        row = sources.legacy.sales_row(outlet, day, product_id)
        return _num(row.get("sold")) if row is not None else None

    name, sold = first_present([("sales_report", from_report), ("legacy", from_legacy)])
    if name == "legacy":
        logger.info(
            "Legacy fallback used for sold quantity of %s at %s on %s: %s",
            product_id, outlet, day.isoformat(), sold,
        )
    return sold if sold is not None else 0.0


# ---------------------------------------------------------------------------
# Transfers and production
# ---------------------------------------------------------------------------


def paired_transfer_total(transfers: Iterable[Any], pair: ConversionSnapshot) -> float:
    """Sub-unit total of transfers recorded against either side of a pair."""
    whole_sum = 0.0
    sub_sum = 0.0
    for transfer in transfers:
        if transfer.product_id == pair.whole_product_id:
            whole, sub = split_whole_quantity(transfer.quantity, pair.factor)
        elif transfer.product_id == pair.sub_unit_product_id:
            whole, sub = split_sub_quantity(transfer.quantity, pair.factor)
        else:
            continue
        whole_sum += whole
        sub_sum += sub
    return to_sub_units(whole_sum, sub_sum, pair.factor)


def prods_req_delta(
    sources: LedgerSources,
    outlet: str,
    day: date,
    product_ids: Sequence[int],
    factor: int,
) -> float:
    """Prods.Req quantity booked on top of production for the given product ids."""

    def from_report() -> Optional[float]:
        report = sources.production.report_for(outlet, day)
        if report is None:
            return None
        rows = [row for row in report.prods_req if row.product_id in product_ids]
        if not rows:
            return None
        return sum(to_sub_units(row.prods_req_whole, row.prods_req_slices, factor) for row in rows)

    def from_legacy() -> Optional[float]:
        total = None
        for product_id in product_ids:
            row = sources.legacy.prods_req_row(outlet, day, product_id)
            if row is not None:
                value = to_sub_units(
                    _num(row.get("prodsReqWhole")), _num(row.get("prodsReqSlices")), factor,
                )
                total = (total or 0.0) + value
        return total

    name, delta = first_present([("production_report", from_report), ("legacy", from_legacy)])
    if name == "legacy":
        logger.info(
            "Legacy Prods.Req delta used for %s at %s on %s: %s",
            list(product_ids), outlet, day.isoformat(), delta,
        )
    return delta if delta is not None else 0.0


def production_received(
    sources: LedgerSources,
    outlet: str,
    day: date,
    product_id: int,
    factor: int,
) -> float:
    """Produced quantity of ``product_id`` in sub-units (whole units when factor is 1)."""
    report = sources.production.report_for(outlet, day)
    if report is None:
        return 0.0
    total = 0.0
    for line in report.lines:
        if line.product_id == product_id:
            if factor == 1:
                total += line.quantity_whole
            else:
                total += to_sub_units(line.quantity_whole, line.quantity_slices, factor)
    return total
