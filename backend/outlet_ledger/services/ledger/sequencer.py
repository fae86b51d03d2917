"""Carry-forward over the date window and the discrepancy pass."""

from datetime import date
from typing import Callable, List, Optional, Sequence

from outlet_ledger.schemas.ledger import DailyInventoryRecord
from outlet_ledger.services.ledger.day_ledger import DayResult
from outlet_ledger.services.ledger.units import round_half_up, split_sub_units

# (day, carried_opening) -> DayResult
DayBuilder = Callable[[date, float], DayResult]


def carry_forward(dates: Sequence[date], build_day: DayBuilder) -> List[DayResult]:
    """Build every day in order, feeding each day's current into the next day's opening."""
    results: List[DayResult] = []
    closing = 0.0
    for day in dates:
        result = build_day(day, closing)
        results.append(result)
        closing = result.current
    return results


def with_discrepancies(
    results: Sequence[DayResult],
    factor: Optional[int] = None,
) -> List[DailyInventoryRecord]:
    """Emitted records with discrepancy = next record's opening minus this current.

    Only days with activity are emitted. The last emitted record keeps a
    discrepancy of 0. ``factor`` is None for products without a conversion pair.
    """
    emitted = [result for result in results if result.emitted]
    records: List[DailyInventoryRecord] = []

    for index, result in enumerate(emitted):
        if index + 1 >= len(emitted):
            records.append(result.record)
            continue

        difference = emitted[index + 1].opening - result.current
        if factor is None:
            update = {"discrepancy_whole": round_half_up(difference), "discrepancy_sub": 0.0}
        else:
            whole, sub = split_sub_units(difference, factor)
            update = {
                "discrepancy_whole": round_half_up(whole),
                "discrepancy_sub": round_half_up(sub),
            }
        records.append(result.record.model_copy(update=update))

    return records
