"""Date window for the live inventory view."""

from datetime import date, timedelta
from typing import List, Union

RANGE_DAYS = {"week": 7, "month": 30}


def range_days(mode: Union[str, int]) -> int:
    """Number of days for a range mode ("week"/"month" or 7/30)."""
    if isinstance(mode, bool):
        raise ValueError(f"Unknown range mode: {mode!r}")
    if isinstance(mode, int):
        if mode in RANGE_DAYS.values():
            return mode
        raise ValueError(f"Unknown range mode: {mode!r}")
    key = str(mode).strip().lower()
    if key in RANGE_DAYS:
        return RANGE_DAYS[key]
    if key.isdigit() and int(key) in RANGE_DAYS.values():
        return int(key)
    raise ValueError(f"Unknown range mode: {mode!r}")


def build_window(anchor: Union[date, str], mode: Union[str, int] = "week") -> List[date]:
    """Ascending dates ending at ``anchor`` inclusive."""
    if isinstance(anchor, str):
        anchor = date.fromisoformat(anchor)
    days = range_days(mode)
    start = anchor - timedelta(days=days - 1)
    return [start + timedelta(days=offset) for offset in range(days)]
