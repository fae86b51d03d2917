"""Indexed read access to the five ledger inputs.

Each accessor indexes its collection by (outlet, date) once and answers
lookups from the index. Accessors only read the snapshot they were built
from.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Any, DefaultDict, Dict, Iterable, List, Optional, Sequence, Tuple

from outlet_ledger.models.transfer import TransferStatus
from outlet_ledger.schemas.snapshot import (
    InventorySnapshot,
    LegacyEntrySnapshot,
    ProductionReportSnapshot,
    SalesReportSnapshot,
    StockCheckSnapshot,
    TransferSnapshot,
)

logger = logging.getLogger(__name__)

DayKey = Tuple[str, date]


class StockCheckSource:
    """User-authored stock checks by outlet and date, latest first."""

    def __init__(self, checks: Iterable[StockCheckSnapshot], auto_marker: str = "AUTO"):
        self.auto_marker = auto_marker
        index: DefaultDict[DayKey, List[StockCheckSnapshot]] = defaultdict(list)
        for check in checks:
            if self.is_user_authored(check):
                index[(check.outlet, check.date)].append(check)
        self._by_day: Dict[DayKey, List[StockCheckSnapshot]] = {
            key: sorted(day_checks, key=lambda c: c.timestamp, reverse=True)
            for key, day_checks in index.items()
        }

    def is_user_authored(self, check: StockCheckSnapshot) -> bool:
        completed_by = (check.completed_by or "").strip()
        return bool(completed_by) and completed_by != self.auto_marker

    def user_checks(self, outlet: str, day: date) -> List[StockCheckSnapshot]:
        return self._by_day.get((outlet, day), [])

    def latest_user_check(self, outlet: str, day: date) -> Optional[StockCheckSnapshot]:
        checks = self.user_checks(outlet, day)
        return checks[0] if checks else None

    def latest_replace_all_check(self, outlet: str, day: date) -> Optional[StockCheckSnapshot]:
        for check in self.user_checks(outlet, day):
            if check.replace_all_inventory:
                return check
        return None


class TransferSource:
    """Approved transfer requests by outlet and request date."""

    def __init__(self, transfers: Iterable[TransferSnapshot]):
        self._incoming: DefaultDict[DayKey, List[TransferSnapshot]] = defaultdict(list)
        self._outgoing: DefaultDict[DayKey, List[TransferSnapshot]] = defaultdict(list)
        for transfer in transfers:
            if transfer.status != TransferStatus.APPROVED or transfer.request_date is None:
                continue
            self._incoming[(transfer.to_outlet, transfer.request_date)].append(transfer)
            self._outgoing[(transfer.from_outlet, transfer.request_date)].append(transfer)

    def incoming(self, outlet: str, day: date, product_ids: Sequence[int]) -> List[TransferSnapshot]:
        return [t for t in self._incoming.get((outlet, day), []) if t.product_id in product_ids]

    def outgoing(self, outlet: str, day: date, product_ids: Sequence[int]) -> List[TransferSnapshot]:
        return [t for t in self._outgoing.get((outlet, day), []) if t.product_id in product_ids]


def _latest_by_day(reports: Iterable[Any]) -> Dict[DayKey, Any]:
    latest: Dict[DayKey, Any] = {}
    for report in reports:
        key = (report.outlet, report.date)
        current = latest.get(key)
        if current is None or report.timestamp > current.timestamp:
            latest[key] = report
    return latest


class ProductionReportSource:
    """Latest production report per outlet and date."""

    def __init__(self, reports: Iterable[ProductionReportSnapshot]):
        self._by_day: Dict[DayKey, ProductionReportSnapshot] = _latest_by_day(reports)

    def report_for(self, outlet: str, day: date) -> Optional[ProductionReportSnapshot]:
        return self._by_day.get((outlet, day))


class SalesReportSource:
    """Latest sales report per outlet and date."""

    def __init__(self, reports: Iterable[SalesReportSnapshot]):
        self._by_day: Dict[DayKey, SalesReportSnapshot] = _latest_by_day(reports)

    def report_for(self, outlet: str, day: date) -> Optional[SalesReportSnapshot]:
        return self._by_day.get((outlet, day))


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class LegacyReconciliationLog:
    """Old-format reconciliations, most recently updated first per outlet and date."""

    def __init__(self, entries: Iterable[LegacyEntrySnapshot], enabled: bool = True):
        self.enabled = enabled
        index: DefaultDict[DayKey, List[LegacyEntrySnapshot]] = defaultdict(list)
        if enabled:
            for entry in entries:
                index[(entry.outlet, entry.date)].append(entry)
        self._by_day: Dict[DayKey, List[LegacyEntrySnapshot]] = {
            key: sorted(day_entries, key=lambda e: e.recency, reverse=True)
            for key, day_entries in index.items()
        }

    def entries_for(self, outlet: str, day: date) -> List[LegacyEntrySnapshot]:
        return self._by_day.get((outlet, day), [])

    def _first_row(self, outlet: str, day: date, payload: str, id_key: str, product_id: int):
        for entry in self.entries_for(outlet, day):
            for row in getattr(entry, payload) or ():
                if isinstance(row, dict) and _as_int(row.get(id_key)) == product_id:
                    return row
        return None

    def sales_row(self, outlet: str, day: date, product_id: int) -> Optional[Dict[str, Any]]:
        return self._first_row(outlet, day, "sales_data", "productId", product_id)

    def raw_consumption_row(self, outlet: str, day: date, raw_product_id: int) -> Optional[Dict[str, Any]]:
        return self._first_row(outlet, day, "raw_consumption", "rawProductId", raw_product_id)

    def prods_req_row(self, outlet: str, day: date, product_id: int) -> Optional[Dict[str, Any]]:
        return self._first_row(outlet, day, "prods_req_updates", "productId", product_id)


class LedgerSources:
    """The five accessors for one engine pass."""

    def __init__(
        self,
        stock_checks: StockCheckSource,
        transfers: TransferSource,
        production: ProductionReportSource,
        sales: SalesReportSource,
        legacy: LegacyReconciliationLog,
    ):
        self.stock_checks = stock_checks
        self.transfers = transfers
        self.production = production
        self.sales = sales
        self.legacy = legacy

    @classmethod
    def from_snapshot(
        cls,
        snapshot: InventorySnapshot,
        auto_marker: str = "AUTO",
        legacy_enabled: bool = True,
    ) -> "LedgerSources":
        return cls(
            stock_checks=StockCheckSource(snapshot.stock_checks, auto_marker=auto_marker),
            transfers=TransferSource(snapshot.transfers),
            production=ProductionReportSource(snapshot.production_reports),
            sales=SalesReportSource(snapshot.sales_reports),
            legacy=LegacyReconciliationLog(snapshot.legacy_entries, enabled=legacy_enabled),
        )
