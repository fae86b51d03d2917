"""Live inventory engine.

Rebuilds the daily stock ledger of every product at one outlet over a date
window from an ``InventorySnapshot``. The engine keeps no state between
calls: the same snapshot always yields the same histories.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Set, Union

from outlet_ledger.core.config import Settings, get_settings
from outlet_ledger.schemas.ledger import ProductInventoryHistory
from outlet_ledger.schemas.snapshot import InventorySnapshot, ProductSnapshot
from outlet_ledger.services.ledger.day_ledger import (
    LedgerContext,
    build_paired_day,
    build_standalone_day,
)
from outlet_ledger.services.ledger.sequencer import carry_forward, with_discrepancies
from outlet_ledger.services.ledger.sources import LedgerSources
from outlet_ledger.services.ledger.units import ConversionIndex
from outlet_ledger.services.ledger.window import build_window

logger = logging.getLogger(__name__)


class LiveInventoryEngine:
    """Computes per-product inventory histories for one outlet."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def compute(
        self,
        snapshot: InventorySnapshot,
        outlet_name: str,
        anchor: Union[date, str],
        mode: Union[str, int] = "week",
    ) -> List[ProductInventoryHistory]:
        """
        Build inventory histories for ``outlet_name`` over the window ending at ``anchor``.

        Args:
            snapshot: Tombstone-filtered inputs
            outlet_name: Outlet to compute
            anchor: Last date of the window (inclusive)
            mode: "week"/7 or "month"/30

        Returns:
            Histories sorted by product name; products with no activity in
            the window are left out
        """
        dates = build_window(anchor, mode)

        outlet = snapshot.outlet_named(outlet_name)
        if outlet is None:
            logger.warning("Outlet '%s' not found, nothing to compute", outlet_name)
            return []

        products: Dict[int, ProductSnapshot] = {p.id: p for p in snapshot.products}
        index = ConversionIndex(snapshot.conversions, set(products))
        sources = LedgerSources.from_snapshot(
            snapshot,
            auto_marker=self.settings.auto_check_marker,
            legacy_enabled=self.settings.legacy_fallback_enabled,
        )
        ctx = LedgerContext(outlet=outlet, sources=sources)

        histories: List[ProductInventoryHistory] = []
        processed: Set[int] = set()

        # Conversion pairs first
        for pair in index.pairs:
            whole_product = products[pair.whole_product_id]
            if pair.whole_product_id in processed:
                continue
            processed.add(pair.whole_product_id)
            processed.add(pair.sub_unit_product_id)
            sub_product = products.get(pair.sub_unit_product_id)

            try:
                results = carry_forward(
                    dates,
                    lambda day, carried: build_paired_day(ctx, whole_product, pair, day, carried),
                )
                records = with_discrepancies(results, pair.factor)
            except (ArithmeticError, TypeError, ValueError):
                logger.exception(
                    "Ledger failed for %s at %s, skipping product", whole_product.name, outlet.name
                )
                continue

            if records:
                histories.append(
                    ProductInventoryHistory(
                        product_id=whole_product.id,
                        product_name=whole_product.name,
                        unit=whole_product.unit,
                        outlet=outlet.name,
                        sub_unit_product_id=pair.sub_unit_product_id,
                        sub_unit_name=sub_product.name if sub_product is not None else None,
                        conversion_factor=pair.factor,
                        show_in_stock=whole_product.show_in_stock,
                        records=records,
                    )
                )

        # Products referenced by any conversion row never show up on their own
        referenced: Set[int] = set()
        for conversion in snapshot.conversions:
            referenced.add(conversion.whole_product_id)
            referenced.add(conversion.sub_unit_product_id)

        for product in snapshot.products:
            if product.id in processed or product.id in referenced:
                continue
            processed.add(product.id)

            try:
                results = carry_forward(
                    dates,
                    lambda day, carried: build_standalone_day(ctx, product, day, carried),
                )
                records = with_discrepancies(results)
            except (ArithmeticError, TypeError, ValueError):
                logger.exception(
                    "Ledger failed for %s at %s, skipping product", product.name, outlet.name
                )
                continue

            if records:
                histories.append(
                    ProductInventoryHistory(
                        product_id=product.id,
                        product_name=product.name,
                        unit=product.unit,
                        outlet=outlet.name,
                        show_in_stock=product.show_in_stock,
                        records=records,
                    )
                )

        histories.sort(key=lambda h: h.product_name.lower())
        logger.debug(
            "Computed %d product histories for %s (%s to %s)",
            len(histories), outlet.name, dates[0].isoformat(), dates[-1].isoformat(),
        )
        return histories
