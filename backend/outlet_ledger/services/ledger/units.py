"""Whole/sub-unit conversion.

A conversion pair links a whole-side product (a cake, a tray) to its
sub-unit product (a slice, a portion) by an integer factor. Ledger arithmetic
runs on a single sub-unit total per quantity and only splits it back into a
(whole, sub) pair when a record is emitted.
"""

import logging
import math
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, Iterable, List, Optional, Set, Tuple

from outlet_ledger.schemas.snapshot import ConversionSnapshot

logger = logging.getLogger(__name__)

WholeSub = Tuple[float, float]


def round_half_up(value: float, places: int = 2) -> float:
    """Round to ``places`` decimals, halves toward positive infinity."""
    step = Decimal(1).scaleb(-places)
    scaled = Decimal(repr(float(value))) / step + Decimal("0.5")
    result = float(scaled.to_integral_value(rounding=ROUND_FLOOR) * step)
    return result + 0.0  # no -0.0 in output


def round_unit(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return int(math.floor(value + 0.5))


def to_sub_units(whole: float, sub: float, factor: int) -> float:
    return whole * factor + sub


def normalize(whole: float, sub: float, factor: int) -> WholeSub:
    """Promote sub-units >= factor into whole units."""
    if factor > 0 and sub >= factor:
        whole += math.floor(sub / factor)
        sub = round_unit(sub % factor)
    return whole, sub


def split_sub_units(total: float, factor: int) -> WholeSub:
    """Split a sub-unit total into (whole, sub).

    Negative totals keep the sub-unit part positive: -16 with factor 10 is
    -2 whole and 4 sub-units.
    """
    if total < 0:
        magnitude = abs(total)
        whole = -math.ceil(magnitude / factor)
        sub = round_unit(factor - (magnitude % factor)) % factor
        if sub == 0:
            whole = math.floor(total / factor)
        return float(whole), float(sub)

    whole = math.floor(total / factor)
    sub = round_unit(total % factor)
    whole, sub = normalize(whole, sub, factor)
    return float(whole), float(sub)


def split_whole_quantity(quantity: float, factor: int) -> WholeSub:
    """Split a whole-unit-equivalent decimal (2.5 cakes) into (whole, sub)."""
    whole = math.floor(quantity)
    sub = round_unit((quantity - whole) * factor)
    whole, sub = normalize(whole, sub, factor)
    return float(whole), float(sub)


def split_sub_quantity(quantity: float, factor: int) -> WholeSub:
    """Split a quantity recorded against the sub-unit product into (whole, sub)."""
    total = round_unit(quantity)
    return float(math.floor(total / factor)), float(round_unit(total % factor))


class ConversionIndex:
    """Pre-built lookup of conversion pairs by product id.

    Built once per engine pass and never modified afterwards, so a product
    resolves the same way for the whole pass.
    """

    def __init__(
        self,
        conversions: Iterable[ConversionSnapshot],
        known_product_ids: Optional[Set[int]] = None,
    ):
        self._pairs: List[ConversionSnapshot] = []
        self._by_whole: Dict[int, ConversionSnapshot] = {}
        self._by_sub: Dict[int, ConversionSnapshot] = {}

        for conversion in conversions:
            whole_id = conversion.whole_product_id
            sub_id = conversion.sub_unit_product_id

            if known_product_ids is not None and whole_id not in known_product_ids:
                logger.warning(
                    "Skipping conversion %s: whole-side product %s not found",
                    conversion.id, whole_id,
                )
                continue
            if whole_id in self._by_whole:
                logger.warning(
                    "Ignoring duplicate conversion for whole-side product %s (factor %s)",
                    whole_id, conversion.factor,
                )
                continue
            if sub_id in self._by_sub:
                logger.warning(
                    "Ignoring duplicate conversion for sub-unit product %s (factor %s)",
                    sub_id, conversion.factor,
                )
                continue

            self._pairs.append(conversion)
            self._by_whole[whole_id] = conversion
            self._by_sub[sub_id] = conversion

    @property
    def pairs(self) -> List[ConversionSnapshot]:
        """Accepted pairs in table order."""
        return list(self._pairs)

    def resolve(self, product_id: int) -> Optional[Tuple[ConversionSnapshot, bool]]:
        """Return ``(pair, is_whole_side)`` or None for a standalone product."""
        pair = self._by_whole.get(product_id)
        if pair is not None:
            return pair, True
        pair = self._by_sub.get(product_id)
        if pair is not None:
            return pair, False
        return None

    def is_paired(self, product_id: int) -> bool:
        return product_id in self._by_whole or product_id in self._by_sub
