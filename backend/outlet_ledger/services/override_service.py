"""Manual current-stock overrides.

An override writes the entered stock into the day's latest user stock check,
which makes it the current stock for that date and the opening stock of the
next one. Earlier dates are never touched.
"""

import logging
import time
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from outlet_ledger.core.config import Settings, get_settings
from outlet_ledger.models.outlet import Outlet
from outlet_ledger.models.product import Product, ProductConversion
from outlet_ledger.models.stock_check import StockCheck, StockCount
from outlet_ledger.schemas.snapshot import ConversionSnapshot
from outlet_ledger.services.errors import NotFoundError, ValidationError
from outlet_ledger.services.ledger.units import ConversionIndex

logger = logging.getLogger(__name__)


def _to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


class OverrideService:
    """Writes manual current-stock edits into stock checks."""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or get_settings()

    def _get_outlet(self, name: str) -> Outlet:
        outlet = (
            self.db.query(Outlet)
            .filter(Outlet.name == name, Outlet.not_deleted())
            .first()
        )
        if not outlet:
            raise NotFoundError("Outlet", name)
        return outlet

    def _get_product(self, product_id: int) -> Product:
        product = (
            self.db.query(Product)
            .filter(Product.id == product_id, Product.not_deleted())
            .first()
        )
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def _resolve_pair(self, product_id: int) -> Optional[ConversionSnapshot]:
        conversions = (
            self.db.query(ProductConversion)
            .filter(ProductConversion.not_deleted())
            .order_by(ProductConversion.id)
            .all()
        )
        known_ids = {
            row[0] for row in self.db.query(Product.id).filter(Product.not_deleted()).all()
        }
        index = ConversionIndex(
            (ConversionSnapshot.model_validate(c) for c in conversions), known_ids
        )
        resolved = index.resolve(product_id)
        return resolved[0] if resolved else None

    def _latest_user_check(self, outlet: str, day: date) -> Optional[StockCheck]:
        return (
            self.db.query(StockCheck)
            .filter(
                StockCheck.outlet == outlet,
                StockCheck.date == day,
                StockCheck.not_deleted(),
                StockCheck.completed_by.isnot(None),
                func.trim(StockCheck.completed_by) != "",
                StockCheck.completed_by != self.settings.auto_check_marker,
            )
            .order_by(StockCheck.timestamp.desc(), StockCheck.id.desc())
            .first()
        )

    @staticmethod
    def _set_count(check: StockCheck, product_id: int, quantity: float, day: date) -> StockCount:
        count = next((c for c in check.counts if c.product_id == product_id), None)
        if count is None:
            count = StockCount(
                product_id=product_id,
                received_stock=Decimal("0"),
                wastage=Decimal("0"),
            )
            check.counts.append(count)
        count.quantity = _to_decimal(quantity)
        count.opening_stock = _to_decimal(quantity)
        count.manually_edited_date = day
        return count

    def set_current_stock(
        self,
        outlet: str,
        product_id: int,
        day: date,
        new_whole: float,
        new_sub: float = 0,
    ) -> Tuple[StockCheck, bool]:
        """
        Override the current stock of a product at an outlet on one date.

        For a paired product both sides are written: the whole side gets
        ``new_whole`` and the sub-unit side ``new_sub``.

        Returns:
            (stock_check, created) where ``created`` is True when a new
            check had to be created for the date

        Raises:
            NotFoundError: outlet or product does not exist
            ValidationError: sub-units out of range for the product
        """
        self._get_outlet(outlet)
        self._get_product(product_id)
        pair = self._resolve_pair(product_id)

        if pair is not None:
            if new_sub < 0 or new_sub >= pair.factor:
                raise ValidationError(
                    f"Sub-units must be between 0 and {pair.factor - 1}", field="sub",
                )
        elif new_sub:
            raise ValidationError(
                f"Product {product_id} has no sub-unit conversion", field="sub",
            )

        check = self._latest_user_check(outlet, day)
        created = check is None
        if created:
            check = StockCheck(
                client_id=uuid.uuid4().hex,
                outlet=outlet,
                date=day,
                timestamp=int(time.time() * 1000),
                completed_by=self.settings.manual_edit_marker,
            )
            self.db.add(check)

        if pair is not None:
            self._set_count(check, pair.whole_product_id, new_whole, day)
            self._set_count(check, pair.sub_unit_product_id, new_sub, day)
        else:
            self._set_count(check, product_id, new_whole, day)

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to save override for product %s at %s", product_id, outlet)
            raise
        self.db.refresh(check)

        logger.info(
            "Manual override at %s on %s: product %s set to %sW/%sS (%s check %s)",
            outlet, day.isoformat(), product_id, new_whole, new_sub,
            "new" if created else "existing", check.id,
        )
        return check, created
