"""Live inventory derivation engine."""

from outlet_ledger.services.ledger.engine import LiveInventoryEngine
from outlet_ledger.services.ledger.window import build_window

__all__ = ["LiveInventoryEngine", "build_window"]
