"""Keyed recomputation of live inventory.

Requests are keyed by (outlet, anchor date, window length). Concurrent
requests for the same key share one computation, a viewer only ever gets
the result of the key it asked for last, and override writes for an outlet
never interleave with snapshot loading for that outlet.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from outlet_ledger.core.config import Settings, get_settings
from outlet_ledger.schemas.ledger import (
    OverrideResponse,
    ProductInventoryHistory,
    StockCountResponse,
)
from outlet_ledger.schemas.snapshot import InventorySnapshot
from outlet_ledger.services.errors import NotFoundError
from outlet_ledger.services.ledger.engine import LiveInventoryEngine
from outlet_ledger.services.ledger.window import build_window, range_days
from outlet_ledger.services.override_service import OverrideService
from outlet_ledger.services.snapshot_service import SnapshotService

logger = logging.getLogger(__name__)

RecomputeKey = Tuple[str, date, int]


@dataclass
class _ViewerState:
    """Latest key a viewer asked for and how many of its requests are still waiting."""

    key: RecomputeKey
    pending: int = 0


class RecomputeCoordinator:
    """Coalesces live inventory computations and serializes them with overrides."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        engine: Optional[LiveInventoryEngine] = None,
        settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.engine = engine or LiveInventoryEngine(self.settings)
        self._inflight: Dict[RecomputeKey, asyncio.Task] = {}
        self._viewers: Dict[str, _ViewerState] = {}
        self._outlet_locks: Dict[str, asyncio.Lock] = {}
        self._lock_holders: Dict[str, int] = {}

    def outlet_lock(self, outlet: str) -> asyncio.Lock:
        lock = self._outlet_locks.get(outlet)
        if lock is None:
            lock = asyncio.Lock()
            self._outlet_locks[outlet] = lock
        return lock

    @asynccontextmanager
    async def _hold_outlet(self, outlet: str) -> AsyncIterator[None]:
        """Hold the outlet lock; the lock is forgotten once no task holds or awaits it."""
        lock = self.outlet_lock(outlet)
        self._lock_holders[outlet] = self._lock_holders.get(outlet, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_holders[outlet] - 1
            if remaining:
                self._lock_holders[outlet] = remaining
            else:
                del self._lock_holders[outlet]
                if not lock.locked():
                    self._outlet_locks.pop(outlet, None)

    @staticmethod
    def make_key(outlet: str, anchor: date, mode: Union[str, int]) -> RecomputeKey:
        return outlet, anchor, range_days(mode)

    def in_flight(self, key: RecomputeKey) -> bool:
        return key in self._inflight

    async def recompute(
        self,
        outlet: str,
        anchor: date,
        mode: Union[str, int] = "week",
        viewer: str = "default",
    ) -> Optional[List[ProductInventoryHistory]]:
        """
        Compute (or join the in-flight computation of) one outlet window.

        Returns:
            The histories, or None when ``viewer`` requested a different key
            while this one was running

        Raises:
            NotFoundError: the outlet does not exist
        """
        key = self.make_key(outlet, anchor, mode)
        state = self._viewers.get(viewer)
        if state is None:
            state = self._viewers[viewer] = _ViewerState(key)
        state.key = key
        state.pending += 1

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._run(key))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._release(k, done))
        else:
            logger.debug("Joining in-flight recompute for %s", key)

        # Shielded: a waiter going away never cancels the shared computation
        try:
            result = await asyncio.shield(task)
        finally:
            state.pending -= 1
            if state.pending == 0:
                self._viewers.pop(viewer, None)

        if state.key != key:
            logger.info("Discarding superseded result %s for viewer %s", key, viewer)
            return None
        return result

    def _release(self, key: RecomputeKey, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _run(self, key: RecomputeKey) -> List[ProductInventoryHistory]:
        outlet, anchor, days = key
        dates = build_window(anchor, days)
        async with self._hold_outlet(outlet):
            snapshot = await asyncio.to_thread(self._load_snapshot, outlet, dates)
        if snapshot.outlet_named(outlet) is None:
            raise NotFoundError("Outlet", outlet)
        return await asyncio.to_thread(self.engine.compute, snapshot, outlet, anchor, days)

    def _load_snapshot(self, outlet: str, dates: List[date]) -> InventorySnapshot:
        db = self.session_factory()
        try:
            return SnapshotService(db).load(outlet=outlet, dates=dates)
        finally:
            db.close()

    async def apply_override(
        self,
        outlet: str,
        product_id: int,
        day: date,
        whole: float,
        sub: float = 0,
    ) -> OverrideResponse:
        """Write a manual override while holding the outlet lock."""
        async with self._hold_outlet(outlet):
            response = await asyncio.to_thread(
                self._write_override, outlet, product_id, day, whole, sub
            )
            # Later requests must read the new check, not join a computation
            # whose snapshot predates it.
            for key in [k for k in self._inflight if k[0] == outlet]:
                del self._inflight[key]
        return response

    def _write_override(
        self,
        outlet: str,
        product_id: int,
        day: date,
        whole: float,
        sub: float,
    ) -> OverrideResponse:
        db = self.session_factory()
        try:
            check, created = OverrideService(db, self.settings).set_current_stock(
                outlet, product_id, day, whole, sub
            )
            return OverrideResponse(
                stock_check_id=check.id,
                outlet=check.outlet,
                date=check.date,
                completed_by=check.completed_by,
                created=created,
                counts=[StockCountResponse.model_validate(c) for c in check.counts],
            )
        finally:
            db.close()
