"""Process-lifetime cache for the (slow) software inventory query."""

import logging
import threading
import time
from typing import Callable, Iterable, Optional

from launchscript.models import InventoryProduct, InventorySnapshot
from launchscript.windows_utils import WindowsUtils

logger = logging.getLogger(__name__)


class InventoryCache:
    """Builds the inventory snapshot on first use and keeps it for the life of the object.

    A failed or empty query is stored as InventorySnapshot.EMPTY and not retried, so a
    batch full of misses pays for the query once. The snapshot is never refreshed:
    share one instance per detection run, not across a long-running service.
    """

    def __init__(self, query: Optional[Callable[[], Iterable[InventoryProduct]]] = None):
        self._query = query or WindowsUtils.query_installed_products
        self._snapshot: Optional[InventorySnapshot] = None
        self._lock = threading.Lock()
        self.build_count = 0

    @classmethod
    def preloaded(cls, products: Iterable[InventoryProduct]) -> 'InventoryCache':
        """A cache that already holds `products` and never runs a query."""
        cache = cls(query=lambda: [])
        records = tuple(products)
        cache._snapshot = InventorySnapshot(records=records) if records else InventorySnapshot.EMPTY
        return cache

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None

    def get(self) -> InventorySnapshot:
        # Fast path once built; the lock only serializes the first build
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._build()
            return self._snapshot

    def _build(self) -> InventorySnapshot:
        self.build_count += 1
        logger.info("Building software inventory cache (this can take a while)...")
        started = time.monotonic()
        try:
            products = tuple(p for p in (self._query() or ()) if p and p.name)
        except Exception as e:
            logger.warning(f"Inventory query failed, caching empty inventory: {e}", exc_info=True)
            return InventorySnapshot.EMPTY

        elapsed = time.monotonic() - started
        if not products:
            logger.info(f"Inventory query returned no products ({elapsed:.1f}s), caching empty inventory")
            return InventorySnapshot.EMPTY
        logger.info(f"Inventory cache built with {len(products)} products in {elapsed:.1f}s")
        return InventorySnapshot(records=products)
