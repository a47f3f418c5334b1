# Overview: Per-product critical sections for catalog stock mutations.

from __future__ import annotations

import threading
from contextlib import contextmanager


class ProductLocks:
    """
    Registry of one lock per product id.

    NOTE: A single terminal process never contends on these, but any
    deployment that lets several threads touch the catalog must serialize
    stock decrement/increment per product to avoid lost updates.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, product_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(product_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[product_id] = lock
            return lock

    @contextmanager
    def hold(self, product_id: str):
        lock = self.lock_for(product_id)
        with lock:
            yield
