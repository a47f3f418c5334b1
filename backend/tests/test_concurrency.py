"""
Stock mutation under concurrent access.

Verifies:
- Concurrent decrements never lose updates
- Mixed decrement/increment workers land on the exact expected stock
"""

from concurrent.futures import ThreadPoolExecutor

from cashdesk.services.concurrency import ProductLocks

from conftest import add_product


def test_same_product_gets_same_lock():
    locks = ProductLocks()
    assert locks.lock_for("a") is locks.lock_for("a")
    assert locks.lock_for("a") is not locks.lock_for("b")


def test_concurrent_decrements(catalog):
    add_product(catalog, "A", "1.00", stock=1000)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: catalog.decrement_stock("a", 1), range(400)))

    assert catalog.get("a").stock == 600


def test_concurrent_sales_and_refunds(catalog):
    add_product(catalog, "A", "1.00", stock=100)

    def worker(i):
        if i % 2:
            catalog.increment_stock("a", 2)
        else:
            catalog.decrement_stock("a", 1)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(worker, range(200)))

    assert catalog.get("a").stock == 100 + 100 * 2 - 100


def test_decrement_floors_at_zero(catalog):
    add_product(catalog, "A", "1.00", stock=5)

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(lambda _: catalog.decrement_stock("a", 1), range(20)))

    assert catalog.get("a").stock == 0
