# Overview: Catalog store; owns products, categories and stock levels.

"""
Catalog Store

WHY: Products are the leaf of the terminal. The cart reads prices and stock
ceilings from here and checkout/refund callers move stock through here.

DESIGN:
- Products are soft-deleted (is_active=False), never removed
- Lookups by code/barcode/category/search only return active products
- decrement_stock floors at zero instead of raising; cart-level stock
  sufficiency is checked by the cart engine, not here
- Stock mutations run under a per-product lock (see concurrency.ProductLocks)
"""

from __future__ import annotations

import uuid
from typing import Callable, Iterable

from ..models import Product
from ..pricing import to_money
from ..time_utils import utcnow
from .concurrency import ProductLocks

DEFAULT_LOW_STOCK_THRESHOLD = 10

PRODUCT_MUTABLE_FIELDS = {
    "code", "barcode", "description", "purchase_price", "sale_price",
    "igv", "stock", "category", "is_active",
}
MONEY_FIELDS = {"purchase_price", "sale_price", "igv"}


class CatalogError(Exception):
    """Raised for catalog operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CatalogStore:
    def __init__(self, *, clock: Callable = utcnow, locks: ProductLocks | None = None):
        self._clock = clock
        self._locks = locks or ProductLocks()
        self._products: dict[str, Product] = {}
        self._categories: list[str] = []

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add(self, patch: dict) -> Product:
        """
        Create a product from a field dict.

        Requires code and sale_price; id is generated unless supplied. A new
        category string is appended to the category list.
        """
        for required in ("code", "sale_price"):
            if patch.get(required) in (None, ""):
                raise CatalogError(f"{required} is required")

        now = self._clock()
        product_id = str(patch.get("id") or uuid.uuid4().hex)
        if product_id in self._products:
            raise CatalogError(f"Product {product_id} already exists")

        product = Product(
            id=product_id,
            code=str(patch["code"]).strip(),
            barcode=str(patch.get("barcode") or "").strip(),
            description=str(patch.get("description") or "").strip(),
            sale_price=to_money(patch["sale_price"]),
            purchase_price=to_money(patch.get("purchase_price", "0")),
            igv=to_money(patch.get("igv", "18")),
            stock=int(patch.get("stock", 0)),
            category=str(patch.get("category") or "").strip(),
            is_active=bool(patch.get("is_active", True)),
            created_at=now,
            updated_at=now,
        )
        self._validate(product)

        self._products[product.id] = product
        self._remember_category(product.category)
        return product.copy()

    def update(self, product_id: str, patch: dict) -> Product:
        product = self._require(product_id)
        candidate = product.copy()
        for key, value in patch.items():
            if key not in PRODUCT_MUTABLE_FIELDS:
                continue
            if key in MONEY_FIELDS:
                value = to_money(value)
            elif key == "stock":
                value = int(value)
            elif key == "is_active":
                value = bool(value)
            elif isinstance(value, str):
                value = value.strip()
            setattr(candidate, key, value)
        self._validate(candidate)

        candidate.updated_at = self._clock()
        with self._locks.hold(product_id):
            # stock may have moved while the patch was validated
            if "stock" not in patch:
                candidate.stock = self._products[product_id].stock
            self._products[product_id] = candidate
        self._remember_category(candidate.category)
        return candidate.copy()

    def soft_delete(self, product_id: str) -> Product:
        """Deactivate a product; it stays resolvable by id for sale history."""
        return self.update(product_id, {"is_active": False})

    def set_price(self, product_id: str, new_price) -> Product:
        return self.update(product_id, {"sale_price": new_price})

    def decrement_stock(self, product_id: str, quantity: int) -> int:
        """Remove units after a sale; floors at zero. Returns the new stock."""
        with self._locks.hold(product_id):
            product = self._require(product_id)
            product.stock = max(0, product.stock - quantity)
            product.updated_at = self._clock()
            return product.stock

    def increment_stock(self, product_id: str, quantity: int) -> int:
        """Put units back after a refund. Returns the new stock."""
        with self._locks.hold(product_id):
            product = self._require(product_id)
            product.stock = product.stock + quantity
            product.updated_at = self._clock()
            return product.stock

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get(self, product_id: str) -> Product | None:
        """Any product by id, active or not."""
        product = self._products.get(product_id)
        return product.copy() if product else None

    def all(self, include_inactive: bool = False) -> list[Product]:
        return [p.copy() for p in self._products.values() if include_inactive or p.is_active]

    def by_code(self, code: str) -> Product | None:
        return self._first(lambda p: p.code == code)

    def by_barcode(self, barcode: str) -> Product | None:
        return self._first(lambda p: p.barcode == barcode)

    def by_category(self, category: str) -> list[Product]:
        return [p.copy() for p in self._active() if p.category == category]

    def search(self, query: str) -> list[Product]:
        """Case-insensitive match on code, description or category; substring on barcode."""
        needle = (query or "").lower()
        return [
            p.copy() for p in self._active()
            if needle in p.code.lower()
            or needle in p.description.lower()
            or query in p.barcode
            or needle in p.category.lower()
        ]

    def low_stock(self, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> list[Product]:
        return [p.copy() for p in self._active() if p.stock <= threshold]

    @property
    def categories(self) -> list[str]:
        return list(self._categories)

    # =========================================================================
    # STATE
    # =========================================================================

    def to_state(self) -> dict:
        return {
            "products": [p.to_dict() for p in self._products.values()],
            "categories": list(self._categories),
        }

    def load_state(self, state: dict) -> None:
        products = [Product.from_dict(row) for row in state.get("products") or []]
        self._products = {p.id: p for p in products}
        self._categories = []
        for category in state.get("categories") or []:
            self._remember_category(category)
        for product in products:
            self._remember_category(product.category)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _require(self, product_id: str) -> Product:
        product = self._products.get(product_id)
        if product is None:
            raise CatalogError(f"Product {product_id} not found")
        return product

    def _active(self) -> Iterable[Product]:
        return (p for p in self._products.values() if p.is_active)

    def _first(self, predicate) -> Product | None:
        for product in self._active():
            if predicate(product):
                return product.copy()
        return None

    def _remember_category(self, category: str) -> None:
        if category and category not in self._categories:
            self._categories.append(category)

    def _validate(self, product: Product) -> None:
        if not product.code:
            raise CatalogError("code is required")
        if product.sale_price < 0:
            raise CatalogError("sale_price cannot be negative")
        if product.stock < 0:
            raise CatalogError("stock cannot be negative")
        for other in self._products.values():
            if other.id == product.id:
                continue
            if other.code == product.code:
                raise CatalogError(
                    f"Product code {product.code} already in use",
                    details={"product_id": other.id},
                )
            if product.barcode and other.barcode == product.barcode:
                raise CatalogError(
                    f"Barcode {product.barcode} already in use",
                    details={"product_id": other.id},
                )
