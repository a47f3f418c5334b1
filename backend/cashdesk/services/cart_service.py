# Overview: Cart engine; working sale lines per user with offer-driven discounts.

"""
Cart Engine

WHY: The cart is where pricing happens. Every mutation ends with a
synchronous recompute_discounts() so readers never observe a half-priced
cart.

DESIGN:
- One line per product id; unit_price is captured when the line is created
- Offers are applied in registry order and each applicable offer
  OVERWRITES the discount of the line it targets (last applicable offer wins)
- "Buy N get M" offers may put a free line in the cart on their own
  (auto_added=True); those lines are dropped and rebuilt on every recompute
- Carts are kept per user id; switching users parks the outgoing lines
- IGV is a flat rate on the discounted subtotal (see pricing.compute_totals)
"""

from __future__ import annotations

from decimal import Decimal

from ..models import CartLine, Offer, Product, OFFER_TYPE_NXM, OFFER_TYPE_N_PLUS_M
from ..pricing import (
    DEFAULT_CASH_ROUNDING_STEP,
    DEFAULT_IGV_RATE,
    Totals,
    compute_totals,
    round_to_step,
)
from .catalog_service import CatalogStore
from .promotions_service import OfferRegistry


class CartError(Exception):
    """Raised for cart operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(CartError):
    """Requested quantity exceeds the product's stock; the cart is unchanged."""
    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock. Available: {available}",
            details={
                "product_id": product_id,
                "requested_quantity": requested,
                "available": available,
            },
        )
        self.available = available


class CartEngine:
    def __init__(
        self,
        catalog: CatalogStore,
        offers: OfferRegistry,
        *,
        igv_rate: Decimal = DEFAULT_IGV_RATE,
        rounding_step: Decimal = DEFAULT_CASH_ROUNDING_STEP,
    ):
        self._catalog = catalog
        self._offers = offers
        self._igv_rate = igv_rate
        self._rounding_step = rounding_step

        self._lines: list[CartLine] = []
        self._current_user_id: str | None = None
        self._user_carts: dict[str, list[CartLine]] = {}

    # =========================================================================
    # USER BINDING
    # =========================================================================

    @property
    def current_user_id(self) -> str | None:
        return self._current_user_id

    def set_current_user(self, user_id: str | None) -> None:
        """
        Park the outgoing user's lines and load the incoming user's.

        Lines come back exactly as they were left (no recompute), so a user
        who steps away finds the same quantities and discounts.
        """
        if self._current_user_id is not None:
            self._user_carts[self._current_user_id] = _copy_lines(self._lines)

        self._current_user_id = user_id
        if user_id is None:
            self._lines = []
        else:
            self._lines = _copy_lines(self._user_carts.get(user_id, []))

    def saved_cart(self, user_id: str) -> list[CartLine]:
        if user_id == self._current_user_id:
            return self.lines
        return _copy_lines(self._user_carts.get(user_id, []))

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add_line(self, product: Product, quantity: int = 1) -> CartLine:
        """
        Add quantity units of product, merging with an existing line.

        Raises InsufficientStockError (cart unchanged) when the resulting
        quantity exceeds the product's stock.
        """
        self._require_user()
        if quantity <= 0:
            raise CartError("Quantity must be positive")

        current = self._catalog.get(product.id) or product
        if not current.is_active:
            raise CartError(f"Product {current.code} is not available", details={"product_id": current.id})

        line = self._find(current.id)
        existing = 0 if line is None or line.auto_added else line.quantity
        target = existing + quantity
        if target > current.stock:
            raise InsufficientStockError(current.id, target, current.stock)

        if line is not None and line.auto_added:
            # a promotional line becomes the user's own line at the current price
            self._lines.remove(line)
            line = None

        if line is None:
            line = CartLine(
                product_id=current.id,
                code=current.code,
                description=current.description,
                quantity=target,
                unit_price=current.sale_price,
            )
            line.reset_discount()
            self._lines.append(line)
        else:
            line.quantity = target
            line.reset_discount()

        self.recompute_discounts()
        return self._find(current.id).copy()

    def set_quantity(self, product_id: str, quantity: int) -> CartLine | None:
        """
        Set a line's quantity; zero or less removes it.

        The ceiling is the product's stock in the catalog now, not the stock
        seen when the line was added.
        """
        self._require_user()
        if quantity <= 0:
            self.remove_line(product_id)
            return None

        line = self._find(product_id)
        if line is None:
            raise CartError(f"Product {product_id} is not in the cart", details={"product_id": product_id})

        product = self._catalog.get(product_id)
        available = product.stock if product else 0
        if quantity > available:
            raise InsufficientStockError(product_id, quantity, available)

        line.quantity = quantity
        line.auto_added = False
        line.total = quantity * line.unit_price - line.discount
        self.recompute_discounts()
        return self._find(product_id).copy()

    def remove_line(self, product_id: str) -> None:
        self._lines = [line for line in self._lines if line.product_id != product_id]
        self.recompute_discounts()

    def clear_cart(self) -> None:
        """Empty the current user's cart; other users' parked carts are untouched."""
        self._lines = []
        if self._current_user_id is not None:
            self._user_carts[self._current_user_id] = []

    # =========================================================================
    # PRICING
    # =========================================================================

    def recompute_discounts(self) -> None:
        """
        Rebuild every discount from scratch against the active offers.

        Deterministic and idempotent: running it twice in a row yields the
        same lines and totals.
        """
        lines = [line for line in self._lines if not line.auto_added]
        for line in lines:
            line.reset_discount()
        self._lines = lines

        for offer in self._offers.active_offers():
            if offer.type == OFFER_TYPE_NXM:
                self._apply_nxm(offer)
            elif offer.type == OFFER_TYPE_N_PLUS_M:
                self._apply_n_plus_m(offer)

    def _apply_nxm(self, offer: Offer) -> None:
        for product_id in offer.product_ids:
            line = self._find(product_id)
            if line is None or line.quantity < offer.buy_quantity:
                continue
            sets = line.quantity // offer.buy_quantity
            free_units = sets * (offer.buy_quantity - offer.pay_quantity)
            line.apply_discount(free_units * line.unit_price)

    def _apply_n_plus_m(self, offer: Offer) -> None:
        for product_id in offer.product_ids:
            trigger = self._find(product_id)
            if trigger is None or trigger.quantity < offer.buy_quantity:
                continue
            sets = trigger.quantity // offer.buy_quantity
            free_quantity = sets * offer.free_quantity

            free_line = self._find(offer.free_product_id)
            if free_line is not None:
                discount = min(free_quantity, free_line.quantity) * free_line.unit_price
                free_line.apply_discount(min(discount, free_line.gross))
                continue

            free_product = self._catalog.get(offer.free_product_id)
            if free_product is None or not free_product.is_active:
                continue
            quantity = min(free_quantity, free_product.stock)
            if quantity <= 0:
                continue
            free_line = CartLine(
                product_id=free_product.id,
                code=free_product.code,
                description=free_product.description,
                quantity=quantity,
                unit_price=free_product.sale_price,
                auto_added=True,
            )
            free_line.apply_discount(free_line.gross)
            self._lines.append(free_line)

    def totals(self) -> Totals:
        return compute_totals(self._lines, self._igv_rate)

    def subtotal(self) -> Decimal:
        return self.totals().subtotal

    def discount_total(self) -> Decimal:
        return self.totals().discount_amount

    def igv_total(self) -> Decimal:
        return self.totals().igv_amount

    def total(self) -> Decimal:
        return self.totals().total

    def total_rounded(self) -> Decimal:
        """Total rounded to the cash step; only used to work out cash change."""
        return round_to_step(self.total(), self._rounding_step)

    # =========================================================================
    # READ / STATE
    # =========================================================================

    @property
    def lines(self) -> list[CartLine]:
        return _copy_lines(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def summary(self) -> dict:
        totals = self.totals()
        return {
            "user_id": self._current_user_id,
            "lines": [line.to_dict() for line in self._lines],
            **totals.to_dict(),
            "total_rounded": str(self.total_rounded()),
        }

    def to_state(self) -> dict:
        user_carts = {uid: [l.to_dict() for l in lines] for uid, lines in self._user_carts.items()}
        if self._current_user_id is not None:
            user_carts[self._current_user_id] = [l.to_dict() for l in self._lines]
        return {
            "current_user_id": self._current_user_id,
            "items": [l.to_dict() for l in self._lines],
            "user_carts": user_carts,
        }

    def load_state(self, state: dict) -> None:
        self._user_carts = {
            str(uid): [CartLine.from_dict(row) for row in rows]
            for uid, rows in (state.get("user_carts") or {}).items()
        }
        self._current_user_id = state.get("current_user_id")
        self._lines = [CartLine.from_dict(row) for row in state.get("items") or []]

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _find(self, product_id: str) -> CartLine | None:
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    def _require_user(self) -> None:
        if self._current_user_id is None:
            raise CartError("No user is bound to the cart")


def _copy_lines(lines: list[CartLine]) -> list[CartLine]:
    return [line.copy() for line in lines]
