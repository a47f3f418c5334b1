# Overview: One cash-desk station; wires catalog, offers, users, cart and ledger together.

"""
Terminal Service

WHY: Each store object is usable on its own, but the counter needs them in
step: signing in binds the cart to the employee, every cart change counts as
activity, checkout moves stock and empties the cart, an idle logout parks
the cart. Terminal is the single place that sequences those calls.

CHECKOUT ORDER:
    1. refuse an empty cart or a missing session
    2. take payment (may raise PaymentError; nothing changed yet)
    3. record the sale in the ledger (totals recomputed there)
    4. decrement stock for each sold line
    5. clear the cart and stamp activity
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from ..models import CartLine, Product, Refund, Sale
from ..pricing import DEFAULT_CASH_ROUNDING_STEP, DEFAULT_IGV_RATE
from ..time_utils import utcnow
from .auth_service import DEFAULT_BCRYPT_ROUNDS, DEFAULT_MIN_PASSWORD_LENGTH, UserDirectory
from .cart_service import CartEngine, CartError
from .catalog_service import CatalogError, CatalogStore
from .concurrency import ProductLocks
from .payment_service import PaymentResult, take_payment
from .promotions_service import OfferRegistry
from .return_service import refund_sale
from .sales_service import SalesLedger
from .session_service import DEFAULT_IDLE_TIMEOUT_SECONDS, AuthError, AuthManager, IdleLogout
from .state_service import (
    STATE_AUTH,
    STATE_CART,
    STATE_OFFERS,
    STATE_PRODUCTS,
    STATE_SALES,
    StateStore,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    sale: Sale
    payment: PaymentResult

    def to_dict(self) -> dict:
        return {"sale": self.sale.to_dict(), "payment": self.payment.to_dict()}


class Terminal:
    def __init__(
        self,
        *,
        terminal_id: str = "T001",
        igv_rate: Decimal = DEFAULT_IGV_RATE,
        rounding_step: Decimal = DEFAULT_CASH_ROUNDING_STEP,
        idle_timeout_seconds: int = DEFAULT_IDLE_TIMEOUT_SECONDS,
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
        min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH,
        clock: Callable = utcnow,
    ):
        self.clock = clock
        self.catalog = CatalogStore(clock=clock, locks=ProductLocks())
        self.offers = OfferRegistry(clock=clock)
        self.users = UserDirectory(bcrypt_rounds=bcrypt_rounds, min_password_length=min_password_length)
        self.auth = AuthManager(
            self.users,
            terminal_id=terminal_id,
            idle_timeout_seconds=idle_timeout_seconds,
            clock=clock,
        )
        self.cart = CartEngine(self.catalog, self.offers, igv_rate=igv_rate, rounding_step=rounding_step)
        self.ledger = SalesLedger(igv_rate=igv_rate, clock=clock)

    @classmethod
    def from_config(cls, config, clock: Callable = utcnow) -> "Terminal":
        return cls(
            terminal_id=config.get("TERMINAL_ID", "T001"),
            igv_rate=Decimal(str(config.get("IGV_RATE", DEFAULT_IGV_RATE))),
            rounding_step=Decimal(str(config.get("CASH_ROUNDING_STEP", DEFAULT_CASH_ROUNDING_STEP))),
            idle_timeout_seconds=int(config.get("SESSION_IDLE_TIMEOUT_SECONDS", DEFAULT_IDLE_TIMEOUT_SECONDS)),
            bcrypt_rounds=int(config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS)),
            min_password_length=int(config.get("MIN_PASSWORD_LENGTH", DEFAULT_MIN_PASSWORD_LENGTH)),
            clock=clock,
        )

    @property
    def terminal_id(self) -> str:
        return self.auth.terminal_id

    # =========================================================================
    # SESSION
    # =========================================================================

    def login(self, code: str, password: str) -> bool:
        """Sign in at this terminal and bring back the employee's parked cart."""
        if not self.auth.login(code, password):
            return False
        self.cart.set_current_user(self.auth.current_user.id)
        return True

    def logout(self) -> None:
        self.cart.set_current_user(None)
        self.auth.logout()

    def touch(self) -> None:
        self.auth.record_activity()

    def check_idle(self) -> IdleLogout | None:
        notice = self.auth.check_idle()
        if notice is not None:
            self.cart.set_current_user(None)
        return notice

    def _require_session(self):
        user = self.auth.current_user
        if user is None:
            raise AuthError("No employee is signed in at this terminal")
        return user

    # =========================================================================
    # CART
    # =========================================================================

    def add_product(self, product_id: str, quantity: int = 1) -> CartLine:
        self._require_session()
        product = self.catalog.get(product_id)
        if product is None:
            raise CatalogError(f"Product {product_id} not found", details={"product_id": product_id})
        line = self.cart.add_line(product, quantity)
        self.touch()
        return line

    def scan(self, code_or_barcode: str, quantity: int = 1) -> CartLine:
        product = self.lookup(code_or_barcode)
        if product is None:
            raise CatalogError(f"No product matches {code_or_barcode}", details={"query": code_or_barcode})
        return self.add_product(product.id, quantity)

    def lookup(self, code_or_barcode: str) -> Product | None:
        code_or_barcode = (code_or_barcode or "").strip()
        if not code_or_barcode:
            return None
        return self.catalog.by_barcode(code_or_barcode) or self.catalog.by_code(code_or_barcode)

    def set_quantity(self, product_id: str, quantity: int) -> CartLine | None:
        self._require_session()
        line = self.cart.set_quantity(product_id, quantity)
        self.touch()
        return line

    def remove_line(self, product_id: str) -> None:
        self._require_session()
        self.cart.remove_line(product_id)
        self.touch()

    def clear_cart(self) -> None:
        self._require_session()
        self.cart.clear_cart()
        self.touch()

    # =========================================================================
    # CHECKOUT / REFUND
    # =========================================================================

    def checkout(self, payment_method: str, amount_received=None) -> CheckoutResult:
        """
        Pay for the cart and record the sale.

        Raises:
            AuthError: nobody signed in
            CartError: cart is empty
            PaymentError: unknown method or short cash (cart untouched)
        """
        user = self._require_session()
        # offers may have started or expired since the last cart edit
        self.cart.recompute_discounts()
        if self.cart.is_empty():
            raise CartError("Cart is empty")

        payment = take_payment(
            payment_method,
            self.cart.total(),
            self.cart.total_rounded(),
            amount_received,
        )
        session = self.auth.current_session()
        sale = self.ledger.complete_sale(
            user.id,
            user.name,
            self.terminal_id,
            self.cart.lines,
            payment_method,
            session.start_time if session else None,
            amount_received=payment.amount_received,
            change_given=payment.change,
        )
        for line in sale.lines:
            try:
                self.catalog.decrement_stock(line.product_id, line.quantity)
            except CatalogError:
                logger.warning("Sale %s: product %s not in catalog, stock not moved", sale.ticket_number, line.product_id)

        self.cart.clear_cart()
        self.touch()
        return CheckoutResult(sale=sale, payment=payment)

    def refund(self, ticket_number: str, quantities: dict[str, int], reason: str | None) -> Refund | None:
        user = self._require_session()
        refund = refund_sale(
            self.ledger,
            self.catalog,
            ticket_number=ticket_number,
            employee_id=user.id,
            employee_name=user.name,
            quantities=quantities,
            reason=reason,
        )
        self.touch()
        return refund

    # =========================================================================
    # STATE
    # =========================================================================

    def snapshot(self) -> dict[str, dict]:
        return {
            STATE_AUTH: self.auth.to_state(),
            STATE_CART: self.cart.to_state(),
            STATE_OFFERS: self.offers.to_state(),
            STATE_PRODUCTS: self.catalog.to_state(),
            STATE_SALES: self.ledger.to_state(),
        }

    def restore(self, snapshots: dict[str, dict]) -> None:
        """Load whichever blobs are present; missing ones leave the store empty."""
        if STATE_PRODUCTS in snapshots:
            self.catalog.load_state(snapshots[STATE_PRODUCTS])
        if STATE_OFFERS in snapshots:
            self.offers.load_state(snapshots[STATE_OFFERS])
        if STATE_AUTH in snapshots:
            self.auth.load_state(snapshots[STATE_AUTH])
        if STATE_CART in snapshots:
            self.cart.load_state(snapshots[STATE_CART])
        if STATE_SALES in snapshots:
            self.ledger.load_state(snapshots[STATE_SALES])

        # the cart follows the session, not the other way round
        signed_in = self.auth.current_user
        expected = signed_in.id if signed_in else None
        if self.cart.current_user_id != expected:
            self.cart.set_current_user(expected)
        self.cart.recompute_discounts()

    def save(self, store: StateStore | None = None) -> None:
        (store or StateStore()).save_all(self.snapshot())

    def load(self, store: StateStore | None = None) -> bool:
        snapshots = (store or StateStore()).load_all()
        if not snapshots:
            return False
        self.restore(snapshots)
        logger.info("Restored terminal %s state: %s", self.terminal_id, ", ".join(sorted(snapshots)))
        return True


