from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from cashdesk.pricing import ZERO, to_money
from cashdesk.time_utils import parse_iso_datetime, to_utc_z, utcnow

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD)

SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_PARTIAL_REFUND = "partial_refund"
SALE_STATUS_REFUNDED = "refunded"


@dataclass
class CartLine:
    """
    One product line of a cart, sale or refund.

    unit_price is the sale price captured when the line was created and does
    not follow later catalog price changes. total = quantity * unit_price - discount.
    """
    product_id: str
    code: str
    description: str
    quantity: int
    unit_price: Decimal
    discount: Decimal = ZERO
    total: Decimal = ZERO
    # Set when a "buy N get M" offer put the line in the cart on its own
    auto_added: bool = False

    @property
    def gross(self) -> Decimal:
        return self.quantity * self.unit_price

    def reset_discount(self) -> None:
        self.discount = ZERO
        self.total = self.gross

    def apply_discount(self, discount: Decimal) -> None:
        self.discount = discount
        self.total = self.gross - discount

    def copy(self) -> "CartLine":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "code": self.code,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "discount": str(self.discount),
            "total": str(self.total),
            "auto_added": self.auto_added,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartLine":
        return cls(
            product_id=str(data["product_id"]),
            code=data.get("code", ""),
            description=data.get("description", ""),
            quantity=int(data["quantity"]),
            unit_price=to_money(data["unit_price"]),
            discount=to_money(data.get("discount", "0")),
            total=to_money(data.get("total", "0")),
            auto_added=bool(data.get("auto_added", False)),
        )


@dataclass
class Sale:
    """
    Immutable financial snapshot of a completed checkout.

    Only status moves after creation:
    completed -> partial_refund -> refunded.
    """
    id: str
    ticket_number: str
    employee_id: str
    employee_name: str
    terminal_id: str
    lines: list[CartLine]
    subtotal: Decimal
    discount_amount: Decimal
    igv_amount: Decimal
    total: Decimal
    payment_method: str
    session_start: datetime | None
    session_end: datetime | None
    status: str = SALE_STATUS_COMPLETED
    created_at: datetime = field(default_factory=utcnow)
    amount_received: Decimal | None = None
    change_given: Decimal | None = None

    def line_for(self, product_id: str) -> CartLine | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def sold_quantities(self) -> dict[str, int]:
        quantities: dict[str, int] = {}
        for line in self.lines:
            quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
        return quantities

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_number": self.ticket_number,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "terminal_id": self.terminal_id,
            "lines": [line.to_dict() for line in self.lines],
            "subtotal": str(self.subtotal),
            "discount_amount": str(self.discount_amount),
            "igv_amount": str(self.igv_amount),
            "total": str(self.total),
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "session_start": to_utc_z(self.session_start),
            "session_end": to_utc_z(self.session_end),
            "amount_received": None if self.amount_received is None else str(self.amount_received),
            "change_given": None if self.change_given is None else str(self.change_given),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        return cls(
            id=str(data["id"]),
            ticket_number=data["ticket_number"],
            employee_id=str(data["employee_id"]),
            employee_name=data.get("employee_name", ""),
            terminal_id=data.get("terminal_id", ""),
            lines=[CartLine.from_dict(row) for row in data.get("lines") or []],
            subtotal=to_money(data["subtotal"]),
            discount_amount=to_money(data["discount_amount"]),
            igv_amount=to_money(data["igv_amount"]),
            total=to_money(data["total"]),
            payment_method=data["payment_method"],
            status=data.get("status", SALE_STATUS_COMPLETED),
            created_at=parse_iso_datetime(data.get("created_at")) or utcnow(),
            session_start=parse_iso_datetime(data.get("session_start")),
            session_end=parse_iso_datetime(data.get("session_end")),
            amount_received=_optional_money(data.get("amount_received")),
            change_given=_optional_money(data.get("change_given")),
        )


@dataclass
class Refund:
    """A refund against one sale; a sale can collect several."""
    id: str
    original_sale_id: str
    ticket_number: str
    employee_id: str
    employee_name: str
    lines: list[CartLine]
    refund_amount: Decimal
    reason: str
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_sale_id": self.original_sale_id,
            "ticket_number": self.ticket_number,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "lines": [line.to_dict() for line in self.lines],
            "refund_amount": str(self.refund_amount),
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Refund":
        return cls(
            id=str(data["id"]),
            original_sale_id=str(data["original_sale_id"]),
            ticket_number=data["ticket_number"],
            employee_id=str(data["employee_id"]),
            employee_name=data.get("employee_name", ""),
            lines=[CartLine.from_dict(row) for row in data.get("lines") or []],
            refund_amount=to_money(data["refund_amount"]),
            reason=data.get("reason", ""),
            created_at=parse_iso_datetime(data.get("created_at")) or utcnow(),
        )


def _optional_money(value):
    return None if value is None else to_money(value)
