from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from cashdesk.time_utils import parse_iso_datetime, to_utc_z, utcnow

OFFER_TYPE_NXM = "nxm"  # buy N, pay M
OFFER_TYPE_N_PLUS_M = "n+m"  # buy N, get M of a product free

OFFER_TYPES = (OFFER_TYPE_NXM, OFFER_TYPE_N_PLUS_M)


class OfferValidationError(ValueError):
    """Raised when an offer's fields do not match its type."""


@dataclass
class Offer:
    """
    Promotional offer.

    Exactly one variant is populated: NxM offers carry pay_quantity, N+M
    offers carry free_product_id and free_quantity. The validity window is
    inclusive at both ends.
    """
    id: str
    name: str
    type: str
    product_ids: list[str]
    buy_quantity: int
    start_date: datetime
    end_date: datetime
    description: str | None = None
    pay_quantity: int | None = None
    free_product_id: str | None = None
    free_quantity: int | None = None
    is_active: bool = True
    created_by: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.type not in OFFER_TYPES:
            raise OfferValidationError(f"Unknown offer type: {self.type}")
        if not self.name or not self.name.strip():
            raise OfferValidationError("Offer name is required")
        if not self.product_ids:
            raise OfferValidationError("Offer must apply to at least one product")
        if self.buy_quantity is None or self.buy_quantity < 1:
            raise OfferValidationError("buy_quantity must be at least 1")
        if self.start_date is None or self.end_date is None:
            raise OfferValidationError("start_date and end_date are required")
        if self.end_date < self.start_date:
            raise OfferValidationError("end_date cannot be before start_date")

        if self.type == OFFER_TYPE_NXM:
            if self.pay_quantity is None:
                raise OfferValidationError("NxM offers require pay_quantity")
            if self.free_product_id is not None or self.free_quantity is not None:
                raise OfferValidationError("NxM offers cannot carry free_product_id/free_quantity")
            if not 0 <= self.pay_quantity < self.buy_quantity:
                raise OfferValidationError("pay_quantity must be lower than buy_quantity")
        else:
            if self.free_product_id is None or self.free_quantity is None:
                raise OfferValidationError("N+M offers require free_product_id and free_quantity")
            if self.pay_quantity is not None:
                raise OfferValidationError("N+M offers cannot carry pay_quantity")
            if self.free_quantity < 1:
                raise OfferValidationError("free_quantity must be at least 1")

    def is_current(self, now: datetime) -> bool:
        return self.is_active and self.start_date <= now <= self.end_date

    def applies_to(self, product_id: str) -> bool:
        return product_id in self.product_ids

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "product_ids": list(self.product_ids),
            "buy_quantity": self.buy_quantity,
            "pay_quantity": self.pay_quantity,
            "free_product_id": self.free_product_id,
            "free_quantity": self.free_quantity,
            "is_active": self.is_active,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Offer":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            description=data.get("description"),
            type=data["type"],
            product_ids=[str(p) for p in data.get("product_ids") or []],
            buy_quantity=int(data["buy_quantity"]),
            pay_quantity=_optional_int(data.get("pay_quantity")),
            free_product_id=_optional_str(data.get("free_product_id")),
            free_quantity=_optional_int(data.get("free_quantity")),
            is_active=bool(data.get("is_active", True)),
            start_date=parse_iso_datetime(data["start_date"]),
            end_date=parse_iso_datetime(data["end_date"]),
            created_by=_optional_str(data.get("created_by")),
            created_at=parse_iso_datetime(data.get("created_at")) or utcnow(),
        )


def _optional_int(value):
    return None if value is None else int(value)


def _optional_str(value):
    return None if value is None else str(value)
