from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal

from cashdesk.pricing import to_money
from cashdesk.time_utils import parse_iso_datetime, to_utc_z, utcnow


@dataclass
class Product:
    """
    Product master data held by the catalog store.

    Products are never removed: a "deleted" product is is_active=False so that
    sale snapshots referencing it stay resolvable.
    """
    id: str
    code: str
    barcode: str
    description: str
    sale_price: Decimal
    purchase_price: Decimal = Decimal("0")
    igv: Decimal = Decimal("18")  # percentage, informational only
    stock: int = 0
    category: str = ""
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def copy(self) -> "Product":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "barcode": self.barcode,
            "description": self.description,
            "purchase_price": str(self.purchase_price),
            "sale_price": str(self.sale_price),
            "igv": str(self.igv),
            "stock": self.stock,
            "category": self.category,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=str(data["id"]),
            code=data["code"],
            barcode=data.get("barcode", ""),
            description=data.get("description", ""),
            purchase_price=to_money(data.get("purchase_price", "0")),
            sale_price=to_money(data["sale_price"]),
            igv=to_money(data.get("igv", "18")),
            stock=int(data.get("stock", 0)),
            category=data.get("category", ""),
            is_active=bool(data.get("is_active", True)),
            created_at=parse_iso_datetime(data.get("created_at")) or utcnow(),
            updated_at=parse_iso_datetime(data.get("updated_at")) or utcnow(),
        )
