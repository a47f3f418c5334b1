from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Callable

from ..models import Offer, OfferValidationError
from ..time_utils import parse_day_bound, utcnow

OFFER_MUTABLE_FIELDS = (
    "name", "description", "type", "product_ids", "buy_quantity", "pay_quantity",
    "free_product_id", "free_quantity", "is_active", "start_date", "end_date",
)


class OfferRegistry:
    """
    Promotional offers, kept in registration order.

    Overlapping offers for the same product are neither merged nor ranked
    here; the cart engine applies every active one in this order.
    """

    def __init__(self, *, clock: Callable = utcnow):
        self._clock = clock
        self._offers: list[Offer] = []

    def add(self, data: dict, created_by: str | None = None) -> Offer:
        offer = Offer(
            id=str(data.get("id") or uuid.uuid4().hex),
            name=data.get("name", ""),
            description=data.get("description"),
            type=data.get("type", ""),
            product_ids=[str(p) for p in data.get("product_ids") or []],
            buy_quantity=_optional_int(data.get("buy_quantity")),
            pay_quantity=_optional_int(data.get("pay_quantity")),
            free_product_id=_optional_str(data.get("free_product_id")),
            free_quantity=_optional_int(data.get("free_quantity")),
            is_active=bool(data.get("is_active", True)),
            start_date=_as_datetime(data.get("start_date")),
            end_date=_as_datetime(data.get("end_date"), end_of_day=True),
            created_by=created_by or data.get("created_by"),
            created_at=self._clock(),
        )
        if self.get(offer.id) is not None:
            raise OfferValidationError(f"Offer {offer.id} already exists")
        self._offers.append(offer)
        return offer

    def update(self, offer_id: str, data: dict) -> Offer | None:
        for index, offer in enumerate(self._offers):
            if offer.id != offer_id:
                continue
            changes = {k: data[k] for k in OFFER_MUTABLE_FIELDS if k in data}
            for key in ("start_date", "end_date"):
                if key in changes:
                    changes[key] = _as_datetime(changes[key], end_of_day=(key == "end_date"))
            for key in ("buy_quantity", "pay_quantity", "free_quantity"):
                if key in changes:
                    changes[key] = _optional_int(changes[key])
            if "product_ids" in changes:
                changes["product_ids"] = [str(p) for p in changes["product_ids"] or []]
            # replace() re-runs validation, so a bad patch leaves the offer untouched
            updated = replace(offer, **changes)
            self._offers[index] = updated
            return updated
        return None

    def delete(self, offer_id: str) -> bool:
        before = len(self._offers)
        self._offers = [o for o in self._offers if o.id != offer_id]
        return len(self._offers) != before

    def get(self, offer_id: str) -> Offer | None:
        for offer in self._offers:
            if offer.id == offer_id:
                return offer
        return None

    def all(self) -> list[Offer]:
        return list(self._offers)

    def active_offers(self, now=None) -> list[Offer]:
        now = now or self._clock()
        return [o for o in self._offers if o.is_current(now)]

    def offers_for_product(self, product_id: str, now=None) -> list[Offer]:
        return [o for o in self.active_offers(now) if o.applies_to(product_id)]

    def to_state(self) -> dict:
        return {"offers": [o.to_dict() for o in self._offers]}

    def load_state(self, state: dict) -> None:
        self._offers = [Offer.from_dict(row) for row in state.get("offers") or []]


def _as_datetime(value, *, end_of_day: bool = False):
    try:
        return parse_day_bound(value, end_of_day=end_of_day)
    except ValueError as exc:
        raise OfferValidationError(f"Invalid date: {value}") from exc


def _optional_str(value):
    return None if value is None else str(value)


def _optional_int(value):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise OfferValidationError(f"Expected an integer, got {value!r}") from exc
