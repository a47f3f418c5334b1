from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

# Upper bound for any price or cash amount entered at the counter
MAX_MONEY = Decimal("9999999.99")


class ValidationError(ValueError):
    """400-level input problem."""


def require_json_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def require_fields(payload: dict, *fields: str) -> None:
    missing = [f for f in fields if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def parse_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer parsing: rejects floats, booleans, decimals and scientific
    notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def parse_money(value: Any, field: str) -> Decimal:
    """Non-negative amount with at most two decimals, as a Decimal."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    if amount.as_tuple().exponent < -2:
        raise ValidationError(f"{field} cannot have more than two decimals")
    return amount


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def parse_quantities(items: Any) -> dict[str, int]:
    """
    Refund selection as {product_id: quantity}.

    Accepts either a mapping or a list of {"product_id", "quantity"} rows;
    repeated product ids are summed.
    """
    if isinstance(items, dict):
        rows = [{"product_id": k, "quantity": v} for k, v in items.items()]
    elif isinstance(items, list):
        rows = items
    else:
        raise ValidationError("items must be a list or an object")

    quantities: dict[str, int] = {}
    for row in rows:
        if not isinstance(row, dict) or not row.get("product_id"):
            raise ValidationError("Each item needs a product_id")
        product_id = str(row["product_id"])
        quantity = parse_int(row.get("quantity"), "quantity", minimum=0)
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities
