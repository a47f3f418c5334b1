# Overview: Flask API routes for checkout, ticket lookup and sales reports.

"""
Sales API Routes

WHY: Checkout turns the signed-in employee's cart into an immutable sale.

DESIGN:
- Payment method is "cash" or "card"
- Cash requires amount_received and is charged the total rounded to the
  cash step; change is returned in the response
- The recorded sale total is always the unrounded total
"""

from datetime import date

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_admin, require_auth
from ..services import reporting_service
from ..services.cart_service import CartError
from ..services.payment_service import PaymentError
from ..services.sales_service import SaleError
from ..validation import ValidationError, parse_money, require_json_object


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Pay for the cart and record the sale.

    Request body:
    {
        "payment_method": "cash" | "card",
        "amount_received": "20.00"  (cash only)
    }

    Returns:
        201: sale and payment details
        400: empty cart, unknown method, invalid amount or short cash
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        payment_method = (data.get("payment_method") or "").strip().lower()
        if not payment_method:
            return jsonify({"error": "payment_method required"}), 400

        amount_received = data.get("amount_received")
        if amount_received is not None:
            amount_received = parse_money(amount_received, "amount_received")

        result = g.terminal.checkout(payment_method, amount_received)
        return jsonify(result.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (CartError, PaymentError, SaleError) as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Checkout failed")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_today_sales():
    sales = g.terminal.ledger.today_sales()
    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@sales_bp.get("/ticket/<ticket_number>")
@require_auth
def get_by_ticket(ticket_number: str):
    ledger = g.terminal.ledger
    sale = ledger.get_sale_by_ticket(ticket_number)
    if sale is None:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({
        "sale": sale.to_dict(),
        "refunds": [r.to_dict() for r in ledger.refunds_for_sale(sale.id)],
        "refundable": ledger.refundable_quantities(sale.id),
    }), 200


# =============================================================================
# REPORTS
# =============================================================================

@sales_bp.get("/reports/daily")
@require_auth
@require_admin
def daily_report():
    """Summary for ?date=YYYY-MM-DD (defaults to today, UTC)."""
    raw = request.args.get("date")
    try:
        day = date.fromisoformat(raw) if raw else g.terminal.clock().date()
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    return jsonify(reporting_service.daily_summary(g.terminal.ledger, day)), 200


@sales_bp.get("/reports/employee/<employee_id>")
@require_auth
def employee_report(employee_id: str):
    if employee_id != g.current_user.id and not g.current_user.is_admin:
        return jsonify({"error": "Permission denied", "required_role": "admin"}), 403
    return jsonify(reporting_service.employee_summary(g.terminal.ledger, employee_id)), 200
