# Overview: Flask API routes for refunds against a ticket; parses input and returns JSON responses.

"""
Return Processing API Routes

WHY: Give money back for units of a past sale and put them back on the shelf.

DESIGN:
- Refunds reference the original ticket number
- Several partial refunds per sale are allowed until every unit is back
- A reason is mandatory
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services.return_service import EmptyRefundReasonError
from ..services.sales_service import RefundError
from ..validation import ValidationError, parse_quantities, require_json_object


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_auth
def create_refund_route():
    """
    Refund units of a ticket.

    Request body:
    {
        "ticket_number": "T1718000000000",
        "items": [{"product_id": "...", "quantity": 1}],
        "reason": "Damaged packaging"
    }

    Returns:
        201: refund recorded, with the sale's new status
        400: missing reason, empty selection or quantities beyond the sale
        404: unknown ticket
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        ticket_number = (data.get("ticket_number") or "").strip()
        if not ticket_number:
            return jsonify({"error": "ticket_number required"}), 400

        quantities = parse_quantities(data.get("items") or [])
        refund = g.terminal.refund(ticket_number, quantities, data.get("reason"))
        if refund is None:
            return jsonify({"error": "Sale not found"}), 404

        sale = g.terminal.ledger.get_sale(refund.original_sale_id)
        return jsonify({"refund": refund.to_dict(), "sale_status": sale.status}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except EmptyRefundReasonError as e:
        return jsonify({"error": str(e)}), 400
    except RefundError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to process refund")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/ticket/<ticket_number>")
@require_auth
def refundable_route(ticket_number: str):
    ledger = g.terminal.ledger
    sale = ledger.get_sale_by_ticket(ticket_number)
    if sale is None:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({
        "ticket_number": sale.ticket_number,
        "status": sale.status,
        "refundable": ledger.refundable_quantities(sale.id),
        "refunds": [r.to_dict() for r in ledger.refunds_for_sale(sale.id)],
    }), 200
