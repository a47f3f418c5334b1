# Overview: Flask API routes for the working cart; every change answers with the repriced cart.

"""
Cart API Routes

DESIGN:
- The cart belongs to the employee signed in at this terminal
- Lines are addressed by product id (one line per product)
- Each mutation responds with the full cart summary (lines, subtotal,
  discount, IGV, total, cash-rounded total) so the UI never reprices
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services.cart_service import CartError, InsufficientStockError
from ..services.catalog_service import CatalogError
from ..validation import ValidationError, parse_int, require_json_object


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _summary():
    return jsonify({"cart": g.terminal.cart.summary()})


@cart_bp.get("")
@require_auth
def get_cart():
    return _summary(), 200


@cart_bp.get("/totals")
@require_auth
def get_totals():
    cart = g.terminal.cart
    return jsonify({
        **cart.totals().to_dict(),
        "total_rounded": str(cart.total_rounded()),
        "line_count": len(cart.lines),
    }), 200


@cart_bp.post("/lines")
@require_auth
def add_line():
    """
    Add units of a product.

    Request body: {"product_id": "..."} or {"code": "<code or barcode>"},
    plus optional "quantity" (default 1).

    Returns:
        201: updated cart
        400: invalid input or product unavailable
        404: product not found
        409: insufficient stock (cart unchanged)
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        quantity = parse_int(data.get("quantity", 1), "quantity", minimum=1)

        if data.get("product_id"):
            product_id = str(data["product_id"])
            if g.terminal.catalog.get(product_id) is None:
                return jsonify({"error": "Product not found"}), 404
            g.terminal.add_product(product_id, quantity)
        elif data.get("code"):
            if g.terminal.lookup(str(data["code"]).strip()) is None:
                return jsonify({"error": "Product not found"}), 404
            g.terminal.scan(str(data["code"]).strip(), quantity)
        else:
            return jsonify({"error": "product_id or code required"}), 400

        return _summary(), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "available": e.available, "details": e.details}), 409
    except (CartError, CatalogError) as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to add cart line")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.patch("/lines/<product_id>")
@require_auth
def set_quantity(product_id: str):
    """Set a line's quantity; zero or less removes the line."""
    try:
        data = require_json_object(request.get_json(silent=True))
        if "quantity" not in data:
            return jsonify({"error": "quantity required"}), 400
        quantity = parse_int(data["quantity"], "quantity")
        g.terminal.set_quantity(product_id, quantity)
        return _summary(), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "available": e.available, "details": e.details}), 409
    except CartError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to update cart line")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/lines/<product_id>")
@require_auth
def remove_line(product_id: str):
    g.terminal.remove_line(product_id)
    return _summary(), 200


@cart_bp.post("/clear")
@require_auth
def clear_cart():
    g.terminal.clear_cart()
    return _summary(), 200
