from __future__ import annotations

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_admin, require_auth
from ..models import OfferValidationError

promotions_bp = Blueprint("promotions", __name__, url_prefix="/api/promotions")


def _recompute_cart():
    # offers changed under a live cart
    if g.terminal.cart.current_user_id is not None:
        g.terminal.cart.recompute_discounts()


@promotions_bp.route("", methods=["GET"])
@require_auth
def list_promotions():
    active_only = request.args.get("active_only", "false").lower() == "true"
    offers = g.terminal.offers.active_offers() if active_only else g.terminal.offers.all()
    return jsonify({"offers": [o.to_dict() for o in offers]})


@promotions_bp.route("/active", methods=["GET"])
@require_auth
def get_active_promotions():
    return jsonify({"offers": [o.to_dict() for o in g.terminal.offers.active_offers()]})


@promotions_bp.route("", methods=["POST"])
@require_auth
@require_admin
def create_promotion():
    data = request.get_json(silent=True) or {}
    required = ("name", "type", "product_ids", "buy_quantity", "start_date", "end_date")
    missing = [f for f in required if f not in data]
    if missing:
        return jsonify({"error": f"Missing required fields: {', '.join(missing)}"}), 400
    try:
        offer = g.terminal.offers.add(data, created_by=g.current_user.id)
    except OfferValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create promotion")
        return jsonify({"error": "Internal server error"}), 500
    _recompute_cart()
    return jsonify({"offer": offer.to_dict()}), 201


@promotions_bp.route("/<offer_id>", methods=["PATCH"])
@require_auth
@require_admin
def update_promotion(offer_id: str):
    data = request.get_json(silent=True) or {}
    try:
        offer = g.terminal.offers.update(offer_id, data)
    except OfferValidationError as e:
        return jsonify({"error": str(e)}), 400
    if not offer:
        return jsonify({"error": "Not found"}), 404
    _recompute_cart()
    return jsonify({"offer": offer.to_dict()})


@promotions_bp.route("/<offer_id>", methods=["DELETE"])
@require_auth
@require_admin
def delete_promotion(offer_id: str):
    if not g.terminal.offers.delete(offer_id):
        return jsonify({"error": "Not found"}), 404
    _recompute_cart()
    return jsonify({"deleted": offer_id})
