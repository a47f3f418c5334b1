# Overview: Flask API routes for the product catalog; lookup, search, low stock and admin edits.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_admin, require_auth
from ..services.catalog_service import CatalogError
from ..validation import (
    ValidationError,
    parse_bool,
    parse_int,
    parse_money,
    require_fields,
    require_json_object,
)


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

MONEY_FIELDS = ("sale_price", "purchase_price", "igv")


def _clean_patch(data: dict) -> dict:
    patch = dict(data)
    for key in MONEY_FIELDS:
        if key in patch:
            patch[key] = parse_money(patch[key], key)
    if "stock" in patch:
        patch["stock"] = parse_int(patch["stock"], "stock", minimum=0)
    if "is_active" in patch:
        patch["is_active"] = parse_bool(patch["is_active"])
    return patch


@products_bp.get("")
@require_auth
def list_products():
    include_inactive = parse_bool(request.args.get("include_inactive", "false"))
    category = request.args.get("category")
    catalog = g.terminal.catalog
    products = catalog.by_category(category) if category else catalog.all(include_inactive=include_inactive)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.get("/lookup")
@require_auth
def lookup_product():
    """Resolve a scanned barcode or a typed code to one active product."""
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"error": "q is required"}), 400
    product = g.terminal.lookup(query)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200


@products_bp.get("/search")
@require_auth
def search_products():
    query = request.args.get("q") or ""
    return jsonify({"products": [p.to_dict() for p in g.terminal.catalog.search(query)]}), 200


@products_bp.get("/low-stock")
@require_auth
def low_stock():
    try:
        raw = request.args.get("threshold")
        threshold = (
            parse_int(raw, "threshold", minimum=0)
            if raw is not None
            else current_app.config["LOW_STOCK_THRESHOLD"]
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    products = g.terminal.catalog.low_stock(threshold)
    return jsonify({"threshold": threshold, "products": [p.to_dict() for p in products]}), 200


@products_bp.get("/categories")
@require_auth
def list_categories():
    return jsonify({"categories": g.terminal.catalog.categories}), 200


@products_bp.get("/<product_id>")
@require_auth
def get_product(product_id: str):
    product = g.terminal.catalog.get(product_id)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200


# =============================================================================
# ADMIN EDITS
# =============================================================================

@products_bp.post("")
@require_auth
@require_admin
def create_product():
    try:
        data = require_json_object(request.get_json(silent=True))
        require_fields(data, "code", "sale_price")
        product = g.terminal.catalog.add(_clean_patch(data))
        return jsonify({"product": product.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<product_id>")
@require_auth
@require_admin
def update_product(product_id: str):
    if g.terminal.catalog.get(product_id) is None:
        return jsonify({"error": "Product not found"}), 404
    try:
        data = require_json_object(request.get_json(silent=True))
        product = g.terminal.catalog.update(product_id, _clean_patch(data))
        return jsonify({"product": product.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CatalogError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<product_id>")
@require_auth
@require_admin
def delete_product(product_id: str):
    """Soft delete: the product stays resolvable by id for sale history."""
    if g.terminal.catalog.get(product_id) is None:
        return jsonify({"error": "Product not found"}), 404
    product = g.terminal.catalog.soft_delete(product_id)
    return jsonify({"product": product.to_dict()}), 200
