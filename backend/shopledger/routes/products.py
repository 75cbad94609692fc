# Overview: Flask API routes for product stock adjustments and the movement ledger.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import get_store, require_auth
from ..errors import LedgerError
from ..services import stock_service
from ..services.tenant_service import resolve_effective_shop_id


products_bp = Blueprint("products", __name__, url_prefix="/api/v1/products")


@products_bp.post("/<int:product_id>/stock")
@require_auth
def adjust_stock_route(product_id: int):
    """
    Adjust a product's stock and append a movement.

    Request body:
    {
        "operation": "add" | "subtract" | "set",
        "quantity": 5,
        "type": "ADJUSTMENT",          (optional movement tag)
        "reference_id": "...", "reference_number": "...", "notes": "..."
    }

    A subtract below zero clamps the stock at 0; the movement still records
    the requested quantity.
    """
    try:
        data = request.get_json(silent=True) or {}
        shop_id = resolve_effective_shop_id(g.credential, allow_view_as=False)

        product, movement = stock_service.adjust_stock(
            get_store(),
            product_id=product_id,
            tenant_id=shop_id,
            operation=data.get("operation"),
            quantity=data.get("quantity"),
            movement_type=data.get("type"),
            reference_id=data.get("reference_id"),
            reference_number=data.get("reference_number"),
            notes=data.get("notes"),
            created_by_id=g.credential.user_id,
        )
        return jsonify({"product": product.to_dict(), "movement": movement.to_dict()}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/stock-movements")
@require_auth
def list_stock_movements_route(product_id: int):
    try:
        shop_id = resolve_effective_shop_id(g.credential, request.args.get("shop_id"))
        movements = stock_service.list_stock_movements(
            get_store(),
            product_id=product_id,
            tenant_id=shop_id,
        )
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500
