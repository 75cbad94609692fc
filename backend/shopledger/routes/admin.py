# Overview: Flask API routes for superadmin shop management.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import get_store, require_auth
from ..errors import LedgerError, ValidationError
from ..services import tenant_service

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


@admin_bp.patch("/shops/<int:shop_id>/status")
@require_auth
def set_shop_status_route(shop_id: int):
    """
    Activate or deactivate a shop. Shops are never deleted.

    Request body: {"is_active": false}

    Returns:
        200: Updated shop
        403: Caller is not SUPER_ADMIN
        404: Unknown shop
    """
    try:
        data = request.get_json(silent=True) or {}
        is_active = data.get("is_active")
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be a boolean")

        shop = tenant_service.set_shop_active(get_store(), g.credential, shop_id, is_active)
        return jsonify({"shop": shop.to_dict()}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update shop status")
        return jsonify({"error": "Internal server error"}), 500
