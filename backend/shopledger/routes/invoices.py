# Overview: Flask API routes for invoices, payments, item history and reminders; parses input and returns JSON responses.

# backend/shopledger/routes/invoices.py
"""
Invoice Ledger API Routes

DESIGN:
- Invoices are addressed by <ref>: the invoice id, its number ("INV-10260001")
  or the bare digits ("10260001")
- Reads honour a SUPER_ADMIN ?shop_id= override; writes always act on the
  caller's home shop
- Payments are appended; the invoice's paid/due/status follow from them

SECURITY:
- Every route requires a bearer token
- A record of another shop returns 403, never 404
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import get_store, require_auth
from ..errors import LedgerError, ValidationError
from ..services import invoice_service, item_history_service, payment_service, reminder_service
from ..services.tenant_service import resolve_effective_shop_id


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/v1/invoices")


def _read_shop_id() -> int:
    return resolve_effective_shop_id(g.credential, request.args.get("shop_id"))


def _write_shop_id() -> int:
    return resolve_effective_shop_id(g.credential, allow_view_as=False)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# =============================================================================
# INVOICES
# =============================================================================

@invoices_bp.post("")
@require_auth
def create_invoice_route():
    """
    Create an invoice.

    Request body:
    {
        "customer_id": 7,
        "items": [{"product_id": 3, "product_name": "Cable", "quantity": 2, "unit_price": 125}],
        "tax": 0, "discount": 0,           (optional)
        "paid_amount": 0,                  (optional)
        "status": "UNPAID",                (optional override)
        "date": "...", "due_date": "...",  (optional, ISO-8601)
        "payment_method": "CASH", "sales_channel": "ON_SITE", "notes": "..."
    }

    Returns:
        201: Invoice with items
        400: Invalid input
        403: Customer belongs to another shop
    """
    try:
        data = _json_body()
        shop_id = _write_shop_id()

        invoice = invoice_service.create_invoice(
            get_store(),
            tenant_id=shop_id,
            customer_id=data.get("customer_id"),
            items=data.get("items"),
            subtotal=data.get("subtotal"),
            tax=data.get("tax"),
            discount=data.get("discount"),
            total=data.get("total"),
            paid_amount=data.get("paid_amount"),
            status=data.get("status"),
            date=data.get("date"),
            due_date=data.get("due_date"),
            payment_method=data.get("payment_method"),
            sales_channel=data.get("sales_channel"),
            notes=data.get("notes"),
            actor_id=g.credential.user_id,
        )
        return jsonify({"invoice": invoice.to_dict()}), 201

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<ref>")
@require_auth
def get_invoice_route(ref: str):
    try:
        invoice = invoice_service.get_invoice(
            get_store(),
            tenant_id=_read_shop_id(),
            ref=ref,
            actor_id=g.credential.user_id,
        )
        return jsonify({"invoice": invoice.to_dict()}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.route("/<ref>", methods=["PUT", "PATCH"])
@require_auth
def update_invoice_route(ref: str):
    """
    Partially update an invoice.

    A non-empty "items" array replaces every line item and recalculates
    subtotal, total and due amount. Other keys overwrite the matching field.
    """
    try:
        data = _json_body()
        items = data.pop("items", None)
        unknown = set(data) - invoice_service.EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown invoice fields: {sorted(unknown)}")

        invoice = invoice_service.edit_invoice(
            get_store(),
            tenant_id=_write_shop_id(),
            ref=ref,
            items=items,
            actor_id=g.credential.user_id,
            **data,
        )
        return jsonify({"invoice": invoice.to_dict()}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.delete("/<ref>")
@require_auth
def delete_invoice_route(ref: str):
    try:
        invoice_number = invoice_service.delete_invoice(
            get_store(),
            tenant_id=_write_shop_id(),
            ref=ref,
            actor_id=g.credential.user_id,
        )
        return jsonify({"deleted": invoice_number}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENTS
# =============================================================================

@invoices_bp.post("/<ref>/payments")
@require_auth
def add_payment_route(ref: str):
    """
    Record a payment against an invoice.

    Request body:
    {
        "amount": 100,
        "payment_method": "CARD",    (optional, default CASH)
        "payment_date": "...",       (optional, default now)
        "notes": "...", "reference": "AUTH-12345"
    }

    Returns:
        201: Payment and the reconciled invoice
        400: amount missing or not positive
    """
    try:
        data = _json_body()

        payment, invoice = payment_service.apply_payment(
            get_store(),
            tenant_id=_write_shop_id(),
            ref=ref,
            amount=data.get("amount"),
            payment_method=data.get("payment_method"),
            payment_date=data.get("payment_date"),
            notes=data.get("notes"),
            reference=data.get("reference"),
            actor_id=g.credential.user_id,
        )
        return jsonify({
            "payment": payment.to_dict(),
            "invoice": invoice.to_dict(include_children=False),
        }), 201

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<ref>/payments")
@require_auth
def list_payments_route(ref: str):
    try:
        payments = payment_service.list_payments(
            get_store(),
            tenant_id=_read_shop_id(),
            ref=ref,
            actor_id=g.credential.user_id,
        )
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<ref>/reconcile")
@require_auth
def reconcile_invoice_route(ref: str):
    """Re-derive paid amount, due amount and status from recorded payments."""
    try:
        invoice = payment_service.reconcile_invoice(
            get_store(),
            tenant_id=_write_shop_id(),
            ref=ref,
            actor_id=g.credential.user_id,
        )
        return jsonify({"invoice": invoice.to_dict(include_children=False)}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reconcile invoice")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ITEM HISTORY
# =============================================================================

@invoices_bp.get("/<ref>/item-history")
@require_auth
def list_item_history_route(ref: str):
    try:
        records = item_history_service.list_changes(
            get_store(),
            tenant_id=_read_shop_id(),
            ref=ref,
            actor_id=g.credential.user_id,
        )
        return jsonify({"history": [r.to_dict() for r in records]}), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list item history")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<ref>/item-history")
@require_auth
def record_item_history_route(ref: str):
    """
    Append item change records.

    Request body:
    {
        "changes": [
            {"action": "QTY_INCREASED", "product_name": "Cable",
             "old_quantity": 1, "new_quantity": 3, "unit_price": 125, "amount_change": 250}
        ]
    }
    """
    try:
        data = _json_body()

        records = item_history_service.record_changes(
            get_store(),
            tenant_id=_write_shop_id(),
            ref=ref,
            changes=data.get("changes"),
            changed_by=g.credential,
        )
        return jsonify({"history": [r.to_dict() for r in records]}), 201

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record item history")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# REMINDERS
# =============================================================================

@invoices_bp.get("/<ref>/reminders")
@require_auth
def list_reminders_route(ref: str):
    try:
        reminders = reminder_service.list_reminders(
            get_store(),
            tenant_id=_read_shop_id(),
            ref=ref,
            actor_id=g.credential.user_id,
        )
        return jsonify({
            "reminders": [r.to_dict() for r in reminders],
            "meta": {"count": len(reminders)},
        }), 200

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list reminders")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<ref>/reminders")
@require_auth
def record_reminder_route(ref: str):
    """
    Record a reminder sent to the invoice's customer.

    Request body (all optional):
    {
        "type": "PAYMENT" | "OVERDUE",
        "channel": "whatsapp",
        "message": "...",
        "customer_phone": "...", "customer_name": "...",
        "sent_at": "..."
    }

    Returns:
        201: Reminder and meta.reminder_count
    """
    try:
        data = _json_body()

        reminder, count = reminder_service.record_reminder(
            get_store(),
            tenant_id=_write_shop_id(),
            ref=ref,
            type=data.get("type"),
            channel=data.get("channel"),
            message=data.get("message"),
            customer_phone=data.get("customer_phone"),
            customer_name=data.get("customer_name"),
            sent_at=data.get("sent_at"),
            actor_id=g.credential.user_id,
        )
        return jsonify({"reminder": reminder.to_dict(), "meta": {"reminder_count": count}}), 201

    except LedgerError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record reminder")
        return jsonify({"error": "Internal server error"}), 500
