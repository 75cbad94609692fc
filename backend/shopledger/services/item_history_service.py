# Overview: Append-only audit trail of line-item changes on invoices.

from __future__ import annotations

import logging

from ..errors import ValidationError
from ..models import InvoiceItemHistory
from ..models.invoices import ITEM_HISTORY_ACTIONS
from .concurrency import commit_unit_of_work
from .invoice_service import resolve_invoice

logger = logging.getLogger(__name__)

SYSTEM_ACTOR_NAME = "System"


def _optional_int(change: dict, key: str, index: int) -> int | None:
    value = change.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"changes[{index}].{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"changes[{index}].{key} must be an integer")


def _number(change: dict, key: str, index: int) -> float:
    value = change.get(key)
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(f"changes[{index}].{key} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"changes[{index}].{key} must be a number")


def _build_record(change, index: int, *, invoice, changed_by) -> InvoiceItemHistory:
    if not isinstance(change, dict):
        raise ValidationError(f"changes[{index}] must be an object")

    action = str(change.get("action") or "").strip().upper()
    if action not in ITEM_HISTORY_ACTIONS:
        raise ValidationError(
            f"changes[{index}].action must be one of {list(ITEM_HISTORY_ACTIONS)}"
        )

    product_name = change.get("product_name")
    if not product_name or not str(product_name).strip():
        raise ValidationError(f"changes[{index}].product_name is required")

    changed_by_id = change.get("changed_by_id")
    if changed_by_id is None and changed_by is not None:
        changed_by_id = changed_by.user_id

    changed_by_name = (
        change.get("changed_by_name")
        or (changed_by.name if changed_by is not None else None)
        or SYSTEM_ACTOR_NAME
    )

    return InvoiceItemHistory(
        invoice_id=invoice.id,
        shop_id=invoice.shop_id,
        action=action,
        product_id=_optional_int(change, "product_id", index),
        product_name=str(product_name).strip(),
        old_quantity=_optional_int(change, "old_quantity", index),
        new_quantity=_optional_int(change, "new_quantity", index),
        unit_price=_number(change, "unit_price", index),
        amount_change=_number(change, "amount_change", index),
        changed_by_id=str(changed_by_id) if changed_by_id is not None else None,
        changed_by_name=changed_by_name,
        reason=change.get("reason"),
        notes=change.get("notes"),
    )


def record_changes(store, *, tenant_id: int, ref, changes, changed_by=None) -> list[InvoiceItemHistory]:
    """
    Append one history row per change for an invoice.

    The invoice itself is not touched; callers that also edit items do so
    through edit_invoice. The whole batch is validated before any row is
    written.

    Args:
        changes: non-empty list of dicts with action, product_name and the
            optional quantity/price/actor fields
        changed_by: Credential of the caller; its name is the fallback for
            changed_by_name, then "System"
    """
    if not isinstance(changes, (list, tuple)) or not changes:
        raise ValidationError("changes must be a non-empty list")

    actor_id = changed_by.user_id if changed_by is not None else None
    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, actor_id=actor_id)

    records = [
        _build_record(change, index, invoice=invoice, changed_by=changed_by)
        for index, change in enumerate(changes)
    ]
    store.item_history.insert_many(records)
    commit_unit_of_work(store.session, action="record item history")

    logger.debug("Recorded %d item change(s) on invoice %s", len(records), invoice.invoice_number)
    return records


def list_changes(store, *, tenant_id: int, ref, actor_id=None) -> list[InvoiceItemHistory]:
    """History rows for an invoice, oldest first."""
    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, actor_id=actor_id)
    return store.item_history.list_by_invoice(invoice.id)
