# Overview: Service-layer operations for invoices; totals, status derivation and the invoice lifecycle.

"""
Invoice Ledger Service

Owns the invoice aggregate: line items, computed totals and the payment
status state machine.

STATUS STATE MACHINE (derived from paid_amount vs total):
- UNPAID:   paid_amount == 0
- HALFPAY:  0 < paid_amount < total
- FULLPAID: paid_amount >= total

A caller-supplied status overrides derivation. It is upper-cased and must be
one of the three values above.

DESIGN:
- Create never touches stock or item history; those are separate call sites.
- Edit with an item array deletes every existing item and inserts the new
  set in the same transaction as the total recalculation. Concurrent editors
  are last-write-wins.
- Every lookup by caller reference goes through resolve_invoice_ref and the
  tenant ownership check.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from ..errors import ValidationError
from ..models import Invoice, InvoiceItem, InvoicePayment
from ..models.invoices import (
    INVOICE_STATUSES,
    INVOICE_STATUS_UNPAID,
    INVOICE_STATUS_HALFPAY,
    INVOICE_STATUS_FULLPAID,
    new_invoice_id,
)
from shopledger.time_utils import utcnow, coerce_datetime
from .concurrency import commit_unit_of_work, flush_or_raise
from .sequence_service import next_invoice_number
from .tenant_service import require_owned

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Unknown Customer"
UNKNOWN_PRODUCT = "Unknown Product"

DEFAULT_PAYMENT_METHOD = "CASH"
DEFAULT_SALES_CHANNEL = "ON_SITE"

EDITABLE_FIELDS = {
    "status",
    "paid_amount",
    "notes",
    "customer_name",
    "subtotal",
    "tax",
    "discount",
    "total",
    "due_amount",
    "date",
    "due_date",
    "payment_method",
    "sales_channel",
}


# =============================================================================
# STATUS
# =============================================================================

def derive_status(paid_amount: float, total: float) -> str:
    if paid_amount >= total:
        return INVOICE_STATUS_FULLPAID
    if paid_amount > 0:
        return INVOICE_STATUS_HALFPAY
    return INVOICE_STATUS_UNPAID


def normalize_status(value) -> str:
    """Upper-case an explicit status and reject anything outside the enum."""
    status = str(value).strip().upper()
    if status not in INVOICE_STATUSES:
        raise ValidationError(f"Invalid status: {value}. Must be one of {list(INVOICE_STATUSES)}")
    return status


def compute_due(total: float, paid_amount: float) -> float:
    return max(0.0, total - paid_amount)


# =============================================================================
# INPUT NORMALIZATION
# =============================================================================

def _amount(value, field: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number")
    raise ValidationError(f"{field} must be a number")


def _datetime(value, field: str):
    try:
        return coerce_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def _int_id(value, field: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def _quantity(value) -> int:
    if value is None or value == 0:
        return 1
    if isinstance(value, bool):
        raise ValidationError("quantity must be a positive integer")
    try:
        qty = float(value)
    except (TypeError, ValueError):
        raise ValidationError("quantity must be a positive integer")
    if qty < 0 or not qty.is_integer():
        raise ValidationError("quantity must be a positive integer")
    return int(qty) or 1


def _resolve_product_id(store, raw_product_id, tenant_id: int) -> int | None:
    """
    Keep a product reference only if it resolves to a product of this shop.

    Dangling references are dropped rather than rejected; the item keeps its
    name and price.
    """
    if raw_product_id in (None, ""):
        return None
    try:
        product_id = int(raw_product_id)
    except (TypeError, ValueError):
        logger.warning("Dropping non-integer product reference %r", raw_product_id)
        return None

    product = store.products.get(product_id)
    if product is None or product.shop_id != tenant_id:
        logger.warning("Product not found for invoice item: %s", product_id)
        return None
    return product.id


def build_items(store, items, tenant_id: int) -> tuple[list[InvoiceItem], float]:
    """
    Turn caller item dicts into InvoiceItem rows.

    Returns:
        (items, subtotal) where subtotal is SUM(quantity * unit_price)
    """
    if items is None:
        return [], 0.0
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list")

    rows = []
    subtotal = 0.0
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")

        quantity = _quantity(raw.get("quantity"))
        unit_price = _amount(raw.get("unit_price"), "unit_price") or _amount(raw.get("price"), "price") or 0.0
        original_price = _amount(raw.get("original_price"), "original_price") or unit_price
        line_total = _amount(raw.get("total"), "total") or quantity * unit_price

        rows.append(InvoiceItem(
            product_id=_resolve_product_id(store, raw.get("product_id"), tenant_id),
            product_name=raw.get("product_name") or raw.get("name") or UNKNOWN_PRODUCT,
            quantity=quantity,
            unit_price=unit_price,
            original_price=original_price,
            discount=_amount(raw.get("discount"), "discount") or 0.0,
            total=line_total,
            warranty_due_date=_datetime(raw.get("warranty_due_date"), "warranty_due_date"),
        ))
        subtotal += quantity * unit_price

    return rows, subtotal


# =============================================================================
# LOOKUP
# =============================================================================

def resolve_invoice(store, *, tenant_id: int, ref, lock: bool = False, actor_id=None) -> Invoice:
    """
    Find an invoice by id or number and verify it belongs to tenant_id.

    Raises:
        NotFound: no lookup step matched
        AccessDenied: matched invoice belongs to another shop
    """
    invoice = store.invoices.resolve_invoice_ref(ref, shop_id=tenant_id, lock=lock)
    return require_owned(invoice, tenant_id, kind="invoice", ref=ref, store=store, user_id=actor_id)


def get_invoice(store, *, tenant_id: int, ref, actor_id=None) -> Invoice:
    return resolve_invoice(store, tenant_id=tenant_id, ref=ref, actor_id=actor_id)


# =============================================================================
# CREATE
# =============================================================================

def create_invoice(
    store,
    *,
    tenant_id: int,
    customer_id,
    items=None,
    subtotal=None,
    tax=None,
    discount=None,
    total=None,
    paid_amount=None,
    status=None,
    date=None,
    due_date=None,
    payment_method: str | None = None,
    sales_channel: str | None = None,
    notes: str | None = None,
    actor_id=None,
) -> Invoice:
    """
    Create an invoice with its items in one transaction.

    Customer:
        - belongs to another shop: AccessDenied
        - not found: stored with customer_name "Unknown Customer"

    Totals (each computed only when not supplied):
        subtotal = SUM(quantity * unit_price)
        total    = subtotal + tax - discount
        due      = max(0, total - paid_amount)
        status   = derived from (paid_amount, total)

    A positive paid_amount is also written as an InvoicePayment (invoice date,
    invoice payment_method) in the same transaction.
    """
    customer_id = _int_id(customer_id, "customer_id")
    if customer_id is None:
        raise ValidationError("customer_id is required")

    customer = store.customers.get(customer_id)
    if customer is not None:
        require_owned(customer, tenant_id, kind="customer", ref=customer_id, store=store, user_id=actor_id)
    customer_name = customer.name if customer is not None else UNKNOWN_CUSTOMER

    rows, items_subtotal = build_items(store, items, tenant_id)

    explicit_subtotal = _amount(subtotal, "subtotal")
    tax_value = _amount(tax, "tax") or 0.0
    discount_value = _amount(discount, "discount") or 0.0
    subtotal_value = explicit_subtotal if explicit_subtotal is not None else items_subtotal

    explicit_total = _amount(total, "total")
    total_value = explicit_total if explicit_total is not None else subtotal_value + tax_value - discount_value

    paid_value = _amount(paid_amount, "paid_amount") or 0.0
    status_value = normalize_status(status) if status is not None else derive_status(paid_value, total_value)

    invoice_date = _datetime(date, "date") or utcnow()
    invoice_due_date = _datetime(due_date, "due_date") or invoice_date + timedelta(days=store.default_due_days)

    invoice = Invoice(
        id=new_invoice_id(),
        invoice_number=next_invoice_number(store, shop_id=tenant_id),
        shop_id=tenant_id,
        customer_id=customer_id,
        customer_name=customer_name,
        subtotal=subtotal_value,
        tax=tax_value,
        discount=discount_value,
        total=total_value,
        paid_amount=paid_value,
        due_amount=compute_due(total_value, paid_value),
        status=status_value,
        date=invoice_date,
        due_date=invoice_due_date,
        payment_method=(payment_method or DEFAULT_PAYMENT_METHOD).upper(),
        sales_channel=(sales_channel or DEFAULT_SALES_CHANNEL).upper(),
        notes=notes,
    )
    store.invoices.insert(invoice, rows)
    flush_or_raise(store.session, action="create invoice")

    # Up-front amount becomes the first payment row
    if paid_value > 0:
        store.payments.insert(InvoicePayment(
            invoice_id=invoice.id,
            amount=paid_value,
            payment_method=invoice.payment_method,
            payment_date=invoice_date,
            notes="Initial payment",
        ))
        flush_or_raise(store.session, action="create invoice")

    commit_unit_of_work(store.session, action="create invoice")
    return invoice


# =============================================================================
# EDIT
# =============================================================================

def edit_invoice(store, *, tenant_id: int, ref, items=None, actor_id=None, **fields) -> Invoice:
    """
    Apply a partial update and optionally replace every line item.

    Recalculation rules:
    - items (non-empty) replace all existing items; subtotal is recomputed
      from them unless subtotal is supplied
    - if subtotal, tax or discount changed: total = subtotal + tax - discount
      from the mixed old/new values, and due from the new total and the
      current-or-updated paid_amount
    - otherwise an explicit total is stored as-is; due_amount changes only
      when supplied, or when paid_amount changes
    - status is re-derived when total or paid_amount changed, unless an
      explicit status is supplied
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown invoice fields: {sorted(unknown)}")

    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, lock=True, actor_id=actor_id)

    patch = {}
    new_rows = None
    new_subtotal = _amount(fields.get("subtotal"), "subtotal")
    if items:
        new_rows, items_subtotal = build_items(store, items, tenant_id)
        if new_subtotal is None:
            new_subtotal = items_subtotal

    new_tax = _amount(fields.get("tax"), "tax")
    new_discount = _amount(fields.get("discount"), "discount")
    new_paid = _amount(fields.get("paid_amount"), "paid_amount")

    if new_subtotal is not None:
        patch["subtotal"] = new_subtotal
    if new_tax is not None:
        patch["tax"] = new_tax
    if new_discount is not None:
        patch["discount"] = new_discount
    if new_paid is not None:
        patch["paid_amount"] = new_paid

    paid_value = new_paid if new_paid is not None else invoice.paid_amount
    due_recomputed = False

    if new_subtotal is not None or new_tax is not None or new_discount is not None:
        total_value = (
            (new_subtotal if new_subtotal is not None else invoice.subtotal)
            + (new_tax if new_tax is not None else invoice.tax)
            - (new_discount if new_discount is not None else invoice.discount)
        )
        patch["total"] = total_value
        patch["due_amount"] = compute_due(total_value, paid_value)
        due_recomputed = True
    elif fields.get("total") is not None:
        patch["total"] = _amount(fields["total"], "total")

    if not due_recomputed and new_paid is not None:
        patch["due_amount"] = compute_due(patch.get("total", invoice.total), new_paid)
        due_recomputed = True

    if not due_recomputed and fields.get("due_amount") is not None:
        patch["due_amount"] = _amount(fields["due_amount"], "due_amount")

    if fields.get("status") is not None:
        patch["status"] = normalize_status(fields["status"])
    elif "total" in patch or "paid_amount" in patch:
        patch["status"] = derive_status(paid_value, patch.get("total", invoice.total))

    if "notes" in fields:
        patch["notes"] = fields["notes"]
    if fields.get("customer_name") is not None:
        patch["customer_name"] = str(fields["customer_name"]).strip()
    if fields.get("date") is not None:
        patch["date"] = _datetime(fields["date"], "date")
    if fields.get("due_date") is not None:
        patch["due_date"] = _datetime(fields["due_date"], "due_date")
    if fields.get("payment_method") is not None:
        patch["payment_method"] = str(fields["payment_method"]).upper()
    if fields.get("sales_channel") is not None:
        patch["sales_channel"] = str(fields["sales_channel"]).upper()

    if new_rows is not None:
        store.invoices.replace_items(invoice.id, new_rows)
    store.invoices.update_fields(invoice.id, patch)
    flush_or_raise(store.session, action="update invoice")
    commit_unit_of_work(store.session, action="update invoice")
    return invoice


# =============================================================================
# DELETE
# =============================================================================

def delete_invoice(store, *, tenant_id: int, ref, actor_id=None) -> str:
    """
    Delete an invoice with its items, payments and reminders (children first).

    Item history rows are kept. Returns the deleted invoice's number.
    """
    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, lock=True, actor_id=actor_id)
    invoice_number = invoice.invoice_number

    store.invoices.delete(invoice.id)
    flush_or_raise(store.session, action="delete invoice")
    commit_unit_of_work(store.session, action="delete invoice")
    return invoice_number
