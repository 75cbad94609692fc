# Overview: Service-layer operations for invoice payments and paid/due reconciliation.

"""
Payment Processor

Payments are append-only. After every insert the invoice's paid_amount is
re-derived as SUM(all payments), never incremented, so the stored value
cannot drift from the payment rows once the transaction commits.

TRANSACTION:
- payment insert + invoice paid/due/status update share one commit
- a failed commit rolls back both and raises StorageError
- reconcile_invoice re-runs the derivation alone; callers use it to repair
  an invoice after a failure outside this module's transaction

Overpayment is accepted: due_amount floors at 0 and status becomes FULLPAID.
Identical payments are recorded twice; there is no deduplication.
"""

from __future__ import annotations

import logging

from ..errors import ValidationError
from ..models import Invoice, InvoicePayment
from shopledger.time_utils import utcnow, coerce_datetime
from .concurrency import commit_unit_of_work, flush_or_raise
from .invoice_service import (
    DEFAULT_PAYMENT_METHOD,
    compute_due,
    derive_status,
    resolve_invoice,
)

logger = logging.getLogger(__name__)


def _validate_amount(amount) -> float:
    if isinstance(amount, bool) or amount is None:
        raise ValidationError("amount must be greater than 0")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("amount must be greater than 0")
    if not value > 0:
        raise ValidationError("amount must be greater than 0")
    return value


def _apply_totals(store, invoice: Invoice) -> Invoice:
    total_paid = store.payments.sum_by_invoice(invoice.id)
    return store.invoices.update_fields(invoice.id, {
        "paid_amount": total_paid,
        "due_amount": compute_due(invoice.total, total_paid),
        "status": derive_status(total_paid, invoice.total),
    })


def apply_payment(
    store,
    *,
    tenant_id: int,
    ref,
    amount,
    payment_method: str | None = None,
    payment_date=None,
    notes: str | None = None,
    reference: str | None = None,
    actor_id=None,
) -> tuple[InvoicePayment, Invoice]:
    """
    Record a payment and reconcile the invoice.

    Returns:
        (payment, updated invoice)

    Raises:
        ValidationError: amount missing or not > 0, bad payment_date
        NotFound / AccessDenied: invoice lookup or ownership failed
        StorageError: commit failed; neither the payment nor the invoice
            update is applied
    """
    value = _validate_amount(amount)
    try:
        paid_at = coerce_datetime(payment_date) or utcnow()
    except ValueError:
        raise ValidationError("payment_date must be an ISO-8601 datetime")

    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, lock=True, actor_id=actor_id)

    payment = store.payments.insert(InvoicePayment(
        invoice_id=invoice.id,
        amount=value,
        payment_method=(payment_method or DEFAULT_PAYMENT_METHOD).upper(),
        payment_date=paid_at,
        notes=notes,
        reference=reference,
    ))
    flush_or_raise(store.session, action="record payment")

    _apply_totals(store, invoice)
    flush_or_raise(store.session, action="record payment")

    if invoice.paid_amount > invoice.total:
        logger.info(
            "Invoice %s overpaid: paid %.2f against total %.2f",
            invoice.invoice_number, invoice.paid_amount, invoice.total,
        )

    commit_unit_of_work(store.session, action="record payment")
    return payment, invoice


def reconcile_invoice(store, *, tenant_id: int, ref, actor_id=None) -> Invoice:
    """Re-derive paid_amount, due_amount and status from the payment rows."""
    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, lock=True, actor_id=actor_id)
    _apply_totals(store, invoice)
    commit_unit_of_work(store.session, action="reconcile invoice")
    return invoice


def list_payments(store, *, tenant_id: int, ref, actor_id=None) -> list[InvoicePayment]:
    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, actor_id=actor_id)
    return store.payments.list_by_invoice(invoice.id)
