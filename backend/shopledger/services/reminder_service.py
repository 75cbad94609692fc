# Overview: Payment and overdue reminders sent for an invoice.

from __future__ import annotations

import logging

from ..errors import ValidationError
from ..models import InvoiceReminder
from ..models.invoices import REMINDER_TYPE_OVERDUE, REMINDER_TYPE_PAYMENT
from shopledger.time_utils import utcnow, coerce_datetime
from .concurrency import commit_unit_of_work
from .invoice_service import resolve_invoice

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "whatsapp"


def _reminder_type(value) -> str:
    """OVERDUE when asked for explicitly; everything else is a PAYMENT reminder."""
    if value is not None and str(value).strip().upper() == REMINDER_TYPE_OVERDUE:
        return REMINDER_TYPE_OVERDUE
    return REMINDER_TYPE_PAYMENT


def record_reminder(
    store,
    *,
    tenant_id: int,
    ref,
    type=None,
    channel: str | None = None,
    message: str | None = None,
    customer_phone: str | None = None,
    customer_name: str | None = None,
    sent_at=None,
    actor_id=None,
) -> tuple[InvoiceReminder, int]:
    """
    Append a reminder for an invoice of tenant_id.

    Defaults:
        channel         "whatsapp"
        customer_phone  the invoice customer's phone, else ""
        customer_name   the invoice's customer_name
        sent_at         now

    Returns:
        (reminder, number of reminders on the invoice including this one)
    """
    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, actor_id=actor_id)

    try:
        sent = coerce_datetime(sent_at) or utcnow()
    except ValueError:
        raise ValidationError("sent_at must be an ISO-8601 datetime")

    if not customer_phone:
        customer = store.customers.get(invoice.customer_id)
        if customer is not None and customer.shop_id == invoice.shop_id:
            customer_phone = customer.phone or ""
        else:
            customer_phone = ""

    reminder = store.reminders.insert(InvoiceReminder(
        invoice_id=invoice.id,
        shop_id=invoice.shop_id,
        type=_reminder_type(type),
        channel=channel or DEFAULT_CHANNEL,
        sent_at=sent,
        message=message or "",
        customer_phone=customer_phone,
        customer_name=customer_name or invoice.customer_name,
    ))
    commit_unit_of_work(store.session, action="record reminder")

    count = store.reminders.count_by_invoice(invoice.id)
    logger.info("Recorded %s reminder #%d for invoice %s", reminder.type, count, invoice.invoice_number)
    return reminder, count


def list_reminders(store, *, tenant_id: int, ref, actor_id=None) -> list[InvoiceReminder]:
    """Reminders for an invoice, most recently sent first."""
    invoice = resolve_invoice(store, tenant_id=tenant_id, ref=ref, actor_id=actor_id)
    return store.reminders.list_by_invoice(invoice.id)
