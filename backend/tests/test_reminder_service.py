# Overview: Pytest coverage for invoice payment and overdue reminders.

from datetime import datetime

import pytest

from shopledger.errors import AccessDenied, NotFound, ValidationError
from shopledger.models import Invoice, InvoiceReminder
from shopledger.services import invoice_service, reminder_service


@pytest.fixture
def invoice_a(store, shop_a, customer_a):
    return invoice_service.create_invoice(
        store,
        tenant_id=shop_a.id,
        customer_id=customer_a.id,
        items=[{"product_name": "USB-C Cable", "quantity": 2, "unit_price": 125}],
    )


class TestRecordReminder:
    def test_defaults_from_invoice_and_customer(self, store, shop_a, invoice_a):
        reminder, count = reminder_service.record_reminder(store, tenant_id=shop_a.id, ref=invoice_a.invoice_number)

        assert count == 1
        assert reminder.invoice_id == invoice_a.id
        assert reminder.shop_id == shop_a.id
        assert reminder.type == "PAYMENT"
        assert reminder.channel == "whatsapp"
        assert reminder.message == ""
        assert reminder.customer_phone == "0771234567"
        assert reminder.customer_name == "Nimal Perera"

    def test_explicit_fields(self, store, shop_a, invoice_a):
        reminder, _ = reminder_service.record_reminder(
            store,
            tenant_id=shop_a.id,
            ref=invoice_a.id,
            type="overdue",
            channel="sms",
            message="Your invoice is overdue",
            customer_phone="0719999999",
            customer_name="N. Perera",
            sent_at="2026-04-01T08:00:00Z",
        )

        assert reminder.type == "OVERDUE"
        assert reminder.channel == "sms"
        assert reminder.message == "Your invoice is overdue"
        assert reminder.customer_phone == "0719999999"
        assert reminder.customer_name == "N. Perera"
        assert reminder.sent_at == datetime(2026, 4, 1, 8, 0)

    def test_unknown_type_is_payment(self, store, shop_a, invoice_a):
        reminder, _ = reminder_service.record_reminder(store, tenant_id=shop_a.id, ref=invoice_a.id, type="LATE")
        assert reminder.type == "PAYMENT"

    def test_customer_without_phone(self, store, shop_b, customer_b):
        invoice = invoice_service.create_invoice(store, tenant_id=shop_b.id, customer_id=customer_b.id)

        reminder, _ = reminder_service.record_reminder(store, tenant_id=shop_b.id, ref=invoice.id)
        assert reminder.customer_phone == ""

    def test_count_grows_per_send(self, store, shop_a, invoice_a):
        reminder_service.record_reminder(store, tenant_id=shop_a.id, ref=invoice_a.id)
        _, count = reminder_service.record_reminder(store, tenant_id=shop_a.id, ref=invoice_a.id)
        assert count == 2

    def test_bad_sent_at(self, db_session, store, shop_a, invoice_a):
        with pytest.raises(ValidationError):
            reminder_service.record_reminder(store, tenant_id=shop_a.id, ref=invoice_a.id, sent_at="soon")
        assert db_session.query(InvoiceReminder).count() == 0

    def test_unknown_invoice(self, store, shop_a):
        with pytest.raises(NotFound):
            reminder_service.record_reminder(store, tenant_id=shop_a.id, ref="INV-404")

    def test_cross_tenant_denied(self, db_session, store, shop_b, invoice_a):
        with pytest.raises(AccessDenied):
            reminder_service.record_reminder(store, tenant_id=shop_b.id, ref=invoice_a.invoice_number)
        assert db_session.query(InvoiceReminder).count() == 0


class TestListReminders:
    def test_most_recent_first(self, store, shop_a, invoice_a):
        for sent_at in ["2026-04-01T08:00:00Z", "2026-04-03T08:00:00Z", "2026-04-02T08:00:00Z"]:
            reminder_service.record_reminder(store, tenant_id=shop_a.id, ref=invoice_a.id, sent_at=sent_at)

        reminders = reminder_service.list_reminders(store, tenant_id=shop_a.id, ref=invoice_a.id)
        assert [r.sent_at.day for r in reminders] == [3, 2, 1]

    def test_cross_tenant_list_denied(self, store, shop_b, invoice_a):
        with pytest.raises(AccessDenied):
            reminder_service.list_reminders(store, tenant_id=shop_b.id, ref=invoice_a.id)

    def test_deleted_with_invoice(self, db_session, store, shop_a, invoice_a):
        invoice_id = invoice_a.id
        reminder_service.record_reminder(store, tenant_id=shop_a.id, ref=invoice_id)

        invoice_service.delete_invoice(store, tenant_id=shop_a.id, ref=invoice_id)

        assert db_session.get(Invoice, invoice_id) is None
        assert db_session.query(InvoiceReminder).filter_by(invoice_id=invoice_id).count() == 0
