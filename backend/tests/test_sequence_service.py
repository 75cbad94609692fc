# Overview: Pytest coverage for invoice number allocation policies.

import pytest

from shopledger.errors import ValidationError
from shopledger.models import Invoice, InvoiceSequence
from shopledger.repositories import LedgerStore
from shopledger.services import invoice_service
from shopledger.services.sequence_service import (
    format_invoice_number,
    next_invoice_number,
    parse_invoice_number,
)
from shopledger.time_utils import utcnow


def _seed_invoice(db_session, shop_id: int, number: str) -> Invoice:
    invoice = Invoice(
        invoice_number=number,
        shop_id=shop_id,
        customer_id=1,
        customer_name="Seed",
        date=utcnow(),
        due_date=utcnow(),
    )
    db_session.add(invoice)
    db_session.commit()
    return invoice


class TestInvoiceNumberParsing:
    def test_format(self):
        assert format_invoice_number(10260001) == "INV-10260001"

    def test_parse_strips_non_digits(self):
        assert parse_invoice_number("INV-10260042") == 10260042

    def test_parse_without_digits(self):
        assert parse_invoice_number("INV-") is None
        assert parse_invoice_number(None) is None


class TestMaxScanPolicy:
    def test_first_invoice_uses_start(self, db_session, shop_a):
        store = LedgerStore(db_session, invoice_numbering="max_scan")
        assert next_invoice_number(store, shop_id=shop_a.id) == "INV-10260001"

    def test_continues_from_system_wide_max(self, db_session, shop_a, shop_b):
        _seed_invoice(db_session, shop_b.id, "INV-10260041")
        store = LedgerStore(db_session, invoice_numbering="max_scan")
        assert next_invoice_number(store, shop_id=shop_a.id) == "INV-10260042"

    def test_shorter_legacy_number_does_not_win(self, db_session, shop_a):
        """INV-999 sorts after INV-10260001 as a string but is numerically smaller."""
        _seed_invoice(db_session, shop_a.id, "INV-10260001")
        _seed_invoice(db_session, shop_a.id, "INV-999")
        store = LedgerStore(db_session, invoice_numbering="max_scan")

        assert store.invoices.get_max_invoice_number() == "INV-10260001"
        assert next_invoice_number(store, shop_id=shop_a.id) == "INV-10260002"


class TestGlobalCounterPolicy:
    def test_seeded_from_existing_max(self, db_session, store, shop_a):
        _seed_invoice(db_session, shop_a.id, "INV-10260099")

        assert next_invoice_number(store, shop_id=shop_a.id) == "INV-10260100"
        assert next_invoice_number(store, shop_id=shop_a.id) == "INV-10260101"

        seq = db_session.query(InvoiceSequence).filter_by(scope="global").one()
        assert seq.next_number == 10260102

    def test_numbers_unique_across_shops(self, store, shop_a, shop_b, customer_a, customer_b):
        a = invoice_service.create_invoice(store, tenant_id=shop_a.id, customer_id=customer_a.id)
        b = invoice_service.create_invoice(store, tenant_id=shop_b.id, customer_id=customer_b.id)
        c = invoice_service.create_invoice(store, tenant_id=shop_a.id, customer_id=customer_a.id)

        assert [a.invoice_number, b.invoice_number, c.invoice_number] == [
            "INV-10260001", "INV-10260002", "INV-10260003",
        ]


class TestShopCounterPolicy:
    def test_each_shop_has_its_own_sequence(self, db_session, shop_a, shop_b, customer_a, customer_b):
        store = LedgerStore(db_session, invoice_numbering="shop_counter")

        a1 = invoice_service.create_invoice(store, tenant_id=shop_a.id, customer_id=customer_a.id)
        b1 = invoice_service.create_invoice(store, tenant_id=shop_b.id, customer_id=customer_b.id)
        a2 = invoice_service.create_invoice(store, tenant_id=shop_a.id, customer_id=customer_a.id)

        assert a1.invoice_number == b1.invoice_number == "INV-10260001"
        assert a2.invoice_number == "INV-10260002"

    def test_number_lookup_prefers_own_shop(self, db_session, shop_a, shop_b, customer_a, customer_b):
        store = LedgerStore(db_session, invoice_numbering="shop_counter")
        b1 = invoice_service.create_invoice(store, tenant_id=shop_b.id, customer_id=customer_b.id)
        a1 = invoice_service.create_invoice(store, tenant_id=shop_a.id, customer_id=customer_a.id)

        found = invoice_service.get_invoice(store, tenant_id=shop_a.id, ref="INV-10260001")
        assert found.id == a1.id
        assert found.id != b1.id


def test_unknown_policy(db_session, shop_a):
    store = LedgerStore(db_session, invoice_numbering="random")
    with pytest.raises(ValidationError):
        next_invoice_number(store, shop_id=shop_a.id)
