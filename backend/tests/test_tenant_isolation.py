# Overview: Pytest coverage for tenant resolution and cross-shop isolation.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-shop access is denied for every ledger
resource.

These tests create two shops with their own customers, products and
invoices, then verify that:
1. A caller resolved to Shop A cannot read or write Shop B's records
2. Cross-shop access raises AccessDenied, never NotFound
3. Records found by invoice number get the same check as by id
4. Security events are logged for cross-shop access attempts
"""

import pytest

from shopledger.errors import AccessDenied, NotFound, Unauthenticated, ValidationError
from shopledger.models import Invoice, InvoicePayment, SecurityEvent, Shop, StockMovement
from shopledger.services import invoice_service, payment_service, stock_service, item_history_service
from shopledger.services.tenant_service import (
    Credential,
    require_owned,
    resolve_effective_shop_id,
    save_security_events,
    set_shop_active,
)


def _denied_count(db_session) -> int:
    return db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").count()


class TestResolveEffectiveShopId:
    """Test tenant resolution from a decoded credential."""

    def test_regular_user_gets_home_shop(self, credential_a, shop_a):
        assert resolve_effective_shop_id(credential_a) == shop_a.id

    def test_regular_user_cannot_view_as(self, credential_a, shop_a, shop_b):
        """A requested shop id is ignored for non-superadmins."""
        assert resolve_effective_shop_id(credential_a, shop_b.id) == shop_a.id

    def test_super_admin_view_as(self, super_admin, shop_b):
        assert resolve_effective_shop_id(super_admin, shop_b.id) == shop_b.id
        assert resolve_effective_shop_id(super_admin, str(shop_b.id)) == shop_b.id

    def test_super_admin_view_as_disabled_for_writes(self, shop_a, shop_b):
        admin = Credential(user_id="root", role="SUPER_ADMIN", home_shop_id=shop_a.id)
        assert resolve_effective_shop_id(admin, shop_b.id, allow_view_as=False) == shop_a.id

    def test_super_admin_without_home_or_request(self, super_admin):
        with pytest.raises(Unauthenticated):
            resolve_effective_shop_id(super_admin)

    def test_no_credential(self):
        with pytest.raises(Unauthenticated):
            resolve_effective_shop_id(None, 1)

    def test_non_integer_requested_shop(self, super_admin):
        with pytest.raises(ValidationError):
            resolve_effective_shop_id(super_admin, "abc")


class TestRequireOwned:
    def test_missing_record_is_not_found(self, shop_a):
        with pytest.raises(NotFound):
            require_owned(None, shop_a.id, kind="invoice", ref="INV-1")

    def test_foreign_record_is_access_denied(self, db_session, store, shop_a, product_b):
        before = _denied_count(db_session)

        with pytest.raises(AccessDenied):
            require_owned(product_b, shop_a.id, kind="product", ref=product_b.id, store=store, user_id="user-a")

        assert _denied_count(db_session) == before + 1
        event = db_session.query(SecurityEvent).order_by(SecurityEvent.id.desc()).first()
        assert event.shop_id == shop_a.id
        assert event.user_id == "user-a"
        assert event.resource == f"product:{product_b.id}"
        assert event.success is False

    def test_own_record_passes(self, shop_a, product_a):
        assert require_owned(product_a, shop_a.id, kind="product") is product_a

    def test_denied_access_does_not_commit_caller_writes(self, db_session, store, shop_a, product_b):
        """The event joins the caller's unit of work; a rollback discards both."""
        db_session.add(Shop(name="Uncommitted Shop", is_active=True))

        with pytest.raises(AccessDenied):
            require_owned(product_b, shop_a.id, kind="product", ref=product_b.id, store=store)

        db_session.rollback()
        assert db_session.query(Shop).filter_by(name="Uncommitted Shop").count() == 0
        assert _denied_count(db_session) == 0

    def test_save_security_events(self, db_session, store, shop_a, product_b):
        with pytest.raises(AccessDenied):
            require_owned(product_b, shop_a.id, kind="product", ref=product_b.id, store=store)

        assert save_security_events(store) == 1
        assert save_security_events(store) == 0

        db_session.rollback()
        assert _denied_count(db_session) == 1


class TestCrossTenantInvoiceAccess:
    """Shop A cannot touch Shop B's invoice by id or by number."""

    @pytest.fixture
    def invoice_b(self, store, shop_b, customer_b):
        return invoice_service.create_invoice(
            store,
            tenant_id=shop_b.id,
            customer_id=customer_b.id,
            items=[{"product_name": "Phone Case", "quantity": 1, "unit_price": 900}],
        )

    def test_get_by_id_denied(self, store, shop_a, invoice_b):
        with pytest.raises(AccessDenied):
            invoice_service.get_invoice(store, tenant_id=shop_a.id, ref=invoice_b.id)

    def test_get_by_number_denied(self, store, shop_a, invoice_b):
        with pytest.raises(AccessDenied):
            invoice_service.get_invoice(store, tenant_id=shop_a.id, ref=invoice_b.invoice_number)

    def test_get_by_bare_digits_denied(self, store, shop_a, invoice_b):
        digits = invoice_b.invoice_number.replace("INV-", "")
        with pytest.raises(AccessDenied):
            invoice_service.get_invoice(store, tenant_id=shop_a.id, ref=digits)

    def test_payment_denied_and_invoice_unchanged(self, db_session, store, shop_a, invoice_b):
        before = _denied_count(db_session)

        with pytest.raises(AccessDenied):
            payment_service.apply_payment(store, tenant_id=shop_a.id, ref=invoice_b.invoice_number, amount=100)

        db_session.expire_all()
        assert db_session.query(InvoicePayment).count() == 0
        assert db_session.get(Invoice, invoice_b.id).paid_amount == 0
        assert _denied_count(db_session) == before + 1

    def test_edit_denied(self, store, shop_a, invoice_b):
        with pytest.raises(AccessDenied):
            invoice_service.edit_invoice(store, tenant_id=shop_a.id, ref=invoice_b.id, notes="hijack")

    def test_delete_denied(self, db_session, store, shop_a, invoice_b):
        with pytest.raises(AccessDenied):
            invoice_service.delete_invoice(store, tenant_id=shop_a.id, ref=invoice_b.id)
        assert db_session.get(Invoice, invoice_b.id) is not None

    def test_item_history_denied(self, store, shop_a, invoice_b):
        with pytest.raises(AccessDenied):
            item_history_service.record_changes(
                store,
                tenant_id=shop_a.id,
                ref=invoice_b.id,
                changes=[{"action": "ADDED", "product_name": "x"}],
            )

    def test_super_admin_view_as_reads_foreign_invoice(self, store, super_admin, shop_b, invoice_b):
        shop_id = resolve_effective_shop_id(super_admin, shop_b.id)
        invoice = invoice_service.get_invoice(store, tenant_id=shop_id, ref=invoice_b.invoice_number)
        assert invoice.id == invoice_b.id


class TestCrossTenantStock:
    def test_adjust_foreign_product_denied(self, db_session, store, shop_a, product_b):
        with pytest.raises(AccessDenied):
            stock_service.adjust_stock(
                store, product_id=product_b.id, tenant_id=shop_a.id, operation="add", quantity=1
            )

        db_session.expire_all()
        assert db_session.get(type(product_b), product_b.id).stock == 10
        assert db_session.query(StockMovement).count() == 0

    def test_foreign_customer_denied_on_create(self, db_session, store, shop_a, customer_b):
        with pytest.raises(AccessDenied):
            invoice_service.create_invoice(store, tenant_id=shop_a.id, customer_id=customer_b.id, items=[])
        assert db_session.query(Invoice).count() == 0


class TestShopStatus:
    def test_super_admin_toggles_shop(self, db_session, store, super_admin, shop_b):
        shop = set_shop_active(store, super_admin, shop_b.id, False)
        assert shop.is_active is False

        event = db_session.query(SecurityEvent).filter_by(event_type="SHOP_STATUS_CHANGED").one()
        assert event.reason == "deactivated"

    def test_regular_user_cannot_toggle(self, store, credential_a, shop_b):
        with pytest.raises(AccessDenied):
            set_shop_active(store, credential_a, shop_b.id, False)

    def test_unknown_shop(self, store, super_admin):
        with pytest.raises(NotFound):
            set_shop_active(store, super_admin, 99999, True)
