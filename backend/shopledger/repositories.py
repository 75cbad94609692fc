"""
Repositories over an injected SQLAlchemy session.

The session (and its transaction) is owned by the caller: repositories add,
query and bulk-delete, but never commit. Services decide when a unit of work
ends. LedgerStore bundles one repository per aggregate so a request builds
exactly one handle and passes it to every service call.
"""

from __future__ import annotations

from sqlalchemy import case, func

from .models import (
    Shop,
    Customer,
    Product,
    StockMovement,
    Invoice,
    InvoiceItem,
    InvoicePayment,
    InvoiceReminder,
    InvoiceItemHistory,
    InvoiceSequence,
    SecurityEvent,
)
from .models.invoices import new_invoice_id
from .services.concurrency import lock_for_update

INVOICE_NUMBER_PREFIX = "INV-"


class _Repository:
    def __init__(self, session):
        self.session = session


class ShopRepo(_Repository):
    def get(self, shop_id) -> Shop | None:
        return self.session.get(Shop, shop_id)

    def list_all(self) -> list[Shop]:
        return self.session.query(Shop).order_by(Shop.id).all()


class CustomerRepo(_Repository):
    def get(self, customer_id) -> Customer | None:
        return self.session.get(Customer, customer_id)


class ProductRepo(_Repository):
    def get(self, product_id, *, lock: bool = False) -> Product | None:
        query = self.session.query(Product).filter_by(id=product_id)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def update_stock(self, product_id, new_stock: int) -> Product:
        """Must run in the same transaction as StockMovementRepo.insert."""
        product = self.get(product_id)
        product.stock = new_stock
        return product


class InvoiceRepo(_Repository):
    def get_by_id(self, invoice_id, *, lock: bool = False) -> Invoice | None:
        query = self.session.query(Invoice).filter_by(id=str(invoice_id))
        if lock:
            query = lock_for_update(query)
        return query.first()

    def find_by_number(self, number: str, *, prefer_shop_id=None, lock: bool = False) -> Invoice | None:
        """
        Find an invoice by its display number.

        With per-shop numbering the same number can exist in several shops;
        prefer_shop_id puts the caller's own invoice first. Any other match
        is still returned so the ownership check can deny it.
        """
        query = self.session.query(Invoice).filter(Invoice.invoice_number == number)
        if prefer_shop_id is not None:
            query = query.order_by(case((Invoice.shop_id == prefer_shop_id, 0), else_=1), Invoice.created_at)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def resolve_invoice_ref(self, ref, *, shop_id=None, lock: bool = False) -> Invoice | None:
        """
        Ordered lookup chain for a caller-supplied invoice reference:

        1. primary id
        2. exact invoice_number
        3. invoice_number with "INV-" prepended (only when ref lacks it)

        Returns None when every step misses. Ownership is not checked here.
        """
        if ref is None:
            return None
        ref = str(ref).strip()
        if not ref:
            return None

        invoice = self.get_by_id(ref, lock=lock)
        if invoice is None:
            invoice = self.find_by_number(ref, prefer_shop_id=shop_id, lock=lock)
        if invoice is None and not ref.startswith(INVOICE_NUMBER_PREFIX):
            invoice = self.find_by_number(f"{INVOICE_NUMBER_PREFIX}{ref}", prefer_shop_id=shop_id, lock=lock)
        return invoice

    def get_max_invoice_number(self, *, shop_id=None) -> str | None:
        """
        Highest invoice_number, system-wide unless shop_id is given.

        Longer numbers sort first so INV-10260001 beats INV-999; equal lengths
        compare as strings.
        """
        query = self.session.query(Invoice.invoice_number)
        if shop_id is not None:
            query = query.filter(Invoice.shop_id == shop_id)
        return (
            query.order_by(func.length(Invoice.invoice_number).desc(), Invoice.invoice_number.desc())
            .limit(1)
            .scalar()
        )

    def insert(self, invoice: Invoice, items: list[InvoiceItem]) -> Invoice:
        if invoice.id is None:
            invoice.id = new_invoice_id()
        self.session.add(invoice)
        for item in items:
            item.invoice_id = invoice.id
        self.session.add_all(items)
        return invoice

    def replace_items(self, invoice_id, items: list[InvoiceItem]) -> list[InvoiceItem]:
        """Delete every existing item and insert the replacement set. No diffing."""
        self.session.query(InvoiceItem).filter(InvoiceItem.invoice_id == invoice_id).delete(
            synchronize_session=False
        )
        for item in items:
            item.invoice_id = invoice_id
        self.session.add_all(items)
        return items

    def update_fields(self, invoice_id, patch: dict) -> Invoice:
        invoice = self.get_by_id(invoice_id)
        columns = Invoice.__table__.columns.keys()
        for key, value in patch.items():
            if key not in columns or key in ("id", "shop_id", "invoice_number"):
                raise KeyError(f"{key} is not an updatable invoice field")
            setattr(invoice, key, value)
        return invoice

    def delete(self, invoice_id) -> None:
        """Children first: no ON DELETE CASCADE is assumed."""
        self.session.query(InvoiceItem).filter(InvoiceItem.invoice_id == invoice_id).delete(
            synchronize_session=False
        )
        self.session.query(InvoicePayment).filter(InvoicePayment.invoice_id == invoice_id).delete(
            synchronize_session=False
        )
        self.session.query(InvoiceReminder).filter(InvoiceReminder.invoice_id == invoice_id).delete(
            synchronize_session=False
        )
        invoice = self.get_by_id(invoice_id)
        if invoice is not None:
            self.session.delete(invoice)


class PaymentRepo(_Repository):
    def insert(self, payment: InvoicePayment) -> InvoicePayment:
        self.session.add(payment)
        return payment

    def sum_by_invoice(self, invoice_id) -> float:
        total = self.session.query(
            func.coalesce(func.sum(InvoicePayment.amount), 0)
        ).filter(InvoicePayment.invoice_id == invoice_id).scalar()
        return float(total or 0)

    def list_by_invoice(self, invoice_id) -> list[InvoicePayment]:
        return (
            self.session.query(InvoicePayment)
            .filter(InvoicePayment.invoice_id == invoice_id)
            .order_by(InvoicePayment.payment_date.desc(), InvoicePayment.id.desc())
            .all()
        )


class ReminderRepo(_Repository):
    def insert(self, reminder: InvoiceReminder) -> InvoiceReminder:
        self.session.add(reminder)
        return reminder

    def list_by_invoice(self, invoice_id) -> list[InvoiceReminder]:
        return (
            self.session.query(InvoiceReminder)
            .filter(InvoiceReminder.invoice_id == invoice_id)
            .order_by(InvoiceReminder.sent_at.desc(), InvoiceReminder.id.desc())
            .all()
        )

    def count_by_invoice(self, invoice_id) -> int:
        return self.session.query(InvoiceReminder).filter(InvoiceReminder.invoice_id == invoice_id).count()


class StockMovementRepo(_Repository):
    def insert(self, movement: StockMovement) -> StockMovement:
        self.session.add(movement)
        return movement

    def list_by_product(self, product_id) -> list[StockMovement]:
        return (
            self.session.query(StockMovement)
            .filter(StockMovement.product_id == product_id)
            .order_by(StockMovement.id.desc())
            .all()
        )


class InvoiceItemHistoryRepo(_Repository):
    def insert_many(self, records: list[InvoiceItemHistory]) -> list[InvoiceItemHistory]:
        self.session.add_all(records)
        return records

    def list_by_invoice(self, invoice_id) -> list[InvoiceItemHistory]:
        return (
            self.session.query(InvoiceItemHistory)
            .filter(InvoiceItemHistory.invoice_id == invoice_id)
            .order_by(InvoiceItemHistory.id)
            .all()
        )


class InvoiceSequenceRepo(_Repository):
    def get_for_update(self, scope: str) -> InvoiceSequence | None:
        return lock_for_update(self.session.query(InvoiceSequence).filter_by(scope=scope)).first()

    def insert(self, scope: str, next_number: int) -> InvoiceSequence:
        seq = InvoiceSequence(scope=scope, next_number=next_number)
        self.session.add(seq)
        return seq


class SecurityEventRepo(_Repository):
    def __init__(self, session):
        super().__init__(session)
        # Denied-access events added but not yet committed
        self.unsaved: list[SecurityEvent] = []

    def insert(self, event: SecurityEvent) -> SecurityEvent:
        self.session.add(event)
        return event

    def list_by_type(self, event_type: str) -> list[SecurityEvent]:
        return (
            self.session.query(SecurityEvent)
            .filter(SecurityEvent.event_type == event_type)
            .order_by(SecurityEvent.id)
            .all()
        )


class LedgerStore:
    """
    Explicitly constructed store handle passed to every service call.

    Usage:
        store = LedgerStore(db.session, invoice_numbering="global_counter")
        invoice = invoice_service.create_invoice(store, tenant_id=1, ...)
    """

    def __init__(
        self,
        session,
        *,
        invoice_numbering: str = "global_counter",
        invoice_number_start: int = 10260001,
        default_due_days: int = 30,
    ):
        self.session = session
        self.invoice_numbering = invoice_numbering
        self.invoice_number_start = invoice_number_start
        self.default_due_days = default_due_days

        self.shops = ShopRepo(session)
        self.customers = CustomerRepo(session)
        self.products = ProductRepo(session)
        self.invoices = InvoiceRepo(session)
        self.payments = PaymentRepo(session)
        self.reminders = ReminderRepo(session)
        self.stock_movements = StockMovementRepo(session)
        self.item_history = InvoiceItemHistoryRepo(session)
        self.sequences = InvoiceSequenceRepo(session)
        self.security_events = SecurityEventRepo(session)
