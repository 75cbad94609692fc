from __future__ import annotations

import uuid

from ..extensions import db
from shopledger.time_utils import to_utc_z


INVOICE_STATUS_UNPAID = "UNPAID"
INVOICE_STATUS_HALFPAY = "HALFPAY"
INVOICE_STATUS_FULLPAID = "FULLPAID"

INVOICE_STATUSES = (
    INVOICE_STATUS_UNPAID,
    INVOICE_STATUS_HALFPAY,
    INVOICE_STATUS_FULLPAID,
)

ITEM_ACTION_ADDED = "ADDED"
ITEM_ACTION_REMOVED = "REMOVED"
ITEM_ACTION_QTY_INCREASED = "QTY_INCREASED"
ITEM_ACTION_QTY_DECREASED = "QTY_DECREASED"
ITEM_ACTION_PRICE_CHANGED = "PRICE_CHANGED"

ITEM_HISTORY_ACTIONS = (
    ITEM_ACTION_ADDED,
    ITEM_ACTION_REMOVED,
    ITEM_ACTION_QTY_INCREASED,
    ITEM_ACTION_QTY_DECREASED,
    ITEM_ACTION_PRICE_CHANGED,
)

REMINDER_TYPE_PAYMENT = "PAYMENT"
REMINDER_TYPE_OVERDUE = "OVERDUE"

REMINDER_TYPES = (REMINDER_TYPE_PAYMENT, REMINDER_TYPE_OVERDUE)


def new_invoice_id() -> str:
    return str(uuid.uuid4())


class Invoice(db.Model):
    """
    Invoice aggregate root.

    INVARIANTS (whenever values are derived, not overridden):
    - total == subtotal + tax - discount
    - due_amount == max(0, total - paid_amount)
    - status is UNPAID / HALFPAY / FULLPAID from (paid_amount, total)

    Items, payments and reminders are deleted explicitly before the invoice;
    there is no ON DELETE CASCADE.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "invoice_number", name="uq_invoices_shop_number"),
        db.Index("ix_invoices_invoice_number", "invoice_number"),
        db.Index("ix_invoices_shop_status_date", "shop_id", "status", "date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_invoice_id)
    invoice_number = db.Column(db.String(64), nullable=False)

    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    # No FK: an unknown customer is stored as "Unknown Customer"
    customer_id = db.Column(db.Integer, nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    subtotal = db.Column(db.Float, nullable=False, default=0)
    tax = db.Column(db.Float, nullable=False, default=0)
    discount = db.Column(db.Float, nullable=False, default=0)
    total = db.Column(db.Float, nullable=False, default=0)
    paid_amount = db.Column(db.Float, nullable=False, default=0)
    due_amount = db.Column(db.Float, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_UNPAID, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="CASH")
    sales_channel = db.Column(db.String(32), nullable=False, default="ON_SITE")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("invoices", lazy=True))
    items = db.relationship(
        "InvoiceItem",
        primaryjoin="Invoice.id == InvoiceItem.invoice_id",
        order_by="InvoiceItem.id",
        viewonly=True,
        lazy=True,
    )
    payments = db.relationship(
        "InvoicePayment",
        primaryjoin="Invoice.id == InvoicePayment.invoice_id",
        order_by="InvoicePayment.id",
        viewonly=True,
        lazy=True,
    )
    reminders = db.relationship(
        "InvoiceReminder",
        primaryjoin="Invoice.id == InvoiceReminder.invoice_id",
        viewonly=True,
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} shop_id={self.shop_id} status={self.status}>"

    def to_dict(self, include_children: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "shop_id": self.shop_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "discount": self.discount,
            "total": self.total,
            "paid_amount": self.paid_amount,
            "due_amount": self.due_amount,
            "status": self.status,
            "date": to_utc_z(self.date),
            "due_date": to_utc_z(self.due_date),
            "payment_method": self.payment_method,
            "sales_channel": self.sales_channel,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_children:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
            data["reminder_count"] = len(self.reminders)
        return data


class InvoiceItem(db.Model):
    """Line item on an invoice. product_id is dropped when the product cannot be resolved."""
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Float, nullable=False, default=0)
    original_price = db.Column(db.Float, nullable=False, default=0)
    discount = db.Column(db.Float, nullable=False, default=0)
    total = db.Column(db.Float, nullable=False, default=0)
    warranty_due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "original_price": self.original_price,
            "discount": self.discount,
            "total": self.total,
            "warranty_due_date": to_utc_z(self.warranty_due_date) if self.warranty_due_date else None,
        }


class InvoicePayment(db.Model):
    """
    Payment against an invoice.

    APPEND-ONLY: never edited, merged or deduplicated. The invoice's
    paid_amount is re-derived as SUM(amount) after every insert.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)

    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="CASH")
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceReminder(db.Model):
    """
    Payment or overdue reminder sent to the invoice's customer.

    APPEND-ONLY: one row per send. Deleted with the invoice.
    """
    __tablename__ = "invoice_reminders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, default=REMINDER_TYPE_PAYMENT)
    channel = db.Column(db.String(32), nullable=False, default="whatsapp")
    sent_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False, default="")
    customer_phone = db.Column(db.String(64), nullable=False, default="")
    customer_name = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "shop_id": self.shop_id,
            "type": self.type,
            "channel": self.channel,
            "sent_at": to_utc_z(self.sent_at),
            "message": self.message,
            "customer_phone": self.customer_phone,
            "customer_name": self.customer_name,
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceItemHistory(db.Model):
    """
    Audit row for one line-item mutation on an invoice.

    APPEND-ONLY, and kept after the invoice is deleted (no FK).
    """
    __tablename__ = "invoice_item_history"
    __table_args__ = (
        db.Index("ix_invoice_item_history_invoice_created", "invoice_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.String(36), nullable=False, index=True)
    shop_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(32), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=True)
    product_name = db.Column(db.String(255), nullable=False)
    old_quantity = db.Column(db.Integer, nullable=True)
    new_quantity = db.Column(db.Integer, nullable=True)
    unit_price = db.Column(db.Float, nullable=False, default=0)
    amount_change = db.Column(db.Float, nullable=False, default=0)

    changed_by_id = db.Column(db.String(64), nullable=True)
    changed_by_name = db.Column(db.String(255), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "shop_id": self.shop_id,
            "action": self.action,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "old_quantity": self.old_quantity,
            "new_quantity": self.new_quantity,
            "unit_price": self.unit_price,
            "amount_change": self.amount_change,
            "changed_by_id": self.changed_by_id,
            "changed_by_name": self.changed_by_name,
            "reason": self.reason,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceSequence(db.Model):
    """
    Counter row for invoice numbering.

    scope is "global" for the system-wide counter or "shop:<id>" for the
    per-shop counter. Incremented under a row lock inside the same
    transaction as the invoice insert.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("scope", name="uq_invoice_sequences_scope"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(64), nullable=False)
    next_number = db.Column(db.Integer, nullable=False)
