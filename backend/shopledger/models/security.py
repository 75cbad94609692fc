from __future__ import annotations

from ..extensions import db
from shopledger.time_utils import to_utc_z


class SecurityEvent(db.Model):
    """
    Security event audit log with tenant context.

    Written when a caller resolved to one shop touches a record owned by
    another. IMMUTABLE: never updated or deleted.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_shop_occurred", "shop_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Tenant the caller acted as
    shop_id = db.Column(db.Integer, nullable=True, index=True)
    user_id = db.Column(db.String(64), nullable=True, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # CROSS_TENANT_ACCESS_DENIED, SHOP_STATUS_CHANGED
    resource = db.Column(db.String(128), nullable=True)  # e.g. "invoice:INV-10260001"
    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "resource": self.resource,
            "success": self.success,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }
