"""
Multi-Tenant Service: Tenant Resolution and Ownership Checks

Every ledger operation is scoped to one shop (the tenant). This module turns
a decoded caller credential into that shop id and verifies that records a
caller touches belong to it.

SECURITY INVARIANTS:
1. The effective shop id comes from the credential, never from a request body
2. Only SUPER_ADMIN may act as another shop, and only via an explicit
   requested shop id
3. A record owned by another shop raises AccessDenied, never NotFound, and
   is logged as a CROSS_TENANT_ACCESS_DENIED security event
4. Records found through a secondary key (invoice number) get the same check

USAGE:
    shop_id = resolve_effective_shop_id(credential, request.args.get("shop_id"))
    invoice = require_owned(store.invoices.resolve_invoice_ref(ref), shop_id,
                            kind="invoice", ref=ref, store=store)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import AccessDenied, NotFound, Unauthenticated, ValidationError
from ..models import SecurityEvent
from .concurrency import commit_unit_of_work

logger = logging.getLogger(__name__)

ROLE_SUPER_ADMIN = "SUPER_ADMIN"


@dataclass(frozen=True)
class Credential:
    """Decoded caller identity; issuing and verifying tokens happens elsewhere."""
    user_id: str | None
    role: str | None
    home_shop_id: int | None
    name: str | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN


def _coerce_shop_id(value) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("shop_id must be an integer")
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        raise ValidationError("shop_id must be an integer")


def resolve_effective_shop_id(
    credential: Credential | None,
    requested_shop_id=None,
    *,
    allow_view_as: bool = True,
) -> int:
    """
    Resolve the shop every subsequent query is scoped to.

    - SUPER_ADMIN with a requested shop id acts as that shop ("view as")
    - everyone else acts as their home shop; requested_shop_id is ignored
    - nothing resolvable raises Unauthenticated

    Mutating call sites pass allow_view_as=False so writes always land in
    the caller's own shop.
    """
    if credential is None:
        raise Unauthenticated("Authentication required")

    requested = _coerce_shop_id(requested_shop_id)
    if allow_view_as and credential.is_super_admin and requested is not None:
        logger.info("Super admin %s viewing shop %s", credential.user_id, requested)
        return requested

    home = _coerce_shop_id(credential.home_shop_id)
    if home is None:
        raise Unauthenticated("Authentication required")
    return home


def require_owned(record, shop_id: int, *, kind: str, ref=None, store=None, user_id=None):
    """
    Return record if it belongs to shop_id.

    Raises:
        NotFound: record is None
        AccessDenied: record.shop_id != shop_id (logged when store is given)
    """
    label = ref if ref is not None else getattr(record, "id", None)
    if record is None:
        raise NotFound(f"{kind.capitalize()} not found: {label}")

    if record.shop_id != shop_id:
        if store is not None:
            _log_cross_tenant_attempt(
                store,
                shop_id=shop_id,
                user_id=user_id,
                resource=f"{kind}:{label}",
                reason=f"{kind} {getattr(record, 'id', label)} belongs to shop {record.shop_id}, not {shop_id}",
            )
        raise AccessDenied(f"Access denied - {kind} does not belong to your shop")

    return record


def set_shop_active(store, credential: Credential | None, shop_id, is_active: bool):
    """
    Toggle a shop's active flag. Shops are never deleted.

    Only SUPER_ADMIN may call this.
    """
    if credential is None:
        raise Unauthenticated("Authentication required")
    if not credential.is_super_admin:
        raise AccessDenied("Super admin access required")

    shop = store.shops.get(_coerce_shop_id(shop_id))
    if shop is None:
        raise NotFound(f"Shop not found: {shop_id}")

    shop.is_active = bool(is_active)
    store.security_events.insert(SecurityEvent(
        shop_id=shop.id,
        user_id=credential.user_id,
        event_type="SHOP_STATUS_CHANGED",
        resource=f"shop:{shop.id}",
        success=True,
        reason="activated" if shop.is_active else "deactivated",
    ))
    commit_unit_of_work(store.session, action="update shop status")
    return shop


def _log_cross_tenant_attempt(store, *, shop_id, user_id, resource: str, reason: str) -> None:
    """
    Add a denied cross-tenant access to the caller's unit of work.

    Nothing is committed here. The event is queued on the store and becomes
    durable when the caller commits or calls save_security_events.
    """
    logger.warning("Cross-tenant access denied: %s", reason)
    event = store.security_events.insert(SecurityEvent(
        shop_id=shop_id,
        user_id=user_id,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        resource=resource,
        success=False,
        reason=reason,
    ))
    store.security_events.unsaved.append(event)


def save_security_events(store) -> int:
    """
    Commit queued denied-access events.

    Only call this where the session holds no other writes, e.g. right after
    an AccessDenied ended the operation. Returns the number of events saved.
    """
    count = len(store.security_events.unsaved)
    if count:
        commit_unit_of_work(store.session, action="log security event")
        store.security_events.unsaved.clear()
    return count
