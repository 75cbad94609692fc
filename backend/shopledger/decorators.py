# Overview: Bearer credential decoding and per-request store construction for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request
from jose import JWTError, jwt

from .errors import LedgerError
from .extensions import db
from .repositories import LedgerStore
from .services.tenant_service import Credential, save_security_events


def decode_credential(token: str) -> Credential:
    """
    Decode a signed bearer token into a Credential.

    Claims: sub (or userId), role, shopId, name. Token issuance happens in
    another service; this only verifies the signature and expiry.
    """
    claims = jwt.decode(
        token,
        current_app.config["SECRET_KEY"],
        algorithms=[current_app.config["JWT_ALGORITHM"]],
    )
    user_id = claims.get("sub") or claims.get("userId")
    return Credential(
        user_id=str(user_id) if user_id is not None else None,
        role=claims.get("role"),
        home_shop_id=claims.get("shopId"),
        name=claims.get("name"),
    )


def require_auth(f):
    """
    Require a valid bearer token and expose the caller as g.credential.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Signature, algorithm or expiry check fails

    The tenant itself is resolved per route through resolve_effective_shop_id.

    Denied cross-tenant accesses queued during the view are committed after
    it returns; an AccessDenied ends the operation before any of its writes.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        try:
            g.credential = decode_credential(token)
        except JWTError:
            return jsonify({"error": "Invalid or expired token"}), 401

        response = f(*args, **kwargs)

        store = g.get("ledger_store")
        if store is not None:
            try:
                save_security_events(store)
            except LedgerError:
                current_app.logger.exception("Failed to save security events")

        return response

    return decorated_function


def get_store() -> LedgerStore:
    """Build the request's LedgerStore over the Flask-SQLAlchemy session."""
    if "ledger_store" not in g:
        g.ledger_store = LedgerStore(
            db.session,
            invoice_numbering=current_app.config["INVOICE_NUMBER_POLICY"],
            invoice_number_start=current_app.config["INVOICE_NUMBER_START"],
            default_due_days=current_app.config["INVOICE_DEFAULT_DUE_DAYS"],
        )
    return g.ledger_store
