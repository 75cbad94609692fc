"""
Ledger error kinds.

Every core operation fails with exactly one of these. None are retried
internally; the transport maps ``status_code`` to the HTTP response.

- Unauthenticated: no resolvable tenant
- AccessDenied: tenant resolved, record belongs to another shop
- NotFound: no record matches any lookup strategy
- ValidationError: malformed input
- StorageError: transaction/commit failure

AccessDenied and NotFound are never substituted for one another.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""
    status_code = 500


class Unauthenticated(LedgerError):
    status_code = 401


class AccessDenied(LedgerError):
    status_code = 403


class NotFound(LedgerError):
    status_code = 404


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""
    status_code = 400


class StorageError(LedgerError):
    status_code = 500
