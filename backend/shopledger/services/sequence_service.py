# Overview: Invoice number allocation with pluggable numbering policies.

from __future__ import annotations

import re

from ..errors import ValidationError
from ..repositories import INVOICE_NUMBER_PREFIX

"""
Invoice numbering policies

- max_scan: read the highest invoice_number system-wide, strip non-digits,
  add one. Matches the legacy numbering exactly, including its race under
  concurrent creates.
- global_counter (default): one system-wide counter row, locked for update
  inside the invoice's transaction. Seeded from max_scan on first use so
  existing numbering continues without a gap or reuse.
- shop_counter: one counter row per shop starting at the configured start.
  Numbers are unique per shop only.

All policies format as "INV-<n>".
"""

POLICY_MAX_SCAN = "max_scan"
POLICY_GLOBAL_COUNTER = "global_counter"
POLICY_SHOP_COUNTER = "shop_counter"

VALID_POLICIES = (POLICY_MAX_SCAN, POLICY_GLOBAL_COUNTER, POLICY_SHOP_COUNTER)

_NON_DIGITS = re.compile(r"\D")


def format_invoice_number(number: int) -> str:
    return f"{INVOICE_NUMBER_PREFIX}{number}"


def parse_invoice_number(value: str | None) -> int | None:
    """Digits of an invoice number as int; None when there are none."""
    if not value:
        return None
    digits = _NON_DIGITS.sub("", value)
    if not digits:
        return None
    return int(digits)


def _next_by_max_scan(store, *, shop_id=None) -> int:
    last = parse_invoice_number(store.invoices.get_max_invoice_number(shop_id=shop_id))
    if last is None:
        return store.invoice_number_start
    return last + 1


def _next_from_counter(store, scope: str, seed) -> int:
    seq = store.sequences.get_for_update(scope)
    if seq is None:
        current = seed()
        store.sequences.insert(scope, current + 1)
        return current

    current = seq.next_number
    seq.next_number = current + 1
    return current


def next_invoice_number(store, *, shop_id: int) -> str:
    """
    Allocate the next invoice number under the store's configured policy.

    Must be called inside the transaction that inserts the invoice; the
    counter increment commits or rolls back with it.
    """
    policy = store.invoice_numbering
    if policy == POLICY_MAX_SCAN:
        number = _next_by_max_scan(store)
    elif policy == POLICY_GLOBAL_COUNTER:
        number = _next_from_counter(store, "global", lambda: _next_by_max_scan(store))
    elif policy == POLICY_SHOP_COUNTER:
        number = _next_from_counter(
            store,
            f"shop:{shop_id}",
            lambda: _next_by_max_scan(store, shop_id=shop_id),
        )
    else:
        raise ValidationError(f"Unknown invoice numbering policy: {policy}. Must be one of {list(VALID_POLICIES)}")

    return format_invoice_number(number)
