# Overview: Service-layer operations for product stock; bounded adjustments with an append-only movement ledger.

from __future__ import annotations

import logging

from ..errors import ValidationError
from ..models import Product, StockMovement
from .concurrency import commit_unit_of_work, flush_or_raise
from .tenant_service import require_owned

logger = logging.getLogger(__name__)

"""
Stock Ledger Invariants (authoritative)

- Product.stock is the current quantity and never goes below zero.
- Every change to Product.stock appends exactly one StockMovement in the
  same transaction; both commit together or neither does.
- movement.quantity is the signed delta the caller asked for. For a
  subtract that hits the floor, new_stock is clamped to 0 while quantity
  still records the full request.
- Movements are never updated or deleted.
"""

OPERATION_ADD = "add"
OPERATION_SUBTRACT = "subtract"
OPERATION_SET = "set"

VALID_OPERATIONS = (OPERATION_ADD, OPERATION_SUBTRACT, OPERATION_SET)

MOVEMENT_ADJUSTMENT = "ADJUSTMENT"


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool):
        raise ValidationError("quantity must be a positive integer")
    if isinstance(quantity, float):
        if not quantity.is_integer():
            raise ValidationError("quantity must be a positive integer")
        quantity = int(quantity)
    elif isinstance(quantity, str):
        stripped = quantity.strip()
        if not stripped.isdigit():
            raise ValidationError("quantity must be a positive integer")
        quantity = int(stripped)
    elif not isinstance(quantity, int):
        raise ValidationError("quantity must be a positive integer")

    if quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    return quantity


def _validate_operation(operation) -> str:
    if not isinstance(operation, str) or operation.strip().lower() not in VALID_OPERATIONS:
        raise ValidationError(f"Invalid operation: {operation}. Must be one of {list(VALID_OPERATIONS)}")
    return operation.strip().lower()


def compute_adjustment(current: int, operation: str, quantity: int) -> tuple[int, int]:
    """Return (new_stock, movement_quantity) for an adjustment."""
    if operation == OPERATION_ADD:
        return current + quantity, quantity
    if operation == OPERATION_SUBTRACT:
        return max(0, current - quantity), -quantity
    return quantity, quantity - current


def adjust_stock(
    store,
    *,
    product_id,
    tenant_id: int,
    operation: str,
    quantity,
    movement_type: str | None = None,
    reference_id: str | None = None,
    reference_number: str | None = None,
    notes: str | None = None,
    created_by_id: str | None = None,
) -> tuple[Product, StockMovement]:
    """
    Apply one stock adjustment and append its movement record.

    Args:
        product_id: Product to adjust
        tenant_id: Effective shop id from the tenant guard
        operation: add, subtract or set
        quantity: Positive integer
        movement_type: Ledger tag (default ADJUSTMENT)

    Returns:
        (updated product, new movement)

    Raises:
        ValidationError: bad quantity or operation
        NotFound / AccessDenied: product missing or owned by another shop
        StorageError: commit failed; neither write is applied
    """
    operation = _validate_operation(operation)
    quantity = _validate_quantity(quantity)

    product = require_owned(
        store.products.get(product_id, lock=True),
        tenant_id,
        kind="product",
        ref=product_id,
        store=store,
        user_id=created_by_id,
    )

    previous_stock = product.stock or 0
    new_stock, movement_quantity = compute_adjustment(previous_stock, operation, quantity)

    store.products.update_stock(product.id, new_stock)
    movement = store.stock_movements.insert(StockMovement(
        product_id=product.id,
        shop_id=product.shop_id,
        type=(movement_type or MOVEMENT_ADJUSTMENT).strip().upper(),
        quantity=movement_quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reference_id=reference_id,
        reference_number=reference_number,
        notes=notes,
        created_by_id=created_by_id,
    ))
    flush_or_raise(store.session, action="adjust stock")

    if operation == OPERATION_SUBTRACT and previous_stock - quantity < 0:
        logger.warning(
            "Stock for product %s clamped at 0 (requested -%s from %s)",
            product.id, quantity, previous_stock,
        )

    commit_unit_of_work(store.session, action="adjust stock")
    return product, movement


def list_stock_movements(store, *, product_id, tenant_id: int) -> list[StockMovement]:
    """Movements for a product, newest first."""
    product = require_owned(
        store.products.get(product_id),
        tenant_id,
        kind="product",
        ref=product_id,
        store=store,
    )
    return store.stock_movements.list_by_product(product.id)
