"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The ledger's history must be tamper-proof.  A journal entry records money
that moved; an adjustment records why a due item's payable amount changed.
Editing either after the fact silently breaks the balance reconciliation
and the due item amount invariant, so both are append-only.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database:

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

ORM-enabled bulk statements (``session.execute(update(Model)...)``) bypass
mapper events, so a ``do_orm_execute`` session listener blocks bulk UPDATE
and DELETE against the append-only tables as well.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | Rule
--------------------|----------------------------------------------------------
LedgerTransaction   | Never updated, never deleted
DueAdjustment       | Never updated, never deleted
DueItem             | original_amount never changes; not deleted while a
                    | StudentPayment references it

updated_at is audit metadata, not ledger data, and may change freely.

===============================================================================
USAGE
===============================================================================

Registered by ledger_kernel.db.engine.create_tables():

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA_FIELDS = frozenset({"updated_at"})


def _blocked(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target, mapper) -> list[str]:
    changed = []
    for attr in mapper.column_attrs:
        if attr.key in _AUDIT_METADATA_FIELDS:
            continue
        if get_history(target, attr.key).has_changes():
            changed.append(attr.key)
    return changed


def _check_ledger_transaction_immutability(mapper, connection, target):
    """Journal entries are append-only."""
    if not _changed_fields(target, mapper):
        return
    raise _blocked(
        "LedgerTransaction",
        target.id,
        "UPDATE",
        "Journal entries are immutable and cannot be modified",
    )


def _check_ledger_transaction_delete(mapper, connection, target):
    raise _blocked(
        "LedgerTransaction",
        target.id,
        "DELETE",
        "Journal entries are immutable and cannot be deleted",
    )


def _check_due_adjustment_immutability(mapper, connection, target):
    """Adjustments are append-only."""
    if not _changed_fields(target, mapper):
        return
    raise _blocked(
        "DueAdjustment",
        target.id,
        "UPDATE",
        "Due adjustments are immutable and cannot be modified",
    )


def _check_due_adjustment_delete(mapper, connection, target):
    raise _blocked(
        "DueAdjustment",
        target.id,
        "DELETE",
        "Due adjustments are immutable and cannot be deleted",
    )


def _check_due_item_original_amount(mapper, connection, target):
    """original_amount is fixed once the due item exists."""
    history = get_history(target, "original_amount")
    if not history.deleted:
        return
    old = history.deleted[0]
    new = history.added[0] if history.added else None
    if old is not None and new is not None and old != new:
        raise _blocked(
            "DueItem",
            target.id,
            "UPDATE",
            f"original_amount cannot change (was {old}, attempted {new})",
        )


def _check_due_item_delete(mapper, connection, target):
    """Due items referenced by a payment line cannot be deleted."""
    from ledger_kernel.models.payment import StudentPayment

    referenced = connection.execute(
        select(func.count())
        .select_from(StudentPayment)
        .where(StudentPayment.due_item_id == target.id)
    ).scalar_one()
    if referenced:
        raise _blocked(
            "DueItem",
            target.id,
            "DELETE",
            f"Due item is referenced by {referenced} payment line(s)",
        )


def _block_bulk_statements(orm_execute_state):
    """Reject ORM-enabled bulk UPDATE/DELETE on append-only tables."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    mapper = orm_execute_state.bind_mapper
    if mapper is None:
        return

    from ledger_kernel.models.account import LedgerTransaction
    from ledger_kernel.models.due import DueAdjustment

    if mapper.class_ in (LedgerTransaction, DueAdjustment):
        operation = "UPDATE" if orm_execute_state.is_update else "DELETE"
        raise _blocked(
            mapper.class_.__name__,
            "*",
            operation,
            f"Bulk {operation} is not allowed on append-only records",
        )


def _listeners():
    from ledger_kernel.models.account import LedgerTransaction
    from ledger_kernel.models.due import DueAdjustment, DueItem

    return [
        (Session, "do_orm_execute", _block_bulk_statements),
        (LedgerTransaction, "before_update", _check_ledger_transaction_immutability),
        (LedgerTransaction, "before_delete", _check_ledger_transaction_delete),
        (DueAdjustment, "before_update", _check_due_adjustment_immutability),
        (DueAdjustment, "before_delete", _check_due_adjustment_delete),
        (DueItem, "before_update", _check_due_item_original_amount),
        (DueItem, "before_delete", _check_due_item_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already present are not added twice.
    """
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate the rules on
    purpose to verify detection elsewhere.
    """
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
