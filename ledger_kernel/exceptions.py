"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (request handlers, batch jobs, the operator CLI) must react to ledger
failures precisely: an insufficient balance is shown to the cashier, a missing
fee structure is reported against a student in a batch summary, a concurrent
modification is retried.  Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (account title, requested amount, ...)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- NotFoundError
    |   +-- DueItemNotFoundError
    |   +-- AccountNotFoundError
    |   +-- StudentNotFoundError
    |   +-- FeeStructureNotFoundError
    |   +-- ReceiptNotFoundError
    |
    +-- InconsistentBatchError
    +-- InsufficientBalanceError
    +-- MissingPrerequisiteError
    |
    +-- ValidationFailureError
    |   +-- InvalidAmountError
    |   +-- InvalidDateRangeError
    |   +-- OverpaymentError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |   +-- GenerationTimeoutError
    |
    +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                      | When Raised
--------------------------|----------------------------------------------------
NOT_FOUND                 | Referenced due item/account/student/... missing
INCONSISTENT_BATCH        | Payment allocations span >1 tenant/student/collector
INSUFFICIENT_BALANCE      | Withdraw/transfer/expense exceeds account balance
MISSING_PREREQUISITE      | Student lacks fee structure or admission date
VALIDATION_FAILURE        | Amount, date range or allocation out of bounds
OVERPAYMENT               | Allocation exceeds the due item's outstanding amount
CONCURRENT_MODIFICATION   | Row vanished or changed between fetch and write
GENERATION_TIMEOUT        | Per-student due generation exceeded its deadline
IMMUTABILITY_VIOLATION    | Journal entry / adjustment / original amount edited

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        ledger.withdraw(account_id, amount, actor=user, tenant_id=tenant)
    except InsufficientBalanceError as e:
        flash(f"Not enough balance on {e.account_title}")

    try:
        engine.process_payment(allocations)
    except InconsistentBatchError as e:
        return {"error": e.code, "field": e.field}

===============================================================================
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(LedgerKernelError):
    """Base exception for a referenced entity that does not exist."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {self.entity_id}")


class DueItemNotFoundError(NotFoundError):
    """Due item with the given ID does not exist in the tenant."""

    entity_type = "Due item"


class AccountNotFoundError(NotFoundError):
    """Tenant account with the given ID does not exist in the tenant."""

    entity_type = "Account"


class StudentNotFoundError(NotFoundError):
    """Student does not exist, is inactive, or belongs to another tenant."""

    entity_type = "Student"


class FeeStructureNotFoundError(NotFoundError):
    """Fee structure with the given ID does not exist."""

    entity_type = "Fee structure"


class ReceiptNotFoundError(NotFoundError):
    """Payment receipt with the given ID does not exist."""

    entity_type = "Receipt"


# Batch / balance / prerequisite exceptions


class InconsistentBatchError(LedgerKernelError):
    """
    Payment allocations in one call disagree on a shared context field.

    All allocations of a batch must share tenant, student and collector.
    """

    code: str = "INCONSISTENT_BATCH"

    def __init__(self, field: str, expected: str, received: str):
        self.field = field
        self.expected = str(expected)
        self.received = str(received)
        super().__init__(
            f"All payments must share the same {field}: "
            f"expected {self.expected!r}, received {self.received!r}"
        )


class InsufficientBalanceError(LedgerKernelError):
    """Withdrawal, transfer or expense exceeds the account's balance."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        account_id: str,
        account_title: str,
        requested: Decimal,
        available: Decimal,
        operation: str = "withdrawal",
    ):
        self.account_id = str(account_id)
        self.account_title = account_title
        self.requested = str(requested)
        self.available = str(available)
        self.operation = operation
        super().__init__(
            f"Not enough balance for {operation} on: {account_title} "
            f"(requested {self.requested}, available {self.available})"
        )


class MissingPrerequisiteError(LedgerKernelError):
    """Student lacks a fee structure, admission date or billable fee lines."""

    code: str = "MISSING_PREREQUISITE"

    def __init__(self, student_id: str | None, prerequisite: str, message: str):
        self.student_id = str(student_id) if student_id is not None else None
        self.prerequisite = prerequisite
        super().__init__(message)


# Validation exceptions


class ValidationFailureError(LedgerKernelError):
    """Submitted values fall outside the allowed range."""

    code: str = "VALIDATION_FAILURE"


class InvalidAmountError(ValidationFailureError):
    """Amount is zero, negative, or would drive a total below zero."""

    def __init__(self, amount: Decimal | str, reason: str):
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Invalid amount {self.amount}: {reason}")


class InvalidDateRangeError(ValidationFailureError):
    """Start date falls after end date."""

    def __init__(self, start: str, end: str, reason: str):
        self.start = str(start)
        self.end = str(end)
        self.reason = reason
        super().__init__(reason)


class OverpaymentError(ValidationFailureError):
    """Allocation exceeds the outstanding amount of a due item."""

    code: str = "OVERPAYMENT"

    def __init__(
        self,
        due_item_id: str,
        due_item_title: str,
        requested: Decimal,
        outstanding: Decimal,
    ):
        self.due_item_id = str(due_item_id)
        self.due_item_title = due_item_title
        self.requested = str(requested)
        self.outstanding = str(outstanding)
        super().__init__(
            f"Payment of {self.requested} exceeds outstanding "
            f"{self.outstanding} on due item '{due_item_title}'"
        )


# Concurrency exceptions


class ConcurrencyError(LedgerKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """A row vanished or changed between fetch and write."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            f"{entity_type} {self.entity_id} was modified or deleted concurrently"
        )


class GenerationTimeoutError(ConcurrencyError):
    """Per-student due generation exceeded its deadline."""

    code: str = "GENERATION_TIMEOUT"

    def __init__(self, student_id: str, timeout_seconds: float):
        self.student_id = str(student_id)
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Due generation for student {self.student_id} exceeded "
            f"{timeout_seconds}s"
        )


# Immutability exceptions


class ImmutabilityViolationError(LedgerKernelError):
    """
    Attempted to modify or delete an immutable record.

    LedgerTransaction and DueAdjustment rows are append-only; a due item's
    original amount never changes once set.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {self.entity_id}: {reason}"
        )
