"""
Pure domain layer.

This module contains value objects, DTOs and ledger rules with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (except SystemClock)
- I/O

All domain objects are immutable and deterministic.
"""

from ledger_kernel.domain.calendar import BillingMonth, months_between
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountInfo,
    AccountMovement,
    AdjustmentInfo,
    BatchError,
    BatchGenerationResult,
    DueCreationResult,
    DueItemInfo,
    EnsureDuesResult,
    FeeAdditionResult,
    FeeAdditionTarget,
    FeeDetails,
    FeeLineTemplate,
    GenerationParams,
    PaymentAllocation,
    PaymentLineInfo,
    PaymentResult,
    ReceiptInfo,
    TransactionInfo,
)
from ledger_kernel.domain.enums import (
    AccountType,
    DueAdjustmentStatus,
    DueAdjustmentType,
    DueItemStatus,
    FeeFrequency,
    FeeTargetType,
    LateFeeFrequency,
    OverpaymentPolicy,
    PaymentMethod,
    RecordStatus,
    TransactionType,
)
from ledger_kernel.domain.late_fee import (
    LateFeeAdjustmentDraft,
    LateFeeCalculation,
    build_late_fee_adjustment,
    calculate_late_fee,
)
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.domain.status import derive_status

__all__ = [
    "AccountInfo",
    "AccountMovement",
    "AccountType",
    "AdjustmentInfo",
    "BatchError",
    "BatchGenerationResult",
    "BillingMonth",
    "Clock",
    "DeterministicClock",
    "DueAdjustmentStatus",
    "DueAdjustmentType",
    "DueCreationResult",
    "DueItemInfo",
    "DueItemStatus",
    "EnsureDuesResult",
    "FeeAdditionResult",
    "FeeAdditionTarget",
    "FeeDetails",
    "FeeFrequency",
    "FeeLineTemplate",
    "FeeTargetType",
    "GenerationParams",
    "LateFeeAdjustmentDraft",
    "LateFeeCalculation",
    "LateFeeFrequency",
    "MoneyAmount",
    "OverpaymentPolicy",
    "PaymentAllocation",
    "PaymentLineInfo",
    "PaymentMethod",
    "PaymentResult",
    "ReceiptInfo",
    "RecordStatus",
    "SystemClock",
    "TransactionInfo",
    "TransactionType",
    "build_late_fee_adjustment",
    "calculate_late_fee",
    "derive_status",
    "months_between",
]
