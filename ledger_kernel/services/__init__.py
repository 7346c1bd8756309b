"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.account_ledger_service import AccountLedgerService
from ledger_kernel.services.cache import (
    CacheInvalidator,
    CacheTags,
    NullCacheInvalidator,
    RecordingCacheInvalidator,
)
from ledger_kernel.services.due_adjustment_service import DueAdjustmentService
from ledger_kernel.services.due_generation_service import DueGenerationEngine
from ledger_kernel.services.fee_structure_provider import (
    FeeStructureProvider,
    SqlFeeStructureProvider,
    StaticFeeStructureProvider,
)
from ledger_kernel.services.payment_service import PaymentProcessingEngine

__all__ = [
    "AccountLedgerService",
    "CacheInvalidator",
    "CacheTags",
    "DueAdjustmentService",
    "DueGenerationEngine",
    "FeeStructureProvider",
    "NullCacheInvalidator",
    "PaymentProcessingEngine",
    "RecordingCacheInvalidator",
    "SqlFeeStructureProvider",
    "StaticFeeStructureProvider",
]
