"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  Engines never read files or environment
    variables; callers pass the resolved values (timeouts, over-payment
    policy) into the engines they build.

Architecture position:
    Configuration -- sits above ``ledger_kernel``.  The kernel MUST NEVER
    import from ``ledger_config``; this package imports the kernel's
    OverpaymentPolicy enum and ``build_engines`` wires settings into it.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``yaml.YAMLError`` -- the settings file is not valid YAML.
    - ``ValueError`` -- a setting is unknown or out of range.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ledger_config.loader import DATABASE_URL_ENV, load_settings, parse_settings
from ledger_config.schema import LedgerSettings
from ledger_kernel.db.unit_of_work import UnitOfWorkFactory
from ledger_kernel.domain.clock import Clock
from ledger_kernel.services import (
    AccountLedgerService,
    CacheInvalidator,
    DueAdjustmentService,
    DueGenerationEngine,
    PaymentProcessingEngine,
)

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerSettings:
    """
    Load the active ledger settings.

    Args:
        path: Settings file; defaults to the packaged defaults.yaml.
    """
    return load_settings(Path(path) if path is not None else DEFAULT_SETTINGS_PATH)


@dataclass(frozen=True)
class LedgerEngines:
    generation: DueGenerationEngine
    adjustments: DueAdjustmentService
    payments: PaymentProcessingEngine
    accounts: AccountLedgerService


def build_engines(
    settings: LedgerSettings,
    uow_factory: UnitOfWorkFactory,
    clock: Clock | None = None,
    cache: CacheInvalidator | None = None,
) -> LedgerEngines:
    """Construct the engines with the timeouts and policy from ``settings``."""
    adjustments = DueAdjustmentService(uow_factory, clock, cache)
    return LedgerEngines(
        generation=DueGenerationEngine(
            uow_factory,
            clock,
            cache,
            adjustments=adjustments,
            per_student_timeout_seconds=settings.per_student_timeout_seconds,
        ),
        adjustments=adjustments,
        payments=PaymentProcessingEngine(
            uow_factory,
            clock,
            cache,
            overpayment_policy=settings.overpayment_policy,
            payment_timeout_seconds=settings.payment_timeout_seconds,
        ),
        accounts=AccountLedgerService(uow_factory, clock, cache),
    )


__all__ = [
    "DATABASE_URL_ENV",
    "DEFAULT_SETTINGS_PATH",
    "LedgerEngines",
    "LedgerSettings",
    "build_engines",
    "get_active_config",
    "load_settings",
    "parse_settings",
]
