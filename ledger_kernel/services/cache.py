"""
Cache invalidation collaborator.

Responsibility:
    Names the read-cache tags a ledger write makes stale and hands them to
    the external cache after the unit of work has committed.

Architecture position:
    Kernel > Services.  The cache itself lives outside the kernel; engines
    only see the CacheInvalidator protocol.

Failure modes:
    - None surface to callers.  invalidate_after_commit() logs
      ``cache_invalidation_failed`` and returns False; the committed write
      stands.
"""

from logging import Logger
from typing import Iterable, Protocol, Sequence, runtime_checkable
from uuid import UUID


class CacheTags:
    """Tag builders matching the keys the read side caches under."""

    @staticmethod
    def tenant_accounts(tenant_id: str) -> str:
        return f"tenant-accounts-{tenant_id}"

    @staticmethod
    def tenant_account(account_id: UUID | str) -> str:
        return f"tenant-account-{account_id}"

    @staticmethod
    def students(tenant_id: str) -> str:
        return f"students-{tenant_id}"

    @staticmethod
    def student(student_id: UUID | str) -> str:
        return f"student-{student_id}"

    @staticmethod
    def dues(tenant_id: str) -> str:
        return f"dues-{tenant_id}"

    @staticmethod
    def due(due_id: UUID | str) -> str:
        return f"dues-{due_id}"

    @staticmethod
    def student_payments(tenant_id: str) -> str:
        return f"payments-{tenant_id}"

    @staticmethod
    def payment_transactions(tenant_id: str) -> str:
        return f"payment-transaction-{tenant_id}"

    @staticmethod
    def payment_transaction(receipt_id: UUID | str) -> str:
        return f"payment-transaction-{receipt_id}"

    @staticmethod
    def transactions(tenant_id: str) -> str:
        return f"transactions-{tenant_id}"

    @staticmethod
    def tenant_dashboard(tenant_id: str) -> str:
        return f"tenant-dashboard-data-{tenant_id}"

    @classmethod
    def for_account_movement(
        cls, tenant_id: str, account_ids: Iterable[UUID | str]
    ) -> tuple[str, ...]:
        tags = [cls.tenant_accounts(tenant_id), cls.transactions(tenant_id)]
        tags.extend(cls.tenant_account(a) for a in account_ids)
        tags.append(cls.tenant_dashboard(tenant_id))
        return _unique(tags)

    @classmethod
    def for_payment(
        cls,
        tenant_id: str,
        student_id: UUID | str,
        account_ids: Iterable[UUID | str],
        receipt_id: UUID | str,
    ) -> tuple[str, ...]:
        tags = [
            cls.tenant_accounts(tenant_id),
            cls.student(student_id),
            cls.student_payments(tenant_id),
            cls.payment_transactions(tenant_id),
            cls.payment_transaction(receipt_id),
            cls.dues(tenant_id),
            cls.transactions(tenant_id),
        ]
        tags.extend(cls.tenant_account(a) for a in account_ids)
        tags.append(cls.tenant_dashboard(tenant_id))
        return _unique(tags)

    @classmethod
    def for_dues(
        cls, tenant_id: str, student_ids: Iterable[UUID | str]
    ) -> tuple[str, ...]:
        tags = [cls.dues(tenant_id), cls.students(tenant_id)]
        tags.extend(cls.student(s) for s in student_ids)
        tags.append(cls.tenant_dashboard(tenant_id))
        return _unique(tags)


def _unique(tags: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(tags))


@runtime_checkable
class CacheInvalidator(Protocol):
    """Anything that can drop cached reads by tag."""

    def invalidate(self, tags: Sequence[str]) -> None: ...


class NullCacheInvalidator:
    """Invalidator for deployments without a read cache."""

    def invalidate(self, tags: Sequence[str]) -> None:
        return None


class RecordingCacheInvalidator:
    """Keeps every invalidation call; used by tests and local tooling."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []

    def invalidate(self, tags: Sequence[str]) -> None:
        self.calls.append(tuple(tags))

    @property
    def all_tags(self) -> set[str]:
        return {tag for call in self.calls for tag in call}


def invalidate_after_commit(
    invalidator: CacheInvalidator,
    tags: Sequence[str],
    logger: Logger,
) -> bool:
    """
    Hand tags to the invalidator once the write is durable.

    A failing cache must not turn a committed write into an error, so the
    failure is logged with its traceback and reported as False.
    """
    if not tags:
        return True
    try:
        invalidator.invalidate(tags)
    except Exception:
        logger.warning(
            "cache_invalidation_failed",
            extra={"tags": list(tags)},
            exc_info=True,
        )
        return False
    logger.debug("cache_invalidated", extra={"tag_count": len(tags)})
    return True
