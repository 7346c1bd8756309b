"""
DueGenerationEngine -- idempotent recurring due generation.

Responsibility:
    Creates one StudentDue per missing billing month between a student's
    admission date and a target date, one DueItem per fee line inside each
    new month, and the LATE_FEE adjustments those lines already owe.  Also
    runs the same generation over a class, a section, a whole tenant or an
    explicit parameter list, and adds one-off fees to a set of students.

Architecture position:
    Kernel > Services -- imperative shell.
    Reads fee lines through the FeeStructureProvider collaborator and applies
    late fees through DueAdjustmentService.apply_late_fees() inside its own
    unit of work.

Invariants enforced:
    IDEMPOTENT_GENERATION -- months that already have a StudentDue are
        skipped entirely; a repeated call with the same dates writes nothing.
    - One unit of work per student.  A failure rolls back only that
      student's months.
    - Each student's unit of work is bounded by a statement timeout and a
      wall-clock deadline checked before commit.

Failure modes:
    - StudentNotFoundError: student missing, inactive or in another tenant.
    - MissingPrerequisiteError: no fee structure, no admission date, or a
      fee structure with no active lines.
    - InvalidDateRangeError: admission date after target date.
    - GenerationTimeoutError: per-student timeout or deadline exceeded.
    Batch operations record these per student and keep going.
"""

from contextlib import contextmanager
from datetime import date
from typing import Iterator
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ledger_kernel.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ledger_kernel.domain.calendar import BillingMonth, months_between
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    BatchError,
    BatchGenerationResult,
    DueCreationResult,
    EnsureDuesResult,
    FeeAdditionResult,
    FeeAdditionTarget,
    FeeDetails,
    FeeLineTemplate,
    GenerationParams,
)
from ledger_kernel.domain.enums import FeeTargetType
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.exceptions import (
    GenerationTimeoutError,
    InvalidAmountError,
    InvalidDateRangeError,
    LedgerKernelError,
    MissingPrerequisiteError,
    StudentNotFoundError,
    ValidationFailureError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.due import DueItem
from ledger_kernel.models.student import Student
from ledger_kernel.repositories.due_repository import (
    DueItemRepository,
    StudentDueRepository,
)
from ledger_kernel.repositories.student_repository import StudentRepository
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.cache import (
    CacheInvalidator,
    CacheTags,
    NullCacheInvalidator,
    invalidate_after_commit,
)
from ledger_kernel.services.due_adjustment_service import DueAdjustmentService
from ledger_kernel.services.fee_structure_provider import (
    FeeStructureProvider,
    SqlFeeStructureProvider,
)

logger = get_logger("services.due_generation")

DEFAULT_PER_STUDENT_TIMEOUT_SECONDS = 10.0

# Attempts for one student when a concurrent writer inserts the same month
_MAX_GENERATION_ATTEMPTS = 2

_TIMEOUT_MARKERS = ("statement timeout", "canceling statement", "lock timeout")


def _is_statement_timeout(exc: OperationalError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _TIMEOUT_MARKERS)


def _error_code(exc: Exception) -> str | None:
    return exc.code if isinstance(exc, LedgerKernelError) else None


class DueGenerationEngine(BaseService):
    """
    Generates monthly dues from fee structures.

    Contract:
        generate_for_student() is atomic for one student.  Batch methods
        return a BatchGenerationResult and never raise for a single
        student's failure.

    Guarantees:
        - For every month in [admission, target] exactly one StudentDue
          exists after a successful call.
        - A new DueItem starts with original = final = line amount,
          paid = 0 and status PENDING, before late fees are applied.
        - Late fees are computed once, when the due item is created.

    Non-goals:
        - Does NOT bill by fee-line frequency; every active line is billed
          every generated month.
        - Does NOT delete dues for months outside the range.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Clock | None = None,
        cache: CacheInvalidator | None = None,
        fee_structures: FeeStructureProvider | None = None,
        adjustments: DueAdjustmentService | None = None,
        per_student_timeout_seconds: float | None = DEFAULT_PER_STUDENT_TIMEOUT_SECONDS,
    ):
        super().__init__(uow_factory, clock)
        self.cache = cache or NullCacheInvalidator()
        self.fee_structures = fee_structures or SqlFeeStructureProvider()
        self.adjustments = adjustments or DueAdjustmentService(
            uow_factory, self.clock, self.cache
        )
        self.per_student_timeout_seconds = per_student_timeout_seconds
        self._students = StudentRepository()
        self._dues = StudentDueRepository()
        self._items = DueItemRepository()

    # ------------------------------------------------------------------
    # Single student
    # ------------------------------------------------------------------

    def generate_for_student(
        self,
        student_id: UUID,
        tenant_id: str,
        admission_date: date,
        target_date: date,
        fee_structure_id: UUID | None = None,
        reference_date: date | None = None,
    ) -> DueCreationResult:
        """
        Create the missing monthly dues of one student.

        Args:
            admission_date: First billed month is this date's month.
            target_date: Last billed month is this date's month.
            fee_structure_id: Overrides the student's assigned structure.
            reference_date: "Today" for late-fee computation (defaults to
                the engine clock).

        Raises:
            StudentNotFoundError, MissingPrerequisiteError,
            InvalidDateRangeError, GenerationTimeoutError.
        """
        result = self._generate_committed(
            student_id,
            tenant_id,
            admission_date,
            target_date,
            fee_structure_id,
            reference_date,
        )
        if result.created_dues_count:
            invalidate_after_commit(
                self.cache, CacheTags.for_dues(tenant_id, [student_id]), logger
            )
        return result

    def ensure_dues_up_to_date(
        self, student_id: UUID, tenant_id: str
    ) -> EnsureDuesResult:
        """
        Bring a student's dues up to the current month if they are behind.

        A student without dues, or whose latest due month is before the
        current month, is generated through today.  A missing student,
        admission date or fee structure is a no-op (needs_update False).
        Generation failures are reported in the result, not raised.
        """
        today = self.clock.today()

        with self.uow_factory("ensure_dues_check") as uow:
            student = self._students.get_active(uow, student_id, tenant_id)
            if student is None:
                return EnsureDuesResult(False, 0, "Student not found or inactive")
            if student.fee_structure_id is None:
                return EnsureDuesResult(
                    False, 0, "Student has no fee structure assigned"
                )
            if student.admission_date is None:
                return EnsureDuesResult(False, 0, "Student has no admission date")
            admission_date = student.admission_date
            fee_structure_id = student.fee_structure_id
            latest = self._dues.latest_month(uow, student.id)

        if latest is not None and latest >= BillingMonth.of(today):
            return EnsureDuesResult(False, 0, "Dues are up to date")

        try:
            result = self.generate_for_student(
                student_id,
                tenant_id,
                admission_date,
                today,
                fee_structure_id=fee_structure_id,
            )
        except (LedgerKernelError, SQLAlchemyError) as e:
            logger.warning(
                "ensure_dues_failed",
                extra={
                    "student_id": str(student_id),
                    "error_code": _error_code(e),
                    "error": str(e),
                },
            )
            return EnsureDuesResult(True, 0, str(e), success=False)

        return EnsureDuesResult(True, result.created_dues_count, result.message)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def generate_for_class_section(
        self,
        tenant_id: str,
        class_id: str | None = None,
        section_id: str | None = None,
    ) -> BatchGenerationResult:
        """Generate through today for every active student of a class/section."""
        today = self.clock.today()
        with self.uow_factory("list_students_for_generation") as uow:
            students = [
                (s.id, s.admission_date, s.fee_structure_id)
                for s in self._students.list_active(
                    uow, tenant_id, class_id=class_id, section_id=section_id
                )
            ]

        logger.info(
            "batch_generation_started",
            extra={
                "tenant_id": tenant_id,
                "class_id": class_id,
                "section_id": section_id,
                "student_count": len(students),
            },
        )

        params: list[GenerationParams | BatchError] = []
        for student_id, admission_date, fee_structure_id in students:
            if fee_structure_id is None or admission_date is None:
                params.append(
                    BatchError(
                        str(student_id),
                        "Missing fee structure or admission date",
                        MissingPrerequisiteError.code,
                    )
                )
                continue
            params.append(
                GenerationParams(
                    student_id=student_id,
                    tenant_id=tenant_id,
                    admission_date=admission_date,
                    target_date=today,
                    fee_structure_id=fee_structure_id,
                )
            )
        return self._run_batch(params)

    def generate_for_all_students(self, tenant_id: str) -> BatchGenerationResult:
        return self.generate_for_class_section(tenant_id)

    def generate_batch(self, params: list[GenerationParams]) -> BatchGenerationResult:
        """Generate for explicit per-student parameters, one unit of work each."""
        return self._run_batch(list(params))

    def ensure_many(
        self, student_ids: list[UUID], tenant_id: str
    ) -> BatchGenerationResult:
        """ensure_dues_up_to_date() for each student, aggregated."""
        updated = 0
        total_created = 0
        errors: list[BatchError] = []

        for student_id in student_ids:
            try:
                outcome = self.ensure_dues_up_to_date(student_id, tenant_id)
            except SQLAlchemyError as e:
                logger.warning(
                    "ensure_dues_failed",
                    extra={"student_id": str(student_id), "error": str(e)},
                )
                errors.append(BatchError(str(student_id), str(e)))
                continue
            if not outcome.needs_update:
                continue
            if outcome.success:
                updated += 1
                total_created += outcome.dues_created
            else:
                errors.append(BatchError(str(student_id), outcome.message))

        return BatchGenerationResult(
            students_processed=len(student_ids),
            students_updated=updated,
            total_dues_created=total_created,
            errors=tuple(errors),
        )

    # ------------------------------------------------------------------
    # Ad-hoc fees
    # ------------------------------------------------------------------

    def add_fee_to_target(
        self,
        tenant_id: str,
        target: FeeAdditionTarget,
        fee: FeeDetails,
    ) -> FeeAdditionResult:
        """
        Add one due item for ``fee`` to every student of the target.

        The StudentDue of the fee's month is reused when it exists and
        created otherwise.  All students are written in one unit of work.

        Raises:
            ValidationFailureError: Target id missing for the target type,
                or an invalid month.
            InvalidAmountError: amount <= 0.
            StudentNotFoundError: STUDENT target is missing or inactive.
            MissingPrerequisiteError: No students match the target.
        """
        amount = MoneyAmount.of(fee.amount)
        if not amount.is_positive:
            raise InvalidAmountError(amount.amount, "fee amount must be positive")
        try:
            month = BillingMonth(year=fee.year, month=fee.month)
        except ValueError as e:
            raise ValidationFailureError(str(e)) from e

        with self.uow_factory("add_fee_to_target") as uow:
            students = self._resolve_target(uow, tenant_id, target)
            if not students:
                raise MissingPrerequisiteError(
                    None, "students", "No students found for the specified target"
                )

            dues_created = 0
            for student in students:
                due, created = self._dues.get_or_create(
                    uow, tenant_id, student.id, month
                )
                if created:
                    dues_created += 1
                self._items.create_single(
                    uow,
                    due,
                    title=fee.title,
                    amount=amount.amount,
                    description=fee.description,
                    category_id=fee.category_id,
                )
            student_ids = [s.id for s in students]
            uow.commit()

        tags = CacheTags.for_dues(tenant_id, student_ids)
        result = FeeAdditionResult(
            students_affected=len(student_ids),
            dues_created=dues_created,
            due_items_created=len(student_ids),
            cache_tags=tags,
        )
        logger.info(
            "fee_added_to_target",
            extra={
                "tenant_id": tenant_id,
                "target_type": target.target_type.value,
                "title": fee.title,
                "amount": str(amount),
                "month": month.label,
                "students_affected": result.students_affected,
                "dues_created": dues_created,
            },
        )
        invalidate_after_commit(self.cache, tags, logger)
        return result

    def _resolve_target(
        self, uow: UnitOfWork, tenant_id: str, target: FeeAdditionTarget
    ) -> list[Student]:
        kind = FeeTargetType(target.target_type)
        if kind is FeeTargetType.CLASS:
            if not target.class_id:
                raise ValidationFailureError(
                    "Class ID is required for class-level fee addition"
                )
            return self._students.list_active(uow, tenant_id, class_id=target.class_id)
        if kind is FeeTargetType.SECTION:
            if not target.section_id:
                raise ValidationFailureError(
                    "Section ID is required for section-level fee addition"
                )
            return self._students.list_active(
                uow, tenant_id, section_id=target.section_id
            )
        if not target.student_id:
            raise ValidationFailureError(
                "Student ID is required for individual fee addition"
            )
        student = self._students.get_active(uow, target.student_id, tenant_id)
        if student is None:
            raise StudentNotFoundError(str(target.student_id))
        return [student]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_batch(
        self, entries: list[GenerationParams | BatchError]
    ) -> BatchGenerationResult:
        updated = 0
        total_created = 0
        errors: list[BatchError] = []
        touched: dict[str, list[UUID]] = {}

        for entry in entries:
            if isinstance(entry, BatchError):
                errors.append(entry)
                continue
            try:
                result = self._generate_committed(
                    entry.student_id,
                    entry.tenant_id,
                    entry.admission_date,
                    entry.target_date,
                    entry.fee_structure_id,
                    entry.reference_date,
                )
            except (LedgerKernelError, SQLAlchemyError) as e:
                code = _error_code(e)
                logger.warning(
                    "student_generation_failed",
                    extra={
                        "student_id": str(entry.student_id),
                        "error_code": code,
                        "error": str(e),
                    },
                )
                errors.append(BatchError(str(entry.student_id), str(e), code))
                continue

            if result.created_dues_count > 0:
                updated += 1
                total_created += result.created_dues_count
                touched.setdefault(entry.tenant_id, []).append(entry.student_id)

        batch = BatchGenerationResult(
            students_processed=len(entries),
            students_updated=updated,
            total_dues_created=total_created,
            errors=tuple(errors),
        )
        logger.info(
            "batch_generation_completed",
            extra={
                "students_processed": batch.students_processed,
                "students_updated": batch.students_updated,
                "total_dues_created": batch.total_dues_created,
                "error_count": len(batch.errors),
            },
        )
        for tenant_id, student_ids in touched.items():
            invalidate_after_commit(
                self.cache, CacheTags.for_dues(tenant_id, student_ids), logger
            )
        return batch

    @contextmanager
    def _student_unit_of_work(self, name: str, student_id: UUID) -> Iterator[UnitOfWork]:
        """Unit of work bounded by the per-student timeout."""
        timeout = self.per_student_timeout_seconds
        try:
            with self.uow_factory(
                name,
                statement_timeout_seconds=timeout,
                deadline_seconds=timeout,
            ) as uow:
                yield uow
        except OperationalError as e:
            if timeout is not None and _is_statement_timeout(e):
                raise GenerationTimeoutError(str(student_id), timeout) from e
            raise

    def _generate_committed(
        self,
        student_id: UUID,
        tenant_id: str,
        admission_date: date,
        target_date: date,
        fee_structure_id: UUID | None,
        reference_date: date | None,
    ) -> DueCreationResult:
        if admission_date > target_date:
            raise InvalidDateRangeError(
                admission_date.isoformat(),
                target_date.isoformat(),
                "Admission date cannot be after target date",
            )

        with LogContext.bind(tenant_id=tenant_id, student_id=str(student_id)):
            attempt = 1
            while True:
                try:
                    return self._generate_once(
                        student_id,
                        tenant_id,
                        admission_date,
                        target_date,
                        fee_structure_id,
                        reference_date,
                    )
                except IntegrityError:
                    # Another writer inserted one of our months first; the
                    # rerun sees it as existing and skips it.
                    if attempt >= _MAX_GENERATION_ATTEMPTS:
                        raise
                    logger.info(
                        "due_generation_retry",
                        extra={"student_id": str(student_id), "attempt": attempt},
                    )
                    attempt += 1

    def _generate_once(
        self,
        student_id: UUID,
        tenant_id: str,
        admission_date: date,
        target_date: date,
        fee_structure_id: UUID | None,
        reference_date: date | None,
    ) -> DueCreationResult:
        with self._student_unit_of_work("generate_dues", student_id) as uow:
            student = self._students.get_active(uow, student_id, tenant_id)
            if student is None:
                raise StudentNotFoundError(str(student_id))

            structure_id = fee_structure_id or student.fee_structure_id
            if structure_id is None:
                raise MissingPrerequisiteError(
                    str(student_id),
                    "fee_structure",
                    "Student has no fee structure assigned",
                )
            lines = self.fee_structures.get_fee_lines(uow, structure_id, tenant_id)
            if not lines:
                raise MissingPrerequisiteError(
                    str(student_id),
                    "fee_lines",
                    "No fee items found for the fee structure",
                )

            all_months = months_between(admission_date, target_date)
            existing = self._dues.existing_month_keys(uow, student.id)
            missing = [m for m in all_months if m.key not in existing]
            skipped = [m for m in all_months if m.key in existing]

            if not missing:
                logger.info(
                    "dues_up_to_date",
                    extra={
                        "student_id": str(student_id),
                        "skipped": len(skipped),
                    },
                )
                return DueCreationResult(
                    message="No new dues to create - all months already have dues",
                    created_dues_count=0,
                    skipped_dues_count=len(all_months),
                    total_due_items_created=0,
                    months_skipped=tuple(m.label for m in skipped),
                )

            items_created = 0
            late_fee_inputs: list[tuple[DueItem, FeeLineTemplate, BillingMonth]] = []
            for month in missing:
                due = self._dues.create(uow, tenant_id, student.id, month)
                items = self._items.create_from_lines(uow, due, lines)
                items_created += len(items)
                late_fee_inputs.extend(
                    (item, line, month)
                    for item, line in zip(items, lines)
                    if line.late_fee_enabled
                )

            late_fees = self.adjustments.apply_late_fees(
                uow, late_fee_inputs, reference_date or self.clock.today()
            )

            if uow.deadline_exceeded:
                logger.warning(
                    "due_generation_deadline_exceeded",
                    extra={
                        "student_id": str(student_id),
                        "elapsed_seconds": round(uow.elapsed_seconds, 3),
                    },
                )
                raise GenerationTimeoutError(
                    str(student_id), self.per_student_timeout_seconds
                )
            uow.commit()

        result = DueCreationResult(
            message=(
                f"Successfully created {len(missing)} new dues "
                f"with {items_created} due items"
            ),
            created_dues_count=len(missing),
            skipped_dues_count=len(skipped),
            total_due_items_created=items_created,
            months_created=tuple(m.label for m in missing),
            months_skipped=tuple(m.label for m in skipped),
            late_fees_applied=late_fees,
        )
        logger.info(
            "dues_generated",
            extra={
                "student_id": str(student_id),
                "created_dues": result.created_dues_count,
                "skipped": result.skipped_dues_count,
                "due_items": items_created,
                "late_fees": late_fees,
            },
        )
        return result
