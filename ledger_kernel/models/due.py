"""
Module: ledger_kernel.models.due
Responsibility: ORM persistence for billed dues: the per-month StudentDue
    header, its DueItem lines, and the immutable DueAdjustment modifiers.
Architecture position: Kernel > Models.  May import from db/ and domain/enums.

Invariants enforced:
    - One StudentDue per (student, month, year) (uq_student_due_month).
    - final_amount = original_amount + sum(FINE, LATE_FEE) - sum(DISCOUNT,
      WAIVER), maintained by DueAdjustmentService in the same transaction
      as the adjustment row.
    - original_amount never changes once set; adjustments are append-only
      (ORM listeners in db/immutability.py).
    - Amount columns are non-negative (CHECK constraints).

Failure modes:
    - IntegrityError on a duplicate (student, month, year).
    - ImmutabilityViolationError on edits to original_amount or adjustments.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.enums import (
    DueAdjustmentStatus,
    DueAdjustmentType,
    DueItemStatus,
)


class StudentDue(TrackedBase):
    """Billing month header grouping a student's due items."""

    __tablename__ = "student_dues"

    __table_args__ = (
        UniqueConstraint("student_id", "month", "year", name="uq_student_due_month"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_student_due_month_range"),
        Index("idx_student_due_tenant_student", "tenant_id", "student_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    student_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("students.id"),
        nullable=False,
    )

    month: Mapped[int] = mapped_column(Integer, nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    due_items: Mapped[list["DueItem"]] = relationship(
        back_populates="due",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<StudentDue {self.student_id} {self.month}/{self.year}>"


class DueItem(TrackedBase):
    """
    One billed line of a StudentDue.

    Contract:
        final_amount moves only through DueAdjustmentService; paid_amount and
        status move only through PaymentProcessingEngine.

    Guarantees:
        - original_amount is immutable once flushed.
        - status is a projection of paid vs final except for the terminal
          OVERDUE/WAIVED states.
    """

    __tablename__ = "due_items"

    __table_args__ = (
        CheckConstraint("original_amount >= 0", name="ck_due_item_original_non_negative"),
        CheckConstraint("final_amount >= 0", name="ck_due_item_final_non_negative"),
        CheckConstraint("paid_amount >= 0", name="ck_due_item_paid_non_negative"),
        Index("idx_due_item_due", "due_id"),
        Index("idx_due_item_tenant_status", "tenant_id", "status"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    due_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("student_dues.id"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    original_amount: Mapped[Decimal] = mapped_column(nullable=False)

    final_amount: Mapped[Decimal] = mapped_column(nullable=False)

    paid_amount: Mapped[Decimal] = mapped_column(
        default=Decimal("0"),
        nullable=False,
    )

    status: Mapped[DueItemStatus] = mapped_column(
        String(10),
        default=DueItemStatus.PENDING,
        nullable=False,
    )

    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    due: Mapped[StudentDue] = relationship(back_populates="due_items")

    adjustments: Mapped[list["DueAdjustment"]] = relationship(
        back_populates="due_item",
        order_by="DueAdjustment.created_at",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<DueItem {self.id} final={self.final_amount} "
            f"paid={self.paid_amount} status={self.status}>"
        )


class DueAdjustment(TrackedBase):
    """
    Immutable modifier of a due item's payable amount.

    Guarantees:
        - amount is a positive magnitude; the signed effect comes from
          adjustment_type (DISCOUNT/WAIVER decrease, FINE/LATE_FEE increase).
        - Never updated or deleted once written.
    """

    __tablename__ = "due_adjustments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_due_adjustment_amount_positive"),
        Index("idx_due_adjustment_item", "due_item_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    due_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("due_items.id"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    adjustment_type: Mapped[DueAdjustmentType] = mapped_column(
        "type",
        String(10),
        nullable=False,
    )

    status: Mapped[DueAdjustmentStatus] = mapped_column(
        String(10),
        default=DueAdjustmentStatus.ACTIVE,
        nullable=False,
    )

    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    applied_by: Mapped[str] = mapped_column(String(255), nullable=False)

    due_item: Mapped[DueItem] = relationship(back_populates="adjustments")

    def __repr__(self) -> str:
        return f"<DueAdjustment {self.adjustment_type} {self.amount}>"
