"""
Module: ledger_kernel.models.payment
Responsibility: ORM persistence for payment receipts and their per-due-item
    payment lines.
Architecture position: Kernel > Models.  May import from db/ and domain/enums.

Invariants enforced:
    - total_amount = sum of the receipt's StudentPayment amounts (written in
      the same unit of work by PaymentProcessingEngine).
    - A DueItem referenced by a StudentPayment is never deleted (ORM listener).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.enums import PaymentMethod


class PaymentTransaction(TrackedBase):
    """Aggregate receipt for one payment batch."""

    __tablename__ = "payment_transactions"

    __table_args__ = (
        CheckConstraint("total_amount > 0", name="ck_payment_txn_total_positive"),
        Index("idx_payment_txn_tenant_student", "tenant_id", "student_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    student_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("students.id"),
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    collected_by: Mapped[str] = mapped_column(String(255), nullable=False)

    transaction_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Receipt reprint tracking
    print_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    payments: Mapped[list["StudentPayment"]] = relationship(
        back_populates="payment_transaction",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<PaymentTransaction {self.id} total={self.total_amount}>"


class StudentPayment(TrackedBase):
    """One allocation of a receipt to a due item."""

    __tablename__ = "student_payments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_student_payment_amount_positive"),
        Index("idx_student_payment_receipt", "payment_transaction_id"),
        Index("idx_student_payment_due_item", "due_item_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    payment_transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payment_transactions.id"),
        nullable=False,
    )

    due_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("due_items.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenant_accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)

    reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    month: Mapped[int] = mapped_column(Integer, nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    payment_transaction: Mapped[PaymentTransaction] = relationship(
        back_populates="payments"
    )

    def __repr__(self) -> str:
        return f"<StudentPayment {self.amount} -> {self.due_item_id}>"
