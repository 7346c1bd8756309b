"""
Module: ledger_kernel.repositories.payment_repository
Responsibility: Data access for payment receipts and payment lines.
Architecture position: Kernel > Repositories.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update

from ledger_kernel.db.unit_of_work import UnitOfWork
from ledger_kernel.domain.enums import PaymentMethod
from ledger_kernel.models.payment import PaymentTransaction, StudentPayment
from ledger_kernel.repositories.base import BaseRepository


class PaymentTransactionRepository(BaseRepository[PaymentTransaction]):
    """Receipts."""

    model = PaymentTransaction

    def create_receipt(
        self,
        uow: UnitOfWork,
        *,
        tenant_id: str,
        student_id: UUID,
        total_amount: Decimal,
        collected_by: str,
        transaction_date: datetime,
    ) -> PaymentTransaction:
        return self.add(
            uow,
            PaymentTransaction(
                tenant_id=tenant_id,
                student_id=student_id,
                total_amount=total_amount,
                collected_by=collected_by,
                transaction_date=transaction_date,
                print_count=0,
            ),
        )

    def increment_print_count(
        self, uow: UnitOfWork, receipt_id: UUID, tenant_id: str
    ) -> bool:
        result = uow.session.execute(
            update(PaymentTransaction)
            .where(
                PaymentTransaction.id == receipt_id,
                PaymentTransaction.tenant_id == tenant_id,
            )
            .values(print_count=PaymentTransaction.print_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_for_student(
        self, uow: UnitOfWork, student_id: UUID, tenant_id: str
    ) -> list[PaymentTransaction]:
        return list(
            uow.session.execute(
                select(PaymentTransaction)
                .where(
                    PaymentTransaction.student_id == student_id,
                    PaymentTransaction.tenant_id == tenant_id,
                )
                .order_by(PaymentTransaction.transaction_date, PaymentTransaction.id)
            ).scalars()
        )


class StudentPaymentRepository(BaseRepository[StudentPayment]):
    """Payment lines."""

    model = StudentPayment

    def create_line(
        self,
        uow: UnitOfWork,
        *,
        tenant_id: str,
        receipt_id: UUID,
        due_item_id: UUID,
        account_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        month: int,
        year: int,
        reason: str | None = None,
        category_id: str | None = None,
    ) -> StudentPayment:
        return self.add(
            uow,
            StudentPayment(
                tenant_id=tenant_id,
                payment_transaction_id=receipt_id,
                due_item_id=due_item_id,
                account_id=account_id,
                amount=amount,
                method=method,
                month=month,
                year=year,
                reason=reason,
                category_id=category_id,
            ),
        )

    def lines_for_receipt(
        self, uow: UnitOfWork, receipt_id: UUID, tenant_id: str
    ) -> list[StudentPayment]:
        return list(
            uow.session.execute(
                select(StudentPayment)
                .where(
                    StudentPayment.payment_transaction_id == receipt_id,
                    StudentPayment.tenant_id == tenant_id,
                )
                .order_by(StudentPayment.created_at, StudentPayment.id)
            ).scalars()
        )

    def lines_for_due_item(
        self, uow: UnitOfWork, due_item_id: UUID, tenant_id: str
    ) -> list[StudentPayment]:
        return list(
            uow.session.execute(
                select(StudentPayment).where(
                    StudentPayment.due_item_id == due_item_id,
                    StudentPayment.tenant_id == tenant_id,
                )
            ).scalars()
        )
