"""
Module: ledger_kernel.repositories.student_repository
Responsibility: Lookups of the student projection and fee structures used by
    due generation.
Architecture position: Kernel > Repositories.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.unit_of_work import UnitOfWork
from ledger_kernel.domain.enums import RecordStatus
from ledger_kernel.models.fee_structure import FeeItem, FeeStructure
from ledger_kernel.models.student import Student
from ledger_kernel.repositories.base import BaseRepository


class StudentRepository(BaseRepository[Student]):
    model = Student

    def get_active(
        self, uow: UnitOfWork, student_id: UUID, tenant_id: str
    ) -> Student | None:
        return uow.session.execute(
            select(Student).where(
                Student.id == student_id,
                Student.tenant_id == tenant_id,
                Student.status == RecordStatus.ACTIVE,
            )
        ).scalar_one_or_none()

    def list_active(
        self,
        uow: UnitOfWork,
        tenant_id: str,
        *,
        class_id: str | None = None,
        section_id: str | None = None,
    ) -> list[Student]:
        """Active students of the tenant, optionally narrowed to a class/section."""
        stmt = select(Student).where(
            Student.tenant_id == tenant_id,
            Student.status == RecordStatus.ACTIVE,
        )
        if class_id is not None:
            stmt = stmt.where(Student.class_id == class_id)
        if section_id is not None:
            stmt = stmt.where(Student.section_id == section_id)
        stmt = stmt.order_by(Student.name, Student.id)
        return list(uow.session.execute(stmt).scalars())


class FeeStructureRepository(BaseRepository[FeeStructure]):
    model = FeeStructure

    def active_items(
        self, uow: UnitOfWork, fee_structure_id: UUID
    ) -> list[FeeItem]:
        """Active fee lines of a structure in template order."""
        return list(
            uow.session.execute(
                select(FeeItem)
                .where(
                    FeeItem.fee_structure_id == fee_structure_id,
                    FeeItem.status == RecordStatus.ACTIVE,
                )
                .order_by(FeeItem.position, FeeItem.created_at, FeeItem.id)
            ).scalars()
        )
