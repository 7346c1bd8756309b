"""
Module: ledger_kernel.models.student
Responsibility: Ledger-side projection of the external student record: the
    fields due generation reads (admission date, fee structure assignment,
    class and section).
Architecture position: Kernel > Models.  May import from db/ and domain/enums.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.enums import RecordStatus


class Student(TrackedBase):
    """
    A student billed by the ledger.

    Non-goals:
        - Enrollment, grading and contact details live in the student
          collaborator, not here.
    """

    __tablename__ = "students"

    __table_args__ = (
        Index("idx_student_tenant", "tenant_id"),
        Index("idx_student_class_section", "tenant_id", "class_id", "section_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    class_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    section_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # First billed month is the month containing this date
    admission_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    fee_structure_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fee_structures.id"),
        nullable=True,
    )

    status: Mapped[RecordStatus] = mapped_column(
        String(10),
        default=RecordStatus.ACTIVE,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Student {self.id} tenant={self.tenant_id}>"

    @property
    def is_active(self) -> bool:
        return self.status == RecordStatus.ACTIVE
