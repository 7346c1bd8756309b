"""
Module: ledger_kernel.models.fee_structure
Responsibility: Store behind the fee-structure collaborator: a fee structure
    and its ordered fee lines, each optionally carrying a late-fee rule.
Architecture position: Kernel > Models.  Read by SqlFeeStructureProvider.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.enums import FeeFrequency, LateFeeFrequency, RecordStatus


class FeeStructure(TrackedBase):
    """A reusable template of fee lines assigned to students."""

    __tablename__ = "fee_structures"

    __table_args__ = (Index("idx_fee_structure_tenant", "tenant_id"),)

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[RecordStatus] = mapped_column(
        String(10),
        default=RecordStatus.ACTIVE,
        nullable=False,
    )

    items: Mapped[list["FeeItem"]] = relationship(
        back_populates="fee_structure",
        cascade="all, delete-orphan",
        order_by="FeeItem.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<FeeStructure {self.id} {self.title!r}>"


class FeeItem(TrackedBase):
    """
    One fee line of a fee structure.

    Guarantees:
        - position gives the template order used when generating due items.
        - late_fee_* fields are only meaningful when late_fee_enabled.
    """

    __tablename__ = "fee_items"

    __table_args__ = (
        Index("idx_fee_item_structure", "fee_structure_id", "position"),
    )

    fee_structure_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fee_structures.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Informational; every active line is billed every generated month
    frequency: Mapped[FeeFrequency] = mapped_column(
        String(20),
        default=FeeFrequency.MONTHLY,
        nullable=False,
    )

    late_fee_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    late_fee_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    late_fee_frequency: Mapped[LateFeeFrequency | None] = mapped_column(
        String(20),
        nullable=True,
    )

    late_fee_grace_days: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[RecordStatus] = mapped_column(
        String(10),
        default=RecordStatus.ACTIVE,
        nullable=False,
    )

    fee_structure: Mapped[FeeStructure] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<FeeItem {self.name!r} amount={self.amount}>"
