"""
Fee-structure collaborator interface.

Due generation only needs "the ordered fee lines of this fee structure";
where they are stored is the collaborator's business.  The default provider
reads the FeeStructure/FeeItem tables inside the caller's unit of work.
"""

from typing import Protocol, runtime_checkable
from uuid import UUID

from ledger_kernel.db.unit_of_work import UnitOfWork
from ledger_kernel.domain.dtos import FeeLineTemplate
from ledger_kernel.exceptions import FeeStructureNotFoundError
from ledger_kernel.repositories.student_repository import FeeStructureRepository


@runtime_checkable
class FeeStructureProvider(Protocol):
    def get_fee_lines(
        self, uow: UnitOfWork, fee_structure_id: UUID, tenant_id: str
    ) -> list[FeeLineTemplate]:
        """
        Active fee lines of the structure, in template order.

        Raises:
            FeeStructureNotFoundError: If the structure does not exist in
                the tenant.
        """
        ...


class SqlFeeStructureProvider:
    """Reads fee lines from the fee_structures / fee_items tables."""

    def __init__(self, repository: FeeStructureRepository | None = None):
        self._repository = repository or FeeStructureRepository()

    def get_fee_lines(
        self, uow: UnitOfWork, fee_structure_id: UUID, tenant_id: str
    ) -> list[FeeLineTemplate]:
        structure = self._repository.get(uow, fee_structure_id, tenant_id)
        if structure is None:
            raise FeeStructureNotFoundError(str(fee_structure_id))
        return [
            FeeLineTemplate.from_model(item)
            for item in self._repository.active_items(uow, fee_structure_id)
        ]


class StaticFeeStructureProvider:
    """In-memory provider keyed by fee structure id."""

    def __init__(self, structures: dict[UUID, list[FeeLineTemplate]]):
        self._structures = structures

    def get_fee_lines(
        self, uow: UnitOfWork, fee_structure_id: UUID, tenant_id: str
    ) -> list[FeeLineTemplate]:
        if fee_structure_id not in self._structures:
            raise FeeStructureNotFoundError(str(fee_structure_id))
        return sorted(self._structures[fee_structure_id], key=lambda line: line.position)
