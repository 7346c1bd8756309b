"""
Tests for DueAdjustmentService.apply_adjustment().

Covers each adjustment kind, status recomputation, the non-negative final
amount rule, tenant scoping and cache invalidation.
"""

from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import PaymentAllocation
from ledger_kernel.domain.enums import (
    DueAdjustmentStatus,
    DueAdjustmentType,
    DueItemStatus,
)
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.exceptions import (
    DueItemNotFoundError,
    InvalidAmountError,
    ValidationFailureError,
)
from ledger_kernel.invariants import expected_final_amount
from ledger_kernel.selectors import DueSelector
from ledger_kernel.services import CacheTags
from tests.conftest import OTHER_TENANT, TEST_ACTOR, TENANT


@pytest.fixture
def item(generated_dues, read):
    items = read(DueSelector, lambda s: s.student_due_items(generated_dues.id, TENANT))
    return next(i for i in items if i.month == 1)


def reload(read, item_id):
    return read(DueSelector, lambda s: s.due_item(item_id, TENANT))


@pytest.mark.parametrize(
    "kind, amount, expected_final",
    [
        (DueAdjustmentType.DISCOUNT, "100.00", "400.00"),
        (DueAdjustmentType.WAIVER, "500.00", "0.00"),
        (DueAdjustmentType.FINE, "25.00", "525.00"),
        (DueAdjustmentType.LATE_FEE, "50.00", "550.00"),
    ],
)
def test_adjustment_kinds(adjustment_service, item, read, kind, amount, expected_final):
    info = adjustment_service.apply_adjustment(
        item.id, kind, MoneyAmount(amount), "reason", TEST_ACTOR, TENANT
    )

    assert info.adjustment_type == kind
    assert info.status == DueAdjustmentStatus.ACTIVE
    assert info.applied_by == TEST_ACTOR
    stored = reload(read, item.id)
    assert stored.final_amount == MoneyAmount(expected_final)
    assert stored.original_amount == MoneyAmount("500.00")
    assert expected_final_amount(stored.original_amount, stored.adjustments) == stored.final_amount


def test_default_title(adjustment_service, item):
    info = adjustment_service.apply_adjustment(
        item.id, "LATE_FEE", MoneyAmount("5"), None, TEST_ACTOR, TENANT
    )
    assert info.title == "Late Fee"


def test_custom_title_and_category(adjustment_service, item):
    info = adjustment_service.apply_adjustment(
        item.id,
        DueAdjustmentType.DISCOUNT,
        MoneyAmount("5"),
        None,
        TEST_ACTOR,
        TENANT,
        title="Merit scholarship",
        category_id="scholarships",
    )
    assert info.title == "Merit scholarship"
    assert info.category_id == "scholarships"


class TestStatus:
    def test_waiver_of_full_amount_marks_paid(self, adjustment_service, item, read):
        adjustment_service.apply_adjustment(
            item.id, DueAdjustmentType.WAIVER, MoneyAmount("500.00"), None, TEST_ACTOR, TENANT
        )
        assert reload(read, item.id).status == DueItemStatus.PAID

    def test_fine_reopens_paid_item(self, adjustment_service, payment_engine, seed, item, read):
        cash = seed.account()
        payment_engine.process_payment(
            [
                PaymentAllocation(
                    tenant_id=TENANT,
                    student_id=item.student_id,
                    collected_by=TEST_ACTOR,
                    due_item_id=item.id,
                    account_id=cash.id,
                    amount=MoneyAmount("500.00"),
                    month=item.month,
                    year=item.year,
                )
            ]
        )
        assert reload(read, item.id).status == DueItemStatus.PAID

        adjustment_service.apply_adjustment(
            item.id, DueAdjustmentType.FINE, MoneyAmount("20.00"), "Damage", TEST_ACTOR, TENANT
        )

        stored = reload(read, item.id)
        assert stored.status == DueItemStatus.PARTIAL
        assert stored.outstanding == MoneyAmount("20.00")


class TestValidation:
    def test_final_amount_cannot_go_negative(self, adjustment_service, item, read):
        with pytest.raises(InvalidAmountError):
            adjustment_service.apply_adjustment(
                item.id, DueAdjustmentType.DISCOUNT, MoneyAmount("500.01"), None, TEST_ACTOR, TENANT
            )
        stored = reload(read, item.id)
        assert stored.final_amount == MoneyAmount("500.00")
        assert stored.adjustments == ()

    @pytest.mark.parametrize("amount", ["0", "-1.00"])
    def test_non_positive_amount(self, adjustment_service, item, amount):
        with pytest.raises(InvalidAmountError):
            adjustment_service.apply_adjustment(
                item.id, DueAdjustmentType.FINE, MoneyAmount(amount), None, TEST_ACTOR, TENANT
            )

    def test_unknown_type(self, adjustment_service, item):
        with pytest.raises(ValidationFailureError, match="Unknown adjustment type"):
            adjustment_service.apply_adjustment(
                item.id, "BRIBE", MoneyAmount("1"), None, TEST_ACTOR, TENANT
            )

    def test_unknown_item(self, adjustment_service, db_engine):
        with pytest.raises(DueItemNotFoundError):
            adjustment_service.apply_adjustment(
                uuid4(), DueAdjustmentType.FINE, MoneyAmount("1"), None, TEST_ACTOR, TENANT
            )

    def test_item_of_other_tenant(self, adjustment_service, item):
        with pytest.raises(DueItemNotFoundError):
            adjustment_service.apply_adjustment(
                item.id, DueAdjustmentType.FINE, MoneyAmount("1"), None, TEST_ACTOR, OTHER_TENANT
            )


def test_cache_invalidated_for_student(adjustment_service, item, cache):
    adjustment_service.apply_adjustment(
        item.id, DueAdjustmentType.FINE, MoneyAmount("1"), None, TEST_ACTOR, TENANT
    )
    assert cache.calls[-1] == CacheTags.for_dues(TENANT, [item.student_id])
