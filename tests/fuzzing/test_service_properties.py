"""
Property-based tests that drive the engines against the database.

Each example works on freshly seeded rows, so the function-scoped fixtures
are shared across examples without the examples seeing each other.

Boundaries fuzzed here:
- Adjustments and payments in any order: stored final amount matches the
  active adjustments, paid amount matches the accepted payments
- Deposits, withdrawals and transfers in any order: balances match a
  running model, never go below zero and reconcile with the journal
"""

from datetime import date
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.dtos import PaymentAllocation
from ledger_kernel.domain.enums import AccountType, DueAdjustmentType
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    OverpaymentError,
)
from ledger_kernel.invariants import expected_final_amount
from ledger_kernel.selectors import AccountSelector, DueSelector
from tests.conftest import TEST_ACTOR, TENANT

DB_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("400.00"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

due_item_steps = st.lists(
    st.tuples(
        st.sampled_from(["pay", *[kind.value for kind in DueAdjustmentType]]),
        amounts,
    ),
    min_size=1,
    max_size=8,
)

account_steps = st.lists(
    st.tuples(
        st.sampled_from(["deposit", "withdraw", "transfer_out", "transfer_in"]),
        amounts,
    ),
    min_size=1,
    max_size=10,
)


class TestDueItemSequences:
    @given(steps=due_item_steps)
    @DB_SETTINGS
    def test_final_and_paid_follow_accepted_operations(
        self, steps, seed, fee_structure, generation_engine, adjustment_service,
        payment_engine, read,
    ):
        student = seed.student(fee_structure)
        cash = seed.account()
        generation_engine.generate_for_student(
            student.id, TENANT, date(2024, 1, 1), date(2024, 1, 31)
        )
        (item,) = read(DueSelector, lambda s: s.student_due_items(student.id, TENANT))

        final = item.final_amount
        paid = MoneyAmount.zero()
        for operation, raw in steps:
            amount = MoneyAmount(raw)
            if operation == "pay":
                allocation = PaymentAllocation(
                    tenant_id=TENANT,
                    student_id=student.id,
                    collected_by=TEST_ACTOR,
                    due_item_id=item.id,
                    account_id=cash.id,
                    amount=amount,
                    month=item.month,
                    year=item.year,
                )
                if amount > final - paid:
                    try:
                        payment_engine.process_payment([allocation])
                    except OverpaymentError:
                        continue
                    raise AssertionError(f"payment of {amount} over {final - paid} accepted")
                payment_engine.process_payment([allocation])
                paid = paid + amount
                continue

            kind = DueAdjustmentType(operation)
            new_final = final + amount if kind.increases_amount else final - amount
            if new_final.is_negative:
                try:
                    adjustment_service.apply_adjustment(
                        item.id, kind, amount, "fuzz", TEST_ACTOR, TENANT
                    )
                except InvalidAmountError:
                    continue
                raise AssertionError(f"{kind.value} of {amount} took final below zero")
            adjustment_service.apply_adjustment(
                item.id, kind, amount, "fuzz", TEST_ACTOR, TENANT
            )
            final = new_final

        stored = read(DueSelector, lambda s: s.due_item(item.id, TENANT))
        assert stored.final_amount == final
        assert stored.final_amount == expected_final_amount(
            stored.original_amount, stored.adjustments
        )
        assert not stored.final_amount.is_negative
        assert stored.paid_amount == paid
        account = read(AccountSelector, lambda s: s.account(cash.id, TENANT))
        assert account.balance == paid


class TestAccountSequences:
    @given(opening=amounts, steps=account_steps)
    @DB_SETTINGS
    def test_balances_follow_model_and_reconcile(self, opening, steps, account_service, read):
        cash = account_service.open_account(
            TENANT, "Main Cash", AccountType.CASH, TEST_ACTOR, opening_balance=opening
        )
        bank = account_service.open_account(TENANT, "City Bank", AccountType.BANK, TEST_ACTOR)

        balances = {cash.id: MoneyAmount(opening), bank.id: MoneyAmount.zero()}
        for operation, raw in steps:
            amount = MoneyAmount(raw)
            if operation == "deposit":
                account_service.deposit(cash.id, amount, TEST_ACTOR, TENANT)
                balances[cash.id] = balances[cash.id] + amount
                continue

            if operation == "withdraw":
                source, destination = cash.id, None
            elif operation == "transfer_out":
                source, destination = cash.id, bank.id
            else:
                source, destination = bank.id, cash.id

            try:
                if destination is None:
                    account_service.withdraw(source, amount, TEST_ACTOR, TENANT)
                else:
                    account_service.transfer(source, destination, amount, TEST_ACTOR, TENANT)
            except InsufficientBalanceError:
                assert amount > balances[source]
                continue
            assert amount <= balances[source]
            balances[source] = balances[source] - amount
            if destination is not None:
                balances[destination] = balances[destination] + amount

        for account_id, expected in balances.items():
            stored = read(AccountSelector, lambda s: s.account(account_id, TENANT))
            assert stored.balance == expected
            assert not stored.balance.is_negative
            assert read(AccountSelector, lambda s: s.reconcile(account_id, TENANT)).is_balanced
