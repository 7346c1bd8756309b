"""
Closed enumerations shared by the domain, the ORM models and the services.

Stored as their string values in String columns (``str, Enum`` so a value
loaded from the database compares equal to its member).
"""

from enum import Enum


class DueItemStatus(str, Enum):
    """Payment status of a due item."""

    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    WAIVED = "WAIVED"


# Set outside automatic derivation; adjustments leave them alone
TERMINAL_DUE_STATUSES = frozenset({DueItemStatus.OVERDUE, DueItemStatus.WAIVED})


class DueAdjustmentType(str, Enum):
    """Kind of modifier applied to a due item's payable amount."""

    DISCOUNT = "DISCOUNT"
    WAIVER = "WAIVER"
    FINE = "FINE"
    LATE_FEE = "LATE_FEE"

    @property
    def increases_amount(self) -> bool:
        return self in (DueAdjustmentType.FINE, DueAdjustmentType.LATE_FEE)


class DueAdjustmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class AccountType(str, Enum):
    """Kind of tenant cash account."""

    CASH = "CASH"
    BANK = "BANK"
    MOBILE_WALLET = "MOBILE_WALLET"
    ONLINE = "ONLINE"
    OTHER = "OTHER"


class PaymentMethod(str, Enum):
    """How a payment line was settled."""

    CASH = "CASH"
    BANK = "BANK"
    MOBILE_WALLET = "MOBILE_WALLET"
    ONLINE = "ONLINE"
    OTHER = "OTHER"


class TransactionType(str, Enum):
    """Journal entry kind."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    FUND_TRANSFER = "FUND_TRANSFER"


class FeeFrequency(str, Enum):
    """Billing frequency of a fee line (informational)."""

    ONE_TIME = "ONE_TIME"
    MONTHLY = "MONTHLY"
    SEMESTER = "SEMESTER"
    ANNUAL = "ANNUAL"
    QUARTERLY = "QUARTERLY"
    WEEKLY = "WEEKLY"
    DAILY = "DAILY"


class LateFeeFrequency(str, Enum):
    """How often a late fee accrues once the due date has passed."""

    ONE_TIME = "ONE_TIME"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"


class RecordStatus(str, Enum):
    """Active flag for students, fee structures and fee lines."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class FeeTargetType(str, Enum):
    """Scope of an ad-hoc fee addition."""

    CLASS = "CLASS"
    SECTION = "SECTION"
    STUDENT = "STUDENT"


_METHOD_BY_ACCOUNT_TYPE: dict[AccountType, PaymentMethod] = {
    AccountType.CASH: PaymentMethod.CASH,
    AccountType.BANK: PaymentMethod.BANK,
    AccountType.MOBILE_WALLET: PaymentMethod.MOBILE_WALLET,
    AccountType.ONLINE: PaymentMethod.ONLINE,
    AccountType.OTHER: PaymentMethod.OTHER,
}

if set(_METHOD_BY_ACCOUNT_TYPE) != set(AccountType):
    raise RuntimeError("Every AccountType must map to a PaymentMethod")


def payment_method_for(account_type: AccountType | str) -> PaymentMethod:
    """
    Map the receiving account's type to the payment method of a line.

    Raises:
        ValueError: If account_type is not an AccountType value.
    """
    return _METHOD_BY_ACCOUNT_TYPE[AccountType(account_type)]


class OverpaymentPolicy(str, Enum):
    """What happens when an allocation exceeds a due item's outstanding amount."""

    REJECT = "reject"
    ALLOW_CREDIT = "allow_credit"
