"""
Module: ledger_kernel.db.types
Responsibility: Annotated column type aliases shared by every model, so
    that precision and lengths are identical across the schema.
Architecture position: Kernel > DB.  Imported by models/ and repositories/.
    Takes its money precision from ledger_kernel.domain.money.

Invariants enforced:
    - Fixed-point money.  Money maps to Numeric(18, 2); no floats anywhere.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

from ledger_kernel.domain.money import MONEY_DECIMAL_PLACES, round_money

# Monetary amount: 18 digits total, 2 decimal places
Money = Annotated[Decimal, Numeric(18, MONEY_DECIMAL_PLACES)]

# Tenant / actor / category identifiers supplied by collaborators
ExternalId = Annotated[str, String(64)]

# Short titles and labels
ShortText = Annotated[str, String(255)]

# Long text for descriptions and reasons
LongText = Annotated[str, String(2000)]

__all__ = [
    "ExternalId",
    "LongText",
    "MONEY_DECIMAL_PLACES",
    "Money",
    "ShortText",
    "round_money",
]
