"""Database layer: declarative base, column types, engine and unit of work."""

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.db.types import Money, round_money

__all__ = [
    "Base",
    "TrackedBase",
    "UUIDString",
    "Money",
    "round_money",
]
