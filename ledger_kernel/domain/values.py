"""
Value types shared by the domain, models and services.

Pure definitions, zero I/O.  Enum members are ``str`` subclasses so they can
be stored directly in String columns and compared against loaded values.
"""

from enum import Enum


class Nature(str, Enum):
    """Side of a ledger line, and the normal side of an account."""

    DEBIT = "debit"
    CREDIT = "credit"

    @property
    def opposite(self) -> "Nature":
        return Nature.CREDIT if self is Nature.DEBIT else Nature.DEBIT


class AccountCategory(str, Enum):
    """Financial statement category of an account."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def default_nature(self) -> Nature:
        if self in (AccountCategory.ASSET, AccountCategory.EXPENSE):
            return Nature.DEBIT
        return Nature.CREDIT


class Severity(str, Enum):
    """Audit finding severity."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
