"""Account classification by chart-of-accounts numbering.

The first digit of an account code gives its class::

    1 asset               5 cost_of_sales         9 statistical
    2 liability           6 direct_expenses
    3 equity              7 indirect_expenses
    4 revenue             8 taxes_extraordinary

An ``account_type`` text dynamic field overrides the code. Journal lines
are signed debit-positive: a debit is a positive ``line_amount``, a
credit a negative one. Debit-normal classes report balances as booked;
credit-normal classes report them negated.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from urp.core.models import Entity, TextValue


class AccountClass(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    COST_OF_SALES = "cost_of_sales"
    DIRECT_EXPENSES = "direct_expenses"
    INDIRECT_EXPENSES = "indirect_expenses"
    TAXES_EXTRAORDINARY = "taxes_extraordinary"
    STATISTICAL = "statistical"


CLASS_BY_DIGIT = {
    "1": AccountClass.ASSET,
    "2": AccountClass.LIABILITY,
    "3": AccountClass.EQUITY,
    "4": AccountClass.REVENUE,
    "5": AccountClass.COST_OF_SALES,
    "6": AccountClass.DIRECT_EXPENSES,
    "7": AccountClass.INDIRECT_EXPENSES,
    "8": AccountClass.TAXES_EXTRAORDINARY,
    "9": AccountClass.STATISTICAL,
}

_ALIASES = {
    "assets": AccountClass.ASSET,
    "liabilities": AccountClass.LIABILITY,
    "expense": AccountClass.INDIRECT_EXPENSES,
    "expenses": AccountClass.INDIRECT_EXPENSES,
    "income": AccountClass.REVENUE,
    "cogs": AccountClass.COST_OF_SALES,
    "tax": AccountClass.TAXES_EXTRAORDINARY,
    "taxes": AccountClass.TAXES_EXTRAORDINARY,
}

CREDIT_NORMAL = frozenset({AccountClass.LIABILITY, AccountClass.EQUITY, AccountClass.REVENUE})

EXPENSE_CLASSES = frozenset(
    {
        AccountClass.COST_OF_SALES,
        AccountClass.DIRECT_EXPENSES,
        AccountClass.INDIRECT_EXPENSES,
        AccountClass.TAXES_EXTRAORDINARY,
    }
)

PROFIT_AND_LOSS = EXPENSE_CLASSES | {AccountClass.REVENUE}

ACCOUNT_TYPE_FIELD = "account_type"


def parse_account_class(value: str) -> AccountClass | None:
    key = value.strip().lower()
    try:
        return AccountClass(key)
    except ValueError:
        return _ALIASES.get(key)


def classify_account(entity: Entity) -> AccountClass | None:
    """Class of an account entity, or ``None`` if it cannot be told."""
    explicit = entity.dynamic(ACCOUNT_TYPE_FIELD)
    if isinstance(explicit, TextValue):
        parsed = parse_account_class(explicit.text)
        if parsed is not None:
            return parsed
    code = entity.code.strip()
    return CLASS_BY_DIGIT.get(code[:1]) if code else None


def is_debit_normal(account_class: AccountClass | None) -> bool:
    return account_class not in CREDIT_NORMAL


def natural_sign(entity: Entity) -> int:
    """+1 for debit-normal accounts, -1 for credit-normal ones."""
    return 1 if is_debit_normal(classify_account(entity)) else -1


def split_debit_credit(balance: Decimal) -> tuple[Decimal, Decimal]:
    """Debit-positive balance as a ``(debit, credit)`` pair."""
    if balance >= 0:
        return balance, Decimal("0")
    return Decimal("0"), -balance
