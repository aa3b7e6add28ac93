from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from .parsing import to_cents
from .schemas import (
    BUY_ACTIONS,
    SAVINGS_CATEGORY,
    CategoryTotal,
    Goal,
    GoalProgress,
    Investment,
    Transaction,
    TransactionType,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _sum_of(transactions: Iterable[Transaction], kind: TransactionType) -> Decimal:
    return sum((t.amount for t in transactions if t.type == kind), ZERO)


def income_total(transactions: Iterable[Transaction]) -> Decimal:
    return _sum_of(transactions, TransactionType.income)


def expense_total(transactions: Iterable[Transaction]) -> Decimal:
    return _sum_of(transactions, TransactionType.expense)


def balance(transactions: Iterable[Transaction]) -> Decimal:
    """Income minus expense. Transfers are internal moves and never count."""
    rows = list(transactions)
    return income_total(rows) - expense_total(rows)


def _is_chartable_outflow(t: Transaction) -> bool:
    if t.type == TransactionType.expense:
        return True
    return t.type == TransactionType.transfer and t.category == SAVINGS_CATEGORY


def expense_by_category(transactions: Iterable[Transaction]) -> dict[str, Decimal]:
    """Outflow per category, keyed in first-seen order.

    Automatic-savings transfers are included so goal funding shows up next
    to regular spending.
    """
    totals: dict[str, Decimal] = {}
    for t in transactions:
        if _is_chartable_outflow(t):
            totals[t.category] = totals.get(t.category, ZERO) + t.amount
    return totals


def category_chart(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    totals = {k: to_cents(v) for k, v in expense_by_category(transactions).items()}
    grand = sum(totals.values(), ZERO)
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        CategoryTotal(
            category=category,
            value=value,
            percent=(value / grand * HUNDRED).quantize(Decimal("0.1")) if grand > 0 else ZERO,
        )
        for category, value in ranked
    ]


def total_invested(investments: Iterable[Investment]) -> Decimal:
    return sum((i.investedValue for i in investments if i.type in BUY_ACTIONS), ZERO)


def goal_progress_percent(goal: Goal) -> Decimal:
    if goal.targetAmount <= 0:
        raise ValueError("goal target must be positive")
    ratio = goal.currentAmount / goal.targetAmount * HUNDRED
    return max(ZERO, min(ratio, HUNDRED))


def goal_progress(goals: Iterable[Goal]) -> list[GoalProgress]:
    return [
        GoalProgress(
            id=g.id,
            title=g.title,
            targetAmount=g.targetAmount,
            currentAmount=g.currentAmount,
            progressPercent=goal_progress_percent(g).quantize(Decimal("0.1")),
        )
        for g in goals
    ]


def savings_balance(goals: Iterable[Goal]) -> Decimal:
    return sum((g.currentAmount for g in goals), ZERO)


def allocation_amount(transactions: Iterable[Transaction], percentage: int) -> Decimal:
    """Amount the next allocation would move; zero when the balance is not positive."""
    current = balance(transactions)
    if current <= 0:
        return ZERO
    return to_cents(current * Decimal(percentage) / HUNDRED)
