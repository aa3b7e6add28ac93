from decimal import Decimal

import datetime as dt

from conftest import make_tx
from fingestor.aggregates import (
    allocation_amount,
    balance,
    category_chart,
    expense_by_category,
    goal_progress_percent,
    savings_balance,
    total_invested,
)
from fingestor.schemas import Goal, Investment, InvestmentAction


def test_balance_excludes_transfers_regardless_of_order() -> None:
    rows = [
        make_tx("1000", "income"),
        make_tx("200", "expense"),
        make_tx("500", "transfer", "Poupança Automática"),
    ]
    assert balance(rows) == Decimal("800")
    assert balance(list(reversed(rows))) == Decimal("800")
    assert balance([]) == Decimal("0")


def test_expense_by_category_keeps_first_seen_order() -> None:
    rows = [
        make_tx("30", "expense", "Lazer"),
        make_tx("10", "expense", "Alimentação"),
        make_tx("80", "transfer", "Poupança Automática"),
        make_tx("5", "expense", "Lazer"),
        make_tx("999", "transfer", "Transferência Entre Contas"),
        make_tx("1000", "income", "Salário"),
    ]
    totals = expense_by_category(rows)
    assert list(totals) == ["Lazer", "Alimentação", "Poupança Automática"]
    assert totals["Lazer"] == Decimal("35")


def test_category_chart_sorted_by_value() -> None:
    rows = [
        make_tx("10", "expense", "Alimentação"),
        make_tx("30", "expense", "Lazer"),
    ]
    chart = category_chart(rows)
    assert [c.category for c in chart] == ["Lazer", "Alimentação"]
    assert chart[0].percent == Decimal("75.0")


def _investment(action: InvestmentAction, value: str) -> Investment:
    return Investment(
        id=f"inv-{action.name}-{value}",
        name="ETF",
        type=action,
        date=dt.date(2024, 1, 1),
        pricePerShare=Decimal("10"),
        investedValue=Decimal(value),
        shares=Decimal("1"),
    )


def test_total_invested_counts_buys_only() -> None:
    investments = [
        _investment(InvestmentAction.market_buy, "100"),
        _investment(InvestmentAction.market_buy, "50"),
        _investment(InvestmentAction.market_sell, "70"),
        _investment(InvestmentAction.dividend, "3"),
    ]
    assert total_invested(investments) == Decimal("150")


def test_goal_progress_is_clamped() -> None:
    half = Goal(id="g1", title="Car", targetAmount=Decimal("1000"), currentAmount=Decimal("500"))
    over = Goal(id="g2", title="Trip", targetAmount=Decimal("1000"), currentAmount=Decimal("1030"))
    assert goal_progress_percent(half) == Decimal("50")
    assert goal_progress_percent(over) == Decimal("100")
    assert savings_balance([half, over]) == Decimal("1530")


def test_allocation_amount_is_zero_without_positive_balance() -> None:
    assert allocation_amount([make_tx("100", "expense")], 10) == Decimal("0")
    assert allocation_amount([make_tx("1000", "income"), make_tx("200", "expense")], 10) == Decimal("80.00")
    assert allocation_amount([make_tx("33.33", "income")], 10) == Decimal("3.33")
