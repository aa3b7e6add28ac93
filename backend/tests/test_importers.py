import datetime as dt
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook

from fingestor.importers import (
    EmptyFileError,
    UnrecognizedHeadersError,
    UnsupportedFileError,
    WrongFileKindError,
    normalize_action,
    parse_investments_file,
    parse_transactions_file,
)
from fingestor.schemas import InvestmentAction, Language, TransactionType


def _xlsx(rows: list[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def test_canonical_transaction_csv() -> None:
    content = (
        "id,date,description,amount,type,category\n"
        "t1,2024-01-05,Salary,1000,income,Salário\n"
        't2,2024-01-06,Groceries,"12,50",expense,Alimentação\n'
    ).encode("utf-8")

    result = parse_transactions_file(content, "extrato.csv")

    assert result.skipped == 0
    assert [t.id for t in result.items] == ["t1", "t2"]
    assert result.items[0].type == TransactionType.income
    assert result.items[1].amount == Decimal("12.50")
    assert result.items[1].date == dt.date(2024, 1, 6)


def test_bank_statement_with_debit_and_credit_columns() -> None:
    content = (
        "Data do movimento;Descrição;Debito;Credito;Categoria\n"
        "01/02/2024;;0;0;\n"
        "01/02/2024;Salário Fev;0;50;Salário\n"
        "03/02/2024;Supermercado;1.234,56;;Alimentação\n"
    ).encode("utf-8")

    result = parse_transactions_file(content, "movimentos.csv")

    assert result.skipped == 1
    assert len(result.items) == 2
    income, expense = result.items
    assert income.type == TransactionType.income
    assert income.amount == Decimal("50")
    assert income.category == "Salário"
    assert expense.type == TransactionType.expense
    assert expense.amount == Decimal("1234.56")
    assert expense.date == dt.date(2024, 2, 3)


def test_missing_cells_fall_back_to_defaults() -> None:
    content = b'date,description,amount,category\n,,"-45,00",\n'

    result = parse_transactions_file(content, "x.csv", Language.en)

    assert len(result.items) == 1
    row = result.items[0]
    assert row.amount == Decimal("45.00")
    assert row.type == TransactionType.expense
    assert row.description == "No description"
    assert row.category == "Outros"
    assert row.date == dt.date.today()


def test_unparseable_rows_are_dropped_and_counted() -> None:
    content = (
        "date,description,amount,type,category\n"
        "2024-01-05,Ok,10,expense,Lazer\n"
        "2024-01-05,Bad amount,abc,expense,Lazer\n"
        "someday,Bad date,10,expense,Lazer\n"
    ).encode("utf-8")

    result = parse_transactions_file(content, "x.csv")

    assert len(result.items) == 1
    assert result.skipped == 2


def test_investment_headers_rejected_by_transaction_import() -> None:
    content = b"date,name,isin,shares,total\n2024-01-05,ETF,IE00B4L5Y983,2,150\n"
    with pytest.raises(WrongFileKindError) as exc_info:
        parse_transactions_file(content, "t212.csv")
    assert exc_info.value.message_key == "errorInvestmentFileInDash"
    assert exc_info.value.code == "WRONG_FILE_KIND"


def test_transaction_import_edge_files() -> None:
    assert parse_transactions_file(b"", "empty.csv").items == []
    with pytest.raises(UnrecognizedHeadersError):
        parse_transactions_file(b"foo,bar\n1,2\n", "x.csv")
    with pytest.raises(UnsupportedFileError):
        parse_transactions_file(b"%PDF-1.4", "statement.pdf")
    with pytest.raises(UnsupportedFileError):
        parse_transactions_file(b"not a zip archive", "broken.xlsx")


def test_transaction_xlsx_with_serial_dates() -> None:
    content = _xlsx(
        [
            ["Data", "Descrição", "Valor", "Tipo", "Categoria"],
            [45000, "Renda", 650, "despesa", "Habitação"],
        ]
    )

    result = parse_transactions_file(content, "extrato.xlsx")

    assert len(result.items) == 1
    assert result.items[0].date == dt.date(2023, 3, 15)
    assert result.items[0].amount == Decimal("650")
    assert result.items[0].category == "Habitação"


def test_brokerage_export() -> None:
    content = (
        "Action,Time,ISIN,Ticker,Name,No. of shares,Price / share,Total\n"
        'Market buy,2024-01-15 10:00:00,US0378331005,AAPL,Apple,"0,5","180,00","-90,00"\n'
        "Dividend (Ordinary),2024-02-15 09:00:00,US0378331005,AAPL,Apple,,,\"0,12\"\n"
        "Deposit,2024-01-10 08:00:00,,,,,,500\n"
    ).encode("utf-8")

    result = parse_investments_file(content, "t212.csv")

    assert result.skipped == 0
    buy, dividend, deposit = result.items
    assert buy.type == InvestmentAction.market_buy
    assert buy.investedValue == Decimal("90.00")
    assert buy.shares == Decimal("0.5")
    assert buy.pricePerShare == Decimal("180.00")
    assert buy.date == dt.date(2024, 1, 15)
    assert buy.ticker == "AAPL"
    assert dividend.type == InvestmentAction.dividend
    assert dividend.investedValue == Decimal("0.12")
    assert deposit.type == InvestmentAction.deposit
    assert deposit.name == "Ativo Desconhecido"
    assert deposit.shares == Decimal("0")


def test_investment_total_derived_from_price_and_shares() -> None:
    content = b"name,ticker,shares,price\nETF,VWCE,3,100.5\nNo price,XYZ,2,\n"

    result = parse_investments_file(content, "x.csv")

    assert len(result.items) == 1
    assert result.items[0].investedValue == Decimal("301.50")
    assert result.skipped == 1


def test_investment_xlsx_serial_dates() -> None:
    content = _xlsx(
        [
            ["Action", "Time", "Ticker", "No. of shares", "Price / share", "Total"],
            ["Market buy", 45000, "VWCE", 2, 50, 100],
        ]
    )

    result = parse_investments_file(content, "t212.xlsx")

    assert result.items[0].date == dt.date(2023, 3, 15)
    assert result.items[0].name == "VWCE"


def test_transaction_file_rejected_by_investment_import() -> None:
    content = b"date,description,amount,category\n2024-01-05,Coffee,2,Lazer\n"
    with pytest.raises(WrongFileKindError) as exc_info:
        parse_investments_file(content, "extrato.csv")
    assert exc_info.value.message_key == "errorTransactionFileInInv"


def test_investment_import_edge_files() -> None:
    with pytest.raises(EmptyFileError):
        parse_investments_file(b"ticker,shares,total\n", "x.csv")
    with pytest.raises(EmptyFileError):
        parse_investments_file(b"", "x.csv")
    with pytest.raises(UnrecognizedHeadersError):
        parse_investments_file(b"ticker,isin\nAAPL,US0378331005\n", "x.csv")


def test_normalize_action() -> None:
    assert normalize_action("Market sell") == InvestmentAction.market_sell
    assert normalize_action("Limit sell") == InvestmentAction.market_sell
    assert normalize_action("Interest on cash") == InvestmentAction.interest
    assert normalize_action("Withdrawal") == InvestmentAction.withdrawal
    assert normalize_action("something else") == InvestmentAction.market_buy
    assert normalize_action(None) == InvestmentAction.market_buy


def test_dash_marks_empty_debit_or_credit() -> None:
    content = "Data do movimento;Descrição;Debito;Credito\n01/02/2024;Salário;-;50\n02/02/2024;Café;2,40;-\n".encode("utf-8")

    result = parse_transactions_file(content, "movimentos.csv")

    assert result.skipped == 0
    assert [(t.type, t.amount) for t in result.items] == [
        (TransactionType.income, Decimal("50")),
        (TransactionType.expense, Decimal("2.40")),
    ]


def test_legacy_spreadsheet_formats_are_unsupported() -> None:
    for filename in ("extrato.xls", "extrato.ods"):
        with pytest.raises(UnsupportedFileError):
            parse_transactions_file(b"\xd0\xcf\x11\xe0", filename)
