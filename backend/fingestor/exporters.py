"""CSV and xlsx export with fixed canonical headers.

Export never uses the import aliases: the header row is always the canonical
field list below, so an empty collection still yields a header-only file.
"""

from __future__ import annotations

import csv
from decimal import Decimal
from io import BytesIO, StringIO
from typing import Any, Iterable, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from pydantic import BaseModel

from .schemas import Investment, Transaction

TRANSACTION_HEADERS = ["id", "date", "description", "amount", "type", "category"]
INVESTMENT_HEADERS = [
    "id",
    "name",
    "ticker",
    "isin",
    "type",
    "date",
    "pricePerShare",
    "investedValue",
    "shares",
    "notes",
]

TRANSACTIONS_CSV_FILENAME = "extrato_fingestor.csv"
TRANSACTIONS_XLSX_FILENAME = "extrato_fingestor.xlsx"
INVESTMENTS_CSV_FILENAME = "investimentos_fingestor.csv"
INVESTMENTS_XLSX_FILENAME = "investimentos_fingestor.xlsx"

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1E3A5F", end_color="1E3A5F", fill_type="solid")


def _cells(item: BaseModel, headers: Sequence[str]) -> list[Any]:
    data = item.model_dump(mode="python")
    row: list[Any] = []
    for header in headers:
        value = data.get(header)
        if hasattr(value, "value"):
            value = value.value
        elif value is not None and not isinstance(value, (str, Decimal, int)):
            value = str(value)
        row.append(value)
    return row


def _to_csv(items: Iterable[BaseModel], headers: Sequence[str]) -> bytes:
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for item in items:
        writer.writerow(["" if cell is None else cell for cell in _cells(item, headers)])
    return buffer.getvalue().encode("utf-8")


def _to_xlsx(items: Iterable[BaseModel], headers: Sequence[str], sheet_title: str) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title
    ws.append(list(headers))
    for col, _ in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        ws.column_dimensions[get_column_letter(col)].width = 18
    for item in items:
        ws.append(_cells(item, headers))
    ws.freeze_panes = "A2"

    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def export_transactions_csv(transactions: Iterable[Transaction]) -> bytes:
    return _to_csv(transactions, TRANSACTION_HEADERS)


def export_transactions_xlsx(transactions: Iterable[Transaction]) -> bytes:
    return _to_xlsx(transactions, TRANSACTION_HEADERS, "Extrato")


def export_investments_csv(investments: Iterable[Investment]) -> bytes:
    return _to_csv(investments, INVESTMENT_HEADERS)


def export_investments_xlsx(investments: Iterable[Investment]) -> bytes:
    return _to_xlsx(investments, INVESTMENT_HEADERS, "Investimentos")
