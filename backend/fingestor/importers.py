"""Tabular import of bank and brokerage exports.

A file is read into a header list plus row records, classified by its
headers, and every row is mapped through an ordered alias table into a typed
intermediate row before a domain record is built. Header aliases are
resolved once per file; within a row the first non-blank aliased cell wins,
so a canonical column falls back to a vendor column cell by cell.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Generic, Iterable, Optional, Sequence, TypeVar

import pandas as pd
from pydantic import ValidationError

from .i18n import t
from .parsing import ParseError, derive_shares, parse_date, parse_decimal, parse_text, to_cents
from .schemas import (
    FALLBACK_CATEGORY,
    Investment,
    InvestmentAction,
    Language,
    Transaction,
    TransactionType,
    make_id,
)

logger = logging.getLogger(__name__)

INVESTMENT_KEYWORDS = frozenset({"ticker", "isin", "shares", "price / share", "no. of shares", "action"})
TRANSACTION_KEYWORDS = frozenset({"category", "categoria", "description", "descrição"})

AliasTable = Sequence[tuple[str, Sequence[str]]]

TRANSACTION_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("date", ("date", "data do movimento", "data movimento", "data")),
    ("description", ("description", "descrição", "descricao")),
    ("amount", ("amount", "montante", "valor")),
    ("type", ("type", "tipo")),
    ("debit", ("debito", "débito", "debit")),
    ("credit", ("credito", "crédito", "credit")),
    ("category", ("category", "categoria")),
)

INVESTMENT_ALIASES: AliasTable = (
    ("id", ("id",)),
    ("name", ("name", "nome")),
    ("ticker", ("ticker",)),
    ("isin", ("isin",)),
    ("type", ("type", "action")),
    ("date", ("date", "time")),
    ("pricePerShare", ("pricepershare", "price / share", "price")),
    ("investedValue", ("investedvalue", "total")),
    ("shares", ("shares", "no. of shares")),
    ("notes", ("notes",)),
)

SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm"}
TEXT_SUFFIXES = {".csv", ".txt", ".tsv"}

_TYPE_WORDS = {
    "income": TransactionType.income,
    "receita": TransactionType.income,
    "rendimento": TransactionType.income,
    "credit": TransactionType.income,
    "crédito": TransactionType.income,
    "credito": TransactionType.income,
    "expense": TransactionType.expense,
    "despesa": TransactionType.expense,
    "debit": TransactionType.expense,
    "débito": TransactionType.expense,
    "debito": TransactionType.expense,
    "transfer": TransactionType.transfer,
    "transferência": TransactionType.transfer,
    "transferencia": TransactionType.transfer,
}

_ACTION_WORDS = (
    ("interest", InvestmentAction.interest),
    ("juro", InvestmentAction.interest),
    ("dividend", InvestmentAction.dividend),
    ("withdraw", InvestmentAction.withdrawal),
    ("levantamento", InvestmentAction.withdrawal),
    ("deposit", InvestmentAction.deposit),
    ("depósito", InvestmentAction.deposit),
    ("sell", InvestmentAction.market_sell),
    ("venda", InvestmentAction.market_sell),
    ("buy", InvestmentAction.market_buy),
    ("compra", InvestmentAction.market_buy),
)


class ImportFileError(Exception):
    """A file rejected as a whole, before any row is imported."""

    code = "IMPORT_ERROR"
    message_key = "errorUnsupportedFile"

    def __init__(self, detail: str = "", message_key: Optional[str] = None) -> None:
        if message_key:
            self.message_key = message_key
        super().__init__(detail or self.message_key)


class WrongFileKindError(ImportFileError):
    code = "WRONG_FILE_KIND"


class EmptyFileError(ImportFileError):
    code = "EMPTY_FILE"
    message_key = "errorEmptyFile"


class UnrecognizedHeadersError(ImportFileError):
    code = "UNRECOGNIZED_HEADERS"
    message_key = "errorUnrecognizedHeaders"


class UnsupportedFileError(ImportFileError):
    code = "UNSUPPORTED_FILE"
    message_key = "errorUnsupportedFile"


@dataclass(frozen=True)
class Table:
    headers: list[str]
    records: list[dict[str, Any]]


ItemT = TypeVar("ItemT")


@dataclass
class ImportResult(Generic[ItemT]):
    items: list[ItemT] = field(default_factory=list)
    skipped: int = 0


@dataclass(frozen=True)
class TransactionRow:
    id: Optional[str]
    date: Optional[dt.date]
    description: Optional[str]
    amount: Decimal
    type: TransactionType
    category: Optional[str]

    def build(self, lang: Language) -> Transaction:
        return Transaction(
            id=self.id or make_id(),
            date=self.date or dt.date.today(),
            description=self.description or t("noDescription", lang),
            amount=abs(self.amount),
            type=self.type,
            category=self.category or FALLBACK_CATEGORY,
        )


@dataclass(frozen=True)
class InvestmentRow:
    id: Optional[str]
    name: Optional[str]
    ticker: Optional[str]
    isin: Optional[str]
    action: InvestmentAction
    date: Optional[dt.date]
    price_per_share: Decimal
    invested_value: Decimal
    shares: Optional[Decimal]
    notes: Optional[str]

    def build(self, lang: Language) -> Investment:
        invested = abs(self.invested_value)
        price = abs(self.price_per_share)
        return Investment(
            id=self.id or make_id(),
            name=self.name or self.ticker or t("unknownAsset", lang),
            ticker=self.ticker,
            isin=self.isin,
            type=self.action,
            date=self.date or dt.date.today(),
            pricePerShare=price,
            investedValue=invested,
            shares=abs(self.shares) if self.shares is not None else derive_shares(invested, price),
            notes=self.notes,
        )


def normalize_header(header: Any) -> str:
    return str(header).replace("\ufeff", "").strip().lower()


def _sniff_delimiter(text: str) -> str:
    first_line = text.splitlines()[0] if text else ""
    counts = {sep: first_line.count(sep) for sep in (";", ",", "\t")}
    best = max(counts, key=lambda sep: counts[sep])
    return best if counts[best] else ","


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("cp1252", errors="replace")


def _frame_to_table(frame: pd.DataFrame) -> Table:
    frame = frame.astype(object).where(frame.notna(), None)
    headers = [str(c) for c in frame.columns]
    frame.columns = headers
    return Table(headers=headers, records=frame.to_dict(orient="records"))


def read_table(content: bytes, filename: str) -> Table:
    """Read the first sheet (or the whole delimited file) into a :class:`Table`."""
    suffix = Path(filename or "").suffix.lower()
    if suffix in SPREADSHEET_SUFFIXES:
        try:
            frame = pd.read_excel(BytesIO(content), sheet_name=0, dtype=object, engine="openpyxl")
        except Exception as exc:
            # openpyxl raises a wide range of errors on corrupt archives.
            raise UnsupportedFileError(f"cannot read spreadsheet {filename}: {exc}") from exc
        return _frame_to_table(frame)
    if suffix in TEXT_SUFFIXES or not suffix:
        text = _decode(content)
        if not text.strip():
            return Table(headers=[], records=[])
        try:
            frame = pd.read_csv(
                BytesIO(text.encode("utf-8")),
                sep=_sniff_delimiter(text),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise UnsupportedFileError(f"cannot parse {filename}: {exc}") from exc
        return _frame_to_table(frame)
    raise UnsupportedFileError(f"unsupported file type: {suffix}")


def resolve_headers(headers: Iterable[str], aliases: AliasTable) -> dict[str, list[str]]:
    """Map each canonical field to the file columns that may carry it, in preference order."""
    by_name: dict[str, str] = {}
    for header in headers:
        by_name.setdefault(normalize_header(header), header)
    return {name: [by_name[a] for a in accepted if a in by_name] for name, accepted in aliases}


def looks_like_investments(headers: Iterable[str]) -> bool:
    return any(normalize_header(h) in INVESTMENT_KEYWORDS for h in headers)


def looks_like_transactions(headers: Iterable[str]) -> bool:
    return any(normalize_header(h) in TRANSACTION_KEYWORDS for h in headers)


def _first(record: dict[str, Any], columns: list[str], parse: Callable[[Any], Any]) -> Any:
    for column in columns:
        value = parse(record.get(column))
        if value is not None:
            return value
    return None


def _transaction_type(value: Optional[str]) -> Optional[TransactionType]:
    if value is None:
        return None
    return _TYPE_WORDS.get(value.strip().lower())


def _amount_and_type(record: dict[str, Any], columns: dict[str, list[str]]) -> Optional[tuple[Decimal, TransactionType]]:
    declared = _transaction_type(_first(record, columns["type"], parse_text))
    amount = _first(record, columns["amount"], parse_decimal)
    if amount:
        return abs(amount), declared or TransactionType.expense

    credit = abs(_first(record, columns["credit"], parse_decimal) or Decimal("0"))
    debit = abs(_first(record, columns["debit"], parse_decimal) or Decimal("0"))
    if credit and debit:
        net = credit - debit
        if not net:
            return None
        return abs(net), TransactionType.income if net > 0 else TransactionType.expense
    if credit:
        return credit, TransactionType.income
    if debit:
        return debit, TransactionType.expense
    return None


def _transaction_row(record: dict[str, Any], columns: dict[str, list[str]]) -> Optional[TransactionRow]:
    resolved = _amount_and_type(record, columns)
    if resolved is None:
        return None
    amount, kind = resolved
    return TransactionRow(
        id=_first(record, columns["id"], parse_text),
        date=_first(record, columns["date"], parse_date),
        description=_first(record, columns["description"], parse_text),
        amount=amount,
        type=kind,
        category=_first(record, columns["category"], parse_text),
    )


def parse_transaction_table(table: Table, lang: Language = Language.pt) -> ImportResult[Transaction]:
    if looks_like_investments(table.headers):
        raise WrongFileKindError("investment headers in transaction import", "errorInvestmentFileInDash")
    if not table.headers:
        return ImportResult()

    columns = resolve_headers(table.headers, TRANSACTION_ALIASES)
    if not (columns["amount"] or columns["debit"] or columns["credit"]):
        raise UnrecognizedHeadersError(f"no amount column among {table.headers}")

    result: ImportResult[Transaction] = ImportResult()
    for index, record in enumerate(table.records):
        try:
            row = _transaction_row(record, columns)
            if row is None:
                result.skipped += 1
                continue
            result.items.append(row.build(lang))
        except (ParseError, ValidationError) as exc:
            logger.debug("Dropping transaction row %d: %s", index, exc)
            result.skipped += 1
    return result


def normalize_action(value: Optional[str]) -> InvestmentAction:
    if value is None:
        return InvestmentAction.market_buy
    lowered = value.strip().lower()
    for action in InvestmentAction:
        if action.value.lower() == lowered:
            return action
    for word, action in _ACTION_WORDS:
        if word in lowered:
            return action
    logger.debug("Unknown investment action %r, treating as buy", value)
    return InvestmentAction.market_buy


def _investment_row(record: dict[str, Any], columns: dict[str, list[str]]) -> Optional[InvestmentRow]:
    price = _first(record, columns["pricePerShare"], parse_decimal) or Decimal("0")
    total = _first(record, columns["investedValue"], parse_decimal)
    shares = _first(record, columns["shares"], parse_decimal)
    if total is None:
        if shares is None or not price:
            return None
        total = to_cents(abs(price * shares))
    return InvestmentRow(
        id=_first(record, columns["id"], parse_text),
        name=_first(record, columns["name"], parse_text),
        ticker=_first(record, columns["ticker"], parse_text),
        isin=_first(record, columns["isin"], parse_text),
        action=normalize_action(_first(record, columns["type"], parse_text)),
        date=_first(record, columns["date"], parse_date),
        price_per_share=price,
        invested_value=total,
        shares=shares,
        notes=_first(record, columns["notes"], parse_text),
    )


def parse_investment_table(table: Table, lang: Language = Language.pt) -> ImportResult[Investment]:
    if not table.records:
        raise EmptyFileError("no data rows")
    if not looks_like_investments(table.headers) and looks_like_transactions(table.headers):
        raise WrongFileKindError("transaction headers in investment import", "errorTransactionFileInInv")

    columns = resolve_headers(table.headers, INVESTMENT_ALIASES)
    if not (columns["investedValue"] or columns["shares"]):
        raise UnrecognizedHeadersError(f"no value column among {table.headers}")

    result: ImportResult[Investment] = ImportResult()
    for index, record in enumerate(table.records):
        try:
            row = _investment_row(record, columns)
            if row is None:
                result.skipped += 1
                continue
            result.items.append(row.build(lang))
        except (ParseError, ValidationError) as exc:
            logger.debug("Dropping investment row %d: %s", index, exc)
            result.skipped += 1
    return result


def parse_transactions_file(content: bytes, filename: str, lang: Language = Language.pt) -> ImportResult[Transaction]:
    result = parse_transaction_table(read_table(content, filename), lang)
    logger.info("Parsed %s: %d transactions, %d rows skipped", filename, len(result.items), result.skipped)
    return result


def parse_investments_file(content: bytes, filename: str, lang: Language = Language.pt) -> ImportResult[Investment]:
    result = parse_investment_table(read_table(content, filename), lang)
    logger.info("Parsed %s: %d investments, %d rows skipped", filename, len(result.items), result.skipped)
    return result
