import datetime as dt
from decimal import Decimal

import pytest

from fingestor import main
from fingestor.ledger import Ledger
from fingestor.persistence import StorageService
from fingestor.schemas import Transaction, TransactionType, make_id
from fingestor.store import InMemoryStore


def make_tx(amount: str, kind: str, category: str = "Outros", description: str = "entry") -> Transaction:
    return Transaction(
        id=make_id(),
        date=dt.date(2024, 1, 15),
        description=description,
        amount=Decimal(amount),
        type=TransactionType(kind),
        category=category,
    )


@pytest.fixture(autouse=True)
def fresh_ledger(monkeypatch: pytest.MonkeyPatch) -> Ledger:
    ledger = Ledger(StorageService(InMemoryStore())).load()
    monkeypatch.setattr(main, "ledger", ledger)
    return ledger
