from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from .aggregates import allocation_amount
from .i18n import t
from .persistence import StorageService
from .schemas import (
    SAVINGS_CATEGORY,
    AppConfig,
    AppConfigUpdate,
    Goal,
    Investment,
    RecurringAlert,
    RecurringSchedule,
    Transaction,
    TransactionType,
    make_id,
)

logger = logging.getLogger(__name__)


class AllocationStatus(str, Enum):
    allocated = "allocated"
    nothing_to_allocate = "nothing_to_allocate"
    goal_not_found = "goal_not_found"


@dataclass(frozen=True)
class AllocationResult:
    status: AllocationStatus
    amount: Decimal = Decimal("0")
    transaction: Optional[Transaction] = None
    goal: Optional[Goal] = None


class NotFoundError(LookupError):
    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class Ledger:
    """Owner of the in-memory collections and the configuration record.

    Collections are tuples of frozen records and are replaced, never edited.
    Each mutation rewrites only the collection it touched, except
    :meth:`allocate_to_goal`, which replaces transactions and goals together.
    """

    def __init__(self, storage: StorageService) -> None:
        self.storage = storage
        self.transactions: tuple[Transaction, ...] = ()
        self.investments: tuple[Investment, ...] = ()
        self.goals: tuple[Goal, ...] = ()
        self.config = AppConfig()

    def load(self) -> "Ledger":
        self.transactions = tuple(self.storage.get_transactions())
        self.investments = tuple(self.storage.get_investments())
        self.goals = tuple(self.storage.get_goals())
        self.config = self.storage.get_config()
        logger.info(
            "Loaded %d transactions, %d investments, %d goals",
            len(self.transactions),
            len(self.investments),
            len(self.goals),
        )
        return self

    def save_all(self) -> bool:
        results = [
            self.storage.save_transactions(self.transactions),
            self.storage.save_investments(self.investments),
            self.storage.save_goals(self.goals),
            self.storage.save_config(self.config),
        ]
        return all(results)

    def add_transaction(self, transaction: Transaction) -> Transaction:
        self.transactions = self.transactions + (transaction,)
        self.storage.save_transactions(self.transactions)
        return transaction

    def import_transactions(self, transactions: Iterable[Transaction]) -> int:
        incoming = tuple(transactions)
        if incoming:
            self.transactions = self.transactions + incoming
            self.storage.save_transactions(self.transactions)
        logger.info("Imported %d transactions", len(incoming))
        return len(incoming)

    def delete_transaction(self, transaction_id: str) -> None:
        remaining = tuple(t for t in self.transactions if t.id != transaction_id)
        if len(remaining) == len(self.transactions):
            raise NotFoundError("transaction", transaction_id)
        self.transactions = remaining
        self.storage.save_transactions(self.transactions)

    def add_investment(self, investment: Investment) -> Investment:
        self.investments = self.investments + (investment,)
        self.storage.save_investments(self.investments)
        return investment

    def import_investments(self, investments: Iterable[Investment]) -> int:
        incoming = tuple(investments)
        if incoming:
            self.investments = self.investments + incoming
            self.storage.save_investments(self.investments)
        logger.info("Imported %d investments", len(incoming))
        return len(incoming)

    def delete_investment(self, investment_id: str) -> None:
        remaining = tuple(i for i in self.investments if i.id != investment_id)
        if len(remaining) == len(self.investments):
            raise NotFoundError("investment", investment_id)
        self.investments = remaining
        self.storage.save_investments(self.investments)

    def add_goal(self, goal: Goal) -> Goal:
        self.goals = self.goals + (goal,)
        self.storage.save_goals(self.goals)
        return goal

    def delete_goal(self, goal_id: str) -> None:
        remaining = tuple(g for g in self.goals if g.id != goal_id)
        if len(remaining) == len(self.goals):
            raise NotFoundError("goal", goal_id)
        self.goals = remaining
        self.storage.save_goals(self.goals)

    def allocate_to_goal(self, goal_id: str, on: Optional[dt.date] = None) -> AllocationResult:
        """Move ``allocationPercentage`` of the current balance into a goal.

        The balance is recomputed from income and expense only, so repeated
        calls against the same history allocate the same amount each time.
        """
        goal = next((g for g in self.goals if g.id == goal_id), None)
        if goal is None:
            return AllocationResult(status=AllocationStatus.goal_not_found)

        amount = allocation_amount(self.transactions, self.config.allocationPercentage)
        if amount <= 0:
            return AllocationResult(status=AllocationStatus.nothing_to_allocate)

        transfer = Transaction(
            id=f"alloc-{make_id()}",
            date=on or dt.date.today(),
            description=f"{t('allocate', self.config.language)}: {goal.title}",
            amount=amount,
            type=TransactionType.transfer,
            category=SAVINGS_CATEGORY,
        )
        funded = goal.model_copy(update={"currentAmount": goal.currentAmount + amount})

        transactions = self.transactions + (transfer,)
        goals = tuple(funded if g.id == goal_id else g for g in self.goals)
        previous = self.transactions
        self.transactions, self.goals = transactions, goals
        if self.storage.save_transactions(self.transactions) and not self.storage.save_goals(self.goals):
            # Stored transfer and goal increment go together or not at all.
            logger.error("Goal %s not persisted; restoring stored transactions", goal_id)
            self.storage.save_transactions(previous)

        logger.info("Allocated %s to goal %s", amount, goal_id)
        return AllocationResult(
            status=AllocationStatus.allocated,
            amount=amount,
            transaction=transfer,
            goal=funded,
        )

    def _replace_config(self, config: AppConfig) -> AppConfig:
        self.config = config
        self.storage.save_config(self.config)
        return self.config

    def update_config(self, payload: AppConfigUpdate) -> AppConfig:
        merged = self.config.model_dump()
        merged.update(payload.model_dump(exclude_unset=True, exclude_none=True))
        return self._replace_config(AppConfig.model_validate(merged))

    def add_alert(self, alert: RecurringAlert) -> RecurringAlert:
        self._replace_config(self.config.model_copy(update={"alerts": [*self.config.alerts, alert]}))
        return alert

    def delete_alert(self, alert_id: str) -> None:
        remaining = [a for a in self.config.alerts if a.id != alert_id]
        if len(remaining) == len(self.config.alerts):
            raise NotFoundError("alert", alert_id)
        self._replace_config(self.config.model_copy(update={"alerts": remaining}))

    def add_recurring_schedule(self, schedule: RecurringSchedule) -> RecurringSchedule:
        schedules = [*self.config.recurringSchedules, schedule]
        self._replace_config(self.config.model_copy(update={"recurringSchedules": schedules}))
        return schedule

    def delete_recurring_schedule(self, schedule_id: str) -> None:
        remaining = [s for s in self.config.recurringSchedules if s.id != schedule_id]
        if len(remaining) == len(self.config.recurringSchedules):
            raise NotFoundError("schedule", schedule_id)
        self._replace_config(self.config.model_copy(update={"recurringSchedules": remaining}))
