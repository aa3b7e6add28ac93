import datetime as dt
import random
import time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .parsing import derive_shares


def make_id() -> str:
    """Millisecond timestamp plus a random suffix; unique enough for one user."""
    return f"{int(time.time() * 1000)}{random.randint(0, 999999):06d}"


def today() -> dt.date:
    return dt.date.today()


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"
    transfer = "transfer"


class InvestmentAction(str, Enum):
    market_buy = "Market buy"
    market_sell = "Market sell"
    dividend = "Dividend"
    deposit = "Deposit"
    withdrawal = "Withdrawal"
    interest = "Interest on cash"


BUY_ACTIONS = frozenset({InvestmentAction.market_buy})


class ChartType(str, Enum):
    pie = "pie"
    bar = "bar"


class ThemeMode(str, Enum):
    light = "light"
    dark = "dark"
    auto = "auto"


class Language(str, Enum):
    pt = "pt"
    en = "en"


class AlertType(str, Enum):
    salary = "salary"
    investment = "investment"
    other = "other"


class Frequency(str, Enum):
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


DEFAULT_CATEGORIES = [
    "Alimentação",
    "Habitação",
    "Transporte",
    "Saúde",
    "Lazer",
    "Salário",
    "Investimento",
    "Poupança Automática",
    "Transferência Entre Contas",
    "Outros",
]
SAVINGS_CATEGORY = "Poupança Automática"
FALLBACK_CATEGORY = "Outros"


class ApiErrorDetail(BaseModel):
    field: str
    message: str


class ApiErrorPayload(BaseModel):
    code: str
    message: str
    details: list[ApiErrorDetail] = Field(default_factory=list)


class ApiErrorResponse(BaseModel):
    error: ApiErrorPayload


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    date: dt.date
    description: str
    amount: Decimal = Field(ge=Decimal("0"))
    type: TransactionType
    category: str = FALLBACK_CATEGORY


class TransactionCreate(BaseModel):
    id: Optional[str] = None
    date: dt.date = Field(default_factory=today)
    description: str = Field(min_length=1, max_length=500)
    amount: Decimal = Field(gt=Decimal("0"))
    type: TransactionType = TransactionType.expense
    category: str = Field(default=DEFAULT_CATEGORIES[0], min_length=1, max_length=100)

    @field_validator("description", "category")
    @classmethod
    def strip_text(cls, value: str) -> str:
        v = value.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def build(self) -> Transaction:
        return Transaction(
            id=self.id or make_id(),
            date=self.date,
            description=self.description,
            amount=self.amount,
            type=self.type,
            category=self.category,
        )


class Investment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    ticker: Optional[str] = None
    isin: Optional[str] = None
    type: InvestmentAction = InvestmentAction.market_buy
    date: dt.date
    pricePerShare: Decimal = Field(ge=Decimal("0"))
    investedValue: Decimal = Field(ge=Decimal("0"))
    shares: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    notes: Optional[str] = None

    @field_validator("ticker", "isin", "notes", mode="before")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        v = str(value).strip()
        return v or None


class InvestmentCreate(BaseModel):
    id: Optional[str] = None
    name: str = Field(min_length=1, max_length=200)
    ticker: Optional[str] = None
    isin: Optional[str] = None
    type: InvestmentAction = InvestmentAction.market_buy
    date: dt.date = Field(default_factory=today)
    pricePerShare: Decimal = Field(gt=Decimal("0"))
    investedValue: Decimal = Field(gt=Decimal("0"))
    shares: Optional[Decimal] = Field(default=None, ge=Decimal("0"))
    notes: Optional[str] = None

    def build(self) -> Investment:
        shares = self.shares if self.shares is not None else derive_shares(self.investedValue, self.pricePerShare)
        return Investment(
            id=self.id or make_id(),
            name=self.name.strip(),
            ticker=self.ticker,
            isin=self.isin,
            type=self.type,
            date=self.date,
            pricePerShare=self.pricePerShare,
            investedValue=self.investedValue,
            shares=shares,
            notes=self.notes,
        )


class Goal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str
    targetAmount: Decimal = Field(gt=Decimal("0"))
    currentAmount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))


class GoalCreate(BaseModel):
    id: Optional[str] = None
    title: str = Field(min_length=1, max_length=200)
    targetAmount: Decimal = Field(gt=Decimal("0"))
    currentAmount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))

    def build(self) -> Goal:
        return Goal(
            id=self.id or make_id(),
            title=self.title.strip(),
            targetAmount=self.targetAmount,
            currentAmount=self.currentAmount,
        )


class RecurringAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=make_id)
    title: str = Field(min_length=1, max_length=200)
    type: AlertType = AlertType.other
    dayOfMonth: int = Field(ge=1, le=31)
    amount: Optional[Decimal] = Field(default=None, ge=Decimal("0"))
    active: bool = True
    autoRecord: bool = False


class RecurringSchedule(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=make_id)
    description: str = Field(min_length=1, max_length=500)
    amount: Decimal = Field(gt=Decimal("0"))
    type: TransactionType = TransactionType.expense
    category: str = FALLBACK_CATEGORY
    frequency: Frequency = Frequency.monthly
    startDate: dt.date = Field(default_factory=today)
    dayOfMonth: Optional[int] = Field(default=None, ge=1, le=31)


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    allocationPercentage: int = Field(default=10, ge=1, le=50)
    currency: str = "€"
    userName: str = "Investidor"
    theme: ThemeMode = ThemeMode.auto
    language: Language = Language.pt
    showDashboardCharts: bool = True
    dashboardChartType: ChartType = ChartType.pie
    showInvestmentCharts: bool = True
    investmentChartType: ChartType = ChartType.pie
    alerts: list[RecurringAlert] = Field(default_factory=list)
    recurringSchedules: list[RecurringSchedule] = Field(default_factory=list)


class AppConfigUpdate(BaseModel):
    allocationPercentage: Optional[int] = Field(default=None, ge=1, le=50)
    currency: Optional[str] = Field(default=None, min_length=1, max_length=8)
    userName: Optional[str] = Field(default=None, max_length=120)
    theme: Optional[ThemeMode] = None
    language: Optional[Language] = None
    showDashboardCharts: Optional[bool] = None
    dashboardChartType: Optional[ChartType] = None
    showInvestmentCharts: Optional[bool] = None
    investmentChartType: Optional[ChartType] = None


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: str


class CategoryTotal(BaseModel):
    category: str
    value: Decimal
    percent: Decimal


class GoalProgress(BaseModel):
    id: str
    title: str
    targetAmount: Decimal
    currentAmount: Decimal
    progressPercent: Decimal


class SummaryResponse(BaseModel):
    income: Decimal
    expense: Decimal
    balance: Decimal
    totalInvested: Decimal
    savingsBalance: Decimal
    allocationPercentage: int
    allocationPreview: Decimal
    expenseByCategory: list[CategoryTotal]
    goals: list[GoalProgress]


class AllocationResponse(BaseModel):
    status: str
    amount: Decimal
    message: str
    transaction: Optional[Transaction] = None
    goal: Optional[Goal] = None


class ImportResponse(BaseModel):
    imported: int
    skipped: int
    message: str


class ScheduledOccurrence(BaseModel):
    schedule: RecurringSchedule
    nextDate: dt.date


class RemindersResponse(BaseModel):
    date: dt.date
    alerts: list[RecurringAlert]
    schedules: list[ScheduledOccurrence]


class InsightResponse(BaseModel):
    language: Language
    text: str
