import datetime as dt
import logging
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Request, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import aggregates
from .config import configure_logging
from .exporters import (
    CSV_MEDIA_TYPE,
    INVESTMENTS_CSV_FILENAME,
    INVESTMENTS_XLSX_FILENAME,
    TRANSACTIONS_CSV_FILENAME,
    TRANSACTIONS_XLSX_FILENAME,
    XLSX_MEDIA_TYPE,
    export_investments_csv,
    export_investments_xlsx,
    export_transactions_csv,
    export_transactions_xlsx,
)
from .i18n import t
from .importers import ImportFileError, parse_investments_file, parse_transactions_file
from .ledger import AllocationStatus, Ledger, NotFoundError
from .persistence import StorageService
from .schemas import (
    AllocationResponse,
    ApiErrorDetail,
    ApiErrorPayload,
    ApiErrorResponse,
    AppConfig,
    AppConfigUpdate,
    Goal,
    GoalCreate,
    HealthResponse,
    ImportResponse,
    InsightResponse,
    Investment,
    InvestmentCreate,
    RecurringAlert,
    RecurringSchedule,
    RemindersResponse,
    ScheduledOccurrence,
    SummaryResponse,
    Transaction,
    TransactionCreate,
)
from .services.insights import InsightsService
from .services.recurring import due_alerts, next_occurrence
from .store import get_store

logger = logging.getLogger(__name__)

app = FastAPI(
    title="FinGestor API",
    version="0.1.0",
    description="Local API for transactions, investments, savings goals and spreadsheet import/export.",
)

ledger = Ledger(StorageService(get_store())).load()
insights = InsightsService.from_settings()


def build_error_response(
    details: list[ApiErrorDetail],
    message: str = "Invalid request payload",
    code: str = "VALIDATION_ERROR",
) -> JSONResponse:
    payload = ApiErrorResponse(error=ApiErrorPayload(code=code, message=message, details=details))
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details: list[ApiErrorDetail] = []
    for err in exc.errors():
        loc = ".".join(str(item) for item in err.get("loc", []) if item != "body")
        details.append(ApiErrorDetail(field=loc or "body", message=err.get("msg", "validation error")))
    return build_error_response(details)


@app.exception_handler(ValueError)
async def value_error_exception_handler(request: Request, exc: ValueError) -> JSONResponse:
    return build_error_response([ApiErrorDetail(field="body", message=str(exc))])


@app.exception_handler(ImportFileError)
async def import_error_exception_handler(request: Request, exc: ImportFileError) -> JSONResponse:
    logger.info("Rejected import: %s", exc)
    return build_error_response(
        [ApiErrorDetail(field="file", message=str(exc))],
        message=t(exc.message_key, ledger.config.language),
        code=exc.code,
    )


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()


def _download(content: bytes, media_type: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/v1/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok")


@app.get("/api/v1/transactions", response_model=list[Transaction])
async def list_transactions() -> list[Transaction]:
    return list(ledger.transactions)


@app.post("/api/v1/transactions", response_model=Transaction, status_code=201)
async def create_transaction(payload: TransactionCreate) -> Transaction:
    return ledger.add_transaction(payload.build())


@app.delete("/api/v1/transactions/{transaction_id}", status_code=204)
async def delete_transaction(transaction_id: str) -> Response:
    ledger.delete_transaction(transaction_id)
    return Response(status_code=204)


@app.post("/api/v1/transactions/import", response_model=ImportResponse)
async def import_transactions(file: UploadFile = File(...)) -> ImportResponse:
    content = await file.read()
    lang = ledger.config.language
    result = await run_in_threadpool(parse_transactions_file, content, file.filename or "", lang)
    imported = ledger.import_transactions(result.items)
    return ImportResponse(imported=imported, skipped=result.skipped, message=t("transactionsImported", lang))


@app.get("/api/v1/transactions/export.csv")
async def export_transactions_as_csv() -> Response:
    return _download(export_transactions_csv(ledger.transactions), CSV_MEDIA_TYPE, TRANSACTIONS_CSV_FILENAME)


@app.get("/api/v1/transactions/export.xlsx")
async def export_transactions_as_xlsx() -> Response:
    return _download(export_transactions_xlsx(ledger.transactions), XLSX_MEDIA_TYPE, TRANSACTIONS_XLSX_FILENAME)


@app.get("/api/v1/investments", response_model=list[Investment])
async def list_investments() -> list[Investment]:
    return list(ledger.investments)


@app.post("/api/v1/investments", response_model=Investment, status_code=201)
async def create_investment(payload: InvestmentCreate) -> Investment:
    return ledger.add_investment(payload.build())


@app.delete("/api/v1/investments/{investment_id}", status_code=204)
async def delete_investment(investment_id: str) -> Response:
    ledger.delete_investment(investment_id)
    return Response(status_code=204)


@app.post("/api/v1/investments/import", response_model=ImportResponse)
async def import_investments(file: UploadFile = File(...)) -> ImportResponse:
    content = await file.read()
    lang = ledger.config.language
    result = await run_in_threadpool(parse_investments_file, content, file.filename or "", lang)
    imported = ledger.import_investments(result.items)
    return ImportResponse(imported=imported, skipped=result.skipped, message=t("investmentsImported", lang))


@app.get("/api/v1/investments/export.csv")
async def export_investments_as_csv() -> Response:
    return _download(export_investments_csv(ledger.investments), CSV_MEDIA_TYPE, INVESTMENTS_CSV_FILENAME)


@app.get("/api/v1/investments/export.xlsx")
async def export_investments_as_xlsx() -> Response:
    return _download(export_investments_xlsx(ledger.investments), XLSX_MEDIA_TYPE, INVESTMENTS_XLSX_FILENAME)


@app.get("/api/v1/goals", response_model=list[Goal])
async def list_goals() -> list[Goal]:
    return list(ledger.goals)


@app.post("/api/v1/goals", response_model=Goal, status_code=201)
async def create_goal(payload: GoalCreate) -> Goal:
    return ledger.add_goal(payload.build())


@app.delete("/api/v1/goals/{goal_id}", status_code=204)
async def delete_goal(goal_id: str) -> Response:
    ledger.delete_goal(goal_id)
    return Response(status_code=204)


@app.post("/api/v1/goals/{goal_id}/allocate", response_model=AllocationResponse)
async def allocate_to_goal(goal_id: str) -> AllocationResponse:
    result = ledger.allocate_to_goal(goal_id)
    lang = ledger.config.language
    if result.status == AllocationStatus.goal_not_found:
        raise HTTPException(status_code=404, detail=t("goalNotFound", lang))
    message_key = "allocated" if result.status == AllocationStatus.allocated else "nothingToAllocate"
    return AllocationResponse(
        status=result.status.value,
        amount=result.amount,
        message=t(message_key, lang),
        transaction=result.transaction,
        goal=result.goal,
    )


@app.get("/api/v1/config", response_model=AppConfig)
async def get_config() -> AppConfig:
    return ledger.config


@app.put("/api/v1/config", response_model=AppConfig)
async def update_config(payload: AppConfigUpdate) -> AppConfig:
    return ledger.update_config(payload)


@app.post("/api/v1/config/alerts", response_model=RecurringAlert, status_code=201)
async def create_alert(payload: RecurringAlert) -> RecurringAlert:
    return ledger.add_alert(payload)


@app.delete("/api/v1/config/alerts/{alert_id}", status_code=204)
async def delete_alert(alert_id: str) -> Response:
    ledger.delete_alert(alert_id)
    return Response(status_code=204)


@app.post("/api/v1/config/schedules", response_model=RecurringSchedule, status_code=201)
async def create_schedule(payload: RecurringSchedule) -> RecurringSchedule:
    return ledger.add_recurring_schedule(payload)


@app.delete("/api/v1/config/schedules/{schedule_id}", status_code=204)
async def delete_schedule(schedule_id: str) -> Response:
    ledger.delete_recurring_schedule(schedule_id)
    return Response(status_code=204)


@app.get("/api/v1/reminders", response_model=RemindersResponse)
async def reminders(on: Optional[dt.date] = None) -> RemindersResponse:
    day = on or dt.date.today()
    return RemindersResponse(
        date=day,
        alerts=due_alerts(ledger.config.alerts, day),
        schedules=[
            ScheduledOccurrence(schedule=s, nextDate=next_occurrence(s, day - dt.timedelta(days=1)))
            for s in ledger.config.recurringSchedules
        ],
    )


@app.get("/api/v1/summary", response_model=SummaryResponse)
async def summary() -> SummaryResponse:
    transactions = ledger.transactions
    return SummaryResponse(
        income=aggregates.income_total(transactions),
        expense=aggregates.expense_total(transactions),
        balance=aggregates.balance(transactions),
        totalInvested=aggregates.total_invested(ledger.investments),
        savingsBalance=aggregates.savings_balance(ledger.goals),
        allocationPercentage=ledger.config.allocationPercentage,
        allocationPreview=aggregates.allocation_amount(transactions, ledger.config.allocationPercentage),
        expenseByCategory=aggregates.category_chart(transactions),
        goals=aggregates.goal_progress(ledger.goals),
    )


@app.post("/api/v1/insights", response_model=InsightResponse)
async def generate_insights() -> InsightResponse:
    lang = ledger.config.language
    text = await insights.analyze(
        list(ledger.transactions),
        list(ledger.investments),
        ledger.config.currency,
        lang,
    )
    return InsightResponse(language=lang, text=text)
