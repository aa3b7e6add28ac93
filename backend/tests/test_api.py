from decimal import Decimal

from fastapi.testclient import TestClient

from fingestor.main import app

client = TestClient(app)


def _post_tx(amount: str, kind: str, category: str = "Outros") -> dict:
    response = client.post(
        "/api/v1/transactions",
        json={"date": "2024-01-15", "description": "entry", "amount": amount, "type": kind, "category": category},
    )
    assert response.status_code == 201
    return response.json()


def test_health() -> None:
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_summary_and_allocation_flow() -> None:
    _post_tx("1000", "income", "Salário")
    _post_tx("200", "expense", "Alimentação")
    goal = client.post("/api/v1/goals", json={"title": "Casa", "targetAmount": "1000", "currentAmount": "950"}).json()

    summary = client.get("/api/v1/summary").json()
    assert Decimal(str(summary["balance"])) == Decimal("800")
    assert Decimal(str(summary["allocationPreview"])) == Decimal("80.00")

    allocated = client.post(f"/api/v1/goals/{goal['id']}/allocate")
    assert allocated.status_code == 200
    body = allocated.json()
    assert body["status"] == "allocated"
    assert Decimal(str(body["amount"])) == Decimal("80.00")
    assert body["transaction"]["category"] == "Poupança Automática"

    summary = client.get("/api/v1/summary").json()
    assert Decimal(str(summary["balance"])) == Decimal("800")
    assert Decimal(str(summary["savingsBalance"])) == Decimal("1030.00")
    assert Decimal(str(summary["goals"][0]["progressPercent"])) == Decimal("100")
    assert [c["category"] for c in summary["expenseByCategory"]] == ["Alimentação", "Poupança Automática"]


def test_allocation_without_balance_and_unknown_goal() -> None:
    goal = client.post("/api/v1/goals", json={"title": "Casa", "targetAmount": "1000"}).json()

    response = client.post(f"/api/v1/goals/{goal['id']}/allocate")
    assert response.status_code == 200
    assert response.json()["status"] == "nothing_to_allocate"
    assert client.get("/api/v1/transactions").json() == []

    assert client.post("/api/v1/goals/missing/allocate").status_code == 404


def test_validation_error_envelope() -> None:
    response = client.post("/api/v1/transactions", json={"description": "x", "amount": "0"})
    assert response.status_code == 422
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"][0]["field"] == "amount"

    response = client.post("/api/v1/goals", json={"title": "Casa", "targetAmount": "0"})
    assert response.status_code == 422


def test_delete_transaction() -> None:
    created = _post_tx("5", "expense")
    assert client.delete(f"/api/v1/transactions/{created['id']}").status_code == 204
    assert client.delete(f"/api/v1/transactions/{created['id']}").status_code == 404


def test_import_statement() -> None:
    content = "Data do movimento;Descrição;Debito;Credito\n01/02/2024;Vazio;0;0\n01/02/2024;Salário;;50\n"
    response = client.post(
        "/api/v1/transactions/import",
        files={"file": ("movimentos.csv", content.encode("utf-8"), "text/csv")},
    )
    assert response.status_code == 200
    assert response.json()["imported"] == 1
    assert response.json()["skipped"] == 1
    assert response.json()["message"] == "Transações importadas!"
    rows = client.get("/api/v1/transactions").json()
    assert rows[0]["type"] == "income"


def test_import_wrong_kind_imports_nothing() -> None:
    content = b"Action,Time,ISIN,No. of shares,Total\nMarket buy,2024-01-15,US0378331005,1,100\n"
    response = client.post(
        "/api/v1/transactions/import",
        files={"file": ("t212.csv", content, "text/csv")},
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "WRONG_FILE_KIND"
    assert "Investimentos" in response.json()["error"]["message"]
    assert client.get("/api/v1/transactions").json() == []

    response = client.post(
        "/api/v1/investments/import",
        files={"file": ("t212.csv", content, "text/csv")},
    )
    assert response.status_code == 200
    assert response.json()["imported"] == 1


def test_exports() -> None:
    _post_tx("12.50", "expense", "Lazer")
    response = client.get("/api/v1/transactions/export.csv")
    assert response.status_code == 200
    assert 'filename="extrato_fingestor.csv"' in response.headers["content-disposition"]
    assert response.text.splitlines()[0] == "id,date,description,amount,type,category"

    response = client.get("/api/v1/investments/export.xlsx")
    assert response.status_code == 200
    assert response.content[:2] == b"PK"


def test_config_merge_and_validation() -> None:
    response = client.put("/api/v1/config", json={"allocationPercentage": 20, "language": "en"})
    assert response.status_code == 200
    assert response.json()["allocationPercentage"] == 20
    assert response.json()["currency"] == "€"

    response = client.put("/api/v1/config", json={"allocationPercentage": 80})
    assert response.status_code == 422
    assert response.json()["error"]["details"][0]["field"] == "allocationPercentage"
    assert client.get("/api/v1/config").json()["allocationPercentage"] == 20


def test_reminders() -> None:
    alert = client.post("/api/v1/config/alerts", json={"title": "Salário", "type": "salary", "dayOfMonth": 31})
    assert alert.status_code == 201
    schedule = client.post(
        "/api/v1/config/schedules",
        json={"description": "Renda", "amount": "650", "frequency": "monthly", "startDate": "2024-01-31"},
    )
    assert schedule.status_code == 201

    body = client.get("/api/v1/reminders", params={"on": "2024-02-29"}).json()
    assert [a["title"] for a in body["alerts"]] == ["Salário"]
    assert body["schedules"][0]["nextDate"] == "2024-02-29"

    assert client.delete(f"/api/v1/config/alerts/{alert.json()['id']}").status_code == 204
    assert client.get("/api/v1/reminders", params={"on": "2024-02-29"}).json()["alerts"] == []


def test_insights_need_transactions() -> None:
    response = client.post("/api/v1/insights")
    assert response.status_code == 200
    assert response.json() == {"language": "pt", "text": "Adiciona algumas transações primeiro!"}
