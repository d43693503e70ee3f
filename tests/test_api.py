from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from database.database import Base, engine, init_db
from main import app


@pytest.fixture
def client():
    Base.metadata.drop_all(bind=engine)
    init_db()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def headers(client):
    response = client.post("/api/users", json={"name": "Alice", "email": "alice@example.com"})
    assert response.status_code == 201
    return {"X-User-Id": str(response.json()["user"]["id"])}


@pytest.fixture
def categories(client):
    response = client.post("/api/categories/seed")
    assert response.status_code == 200
    return {c["name"]: c for c in response.json()["categories"]}


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["message"] == "SmartWallet API is running!"


def test_seed_is_idempotent(client, categories):
    assert len(categories) == 12
    response = client.post("/api/categories/seed")
    assert response.json()["categories"] == []

    income = client.get("/api/categories", params={"type": "income"}).json()["categories"]
    assert [c["name"] for c in income] == ["Freelance", "Investment", "Other Income", "Salary"]


def test_duplicate_email_is_rejected(client, headers):
    response = client.post("/api/users", json={"name": "Alice", "email": "ALICE@example.com"})
    assert response.status_code == 409


def test_unknown_user_is_unauthorized(client):
    response = client.get("/api/budgets", headers={"X-User-Id": "999"})
    assert response.status_code == 401


def test_transaction_crud_and_summary(client, headers, categories):
    food = categories["Food"]["id"]
    salary = categories["Salary"]["id"]

    created = client.post("/api/transactions", headers=headers, json={
        "amount": 42.5, "type": "expense", "category_id": food, "description": "Lunch"
    })
    assert created.status_code == 201
    client.post("/api/transactions", headers=headers, json={
        "amount": 2000, "type": "income", "category_id": salary
    })
    transaction_id = created.json()["transaction"]["id"]

    updated = client.put(f"/api/transactions/{transaction_id}", headers=headers, json={"amount": 57.5})
    assert updated.json()["transaction"]["amount"] == 57.5

    summary = client.get("/api/transactions/summary", headers=headers).json()["summary"]
    assert summary["total_income"] == 2000
    assert summary["total_expenses"] == 57.5
    assert summary["balance"] == 1942.5
    assert summary["expenses_by_category"][0]["category_name"] == "Food"

    expenses = client.get("/api/transactions", headers=headers, params={"type": "expense"}).json()
    assert len(expenses["transactions"]) == 1

    assert client.delete(f"/api/transactions/{transaction_id}", headers=headers).status_code == 200
    assert client.get(f"/api/transactions/{transaction_id}", headers=headers).status_code == 404


def test_transaction_with_unknown_category(client, headers):
    response = client.post("/api/transactions", headers=headers, json={
        "amount": 10, "type": "expense", "category_id": 12345
    })
    assert response.status_code == 400


def test_budget_lifecycle(client, headers, categories):
    food = categories["Food"]["id"]

    created = client.post("/api/budgets", headers=headers, json={"category_id": food, "amount": 100})
    assert created.status_code == 201
    assert created.json()["budget"]["alert_threshold"] == 0.8

    duplicate = client.post("/api/budgets", headers=headers, json={"category_id": food, "amount": 50})
    assert duplicate.status_code == 400

    income = client.post("/api/budgets", headers=headers, json={
        "category_id": categories["Salary"]["id"], "amount": 50
    })
    assert income.status_code == 400
    assert income.json()["detail"] == "Budgets can only be set for expense categories."

    client.post("/api/transactions", headers=headers, json={"amount": 90, "type": "expense", "category_id": food})

    [budget] = client.get("/api/budgets", headers=headers).json()["budgets"]
    assert budget["spent"] == 90
    assert budget["status"] == "warning"
    assert budget["category"]["name"] == "Food"

    [alert] = client.get("/api/budgets/alerts", headers=headers).json()["alerts"]
    assert alert["message"] == "You've used 90% of your Food budget"

    budget_id = budget["id"]
    updated = client.put(f"/api/budgets/{budget_id}", headers=headers, json={"amount": 80})
    assert updated.status_code == 200
    assert client.get(f"/api/budgets/{budget_id}", headers=headers).json()["budget"]["status"] == "exceeded"

    assert client.delete(f"/api/budgets/{budget_id}", headers=headers).status_code == 200
    assert client.get(f"/api/budgets/{budget_id}", headers=headers).status_code == 404


def test_invalid_period_is_rejected(client, headers, categories):
    response = client.post("/api/budgets", headers=headers, json={
        "category_id": categories["Food"]["id"], "amount": 100, "period": "quarterly"
    })
    assert response.status_code == 422


def test_recurring_process_and_skip(client, headers, categories):
    start = datetime.now() - timedelta(days=2)
    created = client.post("/api/recurring", headers=headers, json={
        "amount": 9.99,
        "type": "expense",
        "category_id": categories["Entertainment"]["id"],
        "description": "Streaming",
        "frequency": "daily",
        "start_date": start.isoformat()
    })
    assert created.status_code == 201
    recurring_id = created.json()["recurring"]["id"]

    processed = client.post("/api/recurring/process", headers=headers).json()
    assert processed["processed_count"] == 1
    assert processed["generated_count"] == 3
    assert processed["transactions"][0]["description"] == "Streaming (Recurring)"

    again = client.post("/api/recurring/process", headers=headers).json()
    assert again["generated_count"] == 0

    upcoming = client.get("/api/recurring/upcoming", headers=headers).json()["recurring"]
    assert [r["id"] for r in upcoming] == [recurring_id]

    before = client.get(f"/api/recurring/{recurring_id}", headers=headers).json()["recurring"]["next_date"]
    skipped = client.post(f"/api/recurring/{recurring_id}/skip", headers=headers)
    assert skipped.status_code == 200
    after = skipped.json()["recurring"]["next_date"]
    assert datetime.fromisoformat(after) - datetime.fromisoformat(before) == timedelta(days=1)


def test_skip_unknown_recurring(client, headers):
    response = client.post("/api/recurring/4242/skip", headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Recurring transaction not found."


def test_recurring_with_invalid_frequency(client, headers, categories):
    response = client.post("/api/recurring", headers=headers, json={
        "amount": 10, "type": "expense", "category_id": categories["Food"]["id"], "frequency": "hourly"
    })
    assert response.status_code == 422


def test_recurring_update_and_delete(client, headers, categories):
    created = client.post("/api/recurring", headers=headers, json={
        "amount": 1200, "type": "expense", "category_id": categories["Bills"]["id"],
        "frequency": "monthly", "start_date": (datetime.now() + timedelta(days=5)).isoformat()
    }).json()["recurring"]

    updated = client.put(f"/api/recurring/{created['id']}", headers=headers, json={"is_active": False})
    assert updated.json()["recurring"]["is_active"] is False
    assert client.get("/api/recurring/upcoming", headers=headers).json()["recurring"] == []

    assert client.delete(f"/api/recurring/{created['id']}", headers=headers).status_code == 200
    assert client.get("/api/recurring", headers=headers).json()["recurring"] == []
