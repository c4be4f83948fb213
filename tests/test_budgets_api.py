"""Budget endpoints: creation, reconciliation on category changes, sync, reset."""

from __future__ import annotations

from conftest import add_category, bearer, register


def _budget(client, headers, budget_id):
    res = client.get(f"/budgets/{budget_id}", headers=headers)
    assert res.status_code == 200
    return res.json()


def test_create_budget_starts_fully_available(client, user, budget):
    assert budget["total_budgeted"] == 0
    assert budget["total_available"] == 500
    res = client.get("/budgets", headers=user.headers)
    assert [b["id"] for b in res.json()] == [budget["id"]]


def test_categories_move_money_out_of_available(client, user, budget):
    add_category(client, user.headers, budget["id"], "Rent", 300)
    food = add_category(client, user.headers, budget["id"], "Food", 150)

    b = _budget(client, user.headers, budget["id"])
    assert b["total_budgeted"] == 450
    assert b["total_available"] == 50

    res = client.patch(f"/categories/{food['id']}", json={"budgeted": 100}, headers=user.headers)
    assert res.status_code == 200
    b = _budget(client, user.headers, budget["id"])
    assert (b["total_budgeted"], b["total_available"]) == (400, 100)

    res = client.delete(f"/categories/{food['id']}", headers=user.headers)
    assert res.status_code == 204
    b = _budget(client, user.headers, budget["id"])
    assert (b["total_budgeted"], b["total_available"]) == (300, 200)


def test_over_allocation_floors_available(client, user, budget):
    add_category(client, user.headers, budget["id"], "Everything", 650)
    b = _budget(client, user.headers, budget["id"])
    assert b["total_budgeted"] == 650
    assert b["total_available"] == 0


def test_setting_income_reconciles_against_new_pool(client, user, budget):
    add_category(client, user.headers, budget["id"], "Rent", 300)
    res = client.patch(f"/budgets/{budget['id']}", json={"total_amount": 1000}, headers=user.headers)
    assert res.status_code == 200
    assert res.json()["total_budgeted"] == 300
    assert res.json()["total_available"] == 700


def test_negative_category_rejected(client, user, budget):
    res = client.post(
        "/categories",
        json={"budget_id": budget["id"], "name": "Bad", "budgeted": -5},
        headers=user.headers,
    )
    assert res.status_code == 400
    assert _budget(client, user.headers, budget["id"])["total_available"] == 500


def test_sync_recomputes_totals(client, user, budget):
    add_category(client, user.headers, budget["id"], "Rent", 200)
    add_category(client, user.headers, budget["id"], "Fun", 50)

    res = client.post("/budgets/sync", headers=user.headers)
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Budget totals synced successfully"
    assert body["total_budgeted"] == 250
    assert body["budget"]["total_available"] == 250
    assert {c["name"] for c in body["categories"]} == {"Rent", "Fun"}

    # Idempotent
    again = client.post("/budgets/sync", headers=user.headers).json()
    assert again["budget"]["total_available"] == 250


def test_sync_without_budget_is_not_found(client, user):
    res = client.post("/budgets/sync", headers=user.headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Budget not found"


def test_sync_requires_auth(client):
    assert client.post("/budgets/sync").status_code == 401


def test_reset_clears_spending_and_keeps_allocations(client, user, budget):
    rent = add_category(client, user.headers, budget["id"], "Rent", 300)
    client.post(
        "/expenses",
        json={"amount": 120, "description": "October rent", "category_id": rent["id"]},
        headers=user.headers,
    )

    res = client.post("/budgets/reset", headers=user.headers)
    assert res.status_code == 200
    body = res.json()
    saved = body["saved_data"]
    assert body["monthly_budget_id"]
    assert saved["expenses_count"] == 1
    assert saved["total_spent"] == 120
    assert saved["total_budgeted"] == 300
    assert saved["categories"] == [{"name": "Rent", "budgeted": 300, "spent": 120}]

    cats = client.get("/categories", params={"budget_id": budget["id"]}, headers=user.headers).json()
    assert cats[0]["spent"] == 0
    assert client.get("/expenses", headers=user.headers).json() == []
    b = _budget(client, user.headers, budget["id"])
    assert (b["total_budgeted"], b["total_available"]) == (300, 200)


def test_budgets_are_private(client, user, budget):
    register(client, "eve@example.com")
    other = bearer(client, "eve@example.com")
    assert client.get(f"/budgets/{budget['id']}", headers=other).status_code == 404
    assert client.delete(f"/budgets/{budget['id']}", headers=other).status_code == 404
    res = client.post(
        "/categories",
        json={"budget_id": budget["id"], "name": "Sneaky", "budgeted": 1},
        headers=other,
    )
    assert res.status_code == 404


def test_delete_budget(client, user, budget):
    add_category(client, user.headers, budget["id"], "Rent", 300)
    assert client.delete(f"/budgets/{budget['id']}", headers=user.headers).status_code == 204
    assert client.get(f"/budgets/{budget['id']}", headers=user.headers).status_code == 404


def test_expired_trial_cannot_write(client, free_user):
    res = client.post(
        "/budgets",
        json={"month": 10, "year": 2026, "total_amount": 100},
        headers=free_user.headers,
    )
    assert res.status_code == 403
    assert "expired" in res.json()["detail"]
    # Reading is still allowed
    assert client.get("/budgets", headers=free_user.headers).status_code == 200


def test_reset_saves_monthly_history(client, user, budget):
    rent = add_category(client, user.headers, budget["id"], "Rent", 300)
    client.post(
        "/expenses",
        json={"amount": 120, "description": "October rent", "category_id": rent["id"]},
        headers=user.headers,
    )
    client.post(
        "/expenses",
        json={"amount": 200, "description": "Refund", "type": "income"},
        headers=user.headers,
    )
    snapshot_id = client.post("/budgets/reset", headers=user.headers).json()["monthly_budget_id"]

    history = client.get("/monthly-budgets", headers=user.headers).json()
    assert [h["id"] for h in history] == [snapshot_id]
    snapshot = client.get(f"/monthly-budgets/{snapshot_id}", headers=user.headers).json()
    assert snapshot["budget_id"] == budget["id"]
    assert (snapshot["month"], snapshot["year"]) == (10, 2026)
    assert snapshot["categories"] == [{"name": "Rent", "budgeted": 300, "spent": 120}]
    assert snapshot["total_budgeted"] == 300
    # Net of income
    assert snapshot["total_spent"] == -80
    assert snapshot["expenses_count"] == 2

    # History survives the budget it was taken from
    client.delete(f"/budgets/{budget['id']}", headers=user.headers)
    assert client.get(f"/monthly-budgets/{snapshot_id}", headers=user.headers).status_code == 200

    register(client, "eve@example.com")
    other = bearer(client, "eve@example.com")
    assert client.get("/monthly-budgets", headers=other).json() == []
    assert client.get(f"/monthly-budgets/{snapshot_id}", headers=other).status_code == 404
    assert client.delete(f"/monthly-budgets/{snapshot_id}", headers=other).status_code == 404

    assert client.delete(f"/monthly-budgets/{snapshot_id}", headers=user.headers).status_code == 204
    assert client.get("/monthly-budgets", headers=user.headers).json() == []
