"""Default currency preference."""

from __future__ import annotations


def test_currency_defaults_to_registration_value(client, user):
    res = client.get("/users/currency", headers=user.headers)
    assert res.status_code == 200
    assert res.json() == {"currency": "CAD"}


def test_update_currency_applies_to_new_budgets(client, user, budget):
    res = client.put("/users/currency", json={"currency": "usd"}, headers=user.headers)
    assert res.status_code == 200
    assert res.json() == {"currency": "USD"}
    assert client.get("/auth/me", headers=user.headers).json()["default_currency"] == "USD"

    new = client.post(
        "/budgets",
        json={"name": "November", "month": 11, "year": 2026, "total_amount": 100},
        headers=user.headers,
    ).json()
    assert new["currency"] == "USD"
    assert client.get(f"/budgets/{budget['id']}", headers=user.headers).json()["currency"] == "CAD"


def test_update_currency_rejects_unsupported(client, user):
    res = client.put("/users/currency", json={"currency": "EUR"}, headers=user.headers)
    assert res.status_code == 400
    assert client.put("/users/currency", json={}, headers=user.headers).status_code == 422
    assert client.get("/users/currency").status_code == 401
