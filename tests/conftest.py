"""Shared fixtures: an app on a fresh in-memory database per test, plus user helpers."""

from __future__ import annotations

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlmodel import select

from simple_budget.config import Settings
from simple_budget.main import create_app
from simple_budget.models.user import User

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "secret123"


@pytest.fixture
def settings():
    return Settings(
        environment="test",
        database_url="sqlite://",
        jwt_secret="test-secret",
        jwt_algorithm="HS256",
        trial_days=30,
        admin_emails=[ADMIN_EMAIL],
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register(client, email: str, password: str = PASSWORD) -> dict:
    res = client.post("/auth/register", json={"email": email, "password": password})
    assert res.status_code == 201, res.text
    return res.json()


def bearer(client, email: str, password: str = PASSWORD) -> dict:
    res = client.post("/auth/token", data={"username": email, "password": password})
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


def update_user(app, email: str, **fields) -> None:
    """Write subscription fields straight to the database."""
    with app.state.db.session() as session:
        user = session.exec(select(User).where(User.email == email)).one()
        for key, value in fields.items():
            setattr(user, key, value)
        session.add(user)
        session.commit()


def load_user(app, email: str) -> User:
    with app.state.db.session() as session:
        user = session.exec(select(User).where(User.email == email)).one()
        session.expunge(user)
        return user


@pytest.fixture
def user(client):
    """A freshly registered user (in trial) with auth headers."""
    email = "alice@example.com"
    register(client, email)
    return SimpleNamespace(email=email, headers=bearer(client, email))


@pytest.fixture
def free_user(client, app):
    """A user whose trial ended yesterday."""
    email = "bob@example.com"
    register(client, email)
    update_user(app, email, trial_end=datetime.utcnow() - timedelta(days=1))
    return SimpleNamespace(email=email, headers=bearer(client, email))


@pytest.fixture
def budget(client, user):
    res = client.post(
        "/budgets",
        json={"name": "October", "month": 10, "year": 2026, "total_amount": 500},
        headers=user.headers,
    )
    assert res.status_code == 201, res.text
    return res.json()


def add_category(client, headers, budget_id: str, name: str, budgeted: float) -> dict:
    res = client.post(
        "/categories",
        json={"budget_id": budget_id, "name": name, "budgeted": budgeted},
        headers=headers,
    )
    assert res.status_code == 201, res.text
    return res.json()
