"""
Pytest configuration for the finance tracker.

Provides fixtures for:
- A fresh SQLite database per test (file-backed, under tmp_path)
- An ExpenseService bound to it
- An HTTP client against the FastAPI app with the service injected
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from auth import create_access_token
from database import create_engine, create_session_factory, init_db
from expenses import ExpenseService
from main import app
from router import get_expense_service
from schemas import ExpenseIn


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'expenses.db'}")
    await init_db(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def service(engine) -> ExpenseService:
    return ExpenseService(create_session_factory(engine))


@pytest_asyncio.fixture
async def client(service):
    app.dependency_overrides[get_expense_service] = lambda: service
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def auth_headers(owner_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(owner_id)}"}


def make_expense(
    description: str = "Groceries",
    amount: str = "12.50",
    category: str = "Food",
    date: datetime | None = None,
) -> ExpenseIn:
    return ExpenseIn(
        description=description,
        amount=Decimal(amount),
        category=category,
        date=date,
    )


def at(day: int) -> datetime:
    return datetime(2025, 10, day, 12, 0, tzinfo=timezone.utc)
