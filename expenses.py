"""
Expense access layer.

ExpenseService is the only code that touches the expenses table. Every
operation takes the caller's owner id explicitly and filters by it in the
same statement that selects the row, so a record belonging to somebody else
looks exactly like a record that does not exist.

Each call opens its own session and transaction and returns plain pydantic
models; no session, query or cursor outlives the call.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import AsyncIterator, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import CENTS, ExpenseRecord, utcnow
from exceptions import NotFoundError, StorageError, ValidationError
from logger import get_logger
from schemas import ChartEntry, Expense, ExpenseIn, ExpenseUpdate

# NUMERIC(18, 2) leaves 16 digits before the point.
MAX_WHOLE_DIGITS = 16

log = get_logger(__name__)


def _to_cents(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS)


def _as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _validate(record: ExpenseIn, owner_id: str) -> Decimal:
    """Check the invariants of an incoming record and return its amount."""
    if not owner_id:
        raise ValidationError("An owner id is required.")
    if not (record.description or "").strip():
        raise ValidationError("Description is required.")
    if not (record.category or "").strip():
        raise ValidationError("Category is required.")
    if record.amount is None:
        raise ValidationError("Amount is required.")
    try:
        amount = Decimal(str(record.amount))
    except InvalidOperation:
        raise ValidationError(f"Amount {record.amount!r} is not a number.") from None
    if not amount.is_finite():
        raise ValidationError(f"Amount {record.amount!r} is not a number.")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero.")
    if amount.adjusted() >= MAX_WHOLE_DIGITS:
        raise ValidationError("Amount must have at most 18 digits.")
    if amount.quantize(CENTS) != amount:
        raise ValidationError("Amount must have at most two decimal places.")
    return amount.quantize(CENTS)


def _owned(expense_id: int, owner_id: str) -> tuple:
    """Filter matching one expense only when it belongs to owner_id."""
    return (ExpenseRecord.id == expense_id, ExpenseRecord.owner_id == owner_id)


class ExpenseService:
    """Owner-scoped CRUD and category totals over the expenses table."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session with an open transaction; store failures become StorageError."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OSError) as exc:
            log.error("storage_failed", operation=operation, error=str(exc))
            raise StorageError(f"Could not {operation} expense: {exc}") from exc

    async def add(self, record: ExpenseIn, owner_id: str) -> Expense:
        """
        Persist a new expense owned by owner_id.

        Any owner carried by the record is ignored. The date defaults to now.
        Returns the stored expense with its assigned id.
        """
        amount = _validate(record, owner_id)
        row = ExpenseRecord(
            description=record.description,
            amount=amount,
            category=record.category,
            date=_as_utc(record.date),
            owner_id=owner_id,
        )
        async with self._transaction("add") as session:
            session.add(row)
            await session.flush()
            expense = Expense.model_validate(row)

        log.info("expense_added", expense_id=expense.id, owner_id=owner_id)
        return expense

    async def list_all(self, owner_id: str) -> List[Expense]:
        """All expenses of owner_id, newest first."""
        stmt = (
            select(ExpenseRecord)
            .where(ExpenseRecord.owner_id == owner_id)
            .order_by(ExpenseRecord.date.desc(), ExpenseRecord.id.desc())
        )
        async with self._transaction("list") as session:
            result = await session.execute(stmt)
            return [Expense.model_validate(row) for row in result.scalars().all()]

    async def get_by_id(self, expense_id: int, owner_id: str) -> Expense:
        async with self._transaction("load") as session:
            expense = await self._fetch_owned(session, expense_id, owner_id)
        if expense is None:
            log.debug("expense_not_found", expense_id=expense_id, owner_id=owner_id)
            raise NotFoundError(expense_id)
        return expense

    async def update(self, record: ExpenseUpdate, owner_id: str) -> Expense:
        """
        Replace description, amount, category and date of an owned expense.

        Raises NotFoundError when record.id does not exist or belongs to
        another owner. The id and owner never change.
        """
        amount = _validate(record, owner_id)
        stmt = (
            update(ExpenseRecord)
            .where(*_owned(record.id, owner_id))
            .values(
                description=record.description,
                amount=amount,
                category=record.category,
                date=_as_utc(record.date),
            )
            .execution_options(synchronize_session=False)
        )
        async with self._transaction("update") as session:
            result = await session.execute(stmt)
            expense = None
            if result.rowcount:
                expense = await self._fetch_owned(session, record.id, owner_id)

        if expense is None:
            log.debug("expense_not_found", expense_id=record.id, owner_id=owner_id)
            raise NotFoundError(record.id)
        log.info("expense_updated", expense_id=record.id, owner_id=owner_id)
        return expense

    async def delete(self, expense_id: int, owner_id: str) -> None:
        """Delete an owned expense. Missing or foreign ids are a no-op."""
        stmt = delete(ExpenseRecord).where(*_owned(expense_id, owner_id))
        async with self._transaction("delete") as session:
            result = await session.execute(stmt)
        log.debug(
            "expense_deleted",
            expense_id=expense_id,
            owner_id=owner_id,
            deleted=bool(result.rowcount),
        )

    async def aggregate(self, owner_id: str) -> List[ChartEntry]:
        """Total amount per category for owner_id, ordered by category."""
        total = func.sum(ExpenseRecord.amount).label("total")
        stmt = (
            select(ExpenseRecord.category, total)
            .where(ExpenseRecord.owner_id == owner_id)
            .group_by(ExpenseRecord.category)
            .order_by(ExpenseRecord.category)
        )
        async with self._transaction("aggregate") as session:
            rows = (await session.execute(stmt)).all()
        return [
            ChartEntry(category=category, total=_to_cents(amount))
            for category, amount in rows
        ]

    @staticmethod
    async def _fetch_owned(
        session: AsyncSession, expense_id: int, owner_id: str
    ) -> Optional[Expense]:
        result = await session.execute(
            select(ExpenseRecord).where(*_owned(expense_id, owner_id))
        )
        row = result.scalar_one_or_none()
        return Expense.model_validate(row) if row is not None else None
