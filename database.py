from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from config import get_settings

CENTS = Decimal("0.01")

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, hands back aware UTC."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Cents(TypeDecorator):
    """Two-place Decimal kept as an integer count of cents."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(Decimal(str(value)).quantize(CENTS).scaleb(2))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-2)


# SQLite has no fixed-point type; everywhere else NUMERIC(18, 2) is exact.
Money = Numeric(18, 2, asdecimal=True).with_variant(Cents(), "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExpenseRecord(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        Index("ix_expenses_owner_id_date", "owner_id", "date"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    description = Column(String(200), nullable=False)
    amount = Column(Money, nullable=False)
    category = Column(String(100), nullable=False)
    date = Column(UTCDateTime, nullable=False, default=utcnow)
    owner_id = Column(String(450), nullable=False, index=True)


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(url, echo=echo)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


async def init_db(bind: AsyncEngine) -> None:
    """Create the expenses table and its indexes if missing."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


_settings = get_settings()
engine = create_engine(_settings.database_url, echo=_settings.database_echo)
SessionLocal = create_session_factory(engine)
