from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, condecimal, constr

Amount = condecimal(max_digits=18, decimal_places=2)


class ExpenseIn(BaseModel):
    description: constr(max_length=200)
    amount: Amount
    category: constr(max_length=100)
    date: Optional[datetime] = None
    # Accepted for form compatibility; the access layer always replaces it.
    owner_id: Optional[str] = None


class ExpenseUpdate(ExpenseIn):
    id: int
    date: datetime


class Expense(BaseModel):
    id: int
    description: str
    amount: Decimal
    category: str
    date: datetime
    owner_id: str

    model_config = ConfigDict(from_attributes=True)


class ChartEntry(BaseModel):
    category: str
    total: Decimal
