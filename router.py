from fastapi import APIRouter, Depends, HTTPException, Response, status

from auth import get_current_owner
from database import SessionLocal
from expenses import ExpenseService
from schemas import ChartEntry, Expense, ExpenseIn, ExpenseUpdate

router = APIRouter()


def get_expense_service() -> ExpenseService:
    return ExpenseService(SessionLocal)


@router.get("/expenses", response_model=list[Expense])
async def list_expenses(
    service: ExpenseService = Depends(get_expense_service),
    owner_id: str = Depends(get_current_owner),
):
    return await service.list_all(owner_id)


@router.post("/expenses", response_model=Expense, status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense: ExpenseIn,
    service: ExpenseService = Depends(get_expense_service),
    owner_id: str = Depends(get_current_owner),
):
    return await service.add(expense, owner_id)


# Declared before /expenses/{expense_id} so "chart" is not parsed as an id.
@router.get("/expenses/chart", response_model=list[ChartEntry])
async def get_chart(
    service: ExpenseService = Depends(get_expense_service),
    owner_id: str = Depends(get_current_owner),
):
    return await service.aggregate(owner_id)


@router.get("/expenses/{expense_id}", response_model=Expense)
async def get_expense(
    expense_id: int,
    service: ExpenseService = Depends(get_expense_service),
    owner_id: str = Depends(get_current_owner),
):
    return await service.get_by_id(expense_id, owner_id)


@router.put("/expenses/{expense_id}", response_model=Expense)
async def update_expense(
    expense_id: int,
    expense: ExpenseUpdate,
    service: ExpenseService = Depends(get_expense_service),
    owner_id: str = Depends(get_current_owner),
):
    if expense.id != expense_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Expense id in path and body do not match",
        )
    return await service.update(expense, owner_id)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: int,
    service: ExpenseService = Depends(get_expense_service),
    owner_id: str = Depends(get_current_owner),
):
    await service.delete(expense_id, owner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
