"""Errors raised by the expense access layer."""


class ExpenseError(Exception):
    """Base class for expense access errors."""


class ValidationError(ExpenseError, ValueError):
    """Input breaks an expense invariant. Nothing was written."""


class NotFoundError(ExpenseError, LookupError):
    """No expense with this id exists for the calling owner."""

    def __init__(self, expense_id: int):
        super().__init__(f"Expense {expense_id} not found")
        self.expense_id = expense_id


class StorageError(ExpenseError):
    """The record store failed or rejected the operation."""
