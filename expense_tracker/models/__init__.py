"""Pydantic domain models for the Expense Tracker."""

from .constants import (
    CURRENCIES,
    CURRENCY_INFO,
    CATEGORIES,
)  # re-export
from .expense import ExpenseFilter, ExpenseIn, ExpenseRecord, ExpenseUpdateIn

__all__ = [
    "CURRENCIES",
    "CURRENCY_INFO",
    "CATEGORIES",
    "ExpenseFilter",
    "ExpenseIn",
    "ExpenseRecord",
    "ExpenseUpdateIn",
]
