from __future__ import annotations
from dataclasses import dataclass
from datetime import date as date_type, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import CATEGORIES, CURRENCIES


def _check_currency(v: str) -> str:
    v = v.strip().upper()
    if v not in CURRENCIES:
        raise ValueError("unsupported currency")
    return v


def _check_category(v: str) -> str:
    v = v.strip().lower()
    if v not in CATEGORIES:
        raise ValueError("unsupported category")
    return v


class ExpenseIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., gt=0)
    currency: str = "USD"
    category: str
    description: Optional[str] = Field(None, max_length=500)
    date: date_type = Field(default_factory=date_type.today)

    @field_validator("currency")
    @classmethod
    def valid_currency(cls, v: str) -> str:
        return _check_currency(v)

    @field_validator("category")
    @classmethod
    def valid_category(cls, v: str) -> str:
        return _check_category(v)

    @field_validator("date")
    @classmethod
    def date_not_future(cls, v: date_type) -> date_type:
        if v > date_type.today():
            raise ValueError("date cannot be in the future")
        return v


class ExpenseUpdateIn(BaseModel):
    """Partial update; at least one field must be provided."""

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    amount: Optional[float] = Field(None, gt=0)
    currency: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    date: Optional[date_type] = None

    @field_validator("currency")
    @classmethod
    def valid_currency(cls, v: Optional[str]) -> Optional[str]:
        return _check_currency(v) if v is not None else v

    @field_validator("category")
    @classmethod
    def valid_category(cls, v: Optional[str]) -> Optional[str]:
        return _check_category(v) if v is not None else v

    @field_validator("date")
    @classmethod
    def date_not_future(cls, v: Optional[date_type]) -> Optional[date_type]:
        if v is not None and v > date_type.today():
            raise ValueError("date cannot be in the future")
        return v

    @model_validator(mode="after")
    def at_least_one(self) -> "ExpenseUpdateIn":
        if not self.model_dump(exclude_none=True):
            raise ValueError("at least one field must be provided for update")
        return self


class ExpenseRecord(BaseModel):
    """Stored expense as read back from the persistence layer."""

    model_config = ConfigDict(frozen=True)

    id: int
    user_id: str
    title: str
    amount: float
    currency: str
    category: str
    description: Optional[str] = None
    date: date_type
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ExpenseRecord":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            amount=row["amount"],
            currency=row["currency"],
            category=row["category"],
            description=row.get("description"),
            date=datetime.strptime(row["date"], "%Y-%m-%d").date(),
            created_at=datetime.fromisoformat(row["created_at"].replace("Z", "")),
            updated_at=datetime.fromisoformat(row["updated_at"].replace("Z", "")),
        )


@dataclass(frozen=True)
class ExpenseFilter:
    user_id: str
    start_date: Optional[date_type] = None
    end_date: Optional[date_type] = None
    category: Optional[str] = None
    search_text: Optional[str] = None
