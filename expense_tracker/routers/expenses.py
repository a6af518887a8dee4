from fastapi import APIRouter, Depends, HTTPException, Query
from datetime import date
from typing import Optional

from expense_tracker.core.deps import get_db, get_user_id
from expense_tracker.db.dal import Database
from expense_tracker.models.expense import ExpenseFilter, ExpenseIn, ExpenseUpdateIn

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _load(db: Database, user_id: str, expense_id: int):
    record = db.get_expense(user_id, expense_id)
    if not record:
        raise HTTPException(status_code=404, detail="Expense not found")
    return record


# Routes -----------------------------------------------------------
@router.post("/", status_code=201, summary="Create an expense")
async def create_expense(
    payload: ExpenseIn,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    expense_id = db.insert_expense(user_id, payload)
    return {"success": True, "data": _load(db, user_id, expense_id)}


@router.get("/", summary="List expenses with optional filters")
async def list_expenses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    start_date: Optional[date] = Query(None, description="Filter: start date inclusive"),
    end_date: Optional[date] = Query(None, description="Filter: end date inclusive"),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Case-insensitive title/description match"),
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date cannot be after end_date")
    flt = ExpenseFilter(
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        category=category,
        search_text=search,
    )
    records, total = db.find_expenses(flt, page=page, limit=limit)
    total_pages = -(-total // limit)
    return {
        "success": True,
        "data": {
            "expenses": records,
            "pagination": {
                "current_page": page,
                "total_pages": total_pages,
                "total_expenses": total,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            },
        },
    }


@router.get("/recent/list", summary="Five most recently created expenses")
async def recent_expenses(
    user_id: str = Depends(get_user_id), db: Database = Depends(get_db)
):
    return {"success": True, "data": db.recent_expenses(user_id)}


@router.get("/{expense_id}", summary="Get one expense")
async def get_expense(
    expense_id: int,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    return {"success": True, "data": _load(db, user_id, expense_id)}


@router.put("/{expense_id}", summary="Edit an expense (partial)")
async def update_expense(
    expense_id: int,
    payload: ExpenseUpdateIn,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    if not db.update_expense(user_id, expense_id, payload):
        raise HTTPException(status_code=404, detail="Expense not found")
    return {"success": True, "data": _load(db, user_id, expense_id)}


@router.delete("/{expense_id}", summary="Delete an expense")
async def delete_expense(
    expense_id: int,
    user_id: str = Depends(get_user_id),
    db: Database = Depends(get_db),
):
    if not db.delete_expense(user_id, expense_id):
        raise HTTPException(status_code=404, detail="Expense not found")
    return {"success": True, "message": "Expense deleted successfully"}
