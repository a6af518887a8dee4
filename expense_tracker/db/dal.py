"""Data Access Layer for expense records.

Responsibilities
----------------
- CRUD helpers for expenses scoped to a user id.
- The read-only query contract consumed by reporting:
  `find_expenses(filter, page, limit) -> (records, total)`.
- Grouped subtotals (by category / by month) kept per original currency so
  reporting can normalize them into any display currency.
"""

from __future__ import annotations

from pathlib import Path
import sqlite3
from typing import Any, Dict, List, Optional, Tuple
from datetime import date

from expense_tracker.models.expense import (
    ExpenseFilter,
    ExpenseIn,
    ExpenseRecord,
    ExpenseUpdateIn,
)

UTC_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"
MAX_PAGE_SIZE = 1000


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _where(flt: ExpenseFilter) -> Tuple[str, List[Any]]:
        clauses = ["user_id = ?"]
        params: List[Any] = [flt.user_id]
        if flt.start_date:
            clauses.append("date >= ?")
            params.append(flt.start_date.isoformat())
        if flt.end_date:
            clauses.append("date <= ?")
            params.append(flt.end_date.isoformat())
        if flt.category and flt.category != "all":
            clauses.append("category = ?")
            params.append(flt.category)
        if flt.search_text:
            like = f"%{flt.search_text.lower()}%"
            clauses.append("(lower(title) LIKE ? OR lower(coalesce(description, '')) LIKE ?)")
            params.extend([like, like])
        return " AND ".join(clauses), params

    # ------------------------------------------------------------------
    # CRUD
    def insert_expense(self, user_id: str, expense: ExpenseIn) -> int:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO expenses (user_id, title, amount, currency, category, description, date)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    expense.title,
                    expense.amount,
                    expense.currency,
                    expense.category,
                    expense.description,
                    expense.date.isoformat(),
                ),
            )
            conn.commit()
            return int(cur.lastrowid)

    def get_expense(self, user_id: str, expense_id: int) -> Optional[ExpenseRecord]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM expenses WHERE id = ? AND user_id = ?",
                (expense_id, user_id),
            )
            row = cur.fetchone()
            return ExpenseRecord.from_row(dict(row)) if row else None

    def update_expense(
        self, user_id: str, expense_id: int, changes: ExpenseUpdateIn
    ) -> bool:
        fields = changes.model_dump(exclude_none=True)
        if "date" in fields:
            fields["date"] = fields["date"].isoformat()
        assignments = ", ".join(f"{k} = ?" for k in fields)
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE expenses SET {assignments}, updated_at = ({UTC_NOW_SQL}) "
                "WHERE id = ? AND user_id = ?",
                (*fields.values(), expense_id, user_id),
            )
            conn.commit()
            return cur.rowcount > 0

    def delete_expense(self, user_id: str, expense_id: int) -> bool:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM expenses WHERE id = ? AND user_id = ?",
                (expense_id, user_id),
            )
            conn.commit()
            return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    def find_expenses(
        self, flt: ExpenseFilter, page: int = 1, limit: int = 10
    ) -> Tuple[List[ExpenseRecord], int]:
        """Return one page of records (newest first) and the unpaged count."""
        page = max(page, 1)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        where, params = self._where(flt)
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT COUNT(*) FROM expenses WHERE {where}", params)
            total = int(cur.fetchone()[0])
            cur.execute(
                f"SELECT * FROM expenses WHERE {where} "
                "ORDER BY date DESC, id DESC LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            )
            records = [ExpenseRecord.from_row(dict(r)) for r in cur.fetchall()]
        return records, total

    def recent_expenses(self, user_id: str, limit: int = 5) -> List[ExpenseRecord]:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM expenses WHERE user_id = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (user_id, limit),
            )
            return [ExpenseRecord.from_row(dict(r)) for r in cur.fetchall()]

    # ------------------------------------------------------------------
    # Aggregations (per original currency; reporting converts them)
    def category_currency_totals(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Rows: category, currency, total (sum of amounts), count."""
        where, params = self._where(
            ExpenseFilter(user_id=user_id, start_date=start_date, end_date=end_date)
        )
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                SELECT category, currency, SUM(amount) AS total, COUNT(*) AS count
                FROM expenses WHERE {where}
                GROUP BY category, currency
                ORDER BY category, currency
                """,
                params,
            )
            return [dict(r) for r in cur.fetchall()]

    def month_currency_totals(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Rows: year, month (1-12), currency, total, count; ascending by month."""
        where, params = self._where(
            ExpenseFilter(user_id=user_id, start_date=start_date, end_date=end_date)
        )
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                SELECT CAST(substr(date, 1, 4) AS INTEGER) AS year,
                       CAST(substr(date, 6, 2) AS INTEGER) AS month,
                       currency, SUM(amount) AS total, COUNT(*) AS count
                FROM expenses WHERE {where}
                GROUP BY year, month, currency
                ORDER BY year, month, currency
                """,
                params,
            )
            return [dict(r) for r in cur.fetchall()]
