from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from ..config import get_settings
from ..models.expense import ExpenseCategory
from ..schemas import CategoryTotalRead, ExpenseCreate, ExpenseRead, ExpenseRecorded, ReportRead
from ..services import InvalidPeriod, build_report, category_totals, list_expenses, record_expense, resolve
from .dependencies import ExistingUser, LedgerDep, SessionDep, local_now

router = APIRouter()


def _day_bounds(
    start: Optional[date], end: Optional[date]
) -> tuple[Optional[datetime], Optional[datetime]]:
    """Whole-day bounds in the configured zone; both ends inclusive."""
    tz = get_settings().tzinfo
    start_at = datetime.combine(start, time.min, tzinfo=tz) if start else None
    end_at = datetime.combine(end, time.max, tzinfo=tz) if end else None
    return start_at, end_at


@router.post(
    "/{user_id}/expenses",
    response_model=ExpenseRecorded,
    status_code=status.HTTP_201_CREATED,
)
async def create_expense_endpoint(
    user_id: int,
    payload: ExpenseCreate,
    session: SessionDep,
) -> ExpenseRecorded:
    expense, user = await record_expense(
        session, user_id, payload.amount, payload.category, payload.description
    )
    return ExpenseRecorded(expense=ExpenseRead.model_validate(expense), balance=user.balance)


@router.get("/{user_id}/expenses", response_model=list[ExpenseRead])
async def list_expenses_endpoint(
    user_id: int,
    user: ExistingUser,
    session: SessionDep,
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
    category: Optional[ExpenseCategory] = Query(default=None),
) -> list[ExpenseRead]:
    start_at, end_at = _day_bounds(start, end)
    expenses = await list_expenses(session, user_id, start=start_at, end=end_at, category=category)
    return [ExpenseRead.model_validate(expense) for expense in expenses]


@router.get("/{user_id}/categories/totals", response_model=list[CategoryTotalRead])
async def category_totals_endpoint(
    user_id: int,
    user: ExistingUser,
    session: SessionDep,
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
) -> list[CategoryTotalRead]:
    start_at, end_at = _day_bounds(start, end)
    totals = await category_totals(session, user_id, start=start_at, end=end_at)
    return [CategoryTotalRead(category=category, total=total) for category, total in totals]


@router.get("/{user_id}/reports", response_model=ReportRead)
async def report_endpoint(
    user_id: int,
    user: ExistingUser,
    ledger: LedgerDep,
    period: Optional[str] = Query(default=None, max_length=64),
    category: Optional[ExpenseCategory] = Query(default=None),
) -> ReportRead:
    date_range = None
    if period:
        try:
            date_range = resolve(period, local_now())
        except InvalidPeriod as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    report = await build_report(ledger, user_id, date_range, category)
    return ReportRead.from_report(report)
