# fintrack/analytics.py

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from . import analytics_utils
from .cache import ANALYTICS_TTL, Cache, analytics_key
from .database import get_db
from .deps import CurrentUser, get_cache, get_current_user, resolve_target_user
from .models import EntryType
from .rate_limit import rate_limit

# all analytics routes are read-only and open to every authenticated role
router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
    dependencies=[Depends(rate_limit("analytics"))],
)


def _cached(cache: Cache, key: str, compute):
    cached = cache.get(key)
    if cached is not None:
        return {"success": True, "data": cached, "cached": True}
    data = compute()
    cache.set(key, data, ANALYTICS_TTL)
    return {"success": True, "data": data}


@router.get("")
def get_analytics(
    period: str = Query("all"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user_id: Optional[int] = Query(None, alias="userId"),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    target_id = resolve_target_user(user, user_id)
    from_date, to_date = analytics_utils.resolve_date_range(period, start_date, end_date)

    key = analytics_key(target_id, "overview", {
        "period": period if not (start_date or end_date) else None,
        "from": from_date,
        "to": to_date,
    })
    return _cached(cache, key, lambda: analytics_utils.get_analytics(db, target_id, from_date, to_date))


@router.get("/spending-by-category")
def spending_by_category(
    type: EntryType = Query(EntryType.EXPENSE),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    from_date, to_date = analytics_utils.resolve_date_range("all", start_date, end_date)
    key = analytics_key(user.id, "by-category", {"type": type, "from": from_date, "to": to_date})
    return _cached(
        cache, key,
        lambda: analytics_utils.get_spending_by_category(db, user.id, type, from_date, to_date),
    )


@router.get("/income-vs-expenses")
def income_vs_expenses(
    group_by: str = Query("month", alias="groupBy"),
    limit: int = Query(12, ge=1, le=120),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    key = analytics_key(user.id, "income-vs-expenses", {"groupBy": group_by, "limit": limit})
    return _cached(
        cache, key,
        lambda: analytics_utils.get_income_vs_expenses(db, user.id, group_by, limit),
    )
