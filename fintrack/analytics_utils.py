from datetime import date, timedelta

from sqlalchemy import case, func, literal_column
from sqlalchemy.orm import Session

from .errors import ValidationError
from .models import Category, EntryType, Transaction

PERIODS = ("all", "today", "week", "month", "year")
GROUPINGS = ("day", "week", "month", "year")

_PG_FORMATS = {"day": "YYYY-MM-DD", "week": "IYYY-IW", "month": "YYYY-MM", "year": "YYYY"}
_SQLITE_FORMATS = {"day": "%Y-%m-%d", "week": "%Y-%W", "month": "%Y-%m", "year": "%Y"}


def resolve_date_range(period: str = "all", start_date: date = None, end_date: date = None, today: date = None):
    """Turn a named period or explicit bounds into (from_date, to_date).

    Explicit bounds win over ``period``. Either bound may be None (open).
    """
    if start_date and end_date and start_date > end_date:
        raise ValidationError.for_field("startDate", "startDate must not be after endDate")
    if start_date or end_date:
        return start_date, end_date

    period = (period or "all").lower()
    if period not in PERIODS:
        raise ValidationError.for_field("period", f"period must be one of: {', '.join(PERIODS)}")

    today = today or date.today()
    if period == "today":
        return today, today
    if period == "week":
        return today - timedelta(days=7), None
    if period == "month":
        return today - timedelta(days=30), None
    if period == "year":
        try:
            return today.replace(year=today.year - 1), None
        except ValueError:
            # Feb 29
            return today.replace(year=today.year - 1, day=28), None
    return None, None


def period_label(db: Session, column, grouping: str):
    # formats are inlined so SELECT and GROUP BY render the identical expression
    if db.get_bind().dialect.name == "postgresql":
        return func.to_char(column, literal_column(f"'{_PG_FORMATS[grouping]}'"))
    return func.strftime(literal_column(f"'{_SQLITE_FORMATS[grouping]}'"), column)


def _apply_range(query, from_date, to_date):
    if from_date is not None:
        query = query.filter(Transaction.date >= from_date)
    if to_date is not None:
        query = query.filter(Transaction.date <= to_date)
    return query


def _income_sum():
    return func.coalesce(func.sum(case((Transaction.type == EntryType.INCOME, Transaction.amount), else_=0)), 0)


def _expense_sum():
    return func.coalesce(func.sum(case((Transaction.type == EntryType.EXPENSE, Transaction.amount), else_=0)), 0)


def get_summary(db: Session, user_id: int, from_date=None, to_date=None) -> dict:
    query = db.query(
        _income_sum().label("income"),
        _expense_sum().label("expense"),
        func.count(case((Transaction.type == EntryType.INCOME, 1))).label("income_count"),
        func.count(case((Transaction.type == EntryType.EXPENSE, 1))).label("expense_count"),
    ).filter(Transaction.user_id == user_id)
    row = _apply_range(query, from_date, to_date).one()

    income = float(row.income or 0)
    expense = float(row.expense or 0)
    return {
        "totalIncome": income,
        "totalExpenses": expense,
        "balance": income - expense,
        "incomeCount": int(row.income_count or 0),
        "expenseCount": int(row.expense_count or 0),
    }


def get_category_breakdown(db: Session, user_id: int, from_date=None, to_date=None):
    total = func.sum(Transaction.amount)
    query = db.query(
        Category.name.label("category"),
        Transaction.type,
        total.label("total"),
        func.count(Transaction.id).label("count"),
    ).outerjoin(Category, Transaction.category_id == Category.id).filter(
        Transaction.user_id == user_id
    )
    rows = _apply_range(query, from_date, to_date).group_by(
        Category.name, Transaction.type
    ).order_by(total.desc()).all()

    return [
        {"category": r.category, "type": r.type.value, "total": float(r.total), "count": r.count}
        for r in rows
    ]


def get_monthly_trends(db: Session, user_id: int, from_date=None, to_date=None, limit: int = 12):
    month = period_label(db, Transaction.date, "month").label("month")
    query = db.query(
        month,
        Transaction.type,
        func.sum(Transaction.amount).label("total"),
    ).filter(Transaction.user_id == user_id)
    rows = _apply_range(query, from_date, to_date).group_by(
        month, Transaction.type
    ).order_by(month.desc(), Transaction.type).limit(limit).all()

    return [{"month": r.month, "type": r.type.value, "total": float(r.total)} for r in rows]


def get_analytics(db: Session, user_id: int, from_date=None, to_date=None) -> dict:
    return {
        "summary": get_summary(db, user_id, from_date, to_date),
        "categoryBreakdown": get_category_breakdown(db, user_id, from_date, to_date),
        "monthlyTrends": get_monthly_trends(db, user_id, from_date, to_date),
    }


def get_spending_by_category(db: Session, user_id: int, type: EntryType, from_date=None, to_date=None):
    total = func.sum(Transaction.amount)
    query = db.query(
        Category.name.label("category"),
        Category.id.label("category_id"),
        total.label("total"),
        func.count(Transaction.id).label("transaction_count"),
        func.avg(Transaction.amount).label("average_amount"),
        func.max(Transaction.amount).label("max_amount"),
        func.min(Transaction.amount).label("min_amount"),
    ).outerjoin(Category, Transaction.category_id == Category.id).filter(
        Transaction.user_id == user_id,
        Transaction.type == type,
    )
    rows = _apply_range(query, from_date, to_date).group_by(
        Category.id, Category.name
    ).order_by(total.desc()).all()

    return [
        {
            "category": r.category,
            "category_id": r.category_id,
            "total": float(r.total),
            "transaction_count": r.transaction_count,
            "average_amount": round(float(r.average_amount), 2),
            "max_amount": float(r.max_amount),
            "min_amount": float(r.min_amount),
        }
        for r in rows
    ]


def get_income_vs_expenses(db: Session, user_id: int, grouping: str = "month", limit: int = 12):
    if grouping not in GROUPINGS:
        raise ValidationError.for_field("groupBy", f"groupBy must be one of: {', '.join(GROUPINGS)}")

    label = period_label(db, Transaction.date, grouping).label("period")
    rows = db.query(
        label,
        _income_sum().label("income"),
        _expense_sum().label("expenses"),
    ).filter(Transaction.user_id == user_id).group_by(label).order_by(label.desc()).limit(limit).all()

    # oldest bucket first, for charting
    return [
        {
            "period": r.period,
            "income": float(r.income),
            "expenses": float(r.expenses),
            "net": float(r.income) - float(r.expenses),
        }
        for r in reversed(rows)
    ]
