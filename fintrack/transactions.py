# fintrack/transactions.py

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from . import crud
from .cache import TRANSACTIONS_TTL, Cache, transactions_key
from .config import Settings
from .database import get_db
from .deps import (
    CurrentUser,
    get_cache,
    get_current_user,
    get_settings_dep,
    prevent_read_only,
    resolve_target_user,
)
from .errors import ValidationError
from .models import EntryType
from .rate_limit import rate_limit
from .schemas import TransactionIn

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
    dependencies=[Depends(rate_limit("transactions"))],
)


@router.get("")
def list_transactions(
    type: Optional[EntryType] = Query(None),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=500),
    user_id: Optional[int] = Query(None, alias="userId"),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    if start_date and end_date and start_date > end_date:
        raise ValidationError.for_field("startDate", "startDate must not be after endDate")

    target_id = resolve_target_user(user, user_id)
    offset = (page - 1) * limit if page and limit else 0
    filters = {
        "type": type,
        "startDate": start_date,
        "endDate": end_date,
        "categoryId": category_id,
        "page": page,
        "limit": limit,
    }

    cache_key = transactions_key(target_id, filters)
    cached = cache.get(cache_key)
    if cached is not None:
        return {"success": True, "data": cached, "cached": True}

    rows = crud.get_filtered_transactions(
        db, target_id, type, start_date, end_date, category_id, limit=limit, offset=offset
    )
    cache.set(cache_key, rows, TRANSACTIONS_TTL)
    return {"success": True, "data": rows}


@router.get("/{txn_id}")
def get_transaction(
    txn_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": crud.get_transaction_by_id(db, txn_id, user)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: TransactionIn,
    user: CurrentUser = Depends(prevent_read_only),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings_dep),
):
    row = crud.add_transaction(db, user.id, payload, settings.enforce_category_type_match)
    cache.invalidate_user(user.id)
    return {"success": True, "message": "Transaction created successfully", "data": row}


@router.put("/{txn_id}")
def update_transaction(
    txn_id: int,
    payload: TransactionIn,
    user: CurrentUser = Depends(prevent_read_only),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings_dep),
):
    row, owner_id = crud.update_transaction(db, txn_id, user, payload, settings.enforce_category_type_match)
    cache.invalidate_user(owner_id)
    return {"success": True, "message": "Transaction updated successfully", "data": row}


@router.delete("/{txn_id}")
def delete_transaction(
    txn_id: int,
    user: CurrentUser = Depends(prevent_read_only),
    db: Session = Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    owner_id = crud.delete_transaction(db, txn_id, user)
    cache.invalidate_user(owner_id)
    logger.info("User %s deleted transaction %s (owner %s)", user.id, txn_id, owner_id)
    return {"success": True, "message": "Transaction deleted successfully"}
