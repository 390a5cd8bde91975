"""Transaction API.

Listing supports filters, sorting and paging:
  GET /transactions?type=Expense&category_id=3&start_date=2025-01-01
      &end_date=2025-01-31&search=rent&sort_by=amount&sort_order=asc
      &page=1&page_size=10
"""

import enum
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from budgetmanager.auth.dependencies import CurrentIdentity, get_current_user
from budgetmanager.db.engine import get_db
from budgetmanager.db.models import Transaction, TransactionType
from budgetmanager.schemas.common import Message, Page
from budgetmanager.schemas.transaction import (
    TransactionCreate,
    TransactionRead,
    TransactionUpdate,
)
from budgetmanager.services.transaction_service import (
    TransactionService,
    TransactionSortKey,
)

router = APIRouter(prefix="/transactions")


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


def _svc(db: AsyncSession = Depends(get_db)) -> TransactionService:
    return TransactionService(db)


def _read(transaction: Transaction, category_name: Optional[str]) -> TransactionRead:
    out = TransactionRead.model_validate(transaction)
    out.category_name = category_name
    return out


@router.get("", response_model=Page[TransactionRead])
async def list_transactions(
    type: Optional[TransactionType] = None,
    category_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = Query(None, max_length=100),
    sort_by: TransactionSortKey = TransactionSortKey.DATE,
    sort_order: SortOrder = SortOrder.DESC,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TransactionService = Depends(_svc),
):
    rows, total = await svc.list_transactions(
        identity,
        type=type,
        category_id=category_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
        sort_by=sort_by,
        descending=sort_order == SortOrder.DESC,
        page=page,
        page_size=page_size,
    )
    items = [_read(tx, name) for tx, name in rows]
    return Page[TransactionRead].build(items, page, page_size, total)


@router.get("/{transaction_id}", response_model=TransactionRead)
async def get_transaction(
    transaction_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TransactionService = Depends(_svc),
):
    tx = await svc.get_transaction(identity, transaction_id)
    return _read(tx, await svc.category_name(tx.category_id))


@router.post("", response_model=TransactionRead, status_code=201)
async def create_transaction(
    body: TransactionCreate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TransactionService = Depends(_svc),
):
    """Record a transaction. Expenses may update goal progress and raise budget alerts."""
    tx = await svc.create_transaction(identity, **body.model_dump())
    await svc.db.commit()
    return _read(tx, await svc.category_name(tx.category_id))


@router.put("/{transaction_id}", response_model=TransactionRead)
async def update_transaction(
    transaction_id: int,
    body: TransactionUpdate,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TransactionService = Depends(_svc),
):
    tx = await svc.update_transaction(identity, transaction_id, **body.model_dump())
    await svc.db.commit()
    return _read(tx, await svc.category_name(tx.category_id))


@router.delete("/{transaction_id}", response_model=Message)
async def delete_transaction(
    transaction_id: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: TransactionService = Depends(_svc),
):
    await svc.delete_transaction(identity, transaction_id)
    await svc.db.commit()
    return Message(message=f"Transaction with ID {transaction_id} has been deleted.")
