"""
Ledger API Endpoints.

Reading entries and posting reversals. There is no endpoint that edits or
deletes an entry.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.clock import Clock
from siteledger.app.core.dependencies import get_actor_id, get_clock
from siteledger.app.core.exceptions import ValidationError
from siteledger.app.db.session import get_db
from siteledger.app.domain.accounts.registry import get_account
from siteledger.app.domain.ledger.corrections import CorrectionService
from siteledger.app.domain.ledger.store import LedgerStore
from siteledger.app.schemas.ledger import (
    LedgerEntryResponse, LedgerEntryListResponse, ReversalRequest, ReversalResponse
)

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.get("/accounts/{account_id}/entries", response_model=LedgerEntryListResponse)
async def list_entries(
    account_id: int,
    start: Optional[datetime] = Query(None, description="Inclusive lower bound (timezone-aware)"),
    end: Optional[datetime] = Query(None, description="Exclusive upper bound (timezone-aware)"),
    db: AsyncSession = Depends(get_db)
):
    """Entries of one account, oldest first."""
    for bound in (start, end):
        if bound is not None and bound.tzinfo is None:
            raise ValidationError("Date bounds must include a timezone offset")
    await get_account(db, account_id)

    entries = await LedgerStore(db).entries_for(account_id, start=start, end=end).to_list()
    return LedgerEntryListResponse(
        account_id=account_id,
        entries=[LedgerEntryResponse.model_validate(e) for e in entries]
    )


@router.get("/entries/{entry_id}", response_model=LedgerEntryResponse)
async def get_entry(entry_id: int, db: AsyncSession = Depends(get_db)):
    entry = await LedgerStore(db).get(entry_id)
    return LedgerEntryResponse.model_validate(entry)


@router.post("/entries/{entry_id}/reverse", response_model=ReversalResponse, status_code=status.HTTP_201_CREATED)
async def reverse_entry(
    entry_id: int,
    data: ReversalRequest,
    actor_id: Optional[int] = Depends(get_actor_id),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db)
):
    """Post the reversal of an entry (both legs for paired operations)."""
    reversals = await CorrectionService(db, clock).reverse(entry_id, data.reason, actor_id=actor_id)
    return ReversalResponse(
        reversed_entry_id=entry_id,
        reversals=[LedgerEntryResponse.model_validate(r) for r in reversals]
    )
