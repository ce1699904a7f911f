"""
Audit Trail API Endpoints.
"""

from datetime import datetime
from typing import Optional, Any, Dict, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.db.session import get_db
from siteledger.app.services.audit import get_audit_trail

router = APIRouter(prefix="/audit", tags=["Audit"])


class AuditLogResponse(BaseModel):
    id: int
    actor_id: Optional[int]
    action: str
    target_type: Optional[str]
    target_id: Optional[int]
    meta_data: Optional[Dict[str, Any]]
    timestamp: datetime

    class Config:
        from_attributes = True


@router.get("", response_model=List[AuditLogResponse])
async def list_audit_events(
    target_type: Optional[str] = Query(None, description="account, equipment or ledger_entry"),
    target_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """Who did what, newest first."""
    events = await get_audit_trail(db, target_type=target_type, target_id=target_id, action=action, limit=limit)
    return [AuditLogResponse.model_validate(e) for e in events]
