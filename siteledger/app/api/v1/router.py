"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from siteledger.app.api.v1.endpoints import accounts, ledger, equipment, funds, payments, audit

router = APIRouter()

router.include_router(accounts.router)
router.include_router(ledger.router)
router.include_router(equipment.router)
router.include_router(funds.router)
router.include_router(payments.router)
router.include_router(audit.router)
