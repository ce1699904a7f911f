"""
Ledger corrections.

Entries are never edited; a mistake is undone by posting its reversal.
"""

import logging
from typing import Optional, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from siteledger.app.core.clock import Clock, system_clock
from siteledger.app.core.exceptions import ConflictError, ValidationError
from siteledger.app.db.session import atomic
from siteledger.app.domain.ledger.store import LedgerStore
from siteledger.app.models.ledger_entry import LedgerEntry
from siteledger.app.services.audit import AuditAction, log_event

logger = logging.getLogger("siteledger.ledger")


class CorrectionService:

    def __init__(self, db: AsyncSession, clock: Clock = system_clock):
        self.db = db
        self.clock = clock
        self.store = LedgerStore(db)

    async def reverse(self, entry_id: int, reason: str, actor_id: Optional[int] = None) -> List[LedgerEntry]:
        """
        Reverse an entry (and its partner leg, for paired operations).

        Raises:
            NotFoundError: Unknown entry.
            ValidationError: Missing reason, or the entry is itself a reversal.
            ConflictError: Already reversed.
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reverse an entry")

        async with atomic(self.db):
            try:
                reversals = await self.store.reverse(
                    entry_id, occurred_at=self.clock.now(), reason=reason.strip(), actor_id=actor_id
                )
            except IntegrityError:
                # Lost a race with a concurrent reversal of the same entry.
                raise ConflictError(
                    f"Ledger entry {entry_id} has already been reversed",
                    details={"entry_id": entry_id}
                )
            await log_event(
                self.db, AuditAction.ENTRY_REVERSED, actor_id=actor_id,
                target_type="ledger_entry", target_id=entry_id,
                metadata={"reason": reason.strip(), "reversal_ids": [r.id for r in reversals]}
            )

        logger.info(
            "Ledger entry reversed",
            extra={"entry_id": entry_id, "reversal_ids": [r.id for r in reversals]}
        )
        return reversals
