"""
Per-resource locks.

Mutations of one equipment unit (assign/pause/resume/return) and wage
payments against one account must not interleave. Each takes a Redis lock
keyed on the resource for the whole unit of work, commit included.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from redis.exceptions import LockError

from siteledger.app.core.config import settings
from siteledger.app.core.exceptions import ResourceBusyError

logger = logging.getLogger("siteledger.locks")

LOCK_PREFIX = "siteledger:lock"

EQUIPMENT_LOCK = "equipment"
ACCOUNT_LOCK = "account"


def lock_key(resource: str, resource_id: Any) -> str:
    return f"{LOCK_PREFIX}:{resource}:{resource_id}"


@asynccontextmanager
async def resource_lock(redis, resource: str, resource_id: Any):
    """
    Hold the lock for ``resource``/``resource_id`` for the duration of the block.

    Raises:
        ResourceBusyError: If the lock is not acquired within the blocking timeout.
    """
    lock = redis.lock(
        lock_key(resource, resource_id),
        timeout=settings.lock_timeout_seconds,
        blocking_timeout=settings.lock_blocking_timeout_seconds,
    )
    acquired = await lock.acquire()
    if not acquired:
        raise ResourceBusyError(resource, resource_id)

    try:
        yield
    finally:
        try:
            await lock.release()
        except LockError:
            # Expired while held.
            logger.warning(
                "Lock expired before release",
                extra={"resource": resource, "resource_id": resource_id}
            )
