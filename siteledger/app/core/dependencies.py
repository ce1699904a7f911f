"""
Shared FastAPI dependencies.

Services receive everything explicitly: the session, the Redis client for
locks, the clock, the earnings feed, and the id of the acting user.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Header

from siteledger.app.core.clock import Clock, system_clock
from siteledger.app.core.config import settings
from siteledger.app.services.earnings_feed import EarningsFeed, HttpEarningsFeed, StaticEarningsFeed


def get_clock() -> Clock:
    return system_clock


@lru_cache()
def get_earnings_feed() -> EarningsFeed:
    """
    Earnings source for wage caps.

    Without ``attendance_feed_url`` no earnings are known, so labourer and
    vendor wages are capped at what the ledger itself shows as owed, which is
    usually nothing. Capped wages over HTTP need the feed configured.
    """
    if settings.attendance_feed_url:
        return HttpEarningsFeed(settings.attendance_feed_url)
    return StaticEarningsFeed()


async def close_earnings_feed() -> None:
    """Close the cached feed's HTTP client, if one was built."""
    if get_earnings_feed.cache_info().currsize:
        feed = get_earnings_feed()
        if isinstance(feed, HttpEarningsFeed):
            await feed.aclose()
        get_earnings_feed.cache_clear()


async def get_actor_id(x_actor_id: Optional[int] = Header(None, description="ID of the acting user")) -> Optional[int]:
    """
    Acting user, as asserted by the calling service.

    Stored on entries, assignments and audit rows; no authentication here.
    """
    return x_actor_id
