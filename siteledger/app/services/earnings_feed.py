"""
Earnings feed adapters.

The amount a labourer, contractor or vendor has earned comes from the
attendance system, outside the ledger. The payment recorder only needs
``earned(account_id, start, end) -> Money``.
"""

import logging
from datetime import date
from typing import Optional, Protocol, Dict

import httpx

from siteledger.app.core.config import settings
from siteledger.app.core.exceptions import UpstreamUnavailableError
from siteledger.app.core.reliability import CircuitBreaker, CircuitOpenError, attendance_feed_breaker
from siteledger.app.domain.money import Money

logger = logging.getLogger("siteledger.earnings")

FEED_NAME = "Attendance feed"


class EarningsFeed(Protocol):
    async def earned(self, account_id: int, start: Optional[date] = None, end: Optional[date] = None) -> Money:
        """Total earned by ``account_id`` in [start, end]; all time when unbounded."""
        ...


class StaticEarningsFeed:
    """Fixed earnings per account. Accounts not listed have earned nothing."""

    def __init__(self, earnings: Optional[Dict[int, Money]] = None):
        self._earnings = dict(earnings or {})

    def set(self, account_id: int, amount: Money) -> None:
        self._earnings[account_id] = amount

    async def earned(self, account_id: int, start: Optional[date] = None, end: Optional[date] = None) -> Money:
        return self._earnings.get(account_id, Money.zero())


class HttpEarningsFeed:
    """
    Reads earnings from the attendance service.

    ``GET {base_url}/earnings/{account_id}?start=YYYY-MM-DD&end=YYYY-MM-DD``
    responds with ``{"account_id": ..., "earned_minor": <int>}``.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        breaker: Optional[CircuitBreaker] = None,
        timeout: Optional[float] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.attendance_feed_timeout_seconds,
        )
        self.breaker = breaker or attendance_feed_breaker

    async def earned(self, account_id: int, start: Optional[date] = None, end: Optional[date] = None) -> Money:
        """
        Raises:
            UpstreamUnavailableError: Feed unreachable, erroring, circuit open,
                or the payload is malformed.
        """
        params = {}
        if start is not None:
            params["start"] = start.isoformat()
        if end is not None:
            params["end"] = end.isoformat()

        try:
            payload = await self.breaker.call(self._fetch, account_id, params)
        except CircuitOpenError as e:
            raise UpstreamUnavailableError(FEED_NAME, str(e))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Earnings feed request failed",
                extra={"account_id": account_id, "error": str(e)}
            )
            raise UpstreamUnavailableError(FEED_NAME, str(e))

        earned_minor = payload.get("earned_minor") if isinstance(payload, dict) else None
        if isinstance(earned_minor, bool) or not isinstance(earned_minor, int):
            raise UpstreamUnavailableError(FEED_NAME, "response has no integer 'earned_minor'")
        return Money(earned_minor)

    async def _fetch(self, account_id: int, params: dict):
        response = await self.client.get(f"/earnings/{account_id}", params=params)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        await self.client.aclose()
