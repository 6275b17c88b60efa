from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pandas as pd
import requests

from . import canon, utils
from .exceptions import UpstreamError, UpstreamUnavailable
from .types import PriceSlot, PriceSnapshot

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_elering(payload: dict[str, Any], area: str = canon.ELERING_AREA) -> list[PriceSlot]:
    """
    Elering response -> PriceSlots in cents/kWh, ascending by timestamp.

    Expected shape: {"success": true, "data": {"ee": [{"timestamp": <unix s>, "price": <EUR/MWh>}]}}
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    rows = (data or {}).get(area) or []
    slots: list[PriceSlot] = []
    for row in rows:
        try:
            ts = datetime.fromtimestamp(int(row["timestamp"]), tz=timezone.utc)
            price = round(float(row["price"]) * canon.EUR_MWH_TO_CENTS_KWH, 4)
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed price row: %r", row)
            continue
        slots.append(PriceSlot(timestamp=ts, price=price))
    slots.sort(key=lambda s: s.timestamp)
    return slots


def fetch_window(now: datetime, tz: str = canon.DEFAULT_TZ) -> tuple[datetime, datetime]:
    """Local midnight today -> local midnight the day after tomorrow."""
    start = utils.to_local(now, tz).normalize()
    end = start + pd.DateOffset(days=2)
    return start.to_pydatetime(), end.to_pydatetime()


def _iso_z(dt: datetime) -> str:
    return (
        pd.Timestamp(dt)
        .tz_convert("UTC")
        .strftime("%Y-%m-%dT%H:%M:%S.000Z")
    )


class EleringClient:
    """Day-ahead spot prices for Estonia from the Elering dashboard API."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = canon.ELERING_API,
        timeout: float = 15,
        area: str = canon.ELERING_AREA,
    ) -> None:
        self.session = session or requests.Session()
        self.base_url = base_url
        self.timeout = timeout
        self.area = area

    def fetch(self, start: datetime, end: datetime) -> list[PriceSlot]:
        params = {"start": _iso_z(start), "end": _iso_z(end)}
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise UpstreamError(f"Elering API error: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"Elering API returned invalid JSON: {e}") from e
        return parse_elering(payload, self.area)


class PriceCache:
    """
    Time-bounded cache in front of the upstream client.

    - Within ``ttl_seconds`` of the last success the cached snapshot is returned.
    - On fetch failure the last snapshot is served again, flagged ``stale``.
    - On fetch failure with nothing cached, UpstreamUnavailable is raised.
    """

    def __init__(
        self,
        client: EleringClient,
        ttl_seconds: float = canon.PRICE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.now = now
        self._snapshot: Optional[PriceSnapshot] = None
        self._fetched_at: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> Optional[PriceSnapshot]:
        return self._snapshot

    def is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self._fetched_at is not None
            and (self.clock() - self._fetched_at) < self.ttl_seconds
        )

    def get(self) -> PriceSnapshot:
        # one fetch at a time; request threads wait for it and share the result
        with self._lock:
            cached = self._snapshot
            if cached is not None and self.is_fresh():
                return cached

            fetched_at = self.clock()
            try:
                start, end = fetch_window(self.now())
                prices = self.client.fetch(start, end)
            except UpstreamError as e:
                logger.error("Failed to fetch prices from Elering: %s", e)
                if self._snapshot is not None:
                    logger.warning("Returning stale cached data")
                    return PriceSnapshot(
                        prices=self._snapshot.prices, updated=self._snapshot.updated, stale=True
                    )
                raise UpstreamUnavailable(str(e)) from e

            self._snapshot = PriceSnapshot(prices=tuple(prices), updated=self.now())
            self._fetched_at = fetched_at
            return self._snapshot

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None
            self._fetched_at = None
