# rentcrunch/adapters/providers/enrichment.py
from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Iterable

import httpx

from ...config import settings
from ...domain.errors import ProviderError
from ...domain.types import Property, RentSource
from ..cache import TTLCache
from .base import PropertyUpdate

log = logging.getLogger(__name__)

RentFetcher = Callable[[Property], Awaitable[float]]


@dataclass
class EnrichmentStats:
    enriched: int = 0
    cache_hits: int = 0
    retries: int = 0
    gave_up: int = 0

    def snapshot(self) -> dict[str, int]:
        return {
            "enriched": self.enriched,
            "cache_hits": self.cache_hits,
            "retries": self.retries,
            "gave_up": self.gave_up,
        }


def rent_cache_key(property_id: str) -> str:
    return f"rent_{property_id}"


class RentEnrichmentQueue:
    """
    Background rent-estimate pass.

    Properties are processed in concurrent batches with a pause between
    batches. A failed or empty estimate is retried up to `max_retries` times;
    after that the property is pushed with its calculated estimate so
    consumers stop waiting for it. Each push carries the tag the property was
    enqueued with (the most recent one if it was enqueued twice).
    """

    def __init__(
        self,
        fetch_rent: RentFetcher,
        publish: Callable[[PropertyUpdate], None],
        *,
        rent_cache: TTLCache | None = None,
        batch_size: int | None = None,
        batch_interval_s: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        self._fetch_rent = fetch_rent
        self._publish = publish
        self._rent_cache = rent_cache if rent_cache is not None else TTLCache(settings.RENT_CACHE_TTL_S)
        self.batch_size = max(1, int(batch_size if batch_size is not None else settings.ENRICH_BATCH_SIZE))
        self.batch_interval_s = float(
            batch_interval_s if batch_interval_s is not None else settings.ENRICH_BATCH_INTERVAL_S
        )
        self.max_retries = int(max_retries if max_retries is not None else settings.ENRICH_MAX_RETRIES)

        # property_id -> (property, tag); insertion order is processing order
        self._queue: OrderedDict[str, tuple[Property, int | None]] = OrderedDict()
        self._retries: dict[str, int] = {}
        self._task: asyncio.Task | None = None
        self.stats = EnrichmentStats()

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def enqueue_many(self, properties: Iterable[Property], tag: int | None = None) -> int:
        added = 0
        for prop in properties:
            if prop.property_id in self._queue:
                # keep position, re-tag for the newer search
                self._queue[prop.property_id] = (prop, tag)
                continue
            self._queue[prop.property_id] = (prop, tag)
            self._retries[prop.property_id] = 0
            added += 1
        if self._queue and not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return added

    async def join(self) -> None:
        """Wait until the queue is empty (tests/scripts)."""
        while self.running:
            await asyncio.shield(self._task)

    async def aclose(self) -> None:
        task, self._task = self._task, None
        self._queue.clear()
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        while self._queue:
            batch: list[tuple[Property, int | None]] = []
            while self._queue and len(batch) < self.batch_size:
                _, job = self._queue.popitem(last=False)
                batch.append(job)

            log.debug("processing rent enrichment batch of %s", len(batch))
            results = await asyncio.gather(*(self._process(p, tag) for p, tag in batch), return_exceptions=True)

            requeue = 0
            for (prop, tag), res in zip(batch, results):
                if isinstance(res, BaseException):
                    log.error("rent enrichment crashed property_id=%s: %r", prop.property_id, res)
                    res = self._should_retry(prop, tag)
                if res and prop.property_id not in self._queue:
                    self._queue[prop.property_id] = (prop, tag)
                    requeue += 1
            if requeue:
                log.info("re-queuing %s properties for rent retry", requeue)

            if self._queue:
                await asyncio.sleep(self.batch_interval_s)

    async def _process(self, prop: Property, tag: int | None) -> bool:
        """Returns True when the property should be retried."""
        cached = self._rent_cache.get(rent_cache_key(prop.property_id))
        if cached is not None:
            self.stats.cache_hits += 1
            self._push(prop, float(cached), tag)
            return False

        try:
            rent = await self._fetch_rent(prop)
        except (ProviderError, httpx.HTTPError) as e:
            log.warning("rent estimate failed property_id=%s: %s", prop.property_id, e)
            return self._should_retry(prop, tag)

        self._rent_cache.set(rent_cache_key(prop.property_id), rent)
        self._push(prop, rent, tag)
        return False

    def _should_retry(self, prop: Property, tag: int | None) -> bool:
        n = self._retries.get(prop.property_id, 0)
        if n < self.max_retries:
            self._retries[prop.property_id] = n + 1
            self.stats.retries += 1
            return True
        # give up: push what we have so consumers stop waiting on it
        self.stats.gave_up += 1
        self._retries.pop(prop.property_id, None)
        self._publish(PropertyUpdate(property=prop, tag=tag))
        return False

    def _push(self, prop: Property, rent: float, tag: int | None) -> None:
        self.stats.enriched += 1
        self._retries.pop(prop.property_id, None)
        updated = replace(prop, rent_estimate=rent, rent_source=RentSource.zillow)
        self._publish(PropertyUpdate(property=updated, tag=tag))
