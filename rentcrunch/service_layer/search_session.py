# rentcrunch/service_layer/search_session.py
from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable

from ..adapters.providers.base import ListingProvider, PropertyUpdate
from ..config import settings as app_settings
from ..domain.financial import cashflow as _cashflow
from ..domain.overrides import OverrideStore
from ..domain.parsing import looks_like_address, normalize_location
from ..domain.sorting import (
    PRICE_DEPENDENT_KEYS,
    RENT_DEPENDENT_KEYS,
    SETTINGS_DEPENDENT_KEYS,
    sort_properties,
)
from ..domain.types import (
    CashflowResult,
    CashflowSettings,
    Property,
    SearchFilters,
    SessionSnapshot,
    SessionState,
    SortConfig,
    SortDirection,
    SortKey,
)
from .analysis import compute_score
from .result_set import ResultSet

log = logging.getLogger(__name__)

SessionListener = Callable[[SessionSnapshot], None]

_ACTIVE = (SessionState.counting, SessionState.fetching, SessionState.draining)


# -------------------------
# Writer inbox messages
# -------------------------


@dataclass(frozen=True)
class _CountResolved:
    generation: int
    total: int
    pages: int


@dataclass(frozen=True)
class _CountFailed:
    generation: int
    error: str


@dataclass(frozen=True)
class _PageSettled:
    generation: int
    page_index: int
    properties: list[Property] | None = None
    error: str | None = None


@dataclass(frozen=True)
class _Push:
    generation: int
    property: Property


@dataclass(frozen=True)
class _DrainIdle:
    generation: int
    seq: int


def _describe(e: BaseException) -> str:
    if isinstance(e, asyncio.TimeoutError):
        return "timeout"
    return f"{type(e).__name__}: {e}"


class SearchSession:
    """
    One search at a time, generation-scoped.

    Every search gets a fresh generation number. Count/page results, provider
    pushes and drain timers are posted into a single inbox consumed by one
    writer task, which is the only place the result set changes. Anything
    tagged with an older generation is dropped on arrival.

    States: idle -> counting -> fetching -> draining -> complete. A search
    replaced before it completes ends as aborted.
    """

    def __init__(
        self,
        provider: ListingProvider,
        *,
        settings: CashflowSettings | None = None,
        overrides: OverrideStore | None = None,
        sort: SortConfig | None = None,
        page_size: int | None = None,
        count_timeout_s: float | None = None,
        page_timeout_s: float | None = None,
        drain_idle_timeout_s: float | None = None,
    ) -> None:
        self._provider = provider
        self._settings = settings or CashflowSettings.from_settings()
        self._overrides = overrides if overrides is not None else OverrideStore()
        self._sort = sort or SortConfig()

        self.page_size = int(page_size or app_settings.PAGE_SIZE)
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")
        self.count_timeout_s = float(count_timeout_s if count_timeout_s is not None else app_settings.COUNT_TIMEOUT_S)
        self.page_timeout_s = float(page_timeout_s if page_timeout_s is not None else app_settings.PAGE_TIMEOUT_S)
        self.drain_idle_timeout_s = float(
            drain_idle_timeout_s if drain_idle_timeout_s is not None else app_settings.DRAIN_IDLE_TIMEOUT_S
        )

        self._generation = 0
        self._state = SessionState.idle
        self._results = ResultSet()
        self._location: str | None = None
        self._total = 0
        self._pages_expected = 0
        self._pages_settled = 0
        self._pages_failed = 0
        self._degraded = False

        self._listeners: list[SessionListener] = []
        self._done: dict[int, asyncio.Event] = {}

        self._loop: asyncio.AbstractEventLoop | None = None
        self._inbox: asyncio.Queue | None = None
        self._writer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._drain_timer: asyncio.TimerHandle | None = None
        self._drain_seq = 0
        self._closed = False

        self._unsubscribe_updates = provider.subscribe_to_property_updates(self._on_provider_update)

    # -------------------------
    # Read side
    # -------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def overrides(self) -> OverrideStore:
        return self._overrides

    @property
    def settings(self) -> CashflowSettings:
        return self._settings

    @property
    def sort_config(self) -> SortConfig:
        return self._sort

    def results(self) -> tuple[Property, ...]:
        return self._results.snapshot()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            generation=self._generation,
            state=self._state,
            location=self._location,
            total_count=self._total,
            pages_expected=self._pages_expected,
            pages_settled=self._pages_settled,
            pages_failed=self._pages_failed,
            degraded=self._degraded,
            properties=self._results.snapshot(),
            sort=self._sort,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    async def wait_until_complete(self, generation: int | None = None, timeout: float | None = None) -> SessionSnapshot:
        """
        Wait until `generation` (default: the current one) is complete or aborted.
        Raises asyncio.TimeoutError if `timeout` elapses first.
        """
        gen = self._generation if generation is None else int(generation)
        event = self._done.get(gen)
        if event is not None:
            if timeout is None:
                await event.wait()
            else:
                await asyncio.wait_for(event.wait(), timeout)
        return self.snapshot()

    def compute_cashflow(self, prop: Property) -> CashflowResult:
        return _cashflow(prop, self._settings, self._overrides)

    def compute_score(self, prop: Property, cashflow: CashflowResult | None = None) -> int:
        return compute_score(prop, self._settings, cashflow, self._overrides)

    # -------------------------
    # Commands
    # -------------------------

    def start_search(self, location: Any, filters: SearchFilters | None = None) -> int:
        """
        Begin a new search and return its generation. Must be called from the
        event loop. Raises InputError for an unusable location without touching
        the current search.
        """
        loc = normalize_location(location)
        filters = filters or SearchFilters()
        loop = asyncio.get_running_loop()
        if self._closed:
            raise RuntimeError("session is closed")
        self._ensure_writer(loop)

        if self._state in _ACTIVE:
            log.info("search aborted gen=%s location=%r", self._generation, self._location)
            self._cancel_drain_timer()
            self._state = SessionState.aborted
            self._notify()
            self._mark_done(self._generation)

        self._generation += 1
        gen = self._generation
        self._done[gen] = asyncio.Event()

        self._results.clear()
        self._location = loc
        self._total = 0
        self._pages_expected = 0
        self._pages_settled = 0
        self._pages_failed = 0
        self._degraded = False
        self._state = SessionState.counting
        self._notify()

        log.info("search started gen=%s location=%r", gen, loc)
        self._spawn(self._run_pipeline(gen, loc, filters), name=f"search-{gen}")
        return gen

    def set_sort_config(self, key: SortKey | str | None, direction: SortDirection | str = SortDirection.asc) -> SortConfig:
        self._sort = SortConfig(
            key=SortKey(key) if key is not None else None,
            direction=SortDirection(direction),
        )
        self._resort()
        self._notify()
        return self._sort

    def set_override_price(self, property_id: str, value: Any) -> float | None:
        v = self._overrides.set_price(property_id, value)
        if self._sort.key in PRICE_DEPENDENT_KEYS:
            self._resort()
        self._notify()
        return v

    def set_override_rent(self, property_id: str, value: Any) -> float | None:
        v = self._overrides.set_rent(property_id, value)
        if self._sort.key in RENT_DEPENDENT_KEYS:
            self._resort()
        self._notify()
        return v

    def set_settings(self, new_settings: CashflowSettings) -> None:
        self._settings = new_settings
        if self._sort.key in SETTINGS_DEPENDENT_KEYS:
            self._resort()
        self._notify()

    async def aclose(self) -> None:
        self._closed = True
        self._unsubscribe_updates()
        self._cancel_drain_timer()

        tasks = list(self._tasks)
        if self._writer is not None:
            tasks.append(self._writer)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._writer = None

        for event in self._done.values():
            event.set()

    # -------------------------
    # Pipeline (fetchers post, never mutate)
    # -------------------------

    async def _run_pipeline(self, gen: int, location: str, filters: SearchFilters) -> None:
        if looks_like_address(location):
            await self._run_address_lookup(gen, location)
            return

        try:
            total = await asyncio.wait_for(
                self._provider.count_matches(location, filters),
                self.count_timeout_s,
            )
        except Exception as e:
            log.warning("count failed gen=%s location=%r: %s", gen, location, _describe(e))
            self._post(_CountFailed(gen, _describe(e)))
            return

        total = max(0, int(total or 0))
        pages = math.ceil(total / self.page_size) if total > 0 else 0
        self._post(_CountResolved(gen, total, pages))

        if gen != self._generation or pages == 0:
            return
        await asyncio.gather(*(self._fetch_page(gen, location, i, filters) for i in range(pages)))

    async def _run_address_lookup(self, gen: int, address: str) -> None:
        try:
            prop = await asyncio.wait_for(self._provider.fetch_by_address(address), self.count_timeout_s)
        except Exception as e:
            log.warning("address lookup failed gen=%s address=%r: %s", gen, address, _describe(e))
            self._post(_CountFailed(gen, _describe(e)))
            return

        if prop is None:
            self._post(_CountResolved(gen, 0, 0))
            return
        self._post(_CountResolved(gen, 1, 1))
        self._post(_PageSettled(gen, 0, properties=[prop]))

    async def _fetch_page(self, gen: int, location: str, page_index: int, filters: SearchFilters) -> None:
        if gen != self._generation:
            return
        try:
            props = await asyncio.wait_for(
                self._provider.fetch_page(location, page_index, filters, tag=gen),
                self.page_timeout_s,
            )
        except Exception as e:
            log.warning("page %s failed gen=%s location=%r: %s", page_index, gen, location, _describe(e))
            self._post(_PageSettled(gen, page_index, error=_describe(e)))
            return
        self._post(_PageSettled(gen, page_index, properties=list(props or [])))

    def _on_provider_update(self, update: PropertyUpdate) -> None:
        # May be called from any thread.
        loop, inbox = self._loop, self._inbox
        if loop is None or inbox is None or self._closed:
            return
        gen = update.tag if update.tag is not None else self._generation
        msg = _Push(gen, update.property)

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            inbox.put_nowait(msg)
        elif not loop.is_closed():
            loop.call_soon_threadsafe(inbox.put_nowait, msg)

    # -------------------------
    # Writer
    # -------------------------

    def _ensure_writer(self, loop: asyncio.AbstractEventLoop) -> None:
        if self._loop is loop and self._writer is not None and not self._writer.done():
            return
        self._loop = loop
        self._inbox = asyncio.Queue()
        self._writer = loop.create_task(self._writer_loop(), name="search-session-writer")

    def _spawn(self, coro, *, name: str) -> None:
        assert self._loop is not None
        task = self._loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _post(self, msg: Any) -> None:
        if self._inbox is not None:
            self._inbox.put_nowait(msg)

    async def _writer_loop(self) -> None:
        assert self._inbox is not None
        inbox = self._inbox
        while True:
            msg = await inbox.get()
            try:
                self._apply(msg)
            except Exception:
                log.exception("failed to apply %s gen=%s", type(msg).__name__, getattr(msg, "generation", None))

    def _apply(self, msg: Any) -> None:
        if msg.generation != self._generation:
            log.debug("dropping stale %s gen=%s current=%s", type(msg).__name__, msg.generation, self._generation)
            return
        if self._state == SessionState.aborted:
            return

        if isinstance(msg, _CountResolved):
            self._on_count_resolved(msg)
        elif isinstance(msg, _CountFailed):
            self._total = 0
            self._degraded = True
            self._complete()
        elif isinstance(msg, _PageSettled):
            self._on_page_settled(msg)
        elif isinstance(msg, _Push):
            self._on_push(msg)
        elif isinstance(msg, _DrainIdle):
            if self._state == SessionState.draining and msg.seq == self._drain_seq:
                log.info(
                    "drain idle timeout gen=%s have=%s total=%s",
                    self._generation, len(self._results), self._total,
                )
                self._complete()
        else:
            raise TypeError(f"unknown session message: {msg!r}")

    def _on_count_resolved(self, msg: _CountResolved) -> None:
        if self._state != SessionState.counting:
            return
        self._total = msg.total
        self._pages_expected = msg.pages
        log.info("count resolved gen=%s total=%s pages=%s", msg.generation, msg.total, msg.pages)
        if msg.pages == 0:
            self._complete()
            return
        self._state = SessionState.fetching
        self._notify()

    def _on_page_settled(self, msg: _PageSettled) -> None:
        if self._state != SessionState.fetching:
            return
        self._pages_settled += 1
        if msg.error is not None:
            self._pages_failed += 1
        elif msg.properties:
            self._merge_many(msg.properties)

        if self._pages_settled >= self._pages_expected:
            self._state = SessionState.draining
            if len(self._results) >= self._total:
                self._complete()
                return
            self._restart_drain_timer()
        self._notify()

    def _on_push(self, msg: _Push) -> None:
        changed = self._merge_many([msg.property], refine=True)
        if self._state == SessionState.draining:
            if len(self._results) >= self._total:
                self._complete()
                return
            self._restart_drain_timer()
        if changed:
            self._notify()

    def _merge_many(self, props: list[Property], *, refine: bool = False) -> bool:
        inserted = updated = False
        for p in props:
            if p.property_id in self._results:
                # only pushes carry refinements; a repeated page row is ignored
                if refine:
                    updated = self._results.update_in_place(p) or updated
            else:
                self._results.insert(p)
                inserted = True
        # one stable re-sort per batch orders the same as re-sorting after every insert
        if inserted:
            self._resort()
        return inserted or updated

    def _resort(self) -> None:
        if self._sort.key is None or not len(self._results):
            return
        ordered = sort_properties(
            self._results.snapshot(),
            self._sort.key,
            self._sort.direction,
            self._overrides,
            self._settings,
        )
        self._results.reorder(ordered)

    def _complete(self) -> None:
        self._cancel_drain_timer()
        self._state = SessionState.complete
        if self._pages_failed or len(self._results) < self._total:
            self._degraded = True
        log.info(
            "search complete gen=%s results=%s total=%s pages_failed=%s degraded=%s",
            self._generation, len(self._results), self._total, self._pages_failed, self._degraded,
        )
        self._notify()
        self._mark_done(self._generation)

    def _restart_drain_timer(self) -> None:
        self._cancel_drain_timer()
        if self._loop is None:
            return
        self._drain_seq += 1
        self._drain_timer = self._loop.call_later(
            self.drain_idle_timeout_s,
            self._post,
            _DrainIdle(self._generation, self._drain_seq),
        )

    def _cancel_drain_timer(self) -> None:
        if self._drain_timer is not None:
            self._drain_timer.cancel()
            self._drain_timer = None

    def _mark_done(self, gen: int) -> None:
        event = self._done.get(gen)
        if event is not None:
            event.set()
        # only the live generation needs a pending event
        for g in [g for g in self._done if g < gen]:
            del self._done[g]

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                log.exception("session listener failed")
