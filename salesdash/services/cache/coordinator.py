"""
Cache coordinator for dashboard data.

Owns the current Snapshot and implements stale-while-revalidate reads:

* fresh data (younger than ``fresh_seconds``) is returned as-is;
* stale data (younger than ``max_age_seconds``) is returned immediately
  while one background revalidation refreshes it;
* anything older, missing, or fetched for other calendar days is fetched
  before returning.

Foreground fetch cycles are serialized: at most one runs at a time and a
caller asking for a range that is already running or queued awaits that
cycle instead of starting another. Subscribers are notified synchronously after
every state change.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime, tzinfo

from salesdash.infrastructure.observability.logging import get_logger, log_fetch_cycle
from salesdash.models.domain.records import Contact, DateRange
from salesdash.services.cache.date_range import same_date_range
from salesdash.services.cache.errors import is_network_error, with_timeout
from salesdash.services.cache.snapshot import CacheState, Snapshot
from salesdash.services.gateway.fetchers import FUNNEL_STATUSES, RecordFetcher

logger = get_logger(__name__)

# Cache timing defaults
FRESH_SECONDS = 5 * 60
MAX_AGE_SECONDS = 30 * 60
REQUEST_TIMEOUT = 10.0
CYCLE_TIMEOUT = REQUEST_TIMEOUT * 5
FUNNEL_TIMEOUT = REQUEST_TIMEOUT * 3
UNFILTERED_DELAY = 0.05

Subscriber = Callable[[CacheState], None]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CacheCoordinator:
    """
    In-process cache for the five dashboard collections.

    A coordinator without a fetcher runs in demo mode: every fetch cycle
    produces an empty snapshot flagged ``is_demo`` without network calls.
    """

    def __init__(
        self,
        fetcher: RecordFetcher | None = None,
        *,
        fresh_seconds: float = FRESH_SECONDS,
        max_age_seconds: float = MAX_AGE_SECONDS,
        request_timeout: float = REQUEST_TIMEOUT,
        cycle_timeout: float = CYCLE_TIMEOUT,
        funnel_timeout: float = FUNNEL_TIMEOUT,
        unfiltered_delay: float = UNFILTERED_DELAY,
        funnel_statuses: tuple[str, ...] = FUNNEL_STATUSES,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
    ):
        self._fetcher = fetcher
        self._fresh_seconds = fresh_seconds
        self._max_age_seconds = max_age_seconds
        self._request_timeout = request_timeout
        self._cycle_timeout = cycle_timeout
        self._funnel_timeout = funnel_timeout
        self._unfiltered_delay = unfiltered_delay
        self._funnel_statuses = funnel_statuses
        self._clock = clock or _utcnow
        self._tz = tz

        self._state = CacheState()
        self._subscribers: list[Subscriber] = []
        self._fetch_lock = asyncio.Lock()
        # Scheduled foreground cycles in lock order, running one first
        self._pending: list[tuple[DateRange | None, asyncio.Future]] = []
        self._revalidation_task: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # State and subscriptions
    # ------------------------------------------------------------------

    @property
    def is_demo_mode(self) -> bool:
        return self._fetcher is None

    @property
    def revalidation_task(self) -> asyncio.Task | None:
        return self._revalidation_task

    def get_cache_state(self) -> CacheState:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def _notify(self) -> None:
        state = self._state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("Cache subscriber raised", subscriber=getattr(callback, "__qualname__", repr(callback)))

    def _set_state(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        self._notify()

    def snapshot_age_seconds(self) -> float | None:
        snapshot = self._state.data
        if snapshot is None:
            return None
        return (self._clock() - snapshot.timestamp).total_seconds()

    # ------------------------------------------------------------------
    # Public read paths
    # ------------------------------------------------------------------

    async def get_data(
        self,
        force_refresh: bool = False,
        date_range: DateRange | None = None,
    ) -> Snapshot | None:
        """Return cached data for the range, fetching or revalidating as needed."""
        snapshot = self._state.data

        if snapshot is not None and not same_date_range(snapshot.date_range, date_range, self._tz):
            logger.debug(
                "Date range changed, refetching",
                cached=snapshot.date_range.describe() if snapshot.date_range else None,
                requested=date_range.describe() if date_range else None,
            )
            await self.invalidate_cache(date_range)
            return self._state.data

        if snapshot is not None and not force_refresh:
            age = self.snapshot_age_seconds()

            if age < self._fresh_seconds:
                return snapshot

            if age < self._max_age_seconds:
                self._revalidate_in_background(date_range)
                return snapshot

        await self.invalidate_cache(date_range)
        return self._state.data

    async def invalidate_cache(self, date_range: DateRange | None = None) -> None:
        """
        Run a fresh fetch cycle for the range.

        Joins a running or queued cycle that targets the same calendar
        days; otherwise queues a new cycle behind the ones already scheduled.
        """
        self._pending = [(dr, t) for dr, t in self._pending if not t.done()]

        task = next(
            (t for dr, t in reversed(self._pending) if same_date_range(dr, date_range, self._tz)),
            None,
        )
        if task is not None:
            logger.debug("Joining scheduled fetch cycle", pending=len(self._pending))
        else:
            task = asyncio.ensure_future(self._locked_fetch_cycle(date_range))
            self._pending.append((date_range, task))

        # Shielded so a cancelled caller does not cancel the shared cycle
        await asyncio.shield(task)

    async def wait_for_revalidation(self) -> None:
        task = self._revalidation_task
        if task is not None:
            await task

    async def close(self) -> None:
        """Cancel outstanding background work."""
        tasks = [self._revalidation_task, *(t for _, t in self._pending)]
        self._pending = []
        for task in tasks:
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._subscribers.clear()

    # ------------------------------------------------------------------
    # Fetch cycles
    # ------------------------------------------------------------------

    async def _locked_fetch_cycle(self, date_range: DateRange | None) -> None:
        async with self._fetch_lock:
            await self._run_fetch_cycle(date_range)

    async def _run_fetch_cycle(self, date_range: DateRange | None) -> None:
        self._set_state(
            loading=True,
            error=None,
            is_network_error=False,
            current_date_range=date_range,
        )

        t0 = time.perf_counter()
        try:
            snapshot = await with_timeout(self._load_snapshot(date_range), self._cycle_timeout, "fetch cycle")
        except asyncio.CancelledError:
            self._set_state(loading=False)
            raise
        except Exception as e:
            network = is_network_error(e)
            log_fetch_cycle(
                "failure",
                round((time.perf_counter() - t0) * 1000, 2),
                date_range=date_range.describe() if date_range else None,
                error=f"{type(e).__name__}: {e}",
            )
            # Prior snapshot stays visible
            self._set_state(loading=False, error=e, is_network_error=network)
            return

        log_fetch_cycle(
            "success",
            round((time.perf_counter() - t0) * 1000, 2),
            date_range=date_range.describe() if date_range else None,
            counts=snapshot.counts(),
        )
        self._set_state(
            data=snapshot,
            loading=False,
            error=None,
            is_network_error=False,
            last_fetch=snapshot.timestamp,
            current_date_range=date_range,
        )

    def _revalidate_in_background(self, date_range: DateRange | None) -> None:
        task = self._revalidation_task
        if task is not None and not task.done():
            logger.debug("Background revalidation already running")
            return
        self._revalidation_task = asyncio.create_task(self._revalidate(date_range))

    async def _revalidate(self, date_range: DateRange | None) -> None:
        started_at = self._clock()
        t0 = time.perf_counter()
        try:
            snapshot = await with_timeout(
                self._load_snapshot(date_range), self._cycle_timeout, "background revalidation"
            )
        except Exception as e:
            log_fetch_cycle(
                "failure",
                round((time.perf_counter() - t0) * 1000, 2),
                date_range=date_range.describe() if date_range else None,
                error=f"{type(e).__name__}: {e}",
                background=True,
            )
            return

        current = self._state.data
        if current is not None and current.timestamp > started_at:
            logger.info(
                "Discarding background revalidation superseded by a newer fetch",
                current_timestamp=current.timestamp.isoformat(),
                started_at=started_at.isoformat(),
            )
            return

        log_fetch_cycle(
            "success",
            round((time.perf_counter() - t0) * 1000, 2),
            date_range=date_range.describe() if date_range else None,
            counts=snapshot.counts(),
            background=True,
        )
        self._set_state(
            data=snapshot,
            error=None,
            is_network_error=False,
            last_fetch=snapshot.timestamp,
            current_date_range=date_range,
        )

    async def _load_snapshot(self, date_range: DateRange | None) -> Snapshot:
        """Fetch every collection sequentially and build a new snapshot."""
        if self._fetcher is None:
            logger.info("Gateway not configured, serving demo snapshot")
            return Snapshot.empty_demo(self._clock(), date_range)

        fetcher = self._fetcher
        # Unfiltered loads are large; space them out to avoid throttling
        delay = 0.0 if date_range is not None else self._unfiltered_delay

        sellers = await with_timeout(fetcher.fetch_sellers(), self._request_timeout, "sellers")
        await self._pause(delay)

        sales = await with_timeout(fetcher.fetch_sales(date_range), self._request_timeout, "sales")
        await self._pause(delay)

        contacts = await with_timeout(fetcher.fetch_contacts(date_range), self._request_timeout, "contacts")
        await self._pause(delay)

        all_contacts = await self._load_funnel_contacts(contacts)
        await self._pause(delay)

        interactions = await with_timeout(
            fetcher.fetch_interactions(date_range), self._request_timeout, "interactions"
        )
        await self._pause(delay)

        attempts = await with_timeout(fetcher.fetch_attempts(date_range), self._request_timeout, "attempts")

        return Snapshot(
            timestamp=self._clock(),
            sellers=tuple(sellers),
            contacts=tuple(contacts),
            all_contacts=tuple(all_contacts),
            interactions=tuple(interactions),
            sales=tuple(sales),
            attempts=tuple(attempts),
            is_demo=False,
            date_range=date_range,
        )

    async def _load_funnel_contacts(self, fallback: list[Contact]) -> list[Contact]:
        """Pipeline contacts by status; the date-filtered list stands in on failure."""
        try:
            funnel = await with_timeout(
                self._fetcher.fetch_contacts_by_status(self._funnel_statuses),
                self._funnel_timeout,
                "funnel contacts",
            )
        except Exception as e:
            logger.warning("Funnel contacts unavailable, using date-filtered contacts", error=str(e))
            return fallback

        return funnel if funnel else fallback

    @staticmethod
    async def _pause(seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
