"""
Dashboard data hook.

Per-consumer view over the cache coordinator for one selected date range.
The hook subscribes for its lifetime, keeps its own copy of the exposed
flags, and re-derives the range-filtered collections whenever the cache
changes. Errors are exposed as fields, never raised to the consumer.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, tzinfo

from salesdash.infrastructure.observability.logging import get_logger
from salesdash.models.domain.records import (
    Contact,
    DateRange,
    Interaction,
    PurchaseAttempt,
    Sale,
    Seller,
)
from salesdash.services.cache.coordinator import CacheCoordinator
from salesdash.services.cache.date_range import reconcile, same_date_range
from salesdash.services.cache.snapshot import CacheState, FilteredCollections, Snapshot

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DashboardData:
    """What the presentation layer reads on every render."""

    contacts: tuple[Contact, ...]
    all_contacts: tuple[Contact, ...]
    interactions: tuple[Interaction, ...]
    sales: tuple[Sale, ...]
    attempts: tuple[PurchaseAttempt, ...]
    sellers: tuple[Seller, ...]
    is_loading: bool
    is_demo: bool
    error: Exception | None
    is_network_error: bool
    is_initial_load: bool


class DashboardDataHook:
    """
    Dashboard view of the cache for one selected range.

    Lifecycle: ``mount()`` once, ``set_date_range()`` when the selection
    changes, ``refresh()`` on user request, ``unmount()`` on teardown.
    """

    def __init__(
        self,
        cache: CacheCoordinator,
        start: datetime,
        end: datetime,
        on_change: Callable[[DashboardData], None] | None = None,
        tz: tzinfo | None = None,
    ):
        self._cache = cache
        self._start = start
        self._end = end
        self._on_change = on_change
        self._tz = tz

        self._filtered = FilteredCollections()
        self._all_contacts: tuple[Contact, ...] = ()
        self._sellers: tuple[Seller, ...] = ()
        self._is_demo = False
        self._error: Exception | None = None
        self._is_network_error = False
        self._is_initial_load = True

        self._mounted = False
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def date_range(self) -> DateRange:
        return DateRange(start=self._start, end=self._end)

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def result(self) -> DashboardData:
        state = self._cache.get_cache_state()
        return DashboardData(
            contacts=self._filtered.contacts,
            all_contacts=self._all_contacts,
            interactions=self._filtered.interactions,
            sales=self._filtered.sales,
            attempts=self._filtered.attempts,
            sellers=self._sellers,
            is_loading=state.loading and self._is_initial_load,
            is_demo=self._is_demo,
            error=self._error,
            is_network_error=self._is_network_error,
            is_initial_load=self._is_initial_load,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def mount(self) -> DashboardData:
        """Subscribe to the cache and load data for the current range."""
        self._mounted = True
        self._unsubscribe = self._cache.subscribe(self._handle_cache_change)
        await self._load_initial_data()
        return self.result

    def unmount(self) -> None:
        self._mounted = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def set_date_range(self, start: datetime, end: datetime) -> DashboardData:
        """
        React to a new selection.

        After the first load a new range means a new server-side filter, so
        the cache is invalidated for it rather than re-filtered locally.
        """
        if start == self._start and end == self._end:
            return self.result

        self._start = start
        self._end = end

        if not self._is_initial_load:
            await self._cache.invalidate_cache(self.date_range)
        return self.result

    async def refresh(self) -> DashboardData:
        """User-requested reload for the current range."""
        self._is_initial_load = True
        self._error = None
        self._is_network_error = False
        self._emit()

        requested = self.date_range
        await self._cache.invalidate_cache(requested)
        await self._follow_range_changes(requested)

        if self._mounted:
            state = self._cache.get_cache_state()
            if state.data is not None:
                self._apply_snapshot(state.data)
            if state.error is not None:
                self._error = state.error
                self._is_network_error = state.is_network_error
            self._is_initial_load = False
            self._emit()

        return self.result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_initial_data(self) -> None:
        requested = self.date_range
        snapshot = await self._cache.get_data(False, requested)
        if await self._follow_range_changes(requested):
            snapshot = self._cache.get_cache_state().data

        if not self._mounted:
            return

        state = self._cache.get_cache_state()
        if snapshot is not None:
            self._apply_snapshot(snapshot)
        self._error = state.error
        self._is_network_error = state.is_network_error

        self._is_initial_load = False
        self._emit()

    async def _follow_range_changes(self, requested: DateRange) -> bool:
        """
        Fetch the current selection if it moved while a load was in flight.

        ``set_date_range`` only records the new bounds during an initial
        load or refresh; this catches up once that load returns.
        """
        changed = False
        while self._mounted and not same_date_range(requested, self.date_range, self._tz):
            requested = self.date_range
            changed = True
            logger.debug("Date range changed during load, refetching", date_range=requested.describe())
            await self._cache.invalidate_cache(requested)
        return changed

    def _handle_cache_change(self, state: CacheState) -> None:
        if not self._mounted:
            return

        if state.data is not None:
            self._apply_snapshot(state.data)

        self._error = state.error
        self._is_network_error = state.is_network_error
        self._emit()

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        self._sellers = snapshot.sellers
        self._is_demo = snapshot.is_demo
        self._all_contacts = snapshot.all_contacts
        self._filtered = reconcile(snapshot, self.date_range, self._tz)

    def _emit(self) -> None:
        if self._on_change is None or not self._mounted:
            return
        try:
            self._on_change(self.result)
        except Exception:
            logger.exception("Dashboard data listener raised")
