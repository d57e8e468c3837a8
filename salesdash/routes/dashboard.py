"""
Dashboard data endpoints.

Each request mounts a DashboardDataHook for the requested days against
the shared cache coordinator, reads its result, and unmounts it.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from salesdash.config import settings
from salesdash.infrastructure.observability.logging import get_logger
from salesdash.models.api.dashboard_response import (
    CacheStatusResponse,
    ContactResponse,
    DashboardDataResponse,
    DashboardSummaryResponse,
    DistributionResponse,
    FunnelStepResponse,
    InteractionResponse,
    ProductRevenueResponse,
    PurchaseAttemptResponse,
    RecoveryMetricsResponse,
    SaleResponse,
    SellerResponse,
    VendorConversionResponse,
    VendorPerformanceResponse,
    VendorRecoveryResponse,
)
from salesdash.models.domain.records import DateRange
from salesdash.services import metrics
from salesdash.services.cache.coordinator import CacheCoordinator
from salesdash.services.dashboard_data import DashboardData, DashboardDataHook

logger = get_logger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def get_cache_coordinator(request: Request) -> CacheCoordinator:
    """The coordinator built by the application lifespan."""
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard cache not initialized",
        )
    return cache


def _resolve_range(start: date | None, end: date | None) -> DateRange:
    tz = settings.timezone()
    today = datetime.now(tz).date()
    start_day = start or today
    end_day = end or start_day

    if start_day > end_day:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"start ({start_day}) must not be after end ({end_day})",
        )
    return DateRange.for_days(start_day, end_day, tz)


def _error_text(data: DashboardData) -> str | None:
    return str(data.error) if data.error is not None else None


def _to_response(date_range: DateRange, data: DashboardData) -> DashboardDataResponse:
    return DashboardDataResponse(
        start=date_range.start.date(),
        end=date_range.end.date(),
        contacts=[ContactResponse.model_validate(c) for c in data.contacts],
        all_contacts=[ContactResponse.model_validate(c) for c in data.all_contacts],
        interactions=[InteractionResponse.model_validate(i) for i in data.interactions],
        sales=[SaleResponse.model_validate(s) for s in data.sales],
        attempts=[PurchaseAttemptResponse.model_validate(a) for a in data.attempts],
        sellers=[SellerResponse.model_validate(s) for s in data.sellers],
        is_loading=data.is_loading,
        is_demo=data.is_demo,
        error=_error_text(data),
        is_network_error=data.is_network_error,
        is_initial_load=data.is_initial_load,
    )


async def _load(cache: CacheCoordinator, date_range: DateRange, refresh: bool = False) -> DashboardData:
    if refresh:
        # The hook then mounts on the fresh snapshot
        await cache.invalidate_cache(date_range)

    hook = DashboardDataHook(cache, date_range.start, date_range.end)
    try:
        return await hook.mount()
    finally:
        hook.unmount()


@router.get("/data", response_model=DashboardDataResponse)
async def dashboard_data(
    start: date | None = Query(None, description="First day (YYYY-MM-DD), defaults to today"),
    end: date | None = Query(None, description="Last day (YYYY-MM-DD), defaults to start"),
    cache: CacheCoordinator = Depends(get_cache_coordinator),
):
    """Collections for the selected days, served from cache when possible."""
    date_range = _resolve_range(start, end)
    data = await _load(cache, date_range)
    return _to_response(date_range, data)


@router.post("/refresh", response_model=DashboardDataResponse)
async def refresh_dashboard(
    start: date | None = Query(None),
    end: date | None = Query(None),
    cache: CacheCoordinator = Depends(get_cache_coordinator),
):
    """Force a reload from the gateway for the selected days."""
    date_range = _resolve_range(start, end)
    logger.info("Dashboard refresh requested", date_range=date_range.describe())
    data = await _load(cache, date_range, refresh=True)
    return _to_response(date_range, data)


@router.get("/summary", response_model=DashboardSummaryResponse)
async def dashboard_summary(
    start: date | None = Query(None),
    end: date | None = Query(None),
    cache: CacheCoordinator = Depends(get_cache_coordinator),
):
    """KPI summary for the selected days."""
    date_range = _resolve_range(start, end)
    data = await _load(cache, date_range)
    recovery = metrics.recovery_metrics(data.attempts)

    return DashboardSummaryResponse(
        start=date_range.start.date(),
        end=date_range.end.date(),
        leads_in_pipeline=metrics.leads_in_pipeline(data.all_contacts),
        new_contacts=len(data.contacts),
        conversion_rate=metrics.conversion_rate(data.contacts),
        total_revenue=metrics.total_revenue(data.sales),
        sales_count=len(data.sales),
        average_ticket=metrics.average_ticket(data.sales),
        interactions_count=len(data.interactions),
        funnel=[FunnelStepResponse.model_validate(step) for step in metrics.funnel_by_status(data.all_contacts)],
        recovery=RecoveryMetricsResponse.model_validate(recovery),
        sales_by_vendor=[
            VendorPerformanceResponse.model_validate(v)
            for v in metrics.sales_by_vendor(data.sales, data.contacts, data.interactions, data.sellers)
        ],
        conversion_by_vendor=[
            VendorConversionResponse.model_validate(v)
            for v in metrics.conversion_by_vendor(data.contacts, data.sellers)
        ],
        recovery_by_vendor=[
            VendorRecoveryResponse.model_validate(v) for v in metrics.recovery_by_vendor(data.attempts, data.sellers)
        ],
        leads_by_status=[DistributionResponse.model_validate(d) for d in metrics.leads_by_status(data.all_contacts)],
        lost_reasons=[DistributionResponse.model_validate(d) for d in metrics.lost_reasons(data.contacts)],
        interactions_by_channel=[
            DistributionResponse.model_validate(d) for d in metrics.interactions_by_channel(data.interactions)
        ],
        revenue_by_product=[ProductRevenueResponse.model_validate(p) for p in metrics.revenue_by_product(data.sales)],
        is_demo=data.is_demo,
        error=_error_text(data),
        is_network_error=data.is_network_error,
    )


@router.get("/cache", response_model=CacheStatusResponse)
async def cache_status(cache: CacheCoordinator = Depends(get_cache_coordinator)):
    """Snapshot age, range and error state of the shared cache."""
    state = cache.get_cache_state()
    snapshot = state.data
    revalidation = cache.revalidation_task

    date_range = None
    if snapshot is not None and snapshot.date_range is not None:
        date_range = {"start": snapshot.date_range.start, "end": snapshot.date_range.end}

    return CacheStatusResponse(
        has_data=snapshot is not None,
        loading=state.loading,
        is_demo=snapshot.is_demo if snapshot is not None else None,
        error=str(state.error) if state.error is not None else None,
        is_network_error=state.is_network_error,
        last_fetch=state.last_fetch,
        snapshot_age_seconds=cache.snapshot_age_seconds(),
        date_range=date_range,
        counts=snapshot.counts() if snapshot is not None else {},
        revalidating=revalidation is not None and not revalidation.done(),
    )
