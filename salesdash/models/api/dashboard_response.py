"""
Dashboard API response models.
Used by routes for output formatting.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from salesdash.models.domain.records import (
    InteractionType,
    LeadStatus,
    LostReason,
    PurchaseAttemptStatus,
)


class _RecordModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class SellerResponse(_RecordModel):
    id: str
    name: str
    avatar_url: str | None = None


class ContactResponse(_RecordModel):
    id: str
    name: str
    country: str
    created_at: str = Field(..., description="UTC ISO timestamp")
    status: LeadStatus
    assigned_seller_id: str
    lost_reason: LostReason | None = None
    lost_reason_detail: str = ""


class InteractionResponse(_RecordModel):
    id: str
    contact_id: str
    seller_id: str
    type: InteractionType
    date: str
    duration_seconds: int = 0
    result: str = ""


class SaleResponse(_RecordModel):
    id: str
    contact_id: str
    seller_id: str
    product_name: str
    amount: float
    date: str
    payment_status: str | None = None
    sales_cycle_days: int | None = None
    interaction_count_snapshot: int | None = None


class PurchaseAttemptResponse(_RecordModel):
    id: str
    contact_id: str
    amount: float
    status: PurchaseAttemptStatus
    date: str
    recovery_seller_id: str = ""


class DashboardDataResponse(BaseModel):
    """Response for the dashboard data endpoint."""

    start: date = Field(..., description="First day of the selected range")
    end: date = Field(..., description="Last day of the selected range")
    contacts: list[ContactResponse] = Field(..., description="Contacts created in the range")
    all_contacts: list[ContactResponse] = Field(
        ..., description="Pipeline contacts, independent of the range"
    )
    interactions: list[InteractionResponse]
    sales: list[SaleResponse]
    attempts: list[PurchaseAttemptResponse]
    sellers: list[SellerResponse]
    is_loading: bool
    is_demo: bool = Field(..., description="No gateway configured; data is empty")
    error: str | None = Field(None, description="Last fetch error, if any")
    is_network_error: bool = Field(default=False, description="Error was a connectivity problem")
    is_initial_load: bool


class FunnelStepResponse(_RecordModel):
    status: str
    count: int
    percentage: int


class RecoveryMetricsResponse(_RecordModel):
    total_recoverable: int
    recovered: int
    recovery_rate: int
    potential_value: float
    recovered_value: float


class VendorPerformanceResponse(_RecordModel):
    vendor_id: str
    vendor_name: str
    sales_count: int
    sales_amount: float
    conversion_rate: int
    avg_closing_days: int
    active_leads: int
    interactions: int
    rank: int


class VendorConversionResponse(_RecordModel):
    vendor_id: str
    vendor_name: str
    total_leads: int
    won_leads: int
    lost_leads: int
    conversion_rate: int


class VendorRecoveryResponse(_RecordModel):
    vendor_id: str
    vendor_name: str
    assigned_attempts: int
    recovered_attempts: int
    recovery_rate: int
    recovered_value: float


class DistributionResponse(_RecordModel):
    label: str
    count: int
    percentage: int


class ProductRevenueResponse(_RecordModel):
    product_name: str
    quantity: int
    revenue: float
    percentage: int


class DashboardSummaryResponse(BaseModel):
    """KPI cards for the executive view."""

    start: date
    end: date
    leads_in_pipeline: int
    new_contacts: int
    conversion_rate: int = Field(..., description="Won / (won + lost), percent")
    total_revenue: float
    sales_count: int
    average_ticket: int
    interactions_count: int
    funnel: list[FunnelStepResponse]
    recovery: RecoveryMetricsResponse
    sales_by_vendor: list[VendorPerformanceResponse] = Field(..., description="Ranked by sales amount")
    conversion_by_vendor: list[VendorConversionResponse]
    recovery_by_vendor: list[VendorRecoveryResponse]
    leads_by_status: list[DistributionResponse] = Field(..., description="Pipeline contacts by stage")
    lost_reasons: list[DistributionResponse]
    interactions_by_channel: list[DistributionResponse]
    revenue_by_product: list[ProductRevenueResponse]
    is_demo: bool
    error: str | None = None
    is_network_error: bool = False


class CacheStatusResponse(BaseModel):
    """Current cache state for monitoring."""

    has_data: bool
    loading: bool
    is_demo: bool | None = None
    error: str | None = None
    is_network_error: bool = False
    last_fetch: datetime | None = None
    snapshot_age_seconds: float | None = None
    date_range: dict[str, datetime] | None = None
    counts: dict[str, int] = Field(default_factory=dict)
    revalidating: bool = False
