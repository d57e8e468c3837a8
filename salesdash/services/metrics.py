"""KPI calculations over the hook's collections."""

import math
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from salesdash.models.domain.records import (
    Contact,
    Interaction,
    LeadStatus,
    PurchaseAttempt,
    PurchaseAttemptStatus,
    Sale,
    Seller,
)

ACTIVE_STATUSES = frozenset({LeadStatus.NEW, LeadStatus.CONTACTED, LeadStatus.INTERESTED})

FUNNEL_ORDER: tuple[LeadStatus, ...] = (
    LeadStatus.NEW,
    LeadStatus.CONTACTED,
    LeadStatus.INTERESTED,
    LeadStatus.CLOSED_WON,
    LeadStatus.CLOSED_LOST,
)

FUNNEL_LABELS: dict[LeadStatus, str] = {
    LeadStatus.NEW: "Lead Nuevo",
    LeadStatus.CONTACTED: "En Seguimiento",
    LeadStatus.INTERESTED: "Interesado",
    LeadStatus.CLOSED_WON: "Venta Cerrada",
    LeadStatus.CLOSED_LOST: "Venta Perdida",
}


@dataclass(frozen=True, slots=True)
class FunnelStep:
    status: str
    count: int
    percentage: int


@dataclass(frozen=True, slots=True)
class RecoveryMetrics:
    total_recoverable: int
    recovered: int
    recovery_rate: int
    potential_value: float
    recovered_value: float


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _percent(part: float, whole: float) -> int:
    if whole == 0:
        return 0
    return _round_half_up(part / whole * 100)


def leads_in_pipeline(contacts: Iterable[Contact]) -> int:
    return sum(1 for c in contacts if c.status in ACTIVE_STATUSES)


def conversion_rate(contacts: Sequence[Contact]) -> int:
    """Won over closed (won + lost), as a rounded percentage."""
    won = sum(1 for c in contacts if c.status == LeadStatus.CLOSED_WON)
    lost = sum(1 for c in contacts if c.status == LeadStatus.CLOSED_LOST)
    return _percent(won, won + lost)


def total_revenue(sales: Iterable[Sale]) -> float:
    return sum(s.amount or 0 for s in sales)


def average_ticket(sales: Sequence[Sale]) -> int:
    if not sales:
        return 0
    return _round_half_up(total_revenue(sales) / len(sales))


def funnel_by_status(contacts: Sequence[Contact]) -> list[FunnelStep]:
    counts = Counter(c.status for c in contacts)
    total = len(contacts)
    return [
        FunnelStep(
            status=FUNNEL_LABELS[status],
            count=counts.get(status, 0),
            percentage=_percent(counts.get(status, 0), total),
        )
        for status in FUNNEL_ORDER
    ]


def recovery_metrics(attempts: Iterable[PurchaseAttempt]) -> RecoveryMetrics:
    """Failed or abandoned attempts are recoverable; a recovery seller marks them recovered."""
    recoverable = [
        a
        for a in attempts
        if a.status in (PurchaseAttemptStatus.FAILED, PurchaseAttemptStatus.ABANDONED)
    ]
    recovered = [a for a in recoverable if a.recovery_seller_id]

    return RecoveryMetrics(
        total_recoverable=len(recoverable),
        recovered=len(recovered),
        recovery_rate=_percent(len(recovered), len(recoverable)),
        potential_value=sum(a.amount or 0 for a in recoverable),
        recovered_value=sum(a.amount or 0 for a in recovered),
    )


# ---------------------------------------------------------------------------
# Per-seller performance
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VendorPerformance:
    vendor_id: str
    vendor_name: str
    sales_count: int
    sales_amount: float
    conversion_rate: int
    avg_closing_days: int
    active_leads: int
    interactions: int
    rank: int


@dataclass(frozen=True, slots=True)
class VendorConversion:
    vendor_id: str
    vendor_name: str
    total_leads: int
    won_leads: int
    lost_leads: int
    conversion_rate: int


@dataclass(frozen=True, slots=True)
class VendorRecovery:
    vendor_id: str
    vendor_name: str
    assigned_attempts: int
    recovered_attempts: int
    recovery_rate: int
    recovered_value: float


@dataclass(frozen=True, slots=True)
class Distribution:
    """One bucket of a count breakdown (status, channel, lost reason)."""

    label: str
    count: int
    percentage: int


@dataclass(frozen=True, slots=True)
class ProductRevenue:
    product_name: str
    quantity: int
    revenue: float
    percentage: int


def sales_by_vendor(
    sales: Sequence[Sale],
    contacts: Sequence[Contact],
    interactions: Sequence[Interaction],
    sellers: Sequence[Seller],
) -> list[VendorPerformance]:
    """Every seller's sales, pipeline and activity, ranked by sales amount."""
    rows = []
    for seller in sellers:
        own_sales = [s for s in sales if s.seller_id == seller.id]
        own_contacts = [c for c in contacts if c.assigned_seller_id == seller.id]
        cycle_days = [s.sales_cycle_days for s in own_sales if s.sales_cycle_days]

        rows.append(
            {
                "vendor_id": seller.id,
                "vendor_name": seller.name,
                "sales_count": len(own_sales),
                "sales_amount": total_revenue(own_sales),
                "conversion_rate": conversion_rate(own_contacts),
                "avg_closing_days": _round_half_up(sum(cycle_days) / len(cycle_days)) if cycle_days else 0,
                "active_leads": leads_in_pipeline(own_contacts),
                "interactions": sum(1 for i in interactions if i.seller_id == seller.id),
            }
        )

    rows.sort(key=lambda row: row["sales_amount"], reverse=True)
    return [VendorPerformance(rank=index, **row) for index, row in enumerate(rows, start=1)]


def conversion_by_vendor(contacts: Sequence[Contact], sellers: Sequence[Seller]) -> list[VendorConversion]:
    result = []
    for seller in sellers:
        own = [c for c in contacts if c.assigned_seller_id == seller.id]
        won = sum(1 for c in own if c.status == LeadStatus.CLOSED_WON)
        lost = sum(1 for c in own if c.status == LeadStatus.CLOSED_LOST)
        result.append(
            VendorConversion(
                vendor_id=seller.id,
                vendor_name=seller.name,
                total_leads=len(own),
                won_leads=won,
                lost_leads=lost,
                conversion_rate=_percent(won, won + lost),
            )
        )
    return sorted(result, key=lambda v: v.conversion_rate, reverse=True)


def recovery_by_vendor(attempts: Iterable[PurchaseAttempt], sellers: Sequence[Seller]) -> list[VendorRecovery]:
    """
    Recoverable attempts per recovery seller.

    An attempt with a recovery seller counts as recovered; sellers without
    assigned attempts are left out.
    """
    recoverable = [
        a
        for a in attempts
        if a.status in (PurchaseAttemptStatus.FAILED, PurchaseAttemptStatus.ABANDONED) and a.recovery_seller_id
    ]

    result = []
    for seller in sellers:
        own = [a for a in recoverable if a.recovery_seller_id == seller.id]
        if not own:
            continue
        result.append(
            VendorRecovery(
                vendor_id=seller.id,
                vendor_name=seller.name,
                assigned_attempts=len(own),
                recovered_attempts=len(own),
                recovery_rate=_percent(len(own), len(own)),
                recovered_value=sum(a.amount or 0 for a in own),
            )
        )
    return sorted(result, key=lambda v: v.recovery_rate, reverse=True)


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------

STATUS_LABELS: dict[LeadStatus, str] = {
    LeadStatus.NEW: "Lead Nuevo",
    LeadStatus.CONTACTED: "Contactado",
    LeadStatus.INTERESTED: "Calificado",
    LeadStatus.CLOSED_WON: "Ganado",
    LeadStatus.CLOSED_LOST: "Perdido",
}


def _distribution(labels: Iterable[str]) -> list[Distribution]:
    counts = Counter(labels)
    total = sum(counts.values())
    buckets = [
        Distribution(label=label, count=count, percentage=_percent(count, total))
        for label, count in counts.items()
    ]
    return sorted(buckets, key=lambda b: b.count, reverse=True)


def leads_by_status(contacts: Iterable[Contact]) -> list[Distribution]:
    return _distribution(STATUS_LABELS.get(c.status, str(c.status)) for c in contacts)


def lost_reasons(contacts: Iterable[Contact]) -> list[Distribution]:
    """Lost contacts grouped by the free-text reason, falling back to the inferred one."""
    return _distribution(
        c.lost_reason_detail or (c.lost_reason.value if c.lost_reason else "Sin especificar")
        for c in contacts
        if c.status == LeadStatus.CLOSED_LOST
    )


def interactions_by_channel(interactions: Iterable[Interaction]) -> list[Distribution]:
    return _distribution(i.type.value for i in interactions)


def revenue_by_product(sales: Sequence[Sale]) -> list[ProductRevenue]:
    revenue: dict[str, float] = {}
    quantity: Counter[str] = Counter()
    for sale in sales:
        revenue[sale.product_name] = revenue.get(sale.product_name, 0) + (sale.amount or 0)
        quantity[sale.product_name] += 1

    total = sum(revenue.values())
    products = [
        ProductRevenue(
            product_name=name,
            quantity=quantity[name],
            revenue=amount,
            percentage=_percent(amount, total),
        )
        for name, amount in revenue.items()
    ]
    return sorted(products, key=lambda p: p.revenue, reverse=True)
