"""
Margin analysis calculation engine.

Pure functions that turn a project's raw inputs (service value in USD,
resource-hour allocations, third-party costs, non-bill hours) into the
reported metrics. Nothing here touches the database or raises; callers are
responsible for resolving cost rates and converting currency first.

Two snapshots are produced per project from the same primitives:
- baseline: baseline hours per allocation, no non-bill component
- final: final hours per allocation, plus non-bill hours costed at the
  unweighted average cost rate of the allocation set
"""
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

MARGIN_THRESHOLD = 40
PS_RATIO_THRESHOLD = 2.0
HOURS_TOLERANCE = 0.01

ON_TRACK = "On Track"
BELOW_TARGET = "Below Target"


@dataclass(frozen=True)
class CostBreakdown:
    predefined_resource_costs: float
    third_party_costs: float
    non_bill_costs: float
    total_costs: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class ProjectMetrics:
    total_costs_usd: int
    margin_percent: int
    net_revenue_usd: int
    ebita_usd: int
    ps_ratio: float
    margin_status: str
    ps_ratio_status: str
    breakdown: CostBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HoursValidation:
    is_valid: bool
    total_baseline_hours: float
    sum_of_resource_hours: float
    non_bill_hours: float
    calculated_total: float
    difference: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------
# helpers
# -------------------------

def _get(item: Any, key: str, default: float = 0.0) -> Any:
    """Read a field from a dict, a pydantic model or an ORM row."""
    if isinstance(item, Mapping):
        value = item.get(key, default)
    else:
        value = getattr(item, key, default)
    return default if value is None else value


def _round_half_up_int(value: float) -> int:
    # compare the fractional part instead of floor(value + 0.5): the addition
    # itself can round up, e.g. 0.49999999999999994 + 0.5 == 1.0
    whole = math.floor(value)
    return whole + 1 if value - whole >= 0.5 else whole


def round_half_up(value: float, digits: int = 0):
    """
    Round halves towards +infinity (0.5 -> 1, -0.5 -> 0, -2.5 -> -2).

    Stored figures were historically rounded this way, on value * 10**digits
    for the decimal case; Python's round() uses banker's rounding
    and would shift a handful of values by one unit.
    """
    if digits == 0:
        return _round_half_up_int(value)
    factor = 10 ** digits
    return _round_half_up_int(value * factor) / factor


def average_cost_rate(allocations: Sequence[Any]) -> float:
    """Unweighted mean of cost_rate_usd across the allocation set (0 when empty)."""
    if not allocations:
        return 0.0
    total_rate = sum(_get(a, "cost_rate_usd") for a in allocations)
    return total_rate / len(allocations)


def margin_status(margin_percent: float) -> str:
    return ON_TRACK if margin_percent >= MARGIN_THRESHOLD else BELOW_TARGET


def ps_ratio_status(ps_ratio: float) -> str:
    return ON_TRACK if ps_ratio >= PS_RATIO_THRESHOLD else BELOW_TARGET


# -------------------------
# cost aggregation
# -------------------------

def aggregate_costs(
    allocations: Iterable[Any],
    third_party: Iterable[Any],
    non_bill_hours: float = 0.0,
    avg_cost_rate: float = 0.0,
) -> CostBreakdown:
    """
    Sum the cost components of a project.

    `allocations` items need `hours` and `cost_rate_usd`; `third_party` items
    need `cost_usd`. Inputs are not validated.
    """
    predefined = sum(_get(a, "hours") * _get(a, "cost_rate_usd") for a in allocations)
    third_party_costs = sum(_get(t, "cost_usd") for t in third_party)
    non_bill_costs = non_bill_hours * avg_cost_rate

    return CostBreakdown(
        predefined_resource_costs=predefined,
        third_party_costs=third_party_costs,
        non_bill_costs=non_bill_costs,
        total_costs=predefined + third_party_costs + non_bill_costs,
    )


# -------------------------
# metrics
# -------------------------

def compute_metrics(service_value_usd: float, breakdown: CostBreakdown) -> ProjectMetrics:
    """
    Derive net revenue, EBITA, margin % and PS ratio from a cost breakdown.

    COGS is third-party cost only; OPEX is predefined resource cost only.
    Statuses are classified on the unrounded margin and PS ratio.
    """
    net_revenue = service_value_usd - breakdown.third_party_costs
    ebita = service_value_usd - breakdown.total_costs

    margin = 0.0 if service_value_usd == 0 else (ebita / service_value_usd) * 100

    opex = breakdown.predefined_resource_costs
    ps_ratio = 0.0 if opex == 0 else net_revenue / opex

    return ProjectMetrics(
        total_costs_usd=round_half_up(breakdown.total_costs),
        margin_percent=round_half_up(margin),
        net_revenue_usd=round_half_up(net_revenue),
        ebita_usd=round_half_up(ebita),
        ps_ratio=round_half_up(ps_ratio, 2),
        margin_status=margin_status(margin),
        ps_ratio_status=ps_ratio_status(ps_ratio),
        breakdown=breakdown,
    )


def compute_project_metrics(
    service_value_usd: float,
    allocations: Sequence[Any],
    third_party: Sequence[Any],
    non_bill_hours: float = 0.0,
) -> ProjectMetrics:
    """Final metrics: final hours plus non-bill hours at the average cost rate."""
    final_allocations = [
        {"hours": _final_hours(a), "cost_rate_usd": _get(a, "cost_rate_usd")}
        for a in allocations
    ]
    breakdown = aggregate_costs(
        final_allocations,
        third_party,
        non_bill_hours or 0.0,
        average_cost_rate(final_allocations),
    )
    return compute_metrics(service_value_usd, breakdown)


def compute_baseline_metrics(
    service_value_usd: float,
    allocations: Sequence[Any],
    third_party: Sequence[Any],
) -> ProjectMetrics:
    """Baseline metrics: baseline hours only, no non-bill component."""
    baseline_allocations = [
        {"hours": _get(a, "baseline_hours"), "cost_rate_usd": _get(a, "cost_rate_usd")}
        for a in allocations
    ]
    breakdown = aggregate_costs(baseline_allocations, third_party, 0.0, 0.0)
    return compute_metrics(service_value_usd, breakdown)


def compute_variance(baseline: ProjectMetrics, final: ProjectMetrics) -> Dict[str, float]:
    """Per-metric difference, final minus baseline."""
    return {
        "total_costs_usd": final.total_costs_usd - baseline.total_costs_usd,
        "margin_percent": final.margin_percent - baseline.margin_percent,
        "net_revenue_usd": final.net_revenue_usd - baseline.net_revenue_usd,
        "ebita_usd": final.ebita_usd - baseline.ebita_usd,
        "ps_ratio": round_half_up(final.ps_ratio - baseline.ps_ratio, 2),
    }


def _final_hours(allocation: Any) -> float:
    # `hours` carries the final figure on stored rows; plain inputs may only
    # provide `final_hours`.
    hours = _get(allocation, "hours", None)
    if hours is None:
        return _get(allocation, "final_hours")
    return hours


# -------------------------
# hours reconciliation
# -------------------------

def validate_baseline_hours(
    total_baseline_hours: float,
    allocations: Sequence[Any],
    non_bill_hours: float = 0.0,
) -> HoursValidation:
    """
    Compare the declared hour ceiling with allocated hours plus non-bill hours.

    Advisory only: a mismatch is returned as data and never raised.
    """
    non_bill_hours = non_bill_hours or 0.0
    sum_of_resource_hours = sum(_final_hours(a) for a in allocations)
    calculated_total = sum_of_resource_hours + non_bill_hours

    return HoursValidation(
        is_valid=abs(total_baseline_hours - calculated_total) < HOURS_TOLERANCE,
        total_baseline_hours=total_baseline_hours,
        sum_of_resource_hours=sum_of_resource_hours,
        non_bill_hours=non_bill_hours,
        calculated_total=calculated_total,
        difference=total_baseline_hours - calculated_total,
    )


def derive_non_bill_hours(project_baseline_hours: Optional[float], allocations: Sequence[Any]) -> float:
    """
    Hours allocated beyond the contracted ceiling: max(0, sum(final) - ceiling).

    With no ceiling declared there is nothing to overflow, so the result is 0.
    """
    if project_baseline_hours is None:
        return 0.0
    total_final = sum(_final_hours(a) for a in allocations)
    return max(0.0, total_final - project_baseline_hours)


def summarize(
    service_value_usd: float,
    allocations: Sequence[Any],
    third_party: Sequence[Any],
    total_baseline_hours: float,
    non_bill_hours: Optional[float] = None,
    project_baseline_hours: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Run both snapshots and the reconciler over one set of inputs.

    When `non_bill_hours` is None it is derived from the allocations and the
    project-level baseline hours ceiling.
    """
    if non_bill_hours is None:
        non_bill_hours = derive_non_bill_hours(project_baseline_hours, allocations)

    baseline = compute_baseline_metrics(service_value_usd, allocations, third_party)
    final = compute_project_metrics(service_value_usd, allocations, third_party, non_bill_hours)

    return {
        "non_bill_hours": non_bill_hours,
        "baseline": baseline,
        "final": final,
        "variance": compute_variance(baseline, final),
        "hours_validation": validate_baseline_hours(total_baseline_hours, allocations, non_bill_hours),
    }

