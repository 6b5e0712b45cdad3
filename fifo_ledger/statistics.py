"""
Statistics Aggregator

Fleet-wide utilization figures from computed levels, and movement totals
grouped by product, supplier, operator, silo, day or month.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Callable, Dict, Iterable, Optional, Sequence

from Config.constants_silo import PERCENT_DECIMALS, UNKNOWN_GROUP_LABEL
from Shared_Utils.dates_and_times import month_key, day_key
from Shared_Utils.precision import ZERO, quant_from_places, to_percent

from .models import (
    FleetStats,
    GroupTotals,
    MovementKind,
    MovementSummary,
    OutboundMovement,
    SiloLevel,
    UtilizationBucket,
)


GROUP_KEYS: Dict[str, Callable] = {
    'product': lambda m: m.product,
    'supplier': lambda m: m.supplier,
    'operator': lambda m: m.operator,
    'silo': lambda m: m.silo_id,
    'month': lambda m: month_key(m.created_at),
    'day': lambda m: day_key(m.created_at),
}


def classify_utilization(percentage: Decimal) -> str:
    """Bucket name for a fill percentage (empty/low/medium/high/full)."""
    return UtilizationBucket.classify(percentage).value


def aggregate(levels: Sequence[SiloLevel]) -> FleetStats:
    """Summarize a set of silo levels."""
    buckets = {bucket.value: 0 for bucket in UtilizationBucket}
    total_capacity = ZERO
    total_used = ZERO
    pct_sum = ZERO

    for level in levels:
        buckets[level.bucket.value] += 1
        total_capacity += level.silo.capacity
        total_used += level.current_quantity
        pct_sum += level.utilization_percentage

    if levels:
        average = (pct_sum / len(levels)).quantize(quant_from_places(PERCENT_DECIMALS))
    else:
        average = ZERO.quantize(quant_from_places(PERCENT_DECIMALS))

    return FleetStats(
        total_silos=len(levels),
        buckets=buckets,
        total_capacity=total_capacity,
        total_used=total_used,
        overall_utilization=to_percent(total_used, total_capacity, cap=False),
        average_utilization=average,
    )


def _group_label(movement, group_by: str) -> str:
    try:
        key_fn = GROUP_KEYS[group_by]
    except KeyError:
        raise ValueError(
            f"Unknown group_by {group_by!r}; expected one of {sorted(GROUP_KEYS)}"
        ) from None
    value = key_fn(movement)
    if value is None or value == '':
        return UNKNOWN_GROUP_LABEL
    return str(value)


def aggregate_movements(movements: Iterable, group_by: str) -> Dict[str, Decimal]:
    """
    Total quantity per group.

    Args:
        movements: Inbound or outbound movements
        group_by: One of product, supplier, operator, silo, month, day

    Returns:
        Mapping of group label to summed kilograms, in first-seen order.
        Movements without the attribute are counted under 'Unknown'.
    """
    totals: Dict[str, Decimal] = {}
    for movement in movements:
        label = _group_label(movement, group_by)
        totals[label] = totals.get(label, ZERO) + movement.quantity
    return totals


def movement_summary(
    movements: Iterable,
    group_by: str,
    kind: Optional[MovementKind] = None,
) -> MovementSummary:
    """Count, total and average per group for a set of movements."""
    counts: Dict[str, int] = defaultdict(int)
    quantities: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    total_movements = 0
    total_quantity = ZERO

    for movement in movements:
        label = _group_label(movement, group_by)
        counts[label] += 1
        quantities[label] += movement.quantity
        total_movements += 1
        total_quantity += movement.quantity

    average = total_quantity / total_movements if total_movements else ZERO

    return MovementSummary(
        kind=kind,
        group_by=group_by,
        total_movements=total_movements,
        total_quantity=total_quantity,
        average_quantity=average,
        groups={label: GroupTotals(counts[label], quantities[label]) for label in counts},
    )


def withdrawn_by_product(outbound: Iterable[OutboundMovement]) -> Dict[str, Decimal]:
    """Kilograms withdrawn per product, read from the stored withdrawal plans."""
    totals: Dict[str, Decimal] = {}
    for movement in outbound:
        for line in movement.items:
            label = line.product or UNKNOWN_GROUP_LABEL
            totals[label] = totals.get(label, ZERO) + line.quantity
    return totals
