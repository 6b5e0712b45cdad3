"""
Withdrawal Planner

Turns an outbound request into a provenance record: which batches, oldest
first, supply how much. The plan is a point-in-time snapshot persisted with
the outbound movement; the stock itself only changes once that movement is
stored and levels are recomputed.
"""

from decimal import Decimal
from typing import Sequence

from Shared_Utils.dates_and_times import day_key
from Shared_Utils.precision import ZERO

from .exceptions import InsufficientStock
from .models import Batch, WithdrawalLine, WithdrawalPlan


def plan_withdrawal(
    batches: Sequence[Batch],
    requested: Decimal,
    silo_name: str = '',
) -> WithdrawalPlan:
    """
    Allocate ``requested`` kg across ``batches`` in FIFO order.

    Args:
        batches: Remaining batches, oldest first (not modified)
        requested: Quantity to withdraw; must not exceed the batch total
        silo_name: Used only in the error message

    Returns:
        WithdrawalPlan whose line quantities sum to ``requested``

    Raises:
        InsufficientStock: If the batches cannot cover ``requested``. The
            admission path checks availability first, so reaching this
            means the caller skipped that check.
    """
    available = sum((batch.quantity for batch in batches), ZERO)
    if requested > available:
        raise InsufficientStock(silo_name, available, requested)

    still_needed = requested
    lines = []

    for batch in batches:
        if still_needed <= ZERO:
            break
        if batch.quantity <= ZERO:
            continue

        taken = min(batch.quantity, still_needed)
        lines.append(WithdrawalLine(
            inbound_id=batch.inbound_id,
            quantity=taken,
            product=batch.product,
            supplier=batch.supplier,
            lot_tf=batch.lot_tf,
            entry_date=day_key(batch.created_at),
        ))
        still_needed -= taken

    return WithdrawalPlan(requested_quantity=requested, lines=tuple(lines))
