"""
FIFO Ledger Engine

Reconstructs each silo's current quantity and batch composition from its
full inbound/outbound history. Movement records are immutable facts; levels
are derived on every call and never stored, so recomputation is the only
update path.

Usage:
    levels = compute_levels(silos, inbound_history, outbound_history)
    for level in levels:
        print(level.silo.name, level.current_quantity, level.batches)
"""

from collections import deque, defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from Shared_Utils.dates_and_times import standardize_timestamp
from Shared_Utils.logger import StructuredLogger, get_component_logger
from Shared_Utils.precision import ZERO, to_percent

from .models import (
    Batch,
    InboundMovement,
    OutboundMovement,
    ProcessingOrder,
    Silo,
    SiloLevel,
)

Movement = Union[InboundMovement, OutboundMovement]


@dataclass
class _OpenBatch:
    """Working copy of a batch while the history is replayed."""

    source: InboundMovement
    remaining: Decimal

    def freeze(self) -> Batch:
        return Batch(
            inbound_id=self.source.id,
            quantity=self.remaining,
            created_at=self.source.created_at,
            product=self.source.product,
            supplier=self.source.supplier,
            lot_tf=self.source.lot_tf,
        )


@dataclass
class _Replay:
    batches: Deque[_OpenBatch]
    current: Decimal = ZERO
    total_inbound: Decimal = ZERO
    total_outbound: Decimal = ZERO
    unmatched: Decimal = ZERO


def compute_levels(
    silos: Iterable[Silo],
    inbound: Iterable[InboundMovement],
    outbound: Iterable[OutboundMovement],
    order: Union[ProcessingOrder, str] = ProcessingOrder.CHRONOLOGICAL,
    logger: Optional[StructuredLogger] = None,
) -> List[SiloLevel]:
    """
    Compute the level of every given silo from the movement histories.

    Histories may contain movements for other silos; they are ignored.
    Results follow the order of ``silos``.

    Args:
        silos: Silos to compute
        inbound: Inbound history (any order; sorted internally)
        outbound: Outbound history (any order; sorted internally)
        order: CHRONOLOGICAL replays movements in true timestamp order,
            PHASED replays all inbound first and then all outbound
        logger: Optional logger (defaults to the 'fifo_ledger' component logger)

    Returns:
        List of SiloLevel snapshots
    """
    order = ProcessingOrder.from_config(order)
    inbound_by_silo = _group_by_silo(inbound)
    outbound_by_silo = _group_by_silo(outbound)

    return [
        compute_level(
            silo,
            inbound_by_silo.get(silo.id, ()),
            outbound_by_silo.get(silo.id, ()),
            order=order,
            logger=logger,
        )
        for silo in silos
    ]


def compute_level(
    silo: Silo,
    inbound: Sequence[InboundMovement],
    outbound: Sequence[OutboundMovement],
    order: Union[ProcessingOrder, str] = ProcessingOrder.CHRONOLOGICAL,
    logger: Optional[StructuredLogger] = None,
) -> SiloLevel:
    """Compute one silo's level from histories that belong to it."""
    order = ProcessingOrder.from_config(order)
    replay = _replay(inbound, outbound, order)

    if replay.unmatched > ZERO:
        (logger or get_component_logger('fifo_ledger')).unmatched_outbound(
            f"Outbound history exceeds recorded stock in silo '{silo.name}' "
            f"by {replay.unmatched} kg",
            extra={'silo_id': silo.id, 'order': order.value},
        )

    current = max(ZERO, replay.current)
    return SiloLevel(
        silo=silo,
        current_quantity=current,
        batches=tuple(open_batch.freeze() for open_batch in replay.batches),
        utilization_percentage=to_percent(current, silo.capacity, places=None),
        total_inbound=replay.total_inbound,
        total_outbound=replay.total_outbound,
        unmatched_quantity=replay.unmatched,
    )


def reconstruct_batches(
    inbound: Sequence[InboundMovement],
    outbound: Sequence[OutboundMovement],
    order: Union[ProcessingOrder, str] = ProcessingOrder.CHRONOLOGICAL,
) -> Tuple[Batch, ...]:
    """Remaining batches, oldest first, for a single silo's history."""
    replay = _replay(inbound, outbound, ProcessingOrder.from_config(order))
    return tuple(open_batch.freeze() for open_batch in replay.batches)


# =========================================================================
# FIFO REPLAY
# =========================================================================

def _replay(
    inbound: Sequence[InboundMovement],
    outbound: Sequence[OutboundMovement],
    order: ProcessingOrder,
) -> _Replay:
    state = _Replay(batches=deque())

    for movement in _timeline(inbound, outbound, order):
        if movement.quantity <= ZERO:
            # Zero/negative rows carry no stock; skip rather than fail
            continue

        if isinstance(movement, InboundMovement):
            state.batches.append(_OpenBatch(source=movement, remaining=movement.quantity))
            state.current += movement.quantity
            state.total_inbound += movement.quantity
        else:
            state.total_outbound += movement.quantity
            shortfall = _consume_fifo(state, movement.quantity)
            state.unmatched += shortfall

    return state


def _consume_fifo(state: _Replay, quantity: Decimal) -> Decimal:
    """
    Drain ``quantity`` from the front of the batch queue.

    Returns the part that could not be matched because the queue ran dry.
    """
    remaining = quantity

    while remaining > ZERO and state.batches:
        oldest = state.batches[0]

        if oldest.remaining <= remaining:
            state.batches.popleft()
            remaining -= oldest.remaining
            state.current -= oldest.remaining
        else:
            oldest.remaining -= remaining
            state.current -= remaining
            remaining = ZERO

    return remaining


def _timeline(
    inbound: Sequence[InboundMovement],
    outbound: Sequence[OutboundMovement],
    order: ProcessingOrder,
) -> List[Movement]:
    """
    Order movements for replay.

    Sorting is stable, so movements sharing a timestamp keep the order the
    store returned them in (created_at, id). In chronological mode an
    inbound and an outbound with the same timestamp replay inbound first.
    """
    inbound_sorted = sorted(inbound, key=_timestamp)
    outbound_sorted = sorted(outbound, key=_timestamp)

    if order is ProcessingOrder.PHASED:
        return [*inbound_sorted, *outbound_sorted]

    tagged = [(0, position, m) for position, m in enumerate(inbound_sorted)]
    tagged += [(1, position, m) for position, m in enumerate(outbound_sorted)]
    tagged.sort(key=lambda t: (_timestamp(t[2]), t[0], t[1]))
    return [movement for _, _, movement in tagged]


def _timestamp(movement: Movement):
    return standardize_timestamp(movement.created_at)


def _group_by_silo(movements: Iterable[Movement]) -> Dict[int, List[Movement]]:
    grouped: Dict[int, List[Movement]] = defaultdict(list)
    for movement in movements:
        grouped[movement.silo_id].append(movement)
    return grouped
