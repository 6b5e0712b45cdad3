"""
Data models for the FIFO silo ledger.

Movements and silos are immutable facts read from the store. Batches,
levels and statistics are derived snapshots produced by a single
computation; they are frozen so callers cannot patch them in place.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple, Mapping

from Config.exceptions import ConfigChoiceError
from Config.constants_silo import (
    BUCKET_LOW_MAX,
    BUCKET_MEDIUM_MAX,
    BUCKET_HIGH_MAX,
)
from Shared_Utils.precision import ZERO, display_percent


class MovementKind(str, enum.Enum):
    """Direction of a stock movement."""

    INBOUND = 'inbound'
    OUTBOUND = 'outbound'


class ProcessingOrder(str, enum.Enum):
    """How outbound movements are replayed against inbound batches."""

    CHRONOLOGICAL = 'chronological'
    PHASED = 'phased'

    @classmethod
    def from_config(cls, value) -> 'ProcessingOrder':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigChoiceError(
                'LEDGER_PROCESSING_ORDER', value, [m.value for m in cls]
            ) from None


class UtilizationBucket(str, enum.Enum):
    EMPTY = 'empty'
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    FULL = 'full'

    @classmethod
    def classify(cls, percentage: Decimal) -> 'UtilizationBucket':
        """Bucket a fill percentage; upper bounds are inclusive."""
        if percentage <= ZERO:
            return cls.EMPTY
        if percentage <= BUCKET_LOW_MAX:
            return cls.LOW
        if percentage <= BUCKET_MEDIUM_MAX:
            return cls.MEDIUM
        if percentage <= BUCKET_HIGH_MAX:
            return cls.HIGH
        return cls.FULL


@dataclass(frozen=True)
class Silo:
    """A storage silo as defined in the registry."""

    id: int
    name: str
    capacity: Decimal
    allowed_products: Tuple[str, ...] = ()

    def accepts(self, product: Optional[str]) -> bool:
        """True when the silo is unrestricted or lists the product."""
        if not self.allowed_products:
            return True
        return product in self.allowed_products

    def __str__(self) -> str:
        return f"Silo({self.name}: {self.capacity} kg)"


@dataclass(frozen=True)
class InboundMovement:
    """A receipt of material into a silo."""

    id: int
    silo_id: int
    quantity: Decimal
    created_at: datetime
    product: Optional[str] = None
    supplier: Optional[str] = None
    operator: Optional[str] = None
    lot_tf: Optional[str] = None
    proteins: Optional[Decimal] = None
    humidity: Optional[Decimal] = None
    cleaned: bool = False
    notes: Optional[str] = None

    kind = MovementKind.INBOUND


@dataclass(frozen=True)
class WithdrawalLine:
    """One batch's contribution to an outbound movement."""

    inbound_id: int
    quantity: Decimal
    product: Optional[str] = None
    supplier: Optional[str] = None
    lot_tf: Optional[str] = None
    entry_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'inbound_id': self.inbound_id,
            'quantity_kg': str(self.quantity),
            'product': self.product,
            'supplier': self.supplier,
            'lot_tf': self.lot_tf,
            'entry_date': self.entry_date,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> 'WithdrawalLine':
        return cls(
            inbound_id=data['inbound_id'],
            quantity=Decimal(str(data['quantity_kg'])),
            product=data.get('product'),
            supplier=data.get('supplier'),
            lot_tf=data.get('lot_tf'),
            entry_date=data.get('entry_date'),
        )


@dataclass(frozen=True)
class WithdrawalPlan:
    """Batch-by-batch breakdown of one outbound request, oldest first."""

    requested_quantity: Decimal
    lines: Tuple[WithdrawalLine, ...] = ()

    @property
    def total_quantity(self) -> Decimal:
        return sum((line.quantity for line in self.lines), ZERO)

    @property
    def source_ids(self) -> Tuple[int, ...]:
        return tuple(line.inbound_id for line in self.lines)

    def to_payload(self) -> list:
        """JSON-serializable form persisted with the outbound row."""
        return [line.to_dict() for line in self.lines]


@dataclass(frozen=True)
class OutboundMovement:
    """A dispatch of material out of a silo, with its withdrawal plan."""

    id: int
    silo_id: int
    quantity: Decimal
    created_at: datetime
    operator: Optional[str] = None
    destination: Optional[str] = None
    items: Tuple[WithdrawalLine, ...] = ()
    notes: Optional[str] = None

    kind = MovementKind.OUTBOUND

    @property
    def product(self) -> Optional[str]:
        """Product when the plan drew from a single product, else None."""
        products = {line.product for line in self.items}
        return products.pop() if len(products) == 1 else None

    @property
    def supplier(self) -> Optional[str]:
        suppliers = {line.supplier for line in self.items}
        return suppliers.pop() if len(suppliers) == 1 else None


@dataclass(frozen=True)
class Batch:
    """Remaining, not yet withdrawn portion of one inbound movement."""

    inbound_id: int
    quantity: Decimal
    created_at: datetime
    product: Optional[str] = None
    supplier: Optional[str] = None
    lot_tf: Optional[str] = None

    @classmethod
    def from_inbound(cls, movement: InboundMovement) -> 'Batch':
        return cls(
            inbound_id=movement.id,
            quantity=movement.quantity,
            created_at=movement.created_at,
            product=movement.product,
            supplier=movement.supplier,
            lot_tf=movement.lot_tf,
        )


@dataclass(frozen=True)
class SiloLevel:
    """Derived fill state of one silo at the end of its history."""

    silo: Silo
    current_quantity: Decimal
    batches: Tuple[Batch, ...]
    utilization_percentage: Decimal
    total_inbound: Decimal = ZERO
    total_outbound: Decimal = ZERO
    unmatched_quantity: Decimal = ZERO

    @property
    def headroom(self) -> Decimal:
        return max(ZERO, self.silo.capacity - self.current_quantity)

    @property
    def bucket(self) -> UtilizationBucket:
        return UtilizationBucket.classify(self.utilization_percentage)

    @property
    def has_discrepancy(self) -> bool:
        """Outbound history asked for more than was on hand at some point."""
        return self.unmatched_quantity > ZERO

    def __str__(self) -> str:
        return (
            f"SiloLevel({self.silo.name}: {self.current_quantity}/{self.silo.capacity} kg, "
            f"{display_percent(self.utilization_percentage)}% in {len(self.batches)} batches)"
        )


@dataclass(frozen=True)
class FleetStats:
    """Fleet-wide utilization summary."""

    total_silos: int
    buckets: Mapping[str, int]
    total_capacity: Decimal
    total_used: Decimal
    overall_utilization: Decimal
    average_utilization: Decimal


@dataclass(frozen=True)
class GroupTotals:
    count: int
    quantity: Decimal


@dataclass(frozen=True)
class MovementSummary:
    """Counts and quantities for a set of movements, grouped by one key."""

    kind: Optional[MovementKind]
    group_by: str
    total_movements: int
    total_quantity: Decimal
    average_quantity: Decimal
    groups: Mapping[str, GroupTotals] = field(default_factory=dict)
