"""
Admission Validator

Pure checks run before a movement is written. Each check returns None when
the movement may proceed and the LedgerError describing the refusal
otherwise; the caller decides whether to raise it. None of them touch the
store: they judge the snapshot they are given, so the level passed in must
be freshly recomputed.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from Config.constants_silo import (
    MIN_MOVEMENT_KG,
    MAX_MOVEMENT_KG,
    QUALITY_PERCENT_MIN,
    QUALITY_PERCENT_MAX,
    MOVEMENT_EDIT_WINDOW_HOURS,
    MIN_SILO_CAPACITY_KG,
    MAX_SILO_CAPACITY_KG,
    QUANTITY_DECIMALS,
)
from Shared_Utils.dates_and_times import standardize_timestamp, hours_between
from Shared_Utils.precision import ZERO, parse_quantity, to_quantity

from .exceptions import (
    CapacityExceeded,
    InsufficientStock,
    InvalidMovement,
    InvalidSilo,
    MovementLocked,
    ProductNotAllowed,
    SiloNotEmpty,
)
from .models import InboundMovement, MovementKind, OutboundMovement, Silo, SiloLevel


REQUIRED_FIELDS = {
    MovementKind.INBOUND: ('silo_id', 'quantity', 'product'),
    MovementKind.OUTBOUND: ('silo_id', 'quantity', 'operator'),
}

QUALITY_FIELDS = ('proteins', 'humidity')


# =========================================================================
# STOCK CHECKS
# =========================================================================

def validate_inbound_capacity(
    silo: Silo,
    level: SiloLevel,
    requested: Decimal,
) -> Optional[CapacityExceeded]:
    """Refuse an inbound that would push the silo past its capacity."""
    projected = level.current_quantity + requested
    if projected > silo.capacity:
        return CapacityExceeded(
            silo_name=silo.name,
            headroom=silo.capacity - level.current_quantity,
            requested=requested,
            capacity=silo.capacity,
        )
    return None


def validate_outbound_availability(
    silo: Silo,
    level: SiloLevel,
    requested: Decimal,
) -> Optional[InsufficientStock]:
    """Refuse an outbound larger than the ledger-derived stock."""
    if requested > level.current_quantity:
        return InsufficientStock(
            silo_name=silo.name,
            available=level.current_quantity,
            requested=requested,
        )
    return None


def validate_product_allowed(silo: Silo, product: Optional[str]) -> Optional[ProductNotAllowed]:
    """Refuse products outside the silo's material restriction, if it has one."""
    if silo.accepts(product):
        return None
    return ProductNotAllowed(silo.name, product, silo.allowed_products)


# =========================================================================
# PAYLOAD CHECKS
# =========================================================================

def parse_silo_id(value: Any) -> Optional[int]:
    """Integer silo id from a payload value, or None when it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def validate_movement_fields(
    kind: MovementKind,
    payload: Mapping[str, Any],
) -> Optional[InvalidMovement]:
    """
    Check required fields and numeric ranges of a movement payload.

    silo_id must be an integer. Quantity must lie within
    [MIN_MOVEMENT_KG, MAX_MOVEMENT_KG] with at most QUANTITY_DECIMALS
    places; inbound quality readings (proteins, humidity) must be
    percentages when present.
    """
    for name in REQUIRED_FIELDS[kind]:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            return InvalidMovement(name, 'is required')

    if parse_silo_id(payload.get('silo_id')) is None:
        return InvalidMovement('silo_id', 'must be an integer', payload.get('silo_id'))

    quantity = parse_quantity(payload.get('quantity'))
    if quantity is None:
        return InvalidMovement('quantity', 'must be a number', payload.get('quantity'))
    if quantity < MIN_MOVEMENT_KG or quantity > MAX_MOVEMENT_KG:
        return InvalidMovement(
            'quantity',
            f'must be between {MIN_MOVEMENT_KG} and {MAX_MOVEMENT_KG} kg',
            quantity,
        )
    if quantity != to_quantity(quantity):
        return InvalidMovement(
            'quantity',
            f'must have at most {QUANTITY_DECIMALS} decimal places',
            quantity,
        )

    if kind is MovementKind.INBOUND:
        for name in QUALITY_FIELDS:
            raw = payload.get(name)
            if raw is None:
                continue
            reading = parse_quantity(raw)
            if reading is None or not QUALITY_PERCENT_MIN <= reading <= QUALITY_PERCENT_MAX:
                return InvalidMovement(
                    name,
                    f'must be between {QUALITY_PERCENT_MIN} and {QUALITY_PERCENT_MAX} %',
                    raw,
                )

    return None


# =========================================================================
# LIFECYCLE CHECKS
# =========================================================================

def validate_edit_window(
    movement: Union[InboundMovement, OutboundMovement],
    now: datetime,
    window_hours: int = MOVEMENT_EDIT_WINDOW_HOURS,
) -> Optional[MovementLocked]:
    """Refuse changes to movements older than the edit window."""
    if hours_between(movement.created_at, now) > window_hours:
        return MovementLocked(movement.kind.value, movement.id, window_hours)
    return None


def validate_silo_removable(
    level: SiloLevel,
    has_recent_inbound: bool,
) -> Optional[SiloNotEmpty]:
    """Refuse removing a silo that holds stock or received material recently."""
    if level.current_quantity > ZERO or has_recent_inbound:
        return SiloNotEmpty(level.silo.name, level.current_quantity, has_recent_inbound)
    return None


def quiet_period_start(now: datetime, days: int) -> datetime:
    """Start of the window in which inbound activity blocks silo removal."""
    return standardize_timestamp(now) - timedelta(days=days)


def validate_silo_definition(name: Optional[str], capacity: Any) -> Optional[InvalidSilo]:
    """Check a new silo's name and capacity bounds."""
    if name is None or not str(name).strip():
        return InvalidSilo('name', 'is required')
    parsed = parse_quantity(capacity)
    if parsed is None:
        return InvalidSilo('capacity', 'must be a number', capacity)
    if parsed < MIN_SILO_CAPACITY_KG or parsed > MAX_SILO_CAPACITY_KG:
        return InvalidSilo(
            'capacity',
            f'must be between {MIN_SILO_CAPACITY_KG} and {MAX_SILO_CAPACITY_KG} kg',
            parsed,
        )
    if parsed != to_quantity(parsed):
        return InvalidSilo('capacity', f'must have at most {QUANTITY_DECIMALS} decimal places', parsed)
    return None
