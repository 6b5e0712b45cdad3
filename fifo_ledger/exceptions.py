"""
Exceptions for the silo ledger.

Every admission refusal is a LedgerError carrying a stable code, a
human-readable message and the figures behind it, so callers can surface
it verbatim or branch on ``code``.

Usage:
    try:
        await service.dispatch(payload)
    except InsufficientStock as e:
        print(f"Only {e.available} kg available in {e.silo_name}")
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for expected, user-facing ledger outcomes."""

    code = 'LEDGER_ERROR'

    def __init__(self, message: str, **data: Any):
        self.message = message
        self.data: Dict[str, Any] = data
        super().__init__(message)

    def as_dict(self) -> Dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            },
        }


class CapacityExceeded(LedgerError):
    """Inbound would overflow the silo."""

    code = 'CAPACITY_EXCEEDED'

    def __init__(self, silo_name: str, headroom: Decimal, requested: Decimal, capacity: Decimal):
        self.silo_name = silo_name
        self.headroom = headroom
        self.requested = requested
        self.capacity = capacity
        super().__init__(
            f"Cannot add {requested} kg to silo '{silo_name}': capacity {capacity} kg, "
            f"headroom {headroom} kg",
            silo_name=silo_name, headroom=headroom, requested=requested, capacity=capacity,
        )


class InsufficientStock(LedgerError):
    """Outbound asks for more than the ledger holds."""

    code = 'INSUFFICIENT_STOCK'

    def __init__(self, silo_name: str, available: Decimal, requested: Decimal):
        self.silo_name = silo_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock in silo '{silo_name}'. Available: {available} kg, "
            f"Requested: {requested} kg",
            silo_name=silo_name, available=available, requested=requested,
        )


class SiloNotFound(LedgerError):
    code = 'SILO_NOT_FOUND'

    def __init__(self, silo_id: Any):
        self.silo_id = silo_id
        super().__init__(f"Silo {silo_id!r} not found", silo_id=silo_id)


class MovementNotFound(LedgerError):
    code = 'MOVEMENT_NOT_FOUND'

    def __init__(self, kind: str, movement_id: Any):
        self.kind = kind
        self.movement_id = movement_id
        super().__init__(f"{kind.capitalize()} movement {movement_id!r} not found",
                         kind=kind, movement_id=movement_id)


class InvalidMovement(LedgerError):
    """Movement payload failed field validation."""

    code = 'INVALID_MOVEMENT'

    def __init__(self, field: str, reason: str, value: Optional[Any] = None):
        self.field = field
        self.reason = reason
        self.value = value
        super().__init__(f"Invalid {field}: {reason}", field=field, reason=reason, value=value)


class ProductNotAllowed(LedgerError):
    """Silo is restricted to other products."""

    code = 'PRODUCT_NOT_ALLOWED'

    def __init__(self, silo_name: str, product: Optional[str], allowed: tuple):
        self.silo_name = silo_name
        self.product = product
        self.allowed = allowed
        super().__init__(
            f"Silo '{silo_name}' does not accept product {product!r} "
            f"(allowed: {', '.join(allowed)})",
            silo_name=silo_name, product=product, allowed=list(allowed),
        )


class MovementLocked(LedgerError):
    """Movement is older than the edit window."""

    code = 'MOVEMENT_LOCKED'

    def __init__(self, kind: str, movement_id: Any, window_hours: int):
        self.kind = kind
        self.movement_id = movement_id
        self.window_hours = window_hours
        super().__init__(
            f"Cannot change {kind} movement {movement_id} older than {window_hours} hours. "
            f"Please contact an administrator.",
            kind=kind, movement_id=movement_id, window_hours=window_hours,
        )


class MovementInUse(LedgerError):
    """Inbound movement already appears in an outbound withdrawal plan."""

    code = 'MOVEMENT_IN_USE'

    def __init__(self, inbound_id: Any):
        self.inbound_id = inbound_id
        super().__init__(
            f"Inbound movement {inbound_id} has been used in outbound movements. "
            f"Delete the related outbound movements first.",
            inbound_id=inbound_id,
        )


class SiloNotEmpty(LedgerError):
    """Silo still holds stock or has recent receipts."""

    code = 'SILO_NOT_EMPTY'

    def __init__(self, silo_name: str, current_quantity: Decimal, recent_activity: bool):
        self.silo_name = silo_name
        self.current_quantity = current_quantity
        self.recent_activity = recent_activity
        if current_quantity > 0:
            message = (f"Cannot delete silo '{silo_name}' because it contains "
                       f"{current_quantity} kg of material. Please empty the silo first.")
        else:
            message = f"Cannot delete silo '{silo_name}' because it has recent movements."
        super().__init__(message, silo_name=silo_name, current_quantity=current_quantity,
                         recent_activity=recent_activity)


class InvalidSilo(LedgerError):
    """Silo definition failed validation."""

    code = 'INVALID_SILO'

    def __init__(self, field: str, reason: str, value: Optional[Any] = None):
        self.field = field
        self.reason = reason
        self.value = value
        super().__init__(f"Invalid silo {field}: {reason}", field=field, reason=reason, value=value)
