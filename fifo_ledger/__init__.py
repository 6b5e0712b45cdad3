"""
FIFO Silo Ledger

Tracks grain stock in storage silos from an immutable history of inbound
and outbound movements. Levels and batch compositions are recomputed from
that history on every query; outbound movements consume the oldest
remaining batches first.

Key Components:
- compute_levels / compute_level: FIFO replay of a silo's history
- validator: capacity, availability, payload and lifecycle checks
- plan_withdrawal: batch-by-batch provenance for an outbound request
- statistics: fleet utilization and grouped movement totals
- SiloInventoryService: recompute, validate, then write
- MovementRepository: SQLAlchemy store for silos and movements

Usage:
    from fifo_ledger import SiloInventoryService, MovementRepository

    service = SiloInventoryService(MovementRepository(db_manager))
    await service.receive({'silo_id': 1, 'quantity': '5000', 'product': 'Wheat'})
    levels = await service.get_levels()
"""

from .engine import compute_levels, compute_level, reconstruct_batches
from .exceptions import (
    LedgerError,
    CapacityExceeded,
    InsufficientStock,
    SiloNotFound,
    MovementNotFound,
    InvalidMovement,
    InvalidSilo,
    ProductNotAllowed,
    MovementLocked,
    MovementInUse,
    SiloNotEmpty,
)
from .models import (
    MovementKind,
    ProcessingOrder,
    UtilizationBucket,
    Silo,
    InboundMovement,
    OutboundMovement,
    Batch,
    SiloLevel,
    WithdrawalLine,
    WithdrawalPlan,
    FleetStats,
    MovementSummary,
)
from .planner import plan_withdrawal
from .repository import MovementRepository
from .service import SiloInventoryService

__all__ = [
    'compute_levels',
    'compute_level',
    'reconstruct_batches',
    'plan_withdrawal',
    'MovementRepository',
    'SiloInventoryService',
    'LedgerError',
    'CapacityExceeded',
    'InsufficientStock',
    'SiloNotFound',
    'MovementNotFound',
    'InvalidMovement',
    'InvalidSilo',
    'ProductNotAllowed',
    'MovementLocked',
    'MovementInUse',
    'SiloNotEmpty',
    'MovementKind',
    'ProcessingOrder',
    'UtilizationBucket',
    'Silo',
    'InboundMovement',
    'OutboundMovement',
    'Batch',
    'SiloLevel',
    'WithdrawalLine',
    'WithdrawalPlan',
    'FleetStats',
    'MovementSummary',
]

__version__ = '1.0.0'
