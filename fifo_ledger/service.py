"""
Silo Inventory Service

Admission path for stock movements. Every receive/dispatch recomputes the
silo's level from its full history, validates against that fresh snapshot
and only then writes; a refused movement leaves the store untouched.

A per-silo asyncio.Lock serializes read-validate-write for callers sharing
this service instance. Separate processes writing to the same store are not
coordinated here.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from Config.constants_silo import LEDGER_PROCESSING_ORDER, PERCENT_DECIMALS, SILO_DELETE_QUIET_DAYS
from Shared_Utils.dates_and_times import utcnow
from Shared_Utils.logger import StructuredLogger, get_component_logger, log_context, log_performance
from Shared_Utils.precision import parse_quantity, to_quantity

from .engine import compute_level, compute_levels
from .exceptions import MovementInUse, MovementNotFound, SiloNotFound
from .models import (
    FleetStats,
    InboundMovement,
    MovementKind,
    MovementSummary,
    OutboundMovement,
    ProcessingOrder,
    Silo,
    SiloLevel,
)
from .planner import plan_withdrawal
from .statistics import aggregate, aggregate_movements, movement_summary, withdrawn_by_product
from .validator import (
    parse_silo_id,
    quiet_period_start,
    validate_edit_window,
    validate_inbound_capacity,
    validate_movement_fields,
    validate_outbound_availability,
    validate_product_allowed,
    validate_silo_definition,
    validate_silo_removable,
)


def _reading(raw: Any) -> Optional[Decimal]:
    """Quality percentage at the two-decimal resolution it is stored with."""
    reading = parse_quantity(raw)
    return None if reading is None else to_quantity(reading, PERCENT_DECIMALS)


class SiloInventoryService:
    """
    Coordinates the store, the ledger engine and the admission checks.

    Args:
        repository: MovementRepository (or any object with the same coroutines)
        order: Ledger processing order; defaults to LEDGER_PROCESSING_ORDER
        logger: Optional StructuredLogger (defaults to the 'inventory' component logger)
    """

    def __init__(
        self,
        repository,
        order: Union[ProcessingOrder, str, None] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.repository = repository
        self.order = ProcessingOrder.from_config(order or LEDGER_PROCESSING_ORDER)
        self.logger = logger or get_component_logger('inventory')
        self._silo_locks: Dict[int, asyncio.Lock] = {}

    # =====================================================
    # Levels
    # =====================================================

    @log_performance('inventory')
    async def get_levels(self, silo_ids: Optional[Iterable[int]] = None) -> List[SiloLevel]:
        """Levels for the given silos (all silos when None), in registry order."""
        silos = await self.repository.list_silos(ids=silo_ids)
        if not silos:
            return []
        ids = [silo.id for silo in silos]
        inbound = await self.repository.list_inbound(silo_ids=ids)
        outbound = await self.repository.list_outbound(silo_ids=ids)
        return compute_levels(silos, inbound, outbound, order=self.order, logger=self.logger)

    async def get_level(self, silo_id: int) -> SiloLevel:
        silo = await self._require_silo(silo_id)
        return await self._fresh_level(silo)

    async def _require_silo(self, silo_id: int) -> Silo:
        silo = await self.repository.get_silo(silo_id)
        if silo is None:
            raise SiloNotFound(silo_id)
        return silo

    def _lock_for(self, silo_id: int) -> asyncio.Lock:
        return self._silo_locks.setdefault(silo_id, asyncio.Lock())

    @asynccontextmanager
    async def _locked_silo(self, silo_id: int):
        """
        Hold the silo's lock and yield the silo as read under it.

        Locks are created only for registered silos and are never discarded,
        so callers queued behind a removal re-read the registry and get
        SiloNotFound instead of racing on a fresh lock.
        """
        await self._require_silo(silo_id)
        async with self._lock_for(silo_id):
            yield await self._require_silo(silo_id)

    async def _fresh_level(self, silo: Silo) -> SiloLevel:
        inbound = await self.repository.list_inbound(silo_ids=[silo.id])
        outbound = await self.repository.list_outbound(silo_ids=[silo.id])
        return compute_level(silo, inbound, outbound, order=self.order, logger=self.logger)

    # =====================================================
    # Admission
    # =====================================================

    async def receive(self, payload: Mapping[str, Any]) -> InboundMovement:
        """
        Register an inbound movement.

        Raises:
            InvalidMovement, SiloNotFound, ProductNotAllowed, CapacityExceeded
        """
        error = validate_movement_fields(MovementKind.INBOUND, payload)
        if error:
            raise error

        silo_id = parse_silo_id(payload['silo_id'])
        quantity = to_quantity(parse_quantity(payload['quantity']))
        product = payload.get('product')

        with log_context(silo_id=silo_id, movement='inbound'):
            async with self._locked_silo(silo_id) as silo:
                error = validate_product_allowed(silo, product)
                if error:
                    raise error

                level = await self._fresh_level(silo)
                error = validate_inbound_capacity(silo, level, quantity)
                if error:
                    self.logger.capacity_exceeded(
                        f"🚫 Inbound refused for '{silo.name}': {quantity} kg requested, "
                        f"{error.headroom} kg headroom"
                    )
                    raise error

                movement = await self.repository.add_inbound(
                    silo_id=silo.id,
                    quantity=quantity,
                    product=product,
                    supplier=payload.get('supplier'),
                    operator=payload.get('operator'),
                    lot_tf=payload.get('lot_tf'),
                    proteins=_reading(payload.get('proteins')),
                    humidity=_reading(payload.get('humidity')),
                    cleaned=bool(payload.get('cleaned', False)),
                    notes=payload.get('notes'),
                )

            self.logger.receive(
                f"📥 {quantity} kg of {product} received into '{silo.name}'",
                extra={'movement_id': movement.id, 'supplier': movement.supplier},
            )
        return movement

    async def dispatch(self, payload: Mapping[str, Any]) -> OutboundMovement:
        """
        Register an outbound movement with its FIFO withdrawal plan.

        Raises:
            InvalidMovement, SiloNotFound, InsufficientStock
        """
        error = validate_movement_fields(MovementKind.OUTBOUND, payload)
        if error:
            raise error

        silo_id = parse_silo_id(payload['silo_id'])
        quantity = to_quantity(parse_quantity(payload['quantity']))

        with log_context(silo_id=silo_id, movement='outbound'):
            async with self._locked_silo(silo_id) as silo:
                level = await self._fresh_level(silo)
                error = validate_outbound_availability(silo, level, quantity)
                if error:
                    self.logger.insufficient_stock(
                        f"🚫 Outbound refused for '{silo.name}': {quantity} kg requested, "
                        f"{error.available} kg available"
                    )
                    raise error

                plan = plan_withdrawal(level.batches, quantity, silo_name=silo.name)
                movement = await self.repository.add_outbound(
                    silo_id=silo.id,
                    quantity=quantity,
                    items=plan,
                    operator=payload.get('operator'),
                    destination=payload.get('destination'),
                    notes=payload.get('notes'),
                )

            self.logger.dispatch(
                f"📤 {quantity} kg dispatched from '{silo.name}' across {len(plan.lines)} batch(es)",
                extra={'movement_id': movement.id, 'sources': list(plan.source_ids)},
            )
        return movement

    # =====================================================
    # Deletion
    # =====================================================

    async def delete_inbound(self, movement_id: int, now: Optional[datetime] = None) -> None:
        """
        Delete an inbound movement inside its edit window.

        Raises:
            MovementNotFound, MovementLocked, MovementInUse
        """
        movement = await self._require_movement(MovementKind.INBOUND, movement_id)

        async with self._lock_for(movement.silo_id):
            error = validate_edit_window(movement, now or utcnow())
            if error:
                raise error
            if await self.repository.inbound_is_referenced(movement_id):
                raise MovementInUse(movement_id)
            await self.repository.delete_movement(MovementKind.INBOUND, movement_id)

        self.logger.info(f"🗑️ Inbound movement {movement_id} deleted",
                         extra={'silo_id': movement.silo_id})

    async def delete_outbound(self, movement_id: int, now: Optional[datetime] = None) -> None:
        """Delete an outbound movement inside its edit window; its stock returns to the ledger."""
        movement = await self._require_movement(MovementKind.OUTBOUND, movement_id)

        async with self._lock_for(movement.silo_id):
            error = validate_edit_window(movement, now or utcnow())
            if error:
                raise error
            await self.repository.delete_movement(MovementKind.OUTBOUND, movement_id)

        self.logger.info(f"🗑️ Outbound movement {movement_id} deleted",
                         extra={'silo_id': movement.silo_id})

    async def _require_movement(self, kind: MovementKind, movement_id: int):
        movement = await self.repository.get_movement(kind, movement_id)
        if movement is None:
            raise MovementNotFound(kind.value, movement_id)
        return movement

    # =====================================================
    # Silo registry
    # =====================================================

    async def register_silo(
        self,
        name: str,
        capacity: Any,
        allowed_products: Optional[Sequence[str]] = None,
    ) -> Silo:
        """
        Add a silo to the registry.

        Raises:
            InvalidSilo
        """
        error = validate_silo_definition(name, capacity)
        if error:
            raise error
        return await self.repository.add_silo(
            name=name.strip(),
            capacity=to_quantity(parse_quantity(capacity)),
            allowed_products=allowed_products,
        )

    async def remove_silo(self, silo_id: int, now: Optional[datetime] = None) -> None:
        """
        Remove an empty silo without recent receipts.

        Raises:
            SiloNotFound, SiloNotEmpty
        """
        async with self._locked_silo(silo_id) as silo:
            level = await self._fresh_level(silo)
            since = quiet_period_start(now or utcnow(), SILO_DELETE_QUIET_DAYS)
            recent = await self.repository.has_inbound_since(silo_id, since)

            error = validate_silo_removable(level, recent)
            if error:
                raise error
            await self.repository.delete_silo(silo_id)

        self.logger.info(f"🗑️ Silo '{silo.name}' removed", extra={'silo_id': silo_id})

    # =====================================================
    # Statistics
    # =====================================================

    async def fleet_stats(self, silo_ids: Optional[Iterable[int]] = None) -> FleetStats:
        return aggregate(await self.get_levels(silo_ids))

    async def movement_breakdown(
        self,
        kind: MovementKind,
        group_by: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        silo_ids: Optional[Iterable[int]] = None,
    ) -> Dict[str, Decimal]:
        """Total kg per group for one movement kind over an optional period."""
        movements = await self.repository.list_movements(
            MovementKind(kind), silo_ids=silo_ids, start=start, end=end,
        )
        return aggregate_movements(movements, group_by)

    async def movement_summary(
        self,
        kind: MovementKind,
        group_by: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        silo_ids: Optional[Iterable[int]] = None,
        product: Optional[str] = None,
        operator: Optional[str] = None,
    ) -> MovementSummary:
        kind = MovementKind(kind)
        movements = await self.repository.list_movements(
            kind, silo_ids=silo_ids, start=start, end=end, product=product, operator=operator,
        )
        return movement_summary(movements, group_by, kind=kind)

    async def withdrawn_products(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        silo_ids: Optional[Iterable[int]] = None,
    ) -> Dict[str, Decimal]:
        """Kg withdrawn per product, read from the stored withdrawal plans."""
        outbound = await self.repository.list_outbound(silo_ids=silo_ids, start=start, end=end)
        return withdrawn_by_product(outbound)
