"""
Movement & Silo Store

SQLAlchemy-backed access to the silo registry and the two movement tables.
Rows are returned as the immutable domain models from ``models``; the
ledger never sees ORM objects. Reads are plain selects ordered by
(created_at, id), writes run in their own transaction. Database errors are
not caught here.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type, Union

from sqlalchemy import delete, func
from sqlalchemy.future import select

from Shared_Utils.dates_and_times import standardize_timestamp
from Shared_Utils.logger import get_logger
from Shared_Utils.precision import safe_decimal
from TableModels import SiloRecord, InboundRecord, OutboundRecord

from .models import (
    InboundMovement,
    MovementKind,
    OutboundMovement,
    Silo,
    WithdrawalLine,
    WithdrawalPlan,
)

Movement = Union[InboundMovement, OutboundMovement]

_RECORDS: Dict[MovementKind, Type] = {
    MovementKind.INBOUND: InboundRecord,
    MovementKind.OUTBOUND: OutboundRecord,
}


# =========================================================================
# Row -> domain conversion
# =========================================================================

def silo_from_record(row: SiloRecord) -> Silo:
    return Silo(
        id=row.id,
        name=row.name,
        capacity=safe_decimal(row.capacity_kg),
        allowed_products=tuple(row.allowed_products or ()),
    )


def inbound_from_record(row: InboundRecord) -> InboundMovement:
    return InboundMovement(
        id=row.id,
        silo_id=row.silo_id,
        quantity=safe_decimal(row.quantity_kg),
        created_at=standardize_timestamp(row.created_at),
        product=row.product,
        supplier=row.supplier,
        operator=row.operator,
        lot_tf=row.lot_tf,
        proteins=None if row.proteins is None else safe_decimal(row.proteins),
        humidity=None if row.humidity is None else safe_decimal(row.humidity),
        cleaned=bool(row.cleaned),
        notes=row.notes,
    )


def outbound_from_record(row: OutboundRecord) -> OutboundMovement:
    return OutboundMovement(
        id=row.id,
        silo_id=row.silo_id,
        quantity=safe_decimal(row.quantity_kg),
        created_at=standardize_timestamp(row.created_at),
        operator=row.operator,
        destination=row.destination,
        items=tuple(WithdrawalLine.from_dict(item) for item in (row.items or ())),
        notes=row.notes,
    )


_CONVERTERS = {
    MovementKind.INBOUND: inbound_from_record,
    MovementKind.OUTBOUND: outbound_from_record,
}


class MovementRepository:
    """
    Store used by the inventory service.

    Args:
        db_session_manager: DatabaseSessionManager (or anything exposing an
            ``async_session()`` async context manager)
    """

    def __init__(self, db_session_manager):
        self.db_session_manager = db_session_manager
        self.logger = get_logger('movement_store', context={'component': 'movement_store'})

    # =====================================================
    # Silo registry
    # =====================================================

    async def list_silos(self, ids: Optional[Iterable[int]] = None) -> List[Silo]:
        stmt = select(SiloRecord).order_by(SiloRecord.id)
        if ids is not None:
            stmt = stmt.where(SiloRecord.id.in_(list(ids)))
        async with self.db_session_manager.async_session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [silo_from_record(row) for row in rows]

    async def get_silo(self, silo_id: int) -> Optional[Silo]:
        async with self.db_session_manager.async_session() as session:
            row = await session.get(SiloRecord, silo_id)
        return silo_from_record(row) if row else None

    async def add_silo(
        self,
        name: str,
        capacity: Decimal,
        allowed_products: Optional[Sequence[str]] = None,
    ) -> Silo:
        row = SiloRecord(
            name=name,
            capacity_kg=safe_decimal(capacity),
            allowed_products=list(allowed_products) if allowed_products else None,
        )
        async with self.db_session_manager.async_session() as session:
            async with session.begin():
                session.add(row)
        self.logger.info(f"🏗️ Silo '{name}' registered", extra={'silo_id': row.id})
        return silo_from_record(row)

    async def delete_silo(self, silo_id: int) -> bool:
        """Delete a silo together with its movement history."""
        async with self.db_session_manager.async_session() as session:
            async with session.begin():
                for record in _RECORDS.values():
                    await session.execute(delete(record).where(record.silo_id == silo_id))
                result = await session.execute(delete(SiloRecord).where(SiloRecord.id == silo_id))
        return result.rowcount > 0

    # =====================================================
    # Movement history
    # =====================================================

    async def list_movements(
        self,
        kind: MovementKind,
        silo_ids: Optional[Iterable[int]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        product: Optional[str] = None,
        operator: Optional[str] = None,
    ) -> List[Movement]:
        """
        Movements of one kind, ordered by (created_at, id).

        ``start`` is inclusive, ``end`` exclusive. Outbound rows have no
        product column; their product filter is matched against the
        withdrawal plan after loading.
        """
        kind = MovementKind(kind)
        record = _RECORDS[kind]

        stmt = select(record).order_by(record.created_at.asc(), record.id.asc())
        if silo_ids is not None:
            stmt = stmt.where(record.silo_id.in_(list(silo_ids)))
        if start is not None:
            stmt = stmt.where(record.created_at >= standardize_timestamp(start))
        if end is not None:
            stmt = stmt.where(record.created_at < standardize_timestamp(end))
        if operator is not None:
            stmt = stmt.where(record.operator == operator)
        if product is not None and kind is MovementKind.INBOUND:
            stmt = stmt.where(record.product == product)

        async with self.db_session_manager.async_session() as session:
            rows = (await session.execute(stmt)).scalars().all()

        movements = [_CONVERTERS[kind](row) for row in rows]
        if product is not None and kind is MovementKind.OUTBOUND:
            movements = [m for m in movements if any(line.product == product for line in m.items)]
        return movements

    async def list_inbound(self, silo_ids: Optional[Iterable[int]] = None, **filters) -> List[InboundMovement]:
        return await self.list_movements(MovementKind.INBOUND, silo_ids=silo_ids, **filters)

    async def list_outbound(self, silo_ids: Optional[Iterable[int]] = None, **filters) -> List[OutboundMovement]:
        return await self.list_movements(MovementKind.OUTBOUND, silo_ids=silo_ids, **filters)

    async def get_movement(self, kind: MovementKind, movement_id: int) -> Optional[Movement]:
        kind = MovementKind(kind)
        async with self.db_session_manager.async_session() as session:
            row = await session.get(_RECORDS[kind], movement_id)
        return _CONVERTERS[kind](row) if row else None

    async def add_inbound(
        self,
        silo_id: int,
        quantity: Decimal,
        product: Optional[str] = None,
        supplier: Optional[str] = None,
        operator: Optional[str] = None,
        lot_tf: Optional[str] = None,
        proteins: Optional[Decimal] = None,
        humidity: Optional[Decimal] = None,
        cleaned: bool = False,
        notes: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> InboundMovement:
        row = InboundRecord(
            silo_id=silo_id,
            quantity_kg=quantity,
            product=product,
            supplier=supplier,
            operator=operator,
            lot_tf=lot_tf,
            proteins=proteins,
            humidity=humidity,
            cleaned=cleaned,
            notes=notes,
        )
        if created_at is not None:
            row.created_at = standardize_timestamp(created_at)

        async with self.db_session_manager.async_session() as session:
            async with session.begin():
                session.add(row)
        return inbound_from_record(row)

    async def add_outbound(
        self,
        silo_id: int,
        quantity: Decimal,
        items: Union[WithdrawalPlan, Sequence[WithdrawalLine]],
        operator: Optional[str] = None,
        destination: Optional[str] = None,
        notes: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> OutboundMovement:
        lines = items.lines if isinstance(items, WithdrawalPlan) else tuple(items)
        row = OutboundRecord(
            silo_id=silo_id,
            quantity_kg=quantity,
            operator=operator,
            destination=destination,
            items=[line.to_dict() for line in lines],
            notes=notes,
        )
        if created_at is not None:
            row.created_at = standardize_timestamp(created_at)

        async with self.db_session_manager.async_session() as session:
            async with session.begin():
                session.add(row)
        return outbound_from_record(row)

    async def delete_movement(self, kind: MovementKind, movement_id: int) -> bool:
        record = _RECORDS[MovementKind(kind)]
        async with self.db_session_manager.async_session() as session:
            async with session.begin():
                result = await session.execute(delete(record).where(record.id == movement_id))
        return result.rowcount > 0

    # =====================================================
    # Guards
    # =====================================================

    async def inbound_is_referenced(self, inbound_id: int) -> bool:
        """True when some outbound withdrawal plan drew from this inbound."""
        async with self.db_session_manager.async_session() as session:
            silo_id = (await session.execute(
                select(InboundRecord.silo_id).where(InboundRecord.id == inbound_id)
            )).scalar_one_or_none()
            if silo_id is None:
                return False
            plans = (await session.execute(
                select(OutboundRecord.items).where(OutboundRecord.silo_id == silo_id)
            )).scalars().all()

        # Plans only ever reference batches of their own silo
        return any(
            item.get('inbound_id') == inbound_id
            for plan in plans
            for item in (plan or ())
        )

    async def has_inbound_since(self, silo_id: int, since: datetime) -> bool:
        stmt = (
            select(func.count(InboundRecord.id))
            .where(InboundRecord.silo_id == silo_id)
            .where(InboundRecord.created_at >= standardize_timestamp(since))
        )
        async with self.db_session_manager.async_session() as session:
            count = (await session.execute(stmt)).scalar_one()
        return count > 0
