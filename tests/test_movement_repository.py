"""
Tests for MovementRepository against a throwaway sqlite database (aiosqlite).

Covers ordering, timestamp normalization, plan persistence, the deletion
guards and one end-to-end admission flow through SiloInventoryService.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from database_manager.database_session_manager import DatabaseSessionManager
from fifo_ledger.exceptions import CapacityExceeded, InsufficientStock, InvalidMovement, MovementInUse
from fifo_ledger.models import MovementKind, WithdrawalLine
from fifo_ledger.repository import MovementRepository
from fifo_ledger.service import SiloInventoryService

pytestmark = pytest.mark.asyncio

T0 = datetime(2026, 2, 10, 7, 30, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db(tmp_path):
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await manager.initialize()
    yield manager
    await manager.disconnect()


@pytest_asyncio.fixture
async def repo(db):
    return MovementRepository(db)


@pytest_asyncio.fixture
async def silo(repo):
    return await repo.add_silo("S1", Decimal("10000"))


class TestSiloRegistry:

    async def test_add_and_get(self, repo, silo):
        fetched = await repo.get_silo(silo.id)

        assert fetched == silo
        assert fetched.capacity == Decimal("10000")
        assert fetched.allowed_products == ()

    async def test_allowed_products_round_trip(self, repo):
        created = await repo.add_silo("Corn only", Decimal("500"), allowed_products=["Corn"])
        assert (await repo.get_silo(created.id)).allowed_products == ("Corn",)

    async def test_list_filters_by_id(self, repo, silo):
        other = await repo.add_silo("S2", Decimal("2000"))

        assert [s.name for s in await repo.list_silos()] == ["S1", "S2"]
        assert [s.id for s in await repo.list_silos(ids=[other.id])] == [other.id]

    async def test_missing_silo(self, repo):
        assert await repo.get_silo(999) is None

    async def test_delete_removes_history(self, repo, silo):
        await repo.add_inbound(silo.id, Decimal("10"), product="Wheat", created_at=T0)

        assert await repo.delete_silo(silo.id) is True
        assert await repo.get_silo(silo.id) is None
        assert await repo.list_inbound(silo_ids=[silo.id]) == []


class TestMovementHistory:

    async def test_ordered_by_created_at_then_id(self, repo, silo):
        late = await repo.add_inbound(silo.id, Decimal("1"), product="Wheat", created_at=T0 + timedelta(hours=2))
        tie_a = await repo.add_inbound(silo.id, Decimal("2"), product="Wheat", created_at=T0)
        tie_b = await repo.add_inbound(silo.id, Decimal("3"), product="Wheat", created_at=T0)

        ids = [m.id for m in await repo.list_inbound(silo_ids=[silo.id])]

        assert ids == [tie_a.id, tie_b.id, late.id]

    async def test_timestamps_come_back_utc_aware(self, repo, silo):
        await repo.add_inbound(silo.id, Decimal("5"), product="Wheat", created_at=T0)

        movement = (await repo.list_inbound(silo_ids=[silo.id]))[0]

        assert movement.created_at == T0
        assert movement.created_at.tzinfo is not None

    async def test_period_and_attribute_filters(self, repo, silo):
        await repo.add_inbound(silo.id, Decimal("5"), product="Wheat", operator="ana", created_at=T0)
        await repo.add_inbound(silo.id, Decimal("6"), product="Corn", operator="ana",
                               created_at=T0 + timedelta(days=1))
        await repo.add_inbound(silo.id, Decimal("7"), product="Wheat", operator="luis",
                               created_at=T0 + timedelta(days=2))

        in_window = await repo.list_movements(MovementKind.INBOUND, start=T0 + timedelta(days=1),
                                              end=T0 + timedelta(days=2))
        wheat = await repo.list_movements(MovementKind.INBOUND, product="Wheat")
        by_luis = await repo.list_movements("inbound", operator="luis")

        assert [m.quantity for m in in_window] == [Decimal("6")]
        assert [m.quantity for m in wheat] == [Decimal("5"), Decimal("7")]
        assert [m.quantity for m in by_luis] == [Decimal("7")]

    async def test_outbound_plan_round_trip(self, repo, silo):
        source = await repo.add_inbound(silo.id, Decimal("100"), product="Wheat", lot_tf="TF-9", created_at=T0)
        line = WithdrawalLine(inbound_id=source.id, quantity=Decimal("40.5"), product="Wheat",
                              lot_tf="TF-9", entry_date="2026-02-10")

        created = await repo.add_outbound(silo.id, Decimal("40.5"), items=[line], operator="luis",
                                          created_at=T0 + timedelta(hours=1))
        fetched = await repo.get_movement(MovementKind.OUTBOUND, created.id)

        assert fetched.items == (line,)
        assert fetched.product == "Wheat"
        assert fetched.operator == "luis"
        assert [m.id for m in await repo.list_outbound(product="Wheat")] == [created.id]
        assert await repo.list_outbound(product="Corn") == []

    async def test_delete_movement(self, repo, silo):
        movement = await repo.add_inbound(silo.id, Decimal("5"), product="Wheat")

        assert await repo.delete_movement(MovementKind.INBOUND, movement.id) is True
        assert await repo.get_movement(MovementKind.INBOUND, movement.id) is None
        assert await repo.delete_movement(MovementKind.INBOUND, movement.id) is False


class TestGuards:

    async def test_inbound_referenced_by_plan(self, repo, silo):
        used = await repo.add_inbound(silo.id, Decimal("100"), product="Wheat", created_at=T0)
        unused = await repo.add_inbound(silo.id, Decimal("100"), product="Wheat", created_at=T0)
        await repo.add_outbound(silo.id, Decimal("10"), operator="luis",
                                items=[WithdrawalLine(inbound_id=used.id, quantity=Decimal("10"))])

        assert await repo.inbound_is_referenced(used.id) is True
        assert await repo.inbound_is_referenced(unused.id) is False
        assert await repo.inbound_is_referenced(12345) is False

    async def test_has_inbound_since(self, repo, silo):
        await repo.add_inbound(silo.id, Decimal("1"), product="Wheat", created_at=T0)

        assert await repo.has_inbound_since(silo.id, T0 - timedelta(days=1)) is True
        assert await repo.has_inbound_since(silo.id, T0 + timedelta(seconds=1)) is False


class TestServiceAgainstDatabase:

    async def test_reference_flow(self, repo, silo):
        """
        +5000, +3000, -6000 through the service: 2000 kg remain in the
        second batch and the stored plan names both sources.
        """
        service = SiloInventoryService(repo)

        first = await service.receive({"silo_id": silo.id, "quantity": "5000", "product": "Wheat"})
        second = await service.receive({"silo_id": silo.id, "quantity": "3000", "product": "Wheat"})
        dispatched = await service.dispatch({"silo_id": silo.id, "quantity": "6000", "operator": "luis"})

        level = await service.get_level(silo.id)
        assert level.current_quantity == Decimal("2000")
        assert [(b.inbound_id, b.quantity) for b in level.batches] == [(second.id, Decimal("2000"))]

        stored = await repo.get_movement(MovementKind.OUTBOUND, dispatched.id)
        assert [(i.inbound_id, i.quantity) for i in stored.items] == [
            (first.id, Decimal("5000")),
            (second.id, Decimal("1000")),
        ]

        with pytest.raises(MovementInUse):
            await service.delete_inbound(first.id)

    async def test_refusals_do_not_write(self, repo, silo):
        service = SiloInventoryService(repo)
        await service.receive({"silo_id": silo.id, "quantity": "9000", "product": "Wheat"})

        with pytest.raises(CapacityExceeded):
            await service.receive({"silo_id": silo.id, "quantity": "1000.001", "product": "Wheat"})
        with pytest.raises(InsufficientStock):
            await service.dispatch({"silo_id": silo.id, "quantity": "9000.5", "operator": "luis"})

        assert len(await repo.list_inbound(silo_ids=[silo.id])) == 1
        assert await repo.list_outbound(silo_ids=[silo.id]) == []

    async def test_stored_outbound_matches_its_plan(self, repo, silo):
        """
        Fractional quantities at gram resolution survive the DECIMAL(14, 3)
        columns, so the reloaded outbound equals the sum of its plan lines.
        """
        service = SiloInventoryService(repo)
        await service.receive({"silo_id": silo.id, "quantity": "0.5", "product": "Wheat"})
        await service.receive({"silo_id": silo.id, "quantity": "0.25", "product": "Wheat"})

        dispatched = await service.dispatch({"silo_id": silo.id, "quantity": "0.625", "operator": "luis"})

        stored = await repo.get_movement(MovementKind.OUTBOUND, dispatched.id)
        assert stored.quantity == Decimal("0.625")
        assert sum(i.quantity for i in stored.items) == stored.quantity
        assert (await service.get_level(silo.id)).current_quantity == Decimal("0.125")

    async def test_sub_gram_quantity_refused_before_write(self, repo, silo):
        service = SiloInventoryService(repo)
        await service.receive({"silo_id": silo.id, "quantity": "100", "product": "Wheat"})

        with pytest.raises(InvalidMovement) as exc:
            await service.dispatch({"silo_id": silo.id, "quantity": "0.1234", "operator": "luis"})

        assert exc.value.field == "quantity"
        assert await repo.list_outbound(silo_ids=[silo.id]) == []
