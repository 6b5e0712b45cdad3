"""
Tests for SiloInventoryService

The store is replaced by AsyncMock so each test controls exactly what
history the service sees, and can assert that refused movements never
reach a write.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from fifo_ledger.exceptions import (
    CapacityExceeded,
    InsufficientStock,
    InvalidMovement,
    MovementInUse,
    MovementLocked,
    MovementNotFound,
    ProductNotAllowed,
    SiloNotEmpty,
    SiloNotFound,
)
from fifo_ledger.models import (
    InboundMovement,
    MovementKind,
    OutboundMovement,
    ProcessingOrder,
    Silo,
    WithdrawalPlan,
)
from fifo_ledger.service import SiloInventoryService

pytestmark = pytest.mark.asyncio

T0 = datetime(2026, 3, 2, 6, 0, 0, tzinfo=timezone.utc)


def inbound(movement_id, quantity, hours, silo_id=1, product="Wheat"):
    return InboundMovement(
        id=movement_id, silo_id=silo_id, quantity=Decimal(quantity),
        created_at=T0 + timedelta(hours=hours), product=product, supplier="Acme Grain",
    )


def outbound(movement_id, quantity, hours, silo_id=1):
    return OutboundMovement(
        id=movement_id, silo_id=silo_id, quantity=Decimal(quantity),
        created_at=T0 + timedelta(hours=hours), operator="luis",
    )


@pytest.fixture
def silo():
    return Silo(id=1, name="S1", capacity=Decimal("10000"))


@pytest.fixture
def repository(silo):
    repo = AsyncMock()
    repo.get_silo.return_value = silo
    repo.list_silos.return_value = [silo]
    repo.list_inbound.return_value = []
    repo.list_outbound.return_value = []
    repo.inbound_is_referenced.return_value = False
    repo.has_inbound_since.return_value = False
    return repo


@pytest.fixture
def service(repository):
    return SiloInventoryService(repository, order=ProcessingOrder.CHRONOLOGICAL, logger=MagicMock())


class TestReceive:

    async def test_registers_inbound_within_capacity(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "9800", 0)]
        repository.add_inbound.return_value = inbound(2, "200", 1)

        movement = await service.receive({"silo_id": 1, "quantity": "200", "product": "Wheat",
                                          "supplier": "Coop", "humidity": "12.5"})

        assert movement.id == 2
        kwargs = repository.add_inbound.await_args.kwargs
        assert kwargs["silo_id"] == 1
        assert kwargs["quantity"] == Decimal("200")
        assert kwargs["supplier"] == "Coop"
        assert kwargs["humidity"] == Decimal("12.5")
        service.logger.receive.assert_called_once()

    async def test_capacity_refusal_leaves_store_untouched(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "9800", 0)]

        with pytest.raises(CapacityExceeded) as exc:
            await service.receive({"silo_id": 1, "quantity": "201", "product": "Wheat"})

        assert exc.value.headroom == Decimal("200")
        repository.add_inbound.assert_not_awaited()
        service.logger.capacity_exceeded.assert_called_once()

    async def test_level_is_recomputed_from_both_histories(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "9800", 0)]
        repository.list_outbound.return_value = [outbound(1, "500", 1)]
        repository.add_inbound.return_value = inbound(2, "500", 2)

        await service.receive({"silo_id": 1, "quantity": "500", "product": "Wheat"})

        repository.list_inbound.assert_awaited_with(silo_ids=[1])
        repository.list_outbound.assert_awaited_with(silo_ids=[1])
        repository.add_inbound.assert_awaited_once()

    async def test_unknown_silo(self, service, repository):
        repository.get_silo.return_value = None

        with pytest.raises(SiloNotFound):
            await service.receive({"silo_id": 42, "quantity": "10", "product": "Wheat"})
        repository.add_inbound.assert_not_awaited()

    async def test_invalid_payload_rejected_before_store_access(self, service, repository):
        with pytest.raises(InvalidMovement):
            await service.receive({"silo_id": 1, "quantity": "0.01", "product": "Wheat"})
        repository.get_silo.assert_not_awaited()

    async def test_non_integer_silo_id_is_a_typed_refusal(self, service, repository):
        with pytest.raises(InvalidMovement) as exc:
            await service.receive({"silo_id": "abc", "quantity": "10", "product": "Wheat"})

        assert exc.value.field == "silo_id"
        repository.get_silo.assert_not_awaited()

    async def test_numeric_string_silo_id_accepted(self, service, repository):
        await service.receive({"silo_id": "1", "quantity": "10", "product": "Wheat"})

        repository.get_silo.assert_awaited_with(1)
        assert repository.add_inbound.await_args.kwargs["silo_id"] == 1

    async def test_quality_readings_stored_at_two_decimals(self, service, repository):
        await service.receive({"silo_id": 1, "quantity": "10", "product": "Wheat",
                               "proteins": "12.345", "humidity": 13})

        kwargs = repository.add_inbound.await_args.kwargs
        assert kwargs["proteins"] == Decimal("12.34")
        assert kwargs["humidity"] == Decimal("13.00")
        assert kwargs["quantity"] == Decimal("10.000")

    async def test_restricted_product(self, service, repository):
        repository.get_silo.return_value = Silo(1, "S1", Decimal("10000"), allowed_products=("Corn",))

        with pytest.raises(ProductNotAllowed):
            await service.receive({"silo_id": 1, "quantity": "10", "product": "Wheat"})
        repository.add_inbound.assert_not_awaited()


class TestDispatch:

    async def test_dispatch_stores_fifo_plan(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "5000", 1), inbound(2, "3000", 2)]
        repository.add_outbound.side_effect = lambda **kw: outbound(1, str(kw["quantity"]), 3)

        await service.dispatch({"silo_id": 1, "quantity": "6000", "operator": "luis"})

        plan = repository.add_outbound.await_args.kwargs["items"]
        assert isinstance(plan, WithdrawalPlan)
        assert [(line.inbound_id, line.quantity) for line in plan.lines] == [
            (1, Decimal("5000")),
            (2, Decimal("1000")),
        ]
        service.logger.dispatch.assert_called_once()

    async def test_availability_refusal_leaves_store_untouched(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "300", 1)]

        with pytest.raises(InsufficientStock) as exc:
            await service.dispatch({"silo_id": 1, "quantity": "301", "operator": "luis"})

        assert exc.value.available == Decimal("300")
        repository.add_outbound.assert_not_awaited()
        service.logger.insufficient_stock.assert_called_once()

    async def test_previous_outbound_reduces_availability(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "300", 1)]
        repository.list_outbound.return_value = [outbound(1, "200", 2)]

        with pytest.raises(InsufficientStock):
            await service.dispatch({"silo_id": 1, "quantity": "101", "operator": "luis"})

    async def test_operator_required(self, service, repository):
        with pytest.raises(InvalidMovement) as exc:
            await service.dispatch({"silo_id": 1, "quantity": "10"})
        assert exc.value.field == "operator"


class TestConcurrentAdmission:

    async def test_concurrent_dispatches_cannot_oversell(self, silo):
        """
        Two 60 kg requests against 100 kg: the per-silo lock makes the second
        one see the first one's write, so exactly one succeeds.
        """
        stored_outbound = []

        async def list_outbound(silo_ids=None, **_):
            await asyncio.sleep(0)
            return list(stored_outbound)

        async def add_outbound(**kwargs):
            await asyncio.sleep(0)
            movement = outbound(len(stored_outbound) + 1, str(kwargs["quantity"]), 5)
            stored_outbound.append(movement)
            return movement

        repo = AsyncMock()
        repo.get_silo.return_value = silo
        repo.list_inbound.return_value = [inbound(1, "100", 1)]
        repo.list_outbound.side_effect = list_outbound
        repo.add_outbound.side_effect = add_outbound
        service = SiloInventoryService(repo, logger=MagicMock())

        results = await asyncio.gather(
            service.dispatch({"silo_id": 1, "quantity": "60", "operator": "a"}),
            service.dispatch({"silo_id": 1, "quantity": "60", "operator": "b"}),
            return_exceptions=True,
        )

        assert sum(isinstance(r, OutboundMovement) for r in results) == 1
        assert sum(isinstance(r, InsufficientStock) for r in results) == 1
        assert len(stored_outbound) == 1

    async def test_unknown_silo_does_not_register_a_lock(self, service, repository):
        repository.get_silo.return_value = None

        with pytest.raises(SiloNotFound):
            await service.dispatch({"silo_id": 42, "quantity": "10", "operator": "luis"})

        assert 42 not in service._silo_locks

    async def test_dispatch_queued_behind_removal_sees_silo_gone(self, silo):
        """
        A dispatch that waits on the lock while the silo is being removed
        re-reads the registry once it gets the lock and is refused.
        """
        removed = []

        async def get_silo(silo_id):
            return None if removed else silo

        async def has_inbound_since(silo_id, since):
            await asyncio.sleep(0)
            return False

        async def delete_silo(silo_id):
            removed.append(silo_id)
            return True

        repo = AsyncMock()
        repo.get_silo.side_effect = get_silo
        repo.list_inbound.return_value = []
        repo.list_outbound.return_value = []
        repo.has_inbound_since.side_effect = has_inbound_since
        repo.delete_silo.side_effect = delete_silo
        service = SiloInventoryService(repo, logger=MagicMock())

        results = await asyncio.gather(
            service.remove_silo(1, now=T0),
            service.dispatch({"silo_id": 1, "quantity": "10", "operator": "luis"}),
            return_exceptions=True,
        )

        assert results[0] is None
        assert isinstance(results[1], SiloNotFound)
        assert removed == [1]
        repo.add_outbound.assert_not_awaited()


class TestDeletion:

    async def test_delete_recent_inbound(self, service, repository):
        movement = inbound(7, "100", 0)
        repository.get_movement.return_value = movement

        await service.delete_inbound(7, now=movement.created_at + timedelta(hours=1))

        repository.delete_movement.assert_awaited_once_with(MovementKind.INBOUND, 7)

    async def test_inbound_used_by_a_plan_cannot_be_deleted(self, service, repository):
        movement = inbound(7, "100", 0)
        repository.get_movement.return_value = movement
        repository.inbound_is_referenced.return_value = True

        with pytest.raises(MovementInUse):
            await service.delete_inbound(7, now=movement.created_at)
        repository.delete_movement.assert_not_awaited()

    async def test_old_movement_is_locked(self, service, repository):
        movement = outbound(3, "10", 0)
        repository.get_movement.return_value = movement

        with pytest.raises(MovementLocked):
            await service.delete_outbound(3, now=movement.created_at + timedelta(hours=25))
        repository.delete_movement.assert_not_awaited()

    async def test_missing_movement(self, service, repository):
        repository.get_movement.return_value = None

        with pytest.raises(MovementNotFound):
            await service.delete_outbound(99)


class TestRemoveSilo:

    async def test_silo_with_stock_is_kept(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "10", 0)]

        with pytest.raises(SiloNotEmpty):
            await service.remove_silo(1, now=T0 + timedelta(days=60))
        repository.delete_silo.assert_not_awaited()

    async def test_recent_receipts_block_removal(self, service, repository):
        repository.has_inbound_since.return_value = True

        with pytest.raises(SiloNotEmpty):
            await service.remove_silo(1, now=T0)

        since = repository.has_inbound_since.await_args.args[1]
        assert since == T0 - timedelta(days=30)

    async def test_empty_quiet_silo_is_removed(self, service, repository):
        await service.remove_silo(1, now=T0)
        repository.delete_silo.assert_awaited_once_with(1)


class TestQueries:

    async def test_get_levels(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "2500", 0)]

        levels = await service.get_levels()

        assert len(levels) == 1
        assert levels[0].current_quantity == Decimal("2500")
        assert levels[0].utilization_percentage == Decimal("25.00")

    async def test_get_levels_without_silos_skips_history(self, service, repository):
        repository.list_silos.return_value = []

        assert await service.get_levels() == []
        repository.list_inbound.assert_not_awaited()

    async def test_get_level_unknown_silo(self, service, repository):
        repository.get_silo.return_value = None
        with pytest.raises(SiloNotFound):
            await service.get_level(5)

    async def test_fleet_stats(self, service, repository):
        repository.list_inbound.return_value = [inbound(1, "8000", 0)]

        stats = await service.fleet_stats()

        assert stats.total_used == Decimal("8000")
        assert stats.buckets["full"] == 1

    async def test_movement_breakdown(self, service, repository):
        repository.list_movements.return_value = [
            inbound(1, "100", 0, product="A"),
            inbound(2, "200", 1, product="B"),
        ]

        totals = await service.movement_breakdown("inbound", "product", start=T0)

        assert totals == {"A": Decimal("100"), "B": Decimal("200")}
        assert repository.list_movements.await_args.args[0] is MovementKind.INBOUND
        assert repository.list_movements.await_args.kwargs["start"] == T0

    async def test_movement_summary(self, service, repository):
        repository.list_movements.return_value = [outbound(1, "30", 0), outbound(2, "10", 1)]

        summary = await service.movement_summary(MovementKind.OUTBOUND, "operator")

        assert summary.kind is MovementKind.OUTBOUND
        assert summary.groups["luis"].count == 2
        assert summary.average_quantity == Decimal("20")
